from logvault.domain.archive.service.archive import ArchiveService, ExpiryResult

__all__ = ["ArchiveService", "ExpiryResult"]
