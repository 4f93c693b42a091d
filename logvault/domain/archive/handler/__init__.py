from logvault.domain.archive.handler.expire_archives import ExpireArchives
from logvault.domain.archive.handler.pull_log_window import PullLogWindow
from logvault.domain.archive.handler.record_source_pulled import RecordSourcePulled
from logvault.domain.archive.handler.verify_archived_object import VerifyArchivedObject

__all__ = [
    "ExpireArchives",
    "PullLogWindow",
    "RecordSourcePulled",
    "VerifyArchivedObject",
]
