from logvault.domain.archive.schedule.zone_scheduler import ZoneScheduler

__all__ = ["ZoneScheduler"]
