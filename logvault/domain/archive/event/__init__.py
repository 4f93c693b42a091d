from logvault.domain.archive.event.log_expire_requested import LogExpireRequested
from logvault.domain.archive.event.log_pull_requested import LogPullRequested
from logvault.domain.archive.event.log_verify_requested import LogVerifyRequested
from logvault.domain.archive.event.log_window_archived import LogWindowArchived

__all__ = [
    "LogExpireRequested",
    "LogPullRequested",
    "LogVerifyRequested",
    "LogWindowArchived",
]
