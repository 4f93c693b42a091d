"""Event infrastructure - worker and DI provider.

Import modules directly:
    from logvault.infrastructure.event.di import EventProvider
    from logvault.infrastructure.event.worker import Worker, WorkerPool, ScheduleConfigs
"""

__all__: list[str] = []
