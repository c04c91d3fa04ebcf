from liquidvote.scheduler.timers import (
    AsyncioScheduler,
    OneShotTimer,
    Scheduler,
    TimerCallback,
    TimerHandle,
)

__all__ = [
    "AsyncioScheduler",
    "OneShotTimer",
    "Scheduler",
    "TimerCallback",
    "TimerHandle",
]
