from .logger_service import (
    ForecastScheduler,
    SchedulerState,
    install_signal_handlers,
    main,
    to_readable_string,
)

__all__ = [
    "ForecastScheduler",
    "SchedulerState",
    "install_signal_handlers",
    "main",
    "to_readable_string",
]
