from .forecast_models import (
    METRIC_COLUMNS,
    Base,
    DatabaseEngine,
    DatabaseSettings,
    Failed,
    ForecastDatabase,
    ForecastRecord,
    NoData,
    Ok,
    PvForecast,
    StepResult,
)

__all__ = [
    "METRIC_COLUMNS",
    "Base",
    "DatabaseEngine",
    "DatabaseSettings",
    "Failed",
    "ForecastDatabase",
    "ForecastRecord",
    "NoData",
    "Ok",
    "PvForecast",
    "StepResult",
]
