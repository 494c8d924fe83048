from .cbase_client import (
    AppSettings,
    CBaseClient,
    CBaseSettings,
    ForecastCsvParser,
    ForecastParseError,
    IntervalType,
    OfflineCBaseClient,
    RateLimitDenied,
    RateLimiter,
    RateLimitGranted,
    ServiceConfig,
    TrackingOption,
    build_query_params,
    resolve_time_zone,
    utc_now,
)

__all__ = [
    "AppSettings",
    "CBaseClient",
    "CBaseSettings",
    "ForecastCsvParser",
    "ForecastParseError",
    "IntervalType",
    "OfflineCBaseClient",
    "RateLimitDenied",
    "RateLimiter",
    "RateLimitGranted",
    "ServiceConfig",
    "TrackingOption",
    "build_query_params",
    "resolve_time_zone",
    "utc_now",
]
