"""CBase API Client Library for PV Forecast Retrieval

This module provides the client side of the PV forecast logger: configuration
management, an hour-aligned rate limiter, the HTTP client for the CBase
photovoltaic forecast API and the parser turning the CSV response into
ForecastRecord objects.

Core Components:

Configuration Management:
- AppSettings: Scheduling, timeout, rate limit and offline mode settings
- CBaseSettings: Site description and API key sent to the CBase API
- ServiceConfig: Loads all settings sections from a JSON file and/or kwargs
- Every settings class exposes validate(), returning a list of violations

API Client Architecture:
- RateLimiter: At most N requests per wall-clock hour (fixed, hour-aligned window)
- CBaseClient: Rate limited GET against the CBase forecast endpoint
- OfflineCBaseClient: Serves forecast CSV from a local file instead of the network

Data Processing Pipeline:
- ForecastCsvParser: pandas based CSV parsing with NA handling and UTC timestamps

Key Features:

Rate Limiting System:
- Fixed window aligned to UTC wall-clock hours
- Every request attempt counts against the window, including denied ones
- Denied requests are dropped, the next scheduled cycle tries again

Query Construction:
- Site coordinates, panel quantity and output, inverter capacity (0 when unset)
- Tracking mode dependent slope / azimuth parameters
- API key appended last and masked in all log output

CSV Parsing:
- Case-insensitive header matching against the fixed CBase column set
- "yyyy-MM-dd HH:mm:ss" timestamps interpreted as UTC
- 32-bit float metrics, the literal NA (any case) maps to None

API Endpoint Supported:
- Endpoint: https://www.cbase.fi/api/pvfcst_request
- Response: CSV with a Time.UTC column and 21 metric columns

Configuration File Schema:
    {
        "app": {
            "timeout": int (ms),
            "logging_interval": int (ms),
            "interval_type": "Relative" | "Absolute",
            "absolute_interval_start_hour": int (0-23),
            "time_zone": "UTC",
            "rate_limit_max_request_in_hour": int,
            "offline_mode": bool,
            "offline_file": "config/example.csv"
        },
        "cbase": {
            "latitude": float,
            "longitude": float,
            "panel_qty": int,
            "panel_output": int,
            "inverter_capacity": float | null,
            "tracking": 0 | 1 | 2 | 3 | "FixedAngle" | "YAxis" | "XAxis" | "YxAxis",
            "slope": int,
            "azimuth": int,
            "api_key": str
        },
        "database": {
            "enabled": bool,
            "url": str | null,
            "table_name": "pv_forecast"
        }
    }

Usage Patterns:

Forecast Retrieval:\n
    config = ServiceConfig(create_from_file=True)
    client = CBaseClient(config.cbase, config.app.rate_limit_max_request_in_hour)
    result = client.fetch(timeout=timedelta(minutes=1), cancel_event=threading.Event())
    if isinstance(result, Ok):
        records = ForecastCsvParser().parse(result.value)

Dependencies:
- requests: HTTP communication with the CBase API
- pandas: CSV parsing and column conversion
- numpy: 32-bit float conversion of forecast metrics
"""

import io
import json
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import InitVar, dataclass, field, fields
from datetime import datetime, timedelta, timezone, tzinfo
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any, Callable, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import numpy as np
import pandas as pd
import requests

from forecast_models import (
    METRIC_COLUMNS,
    DatabaseSettings,
    Failed,
    ForecastRecord,
    NoData,
    Ok,
    StepResult,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def resolve_time_zone(name: str) -> tzinfo:
    """Resolve an IANA time zone name. "UTC" does not require the tz database."""
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def decimal_places(value: float) -> int:
    exponent = Decimal(str(value)).as_tuple().exponent
    return -exponent if isinstance(exponent, int) and exponent < 0 else 0


class IntervalType(str, Enum):
    """Scheduling policy of the logging loop."""

    RELATIVE = "Relative"
    ABSOLUTE = "Absolute"

    @classmethod
    def parse(cls, value: Any) -> "IntervalType":
        if isinstance(value, IntervalType):
            return value
        for member in cls:
            if str(value).lower() in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(
            f"Unknown interval type {value}. Expected one of {[member.value for member in cls]}."
        )


class TrackingOption(IntEnum):
    """Panel tracking modes. The integer values are part of the CBase API contract."""

    FIXED_ANGLE = 0
    Y_AXIS = 1
    X_AXIS = 2
    YX_AXIS = 3

    @classmethod
    def parse(cls, value: Any) -> "TrackingOption":
        if isinstance(value, TrackingOption):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        normalized = str(value).replace("_", "").lower()
        for member in cls:
            if normalized == member.name.replace("_", "").lower():
                return member
        raise ValueError(
            f"Unknown tracking option {value}. Expected one of {[member.name for member in cls]}."
        )

    @property
    def sends_slope(self) -> bool:
        return self in (TrackingOption.FIXED_ANGLE, TrackingOption.X_AXIS)

    @property
    def sends_azimuth(self) -> bool:
        return self in (TrackingOption.FIXED_ANGLE, TrackingOption.Y_AXIS)


@dataclass
class AppSettings:
    """Scheduling and runtime settings of the logger.

    Attributes:
        timeout (int): Per-cycle fetch deadline in milliseconds.
        logging_interval (int): Milliseconds between cycles for the relative policy,
            step used to advance the anchor hour for the absolute policy.
        interval_type (IntervalType): Relative or absolute (wall-clock aligned) scheduling.
        absolute_interval_start_hour (int): First daily anchor hour (0-23) for the absolute policy.
        time_zone (str): IANA time zone the anchor hour is read in.
        rate_limit_max_request_in_hour (int): Maximum CBase requests per wall-clock hour.
        offline_mode (bool): Serve the forecast from offline_file instead of the API.
        offline_file (str): CSV file used in offline mode.
    """

    timeout: int = 60_000
    logging_interval: int = 10_800_000
    interval_type: IntervalType = IntervalType.RELATIVE
    absolute_interval_start_hour: int = 0
    time_zone: str = "UTC"
    rate_limit_max_request_in_hour: int = 10
    offline_mode: bool = False
    offline_file: str = os.path.join("config", "example.csv")

    MIN_LOGGING_INTERVAL = 60_000

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if "interval_type" in values:
            values["interval_type"] = IntervalType.parse(values["interval_type"])
        return cls(**values)

    @property
    def timeout_delta(self) -> timedelta:
        return timedelta(milliseconds=self.timeout)

    @property
    def interval_delta(self) -> timedelta:
        return timedelta(milliseconds=self.logging_interval)

    def validate(self) -> List[str]:
        """Collect all violations of the application settings.

        Returns:
            List[str]: Human readable violations. Empty when the settings are valid.
        """
        violations = []

        if self.timeout < 0:
            violations.append("Timeout must be greater than or equal to 0.")

        if self.logging_interval < AppSettings.MIN_LOGGING_INTERVAL:
            violations.append(
                f"Logging interval must be greater than or equal to {AppSettings.MIN_LOGGING_INTERVAL} (1 minute)."
            )

        if self.interval_type == IntervalType.ABSOLUTE and not (
            0 <= self.absolute_interval_start_hour <= 23
        ):
            violations.append("Absolute interval start hour must be between 0 and 23.")

        if self.rate_limit_max_request_in_hour < 1:
            violations.append("Rate limit must allow at least 1 request per hour.")

        try:
            resolve_time_zone(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError):
            violations.append(f"Unknown time zone {self.time_zone}.")

        if self.offline_mode and not self.offline_file:
            violations.append("Offline file must be set when offline mode is enabled.")

        return violations


@dataclass
class CBaseSettings:
    """Site description sent to the CBase API.

    Attributes:
        latitude (float): Site latitude in decimal degrees (up to 6 decimals).
        longitude (float): Site longitude in decimal degrees (up to 6 decimals).
        panel_qty (int): Number of panels.
        panel_output (int): Nominal output of a single panel (W).
        tracking (TrackingOption): Panel tracking mode.
        slope (int): Panel slope (deg), sent for fixed angle and x-axis tracking.
        azimuth (int): Panel azimuth (deg), sent for fixed angle and y-axis tracking.
        api_key (str): CBase API key. Overridden by the CBASE_API_KEY environment variable.
        inverter_capacity (float | None): Inverter capacity (kW, up to 2 decimals). Sent as 0 when unset.
    """

    latitude: float
    longitude: float
    panel_qty: int
    panel_output: int
    tracking: TrackingOption
    slope: int
    azimuth: int
    api_key: str
    inverter_capacity: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CBaseSettings":
        """Create CBaseSettings from a configuration section.

        Raises:
            ValueError: When required keys are missing or the tracking option is unknown.
        """
        known = {f.name for f in fields(cls)}
        required = [f.name for f in fields(cls) if f.name != "inverter_capacity"]
        missing = [name for name in required if name not in data]
        if missing:
            raise ValueError(f"CBase settings are missing required keys: {missing}")

        values = {k: v for k, v in data.items() if k in known}
        values["tracking"] = TrackingOption.parse(values["tracking"])
        return cls(**values)

    def validate(self) -> List[str]:
        """Collect all violations of the CBase site settings.

        Returns:
            List[str]: Human readable violations. Empty when the settings are valid.
        """
        violations = []

        if not -90 <= self.latitude <= 90:
            violations.append("Latitude must be between -90 and 90.")
        if not -180 <= self.longitude <= 180:
            violations.append("Longitude must be between -180 and 180.")
        if self.panel_qty < 1:
            violations.append("Panel quantity must be greater than 0.")
        if self.panel_output < 1:
            violations.append("Panel output must be greater than 0.")
        if self.inverter_capacity is not None and self.inverter_capacity < 0:
            violations.append("Inverter capacity must be greater than or equal to 0.")
        if not self.api_key or not self.api_key.strip():
            violations.append(
                "API key must be provided. More information from https://www.cbase.fi/."
            )

        if decimal_places(self.latitude) > 6:
            violations.append("Latitude can have up to 6 decimal places.")
        if decimal_places(self.longitude) > 6:
            violations.append("Longitude can have up to 6 decimal places.")
        if (
            self.inverter_capacity is not None
            and decimal_places(self.inverter_capacity) > 2
        ):
            violations.append("Inverter capacity can have up to 2 decimal places.")

        if not isinstance(self.tracking, TrackingOption):
            violations.append("Invalid TrackingOption value.")
            return violations

        if self.tracking.sends_slope and not 0 <= self.slope <= 90:
            violations.append(
                f"Slope must be between 0 and 90 for {self.tracking.name} tracking."
            )
        if self.tracking.sends_azimuth and not 0 <= self.azimuth <= 360:
            violations.append(
                f"Azimuth must be between 0 and 360 for {self.tracking.name} tracking."
            )

        return violations


@dataclass
class ServiceConfig:
    """Configuration of the PV forecast logger.

    Loads the app, cbase and database sections from a JSON configuration file,
    from kwargs, or from a file with kwargs overriding individual keys. The
    CBASE_API_KEY environment variable takes precedence over the configured
    API key.

    Attributes:
        app (AppSettings): Scheduling and runtime settings.
        cbase (CBaseSettings): Site description and API key.
        database (DatabaseSettings): Persistence settings.

    Example:
        From configuration file:\n
        config = ServiceConfig(create_from_file=True)

        From kwargs with overrides:\n
        config = ServiceConfig(
            create_from_file=True,
            kwargs={"app": {"offline_mode": True}}
        )
    """

    app: AppSettings = field(init=False)
    cbase: CBaseSettings = field(init=False)
    database: DatabaseSettings = field(init=False)
    create_from_file: InitVar[bool] = field(default=False)
    config_file: InitVar[str | None] = field(default=None)
    kwargs: InitVar[Dict[str, Any] | None] = field(default=None)

    def __post_init__(
        self,
        create_from_file: bool,
        config_file: str | None,
        kwargs: Dict[str, Any] | None,
    ):
        """Initialize ServiceConfig from file or kwargs.

        Args:
            create_from_file (bool): Whether to load base configuration from file.
            config_file (str | None): Path to the JSON configuration file. Defaults to
                {cwd}/config/{CONFIG_FILE env var or config.json}.
            kwargs (Dict[str, Any] | None): Sections or per-key overrides keyed by
                section name. Required when create_from_file=False.

        Raises:
            ValueError: When create_from_file=False but kwargs is None.
            ValueError: When the configuration file cannot be read or a section is malformed.
        """
        if create_from_file:
            if not config_file:
                config_file = os.path.join(
                    os.getcwd(),
                    "config",
                    os.getenv("CONFIG_FILE", "config.json"),
                )

            config = self.__get_config(config_file)

            if kwargs:
                self.__overwrite_kwargs(config, kwargs)

        else:
            if kwargs:
                config = {section: dict(values) for section, values in kwargs.items()}
            else:
                raise ValueError("Kwargs are required when create_from_file=False.")

        self.__set_sections(config)

    def __get_config(self, config_file: str) -> Dict[str, Any]:
        """Load and parse the JSON configuration file.

        Raises:
            ValueError: When the file does not exist or is not valid JSON.
        """
        try:
            with open(file=config_file, mode="r") as file:
                config = json.load(fp=file)
        except (OSError, json.JSONDecodeError) as e:
            raise ValueError(f"Unable to read configuration file {config_file}: {e}") from e

        return config

    def __overwrite_kwargs(self, config: Dict[str, Any], kwargs: Dict[str, Any]) -> None:
        for section, values in kwargs.items():
            config.setdefault(section, {}).update(values)

    def __set_sections(self, config: Dict[str, Any]) -> None:
        if "cbase" not in config:
            raise ValueError("Configuration section 'cbase' is required.")

        cbase = dict(config["cbase"])
        if os.getenv("CBASE_API_KEY"):
            cbase["api_key"] = os.getenv("CBASE_API_KEY")

        self.app = AppSettings.from_dict(config.get("app", {}))
        self.cbase = CBaseSettings.from_dict(cbase)
        self.database = DatabaseSettings.from_dict(config.get("database", {}))

    def validate(self) -> List[str]:
        """Collect the violations of all settings sections, prefixed with the section name."""
        return (
            [f"app: {violation}" for violation in self.app.validate()]
            + [f"cbase: {violation}" for violation in self.cbase.validate()]
            + [f"database: {violation}" for violation in self.database.validate()]
        )


@dataclass(frozen=True)
class RateLimitGranted:
    pass


@dataclass(frozen=True)
class RateLimitDenied:
    wait_until: datetime


class RateLimiter:
    """Fixed window rate limiter aligned to UTC wall-clock hours.

    The window resets on the first attempt made in a different wall-clock hour
    than the one the window was opened in. Every attempt counts, including the
    ones that are denied.

    Attributes:
        limit (int): Maximum attempts granted per hour.
        count (int): Attempts made since window_start.
        window_start (datetime): Instant the current window was opened.
    """

    def __init__(self, limit: int, clock: Callable[[], datetime] | None = None) -> None:
        self.limit = limit
        self.clock = clock or utc_now
        self.count = 0
        self.window_start = self.clock()

    @staticmethod
    def hour_of(moment: datetime) -> datetime:
        return moment.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)

    def try_acquire(self) -> RateLimitGranted | RateLimitDenied:
        """Count one request attempt and decide whether it may be sent.

        Returns:
            RateLimitGranted | RateLimitDenied: Denied carries the start of the
                next wall-clock hour.
        """
        now = self.clock()
        if RateLimiter.hour_of(now) != RateLimiter.hour_of(self.window_start):
            self.count = 0
            self.window_start = now

        granted = self.count < self.limit
        self.count += 1

        if granted:
            return RateLimitGranted()

        return RateLimitDenied(wait_until=RateLimiter.hour_of(now) + timedelta(hours=1))


def build_query_params(settings: CBaseSettings) -> List[Tuple[str, str]]:
    """Build the ordered CBase query parameters for a site.

    Slope is sent for fixed angle and x-axis tracking, azimuth for fixed angle
    and y-axis tracking. The API key is always the last parameter.
    """

    def number(value: float) -> str:
        return str(int(value)) if float(value).is_integer() else str(value)

    params = [
        ("lat", number(settings.latitude)),
        ("lon", number(settings.longitude)),
        ("panel_qty", str(settings.panel_qty)),
        ("panel_out", str(settings.panel_output)),
        (
            "inv_cap",
            number(settings.inverter_capacity)
            if settings.inverter_capacity is not None
            else "0",
        ),
        ("tracking", str(int(settings.tracking))),
    ]

    if settings.tracking.sends_slope:
        params.append(("slope", str(settings.slope)))
    if settings.tracking.sends_azimuth:
        params.append(("azi", str(settings.azimuth)))

    params.append(("apikey", settings.api_key))

    return params


class CBaseClient:
    """HTTP client for the CBase photovoltaic forecast API.

    Every call to fetch() is one attempt against the client's RateLimiter.
    Granted attempts send a single GET request; there is no retry within a
    call, the next scheduled cycle is the retry. Transport errors, timeouts
    and non-success status codes are logged and reported as Failed.

    Attributes:
        URL (str): CBase forecast endpoint.
        NETWORK_TIMEOUT (timedelta): Upper bound of a single request.
        CANCEL_POLL_INTERVAL (timedelta): How often a running request checks for
            shutdown and the cycle deadline.
        settings (CBaseSettings): Site description and API key.
        rate_limiter (RateLimiter): Hourly request budget owned by this client.
        session (requests.Session): HTTP session used for requests.
    """

    URL = "https://www.cbase.fi/api/pvfcst_request"

    NETWORK_TIMEOUT = timedelta(seconds=30)

    CANCEL_POLL_INTERVAL = timedelta(milliseconds=100)

    def __init__(
        self,
        settings: CBaseSettings,
        rate_limit_per_hour: int,
        session: requests.Session | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize CBaseClient.

        Args:
            settings (CBaseSettings): Site description and API key.
            rate_limit_per_hour (int): Maximum request attempts per wall-clock hour.
            session (requests.Session | None, optional): HTTP session. Defaults to a new session.
            clock (Callable[[], datetime] | None, optional): UTC clock. Defaults to utc_now.
        """
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(levelname)s - %(message)s",
        )
        self.logger = logging.getLogger(name=self.__class__.__name__)

        self.settings = settings
        self.session = session or requests.Session()
        self.clock = clock or utc_now
        self.rate_limiter = RateLimiter(rate_limit_per_hour, clock=self.clock)

    def mask(self, text: str) -> str:
        """Remove the API key from text that is about to be logged."""
        if not self.settings.api_key:
            return text
        return text.replace(self.settings.api_key, "***")

    def request_url(self) -> str:
        return requests.Request("GET", CBaseClient.URL, params=build_query_params(self.settings)).prepare().url or ""

    def fetch(self, timeout: timedelta, cancel_event: threading.Event) -> StepResult:
        """Fetch the raw forecast CSV from the CBase API.

        Args:
            timeout (timedelta): Per-cycle deadline for the whole call. The
                request timeout is the smaller of NETWORK_TIMEOUT and the
                remaining deadline.
            cancel_event (threading.Event): Shutdown signal. Interrupts the wait
                after a rate limit denial and abandons a request in flight.

        Returns:
            StepResult: Ok with the unmodified response body, NoData when the rate
                limit denied the attempt or shutdown was requested, Failed on
                transport errors, timeouts, an exceeded deadline and non-success
                status codes.
        """
        deadline = self.clock() + timeout

        permit = self.rate_limiter.try_acquire()
        if isinstance(permit, RateLimitDenied):
            self.logger.warning(
                f"Request limit of {self.rate_limiter.limit} per hour exceeded. Waiting until {permit.wait_until.isoformat()} to send more requests."
            )
            cancel_event.wait(max((permit.wait_until - self.clock()).total_seconds(), 0.0))
            return NoData("rate limit exceeded")

        if cancel_event.is_set():
            self.logger.info("Shutdown requested. Skipping forecast request.")
            return NoData("cancelled")

        remaining = (deadline - self.clock()).total_seconds()
        if remaining <= 0:
            self.logger.error("Fetch deadline exceeded before the forecast request was sent.")
            return Failed("fetch deadline exceeded")

        self.logger.debug(
            f"Fetching new photovoltaic production forecast data from {self.mask(self.request_url())}"
        )

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cbase-request")
        request = executor.submit(
            self.__get, min(CBaseClient.NETWORK_TIMEOUT.total_seconds(), remaining)
        )

        try:
            while not request.done():
                if cancel_event.is_set():
                    self.logger.info("Shutdown requested. Abandoning forecast request.")
                    return NoData("cancelled")

                remaining = (deadline - self.clock()).total_seconds()
                if remaining <= 0:
                    self.logger.error("Fetch deadline exceeded while waiting for the forecast response.")
                    return Failed("fetch deadline exceeded")

                wait(
                    [request],
                    timeout=min(CBaseClient.CANCEL_POLL_INTERVAL.total_seconds(), remaining),
                )

            if cancel_event.is_set():
                self.logger.info("Shutdown requested. Discarding forecast response.")
                return NoData("cancelled")

            response = request.result()
        except requests.RequestException as e:
            self.logger.error(
                f"Failed to fetch new photovoltaic production forecast data: {self.mask(str(e))}"
            )
            return Failed("fetch failed", e)
        finally:
            executor.shutdown(wait=False)

        self.logger.info(
            f"New photovoltaic production forecast fetched at {self.clock().isoformat()}"
        )

        return Ok(response.text)

    def __get(self, timeout: float) -> requests.Response:
        response = self.session.get(
            CBaseClient.URL,
            params=build_query_params(self.settings),
            timeout=timeout,
        )
        response.raise_for_status()
        return response


class OfflineCBaseClient:
    """Forecast source reading CSV from a local file instead of the CBase API.

    Not rate limited. Used for development and demonstrations.
    """

    def __init__(self, offline_file: str) -> None:
        self.logger = logging.getLogger(name=self.__class__.__name__)
        self.offline_file = offline_file

    def fetch(self, timeout: timedelta, cancel_event: threading.Event) -> StepResult:
        try:
            with open(file=self.offline_file, mode="r", encoding="utf-8") as file:
                text = file.read()
        except OSError as e:
            self.logger.error(f"Failed to read offline forecast file {self.offline_file}: {e}")
            return Failed("offline file unreadable", e)

        self.logger.info(f"Loaded offline forecast from {self.offline_file}")

        return Ok(text)


class ForecastParseError(ValueError):
    """Raised when forecast CSV does not have the expected structure."""


class ForecastCsvParser:
    """Converts CBase forecast CSV into ForecastRecord objects.

    Header names are matched case-insensitively. The Time.UTC column holds
    naive "yyyy-MM-dd HH:mm:ss" timestamps that are interpreted as UTC. All
    other expected columns are parsed as 32-bit floats, the token NA (any
    case) marks a missing value. Columns not used by the forecast record are
    ignored.
    """

    TIME_COLUMN = "time.utc"
    TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
    MISSING_VALUE = "NA"

    def parse(self, raw_text: str) -> List[ForecastRecord]:
        """Parse forecast CSV.

        Args:
            raw_text (str): CSV text including the header row.

        Raises:
            ForecastParseError: When the input is empty, expected columns are
                missing, or a timestamp or metric cannot be parsed.

        Returns:
            List[ForecastRecord]: Records in input row order.
        """
        frame = self.__read(raw_text)

        times = self.__parse_times(frame[ForecastCsvParser.TIME_COLUMN])
        metrics = {
            column: self.__parse_metric(frame[column], column)
            for column in METRIC_COLUMNS
        }

        return [
            ForecastRecord(
                time=times[row],
                **{column: metrics[column][row] for column in METRIC_COLUMNS},
            )
            for row in range(len(frame))
        ]

    def __read(self, raw_text: str) -> pd.DataFrame:
        if not raw_text or not raw_text.strip():
            raise ForecastParseError("Forecast data is empty. Expected a header row.")

        try:
            frame = pd.read_csv(
                io.StringIO(raw_text),
                dtype=str,
                index_col=False,
                keep_default_na=False,
                na_filter=False,
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise ForecastParseError(f"Forecast data is not valid CSV: {e}") from e

        frame.columns = [str(column).strip().lower() for column in frame.columns]

        expected = (ForecastCsvParser.TIME_COLUMN, *METRIC_COLUMNS)
        missing = [column for column in expected if column not in frame.columns]
        if missing:
            raise ForecastParseError(f"Forecast data is missing columns: {missing}")

        return frame.reset_index(drop=True)

    def __parse_times(self, column: pd.Series) -> List[datetime]:
        tokens = column.astype(str).str.strip()

        try:
            times = pd.to_datetime(
                tokens, format=ForecastCsvParser.TIMESTAMP_FORMAT, utc=True
            )
        except (ValueError, TypeError) as e:
            raise ForecastParseError(f"Unparseable timestamp in column Time.UTC: {e}") from e

        if times.isna().any():
            raise ForecastParseError("Forecast data contains rows without a timestamp.")

        return [timestamp.to_pydatetime() for timestamp in times]

    def __parse_metric(self, column: pd.Series, name: str) -> List[Optional[float]]:
        tokens = column.astype(str).str.strip()
        missing = tokens.str.upper() == ForecastCsvParser.MISSING_VALUE

        values = pd.to_numeric(tokens.where(~missing), errors="coerce")
        invalid = values.isna() & ~missing
        if invalid.any():
            row = int(invalid.to_numpy().argmax())
            raise ForecastParseError(
                f"Non-numeric value '{tokens.iloc[row]}' in column {name} at data row {row + 1}."
            )

        values = values.astype(np.float32)

        return [
            None if is_missing else float(value)
            for is_missing, value in zip(missing, values)
        ]
