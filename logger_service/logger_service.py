"""PV Forecast Logger Service

This module implements the long running logging service. It periodically
retrieves the CBase photovoltaic production forecast, parses the CSV response
and upserts the forecast rows into the pv_forecast table.

Logging Cycle:
- Fetches the forecast CSV (rate limited, bounded by the configured timeout)
- Parses the CSV into ForecastRecord objects
- Persists the batch in a single transaction, replacing earlier forecasts
  for the same timestamps

Scheduling:
- The first cycle runs immediately on start-up
- Relative interval: cycles are spaced by the configured logging interval
- Absolute interval: cycles fire on wall-clock anchors, starting at the
  configured hour and advancing by the logging interval (e.g. every 3 hours
  starting at 00:00)

Cycle failures never stop the service. Fetch, parse and persistence failures
are logged where they happen and the next cycle runs on schedule. The service
stops on SIGINT or SIGTERM.

Usage:
    python -m logger_service

Environment:
    CONFIG_FILE: Configuration file name under ./config (default: config.json)
    LOGLEVEL: Logging level (default: INFO)
    CBASE_API_KEY: Overrides the configured CBase API key
    POSTGRES_*: Database connection when database.url is not configured
"""

import logging
import os
import signal
import sys
import threading
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Protocol

from cbase_client import (
    AppSettings,
    CBaseClient,
    ForecastCsvParser,
    ForecastParseError,
    IntervalType,
    OfflineCBaseClient,
    ServiceConfig,
    resolve_time_zone,
    utc_now,
)
from forecast_models import Failed, ForecastDatabase, Ok, StepResult

LOGLEVEL = os.getenv("LOGLEVEL", "INFO")


class ForecastSource(Protocol):
    def fetch(self, timeout: timedelta, cancel_event: threading.Event) -> StepResult: ...


class ForecastSink(Protocol):
    def persist(self, records) -> StepResult: ...


class SchedulerState(Enum):
    RUNNING = "running"
    STOPPED = "stopped"


def to_readable_string(span: timedelta) -> str:
    """Format a duration as "D days, HH hours, MM minutes, SS seconds"."""
    seconds = int(span.total_seconds())
    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    return f"{days} days, {hours:02} hours, {minutes:02} minutes, {seconds:02} seconds"


class ForecastScheduler:
    """Drives the fetch, parse and persist cycle of the logger.

    Only one cycle runs at a time. The persistence step of a cycle always
    finishes before the next cycle fetches. The shared cancel event interrupts
    the wait between cycles; a cycle that is already running finishes its
    current step.

    Attributes:
        settings (AppSettings): Scheduling settings.
        source (ForecastSource): Forecast fetcher (CBaseClient or OfflineCBaseClient).
        parser (ForecastCsvParser): CSV parser.
        database (ForecastSink): Forecast store.
        state (SchedulerState): RUNNING while the loop is active.
    """

    def __init__(
        self,
        settings: AppSettings,
        source: ForecastSource,
        database: ForecastSink,
        parser: ForecastCsvParser | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        logging.basicConfig(
            level=LOGLEVEL,
            format="%(asctime)s - %(levelname)s - %(message)s",
        )
        self.logger = logging.getLogger(name=self.__class__.__name__)

        self.settings = settings
        self.source = source
        self.database = database
        self.parser = parser or ForecastCsvParser()
        self.clock = clock or utc_now
        self.state = SchedulerState.STOPPED

    def compute_delay(self, now: datetime | None = None) -> timedelta:
        """Compute the time until the next cycle.

        For the relative policy this is the logging interval. For the absolute
        policy the anchor starts today at the configured hour in the configured
        time zone and advances by the logging interval until it lies strictly
        in the future.

        Args:
            now (datetime | None, optional): Timezone-aware current time. Defaults to the clock.

        Returns:
            timedelta: Delay until the next cycle.
        """
        now = now or self.clock()

        if self.settings.interval_type != IntervalType.ABSOLUTE:
            return self.settings.interval_delta

        local_now = now.astimezone(resolve_time_zone(self.settings.time_zone))
        anchor = local_now.replace(
            hour=self.settings.absolute_interval_start_hour,
            minute=0,
            second=0,
            microsecond=0,
        )
        while anchor <= local_now:
            anchor += self.settings.interval_delta

        return anchor.astimezone(timezone.utc) - now.astimezone(timezone.utc)

    def __parse(self, raw_text: str) -> StepResult:
        try:
            records = self.parser.parse(raw_text)
        except ForecastParseError as e:
            self.logger.warning(f"Unable to parse PV forecast data: {e}")
            return Failed("parse failed", e)

        self.logger.debug(f"Parsed {len(records)} forecast rows.")

        return Ok(records)

    def run_cycle(self, cancel_event: threading.Event) -> StepResult:
        """Run one fetch, parse and persist cycle.

        Args:
            cancel_event (threading.Event): Shutdown signal passed to the fetch step.

        Returns:
            StepResult: Result of the last step that ran.
        """
        self.logger.debug("Fetching PV forecast data")

        fetched = self.source.fetch(self.settings.timeout_delta, cancel_event)
        if not isinstance(fetched, Ok):
            return fetched

        parsed = self.__parse(fetched.value)
        if not isinstance(parsed, Ok):
            return parsed

        return self.database.persist(parsed.value)

    def __safe_cycle(self, cancel_event: threading.Event) -> None:
        try:
            result = self.run_cycle(cancel_event)
        except Exception:
            self.logger.exception("Error occurred executing the PV forecast cycle:")
            return

        if isinstance(result, Ok):
            self.logger.info(f"PV forecast cycle completed, {result.value} rows stored.")
        else:
            self.logger.info(f"PV forecast cycle produced no result: {result.reason}")

    def run(self, cancel_event: threading.Event) -> None:
        """Run cycles until cancel_event is set.

        Args:
            cancel_event (threading.Event): Shutdown signal.
        """
        self.logger.info("Starting PV forecast logger...")
        self.state = SchedulerState.RUNNING

        try:
            self.__safe_cycle(cancel_event)

            while not cancel_event.is_set():
                try:
                    delay = self.compute_delay()
                    self.logger.info(
                        f"Next fetch at {(self.clock() + delay).isoformat()} which is in {to_readable_string(delay)}"
                    )
                except Exception:
                    self.logger.exception("Error occurred computing the next fetch time:")
                    delay = self.settings.interval_delta

                if cancel_event.wait(delay.total_seconds()):
                    break

                self.__safe_cycle(cancel_event)
        finally:
            self.state = SchedulerState.STOPPED
            self.logger.info("PV forecast logger stopped.")


def install_signal_handlers(cancel_event: threading.Event) -> None:
    def handler(signum, frame):
        logging.getLogger(name="PV Forecast Logger").info(
            f"Received signal {signal.Signals(signum).name}. Shutting down..."
        )
        cancel_event.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def main() -> int:
    logging.basicConfig(
        level=LOGLEVEL,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    logger = logging.getLogger(name="PV Forecast Logger")

    try:
        config = ServiceConfig(create_from_file=True)
    except ValueError:
        logger.exception("Unable to load configuration:")
        return 1

    violations = config.validate()
    if violations:
        for violation in violations:
            logger.error(f"Invalid configuration: {violation}")
        return 1

    if config.app.offline_mode:
        logger.info(f"Offline mode enabled. Reading forecasts from {config.app.offline_file}")
        source = OfflineCBaseClient(config.app.offline_file)
    else:
        source = CBaseClient(config.cbase, config.app.rate_limit_max_request_in_hour)

    database = ForecastDatabase(config.database)
    cancel_event = threading.Event()
    install_signal_handlers(cancel_event)

    try:
        if config.database.enabled:
            database.create_tables()

        ForecastScheduler(config.app, source, database).run(cancel_event)
    except Exception:
        logger.exception("An error occurred while running the PV forecast logger:")
        return 1
    finally:
        database.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
