"""PV Forecast Data Models and Database Management

This module defines the data model and the persistence layer of the PV forecast
logger. It provides the immutable ForecastRecord produced by the CSV parser, the
SQLAlchemy table the records are written to, the step result types threaded
through a logging cycle, and the ForecastDatabase used to upsert forecast
batches into PostgreSQL / TimescaleDB.

Core Components:

Data Models:
- ForecastRecord: One timestamped row of the CBase forecast (21 optional metrics)
- PvForecast: SQLAlchemy ORM table keyed by the forecast timestamp
- Ok / NoData / Failed: Explicit results of the fetch, parse and persist steps

Database Management:
- DatabaseSettings: Connection settings and the persistence switch
- DatabaseEngine: SQLAlchemy engine construction from settings or environment
- ForecastDatabase: Transactional, idempotent upsert of forecast batches

Data Schema:
The forecast table (pv_forecast unless DatabaseSettings.table_name says
otherwise) holds one row per forecast timestamp:
- time: Timestamp with time zone (primary key)
- temp_avg, wind_avg: Air temperature (C) and wind speed (m/s)
- cl_tot, cl_low, cl_med, cl_high: Cloud cover fractions (%)
- prec_amt: Precipitation amount (mm)
- s_glob, s_dif, s_dir_hor, s_dir, s_sw_net: Radiation components (W/m2)
- solar_angle_vs_panel, albedo: Panel geometry and ground reflectance
- s_glob_pv, s_ground_dif_pv, s_dir_pv, s_dif_pv: Panel-plane radiation (W/m2)
- pv_po, pv_t, pv_eta: PV output power (W), panel temperature (C), efficiency

Database Configuration:
The connection URL is taken from DatabaseSettings.url. When it is not set, the
URL is built for PostgreSQL with the psycopg2 driver from the environment:
- POSTGRES_USER: Database username
- POSTGRES_PASSWORD: Database password
- POSTGRES_HOST: Database server hostname
- POSTGRES_PORT: Database server port
- POSTGRES_DB: Target database name

Usage:
    database = ForecastDatabase(DatabaseSettings())
    database.create_tables()
    result = database.persist(records)
    database.close()
"""

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Sequence, TypeVar

from sqlalchemy import REAL, Column, DateTime, MetaData, create_engine, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.orm import declarative_base

METRIC_COLUMNS = (
    "temp_avg",
    "wind_avg",
    "cl_tot",
    "cl_low",
    "cl_med",
    "cl_high",
    "prec_amt",
    "s_glob",
    "s_dif",
    "s_dir_hor",
    "s_dir",
    "s_sw_net",
    "solar_angle_vs_panel",
    "albedo",
    "s_glob_pv",
    "s_ground_dif_pv",
    "s_dir_pv",
    "s_dif_pv",
    "pv_po",
    "pv_t",
    "pv_eta",
)

Base = declarative_base()


class PvForecast(Base):
    """PV production forecast data table.

    Table Structure:
    - time is the primary key; a forecast for an existing timestamp replaces the stored row
    - One nullable REAL column per CBase metric, NULL when the provider reported NA
    """

    __tablename__ = "pv_forecast"

    time = Column(DateTime(timezone=True), primary_key=True, nullable=False)
    temp_avg = Column(REAL)
    wind_avg = Column(REAL)
    cl_tot = Column(REAL)
    cl_low = Column(REAL)
    cl_med = Column(REAL)
    cl_high = Column(REAL)
    prec_amt = Column(REAL)
    s_glob = Column(REAL)
    s_dif = Column(REAL)
    s_dir_hor = Column(REAL)
    s_dir = Column(REAL)
    s_sw_net = Column(REAL)
    solar_angle_vs_panel = Column(REAL)
    albedo = Column(REAL)
    s_glob_pv = Column(REAL)
    s_ground_dif_pv = Column(REAL)
    s_dir_pv = Column(REAL)
    s_dif_pv = Column(REAL)
    pv_po = Column(REAL)
    pv_t = Column(REAL)
    pv_eta = Column(REAL)


@dataclass(frozen=True)
class ForecastRecord:
    """One row of the CBase PV forecast.

    All metrics refer to the hour preceding the timestamp unless the provider
    states otherwise. A metric is None when the provider reported it as NA.

    Attributes:
        time (datetime): Timezone-aware UTC timestamp of the forecast row.
        temp_avg (float | None): Air temperature, average of two hourly readings (C).
        wind_avg (float | None): Wind speed, average of two hourly readings (m/s).
        cl_tot (float | None): Total cloudiness (%).
        cl_low (float | None): Low clouds (%).
        cl_med (float | None): Medium clouds (%).
        cl_high (float | None): High clouds (%).
        prec_amt (float | None): Precipitation amount (mm).
        s_glob (float | None): Global radiation on a horizontal surface (W/m2).
        s_dif (float | None): Diffuse radiation (W/m2).
        s_dir_hor (float | None): Direct radiation on a horizontal surface (W/m2).
        s_dir (float | None): Direct radiation perpendicular to the sun (W/m2).
        s_sw_net (float | None): Net shortwave radiation (W/m2).
        solar_angle_vs_panel (float | None): Angle between the sun and the panel normal (deg).
        albedo (float | None): Ground albedo.
        s_glob_pv (float | None): Global radiation on the panel plane (W/m2).
        s_ground_dif_pv (float | None): Ground-reflected radiation on the panel plane (W/m2).
        s_dir_pv (float | None): Direct radiation on the panel plane (W/m2).
        s_dif_pv (float | None): Diffuse radiation on the panel plane (W/m2).
        pv_po (float | None): PV output power (W).
        pv_t (float | None): Panel temperature (C).
        pv_eta (float | None): Panel efficiency.
    """

    time: datetime
    temp_avg: Optional[float] = None
    wind_avg: Optional[float] = None
    cl_tot: Optional[float] = None
    cl_low: Optional[float] = None
    cl_med: Optional[float] = None
    cl_high: Optional[float] = None
    prec_amt: Optional[float] = None
    s_glob: Optional[float] = None
    s_dif: Optional[float] = None
    s_dir_hor: Optional[float] = None
    s_dir: Optional[float] = None
    s_sw_net: Optional[float] = None
    solar_angle_vs_panel: Optional[float] = None
    albedo: Optional[float] = None
    s_glob_pv: Optional[float] = None
    s_ground_dif_pv: Optional[float] = None
    s_dir_pv: Optional[float] = None
    s_dif_pv: Optional[float] = None
    pv_po: Optional[float] = None
    pv_t: Optional[float] = None
    pv_eta: Optional[float] = None

    def to_row(self) -> Dict[str, Any]:
        """Column name to value mapping used as statement parameters."""
        return asdict(self)


T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """A step completed and produced a value."""

    value: T


@dataclass(frozen=True)
class NoData:
    """A step completed without producing anything to pass on."""

    reason: str = ""


@dataclass(frozen=True)
class Failed:
    """A step failed. The failure has already been logged where it happened."""

    reason: str
    error: Optional[BaseException] = field(default=None, compare=False)


StepResult = Ok | NoData | Failed


@dataclass
class DatabaseSettings:
    """Persistence settings.

    Attributes:
        enabled (bool): When False, forecast batches are not written.
        url (str | None): SQLAlchemy connection URL. Built from the POSTGRES_*
            environment variables when not set.
        echo (bool): Enables SQLAlchemy statement logging.
        table_name (str): Table the forecast rows are written to.
    """

    enabled: bool = True
    url: Optional[str] = None
    echo: bool = False
    table_name: str = "pv_forecast"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DatabaseSettings":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def validate(self) -> List[str]:
        """Collect all violations of the database settings.

        Returns:
            List[str]: Human readable violations. Empty when the settings are valid.
        """
        violations = []

        if self.enabled and not self.url and not DatabaseEngine.environment_complete():
            violations.append(
                "Database url must be set, or POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_HOST, POSTGRES_PORT and POSTGRES_DB must be provided."
            )

        if self.url:
            try:
                DatabaseEngine.dialect_of(self.url)
            except ValueError as e:
                violations.append(str(e))

        if not self.table_name or not self.table_name.strip():
            violations.append("Table name must not be blank.")

        return violations


class DatabaseEngine:
    """SQLAlchemy engine construction.

    Uses DatabaseSettings.url when given, otherwise a PostgreSQL URL with the
    psycopg2 driver built from the POSTGRES_* environment variables. Only
    dialects with ON CONFLICT upserts are accepted.
    """

    SUPPORTED_DIALECTS = ("postgresql", "sqlite")

    __DIALECT = "postgresql"
    __DRIVER = "psycopg2"
    __ENVIRONMENT = (
        "POSTGRES_USER",
        "POSTGRES_PASSWORD",
        "POSTGRES_HOST",
        "POSTGRES_PORT",
        "POSTGRES_DB",
    )

    def __init__(self, settings: DatabaseSettings) -> None:
        """Create the engine.

        Raises:
            ValueError: When the URL is malformed or its dialect is not supported.
        """
        url = settings.url or DatabaseEngine.url_from_environment()
        DatabaseEngine.dialect_of(url)

        self.__engine = create_engine(url, echo=settings.echo)

    @staticmethod
    def dialect_of(url: str) -> str:
        try:
            dialect = make_url(url).get_backend_name()
        except ArgumentError as e:
            raise ValueError(f"Invalid database url: {e}") from e

        if dialect not in DatabaseEngine.SUPPORTED_DIALECTS:
            raise ValueError(
                f"Unsupported database dialect {dialect}. Expected one of {list(DatabaseEngine.SUPPORTED_DIALECTS)}."
            )

        return dialect

    @staticmethod
    def environment_complete() -> bool:
        return all(os.getenv(name) for name in DatabaseEngine.__ENVIRONMENT)

    @staticmethod
    def url_from_environment() -> str:
        user, password, host, port, database = (
            os.getenv(name) for name in DatabaseEngine.__ENVIRONMENT
        )
        return f"{DatabaseEngine.__DIALECT}+{DatabaseEngine.__DRIVER}://{user}:{password}@{host}:{port}/{database}"

    @property
    def get_engine(self) -> Engine:
        """SQLAlchemy database engine.

        Returns:
            sqlalchemy.engine.Engine: Configured SQLAlchemy engine instance
                ready for database operations.
        """
        return self.__engine


class ForecastDatabase:
    """PV Forecast Database Management Class

    Writes parsed forecast batches to the configured table (pv_forecast by
    default), laid out like PvForecast. Every batch is
    written in a single transaction as a sequence of upserts keyed by the
    forecast timestamp, so re-fetching a forecast replaces the stored values
    instead of duplicating rows. A failing row discards the whole batch.

    Attributes:
        logger: Configured logger instance for database operations
        settings: DatabaseSettings the instance was created with
        table: SQLAlchemy Table named by settings.table_name

    Example:
        database = ForecastDatabase(DatabaseSettings(url="postgresql+psycopg2://..."))
        database.create_tables()
        result = database.persist(records)
        database.close()
    """

    def __init__(self, settings: DatabaseSettings) -> None:
        """Initialize ForecastDatabase instance.

        Sets up logging and creates the database engine when persistence is
        enabled. No connection is opened until the first operation.

        Args:
            settings (DatabaseSettings): Connection settings and persistence switch.

        Raises:
            ValueError: When persistence is enabled and the database url is
                malformed or uses a dialect without upsert support.
        """
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(levelname)s - %(message)s",
        )
        self.logger = logging.getLogger(name=self.__class__.__name__)

        self.settings = settings
        self.__engine = DatabaseEngine(settings).get_engine if settings.enabled else None
        self.table = PvForecast.__table__.to_metadata(MetaData(), name=settings.table_name)

    def create_tables(self) -> None:
        """Create the forecast table if it does not exist."""
        self.table.create(self.__engine, checkfirst=True)

    def __upsert_statement(self):
        """Build the insert-or-replace statement for the engine's dialect.

        On a timestamp collision every metric column is overwritten with the
        incoming value, including NULLs.
        """
        if self.__engine.dialect.name == "postgresql":
            statement = postgresql.insert(self.table)
        else:
            statement = sqlite.insert(self.table)

        return statement.on_conflict_do_update(
            index_elements=[self.table.c.time],
            set_={column: statement.excluded[column] for column in METRIC_COLUMNS},
        )

    def persist(self, records: Sequence[ForecastRecord]) -> StepResult:
        """Upsert a batch of forecast records in a single transaction.

        Records are written in sequence order. The transaction is committed only
        after every record has been written; any database error rolls back the
        entire batch so no partial forecast is retained.

        Args:
            records (Sequence[ForecastRecord]): Parsed forecast rows.

        Returns:
            StepResult: Ok with the number of written rows, NoData when there was
                nothing to write or persistence is disabled, Failed when the batch
                was rolled back.
        """
        if not self.settings.enabled:
            self.logger.info("Persistence is disabled. Skipping forecast batch.")
            return NoData("persistence disabled")

        if not records:
            self.logger.info("Forecast batch is empty. Nothing to write.")
            return NoData("empty batch")

        try:
            statement = self.__upsert_statement()

            with self.__engine.begin() as connection:
                for record in records:
                    connection.execute(statement, record.to_row())
        except SQLAlchemyError as e:
            self.logger.error(f"Error writing forecast batch of {len(records)} rows: {e}")
            self.logger.info("Transaction rolled back.")
            return Failed("persistence failed", e)

        self.logger.info(f"Wrote {len(records)} forecast rows to {self.table.name}.")

        return Ok(len(records))

    def get_table(self) -> Sequence[PvForecast]:
        """Retrieve all stored forecast rows ordered by timestamp.

        Returns:
            Sequence[PvForecast]: Stored rows.
        """
        self.logger.info(f"Retrieving table {self.table.name}...")

        with self.__engine.connect() as connection:
            return connection.execute(
                select(self.table).order_by(self.table.c.time)
            ).all()

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        if self.__engine is None:
            return

        self.logger.info("Closing database engine...")
        self.__engine.dispose()
