"""Tests for forecast persistence."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, inspect

from cbase_client import ForecastCsvParser
from forecast_models import (
    METRIC_COLUMNS,
    DatabaseSettings,
    Failed,
    ForecastDatabase,
    ForecastRecord,
    NoData,
    Ok,
)

START = datetime(2024, 3, 1, 13, 0, tzinfo=timezone.utc)


def record(hour_offset=0, **metrics):
    values = {column: 1.0 for column in METRIC_COLUMNS}
    values.update(metrics)
    return ForecastRecord(time=START + timedelta(hours=hour_offset), **values)


def naive(moment):
    return moment.replace(tzinfo=None)


class TestPersist:
    """Transactional upserts keyed by timestamp."""

    def test_writes_batch(self, database):
        result = database.persist([record(0), record(1)])

        assert result == Ok(2)
        rows = database.get_table()
        assert [naive(row.time) for row in rows] == [naive(START), naive(START + timedelta(hours=1))]

    def test_none_is_stored_as_null(self, database):
        database.persist([record(0, pv_po=None)])

        row = database.get_table()[0]
        assert row.pv_po is None
        assert row.temp_avg == pytest.approx(1.0)

    def test_second_batch_overwrites_first(self, database):
        database.persist([record(0, temp_avg=5.0, pv_po=100.0), record(1)])

        database.persist([record(0, temp_avg=7.5, pv_po=None)])

        rows = database.get_table()
        assert len(rows) == 2
        overwritten = rows[0]
        assert naive(overwritten.time) == naive(START)
        assert overwritten.temp_avg == pytest.approx(7.5)
        assert overwritten.pv_po is None

    def test_duplicate_timestamp_within_batch_keeps_last(self, database):
        database.persist([record(0, temp_avg=1.0), record(0, temp_avg=2.0)])

        rows = database.get_table()
        assert len(rows) == 1
        assert rows[0].temp_avg == pytest.approx(2.0)

    def test_failing_row_discards_whole_batch(self, database):
        batch = [record(0), record(1), ForecastRecord(time=None), record(3), record(4)]

        result = database.persist(batch)

        assert isinstance(result, Failed)
        assert database.get_table() == []

    def test_failed_batch_keeps_previous_rows(self, database):
        database.persist([record(0, temp_avg=3.0)])

        database.persist([record(0, temp_avg=9.0), ForecastRecord(time=None)])

        rows = database.get_table()
        assert len(rows) == 1
        assert rows[0].temp_avg == pytest.approx(3.0)

    def test_empty_batch_is_no_data(self, database):
        assert isinstance(database.persist([]), NoData)

    def test_disabled_persistence_is_no_data(self, monkeypatch):
        monkeypatch.delenv("POSTGRES_HOST", raising=False)
        database = ForecastDatabase(DatabaseSettings(enabled=False))

        assert isinstance(database.persist([record(0)]), NoData)
        database.close()

    def test_missing_table_is_failed(self, tmp_path):
        database = ForecastDatabase(DatabaseSettings(url=f"sqlite:///{tmp_path / 'empty.db'}"))

        assert isinstance(database.persist([record(0)]), Failed)
        database.close()


class TestTableName:
    """Configurable target table."""

    def test_persists_into_configured_table(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'custom.db'}"
        database = ForecastDatabase(DatabaseSettings(url=url, table_name="site_forecast"))
        database.create_tables()

        result = database.persist([record(0), record(1)])

        assert result == Ok(2)
        assert len(database.get_table()) == 2
        assert inspect(create_engine(url)).get_table_names() == ["site_forecast"]
        database.close()

    def test_default_table_is_pv_forecast(self, database):
        assert database.table.name == "pv_forecast"


class TestParseAndPersist:
    """CSV to database."""

    def test_sample_rows_are_stored_with_nulls(self, database, sample_csv):
        records = ForecastCsvParser().parse(sample_csv)

        result = database.persist(records)

        assert result == Ok(2)
        full, partial = database.get_table()
        assert all(getattr(full, column) is not None for column in METRIC_COLUMNS)
        assert partial.wind_avg is None
        assert partial.albedo is None
        assert partial.pv_t is None
        assert partial.pv_po == pytest.approx(1800.25)


class TestDatabaseSettings:
    """Connection settings validation."""

    def test_url_is_enough(self):
        assert DatabaseSettings(url="sqlite://").validate() == []

    def test_environment_is_enough(self, monkeypatch):
        for name, value in {
            "POSTGRES_USER": "logger",
            "POSTGRES_PASSWORD": "secret",
            "POSTGRES_HOST": "localhost",
            "POSTGRES_PORT": "5432",
            "POSTGRES_DB": "pv",
        }.items():
            monkeypatch.setenv(name, value)

        assert DatabaseSettings().validate() == []

    def test_missing_connection_is_reported(self, monkeypatch):
        monkeypatch.delenv("POSTGRES_HOST", raising=False)

        assert len(DatabaseSettings().validate()) == 1

    @pytest.mark.parametrize("table_name", ["", "   "])
    def test_blank_table_name_is_reported(self, table_name):
        assert len(DatabaseSettings(url="sqlite://", table_name=table_name).validate()) == 1

    @pytest.mark.parametrize("url", ["mysql://user@localhost/pv", "not a url"])
    def test_unsupported_url_is_reported(self, url):
        assert len(DatabaseSettings(url=url).validate()) == 1

    def test_unsupported_dialect_rejected_at_construction(self):
        with pytest.raises(ValueError, match="mysql"):
            ForecastDatabase(DatabaseSettings(url="mysql://user@localhost/pv"))

    def test_disabled_needs_no_connection(self, monkeypatch):
        monkeypatch.delenv("POSTGRES_HOST", raising=False)

        assert DatabaseSettings(enabled=False).validate() == []
