"""Shared fixtures for the PV forecast logger tests."""

from datetime import datetime, timedelta, timezone

import pytest

from cbase_client import CBaseSettings, TrackingOption
from forecast_models import DatabaseSettings, ForecastDatabase

HEADER = (
    "Time.UTC,temp_avg,wind_avg,cl_tot,cl_low,cl_med,cl_high,prec_amt,s_glob,s_dif,"
    "s_dir_hor,s_dir,s_sw_net,solar_angle_vs_panel,albedo,s_glob_pv,s_ground_dif_pv,"
    "s_dir_pv,s_dif_pv,pv_po,pv_T,pv_eta"
)

FULL_ROW = (
    "2024-03-01 13:00:00,4.5,3.2,75,40,30,20,0.3,210.5,120.25,90.25,310.5,180,"
    "42.5,0.2,250.75,3.5,140.25,107,2450.5,12.5,0.165"
)

PARTIAL_ROW = (
    "2024-03-01 14:00:00,4.1,NA,80,45,35,25,0.5,150.5,100.5,50,210.5,130,"
    "50.5,NA,180.5,2.5,80.5,97.5,1800.25,NA,0.16"
)


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, 7, 15, tzinfo=timezone.utc))


@pytest.fixture
def sample_csv():
    """Two forecast rows: one fully populated, one with three NA metrics."""
    return "\n".join([HEADER, FULL_ROW, PARTIAL_ROW]) + "\n"


@pytest.fixture
def cbase_settings():
    return CBaseSettings(
        latitude=60.192059,
        longitude=24.945831,
        panel_qty=12,
        panel_output=400,
        tracking=TrackingOption.FIXED_ANGLE,
        slope=35,
        azimuth=180,
        api_key="secret-key",
        inverter_capacity=5.5,
    )


@pytest.fixture
def database(tmp_path):
    database = ForecastDatabase(
        DatabaseSettings(url=f"sqlite:///{tmp_path / 'forecast.db'}")
    )
    database.create_tables()
    yield database
    database.close()
