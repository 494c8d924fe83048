"""Tests for configuration loading and validation."""

import json
from dataclasses import replace

import pytest

from cbase_client import (
    AppSettings,
    CBaseSettings,
    IntervalType,
    ServiceConfig,
    TrackingOption,
)

CONFIG = {
    "app": {
        "timeout": 30000,
        "logging_interval": 3600000,
        "interval_type": "absolute",
        "absolute_interval_start_hour": 2,
        "rate_limit_max_request_in_hour": 4,
    },
    "cbase": {
        "latitude": 60.1,
        "longitude": 24.9,
        "panel_qty": 10,
        "panel_output": 300,
        "tracking": "YAxis",
        "slope": 0,
        "azimuth": 180,
        "api_key": "from-file",
    },
    "database": {"url": "sqlite://"},
}


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.delenv("CBASE_API_KEY", raising=False)
    path = tmp_path / "config.json"
    path.write_text(json.dumps(CONFIG))
    return str(path)


class TestServiceConfig:
    """Loading settings sections from file and kwargs."""

    def test_loads_from_file(self, config_file):
        config = ServiceConfig(create_from_file=True, config_file=config_file)

        assert config.app.interval_type == IntervalType.ABSOLUTE
        assert config.app.absolute_interval_start_hour == 2
        assert config.app.time_zone == "UTC"
        assert config.cbase.tracking == TrackingOption.Y_AXIS
        assert config.cbase.inverter_capacity is None
        assert config.database.url == "sqlite://"
        assert config.validate() == []

    def test_kwargs_override_file(self, config_file):
        config = ServiceConfig(
            create_from_file=True,
            config_file=config_file,
            kwargs={"app": {"offline_mode": True}, "cbase": {"panel_qty": 20}},
        )

        assert config.app.offline_mode is True
        assert config.app.timeout == 30000
        assert config.cbase.panel_qty == 20

    def test_environment_api_key_wins(self, config_file, monkeypatch):
        monkeypatch.setenv("CBASE_API_KEY", "from-env")

        config = ServiceConfig(create_from_file=True, config_file=config_file)

        assert config.cbase.api_key == "from-env"

    def test_default_config_file_location(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CBASE_API_KEY", raising=False)
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "site.json").write_text(json.dumps(CONFIG))
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("CONFIG_FILE", "site.json")

        config = ServiceConfig(create_from_file=True)

        assert config.cbase.api_key == "from-file"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ValueError):
            ServiceConfig(create_from_file=True, config_file=str(tmp_path / "missing.json"))

    def test_kwargs_required_without_file(self):
        with pytest.raises(ValueError):
            ServiceConfig(create_from_file=False)

    def test_missing_cbase_keys_raise(self, monkeypatch):
        monkeypatch.delenv("CBASE_API_KEY", raising=False)

        with pytest.raises(ValueError, match="api_key"):
            ServiceConfig(kwargs={"cbase": {"latitude": 60.0}})

    def test_unknown_tracking_option_raises(self):
        cbase = dict(CONFIG["cbase"], tracking="Diagonal")

        with pytest.raises(ValueError):
            ServiceConfig(kwargs={"cbase": cbase})

    def test_validation_prefixes_sections(self, monkeypatch):
        monkeypatch.delenv("CBASE_API_KEY", raising=False)
        config = ServiceConfig(
            kwargs={
                "app": {"timeout": -1},
                "cbase": dict(CONFIG["cbase"], api_key=" "),
                "database": {"url": "sqlite://"},
            }
        )

        violations = config.validate()

        assert any(v.startswith("app:") for v in violations)
        assert any(v.startswith("cbase:") for v in violations)


class TestAppSettingsValidation:
    def test_defaults_are_valid(self):
        assert AppSettings().validate() == []

    @pytest.mark.parametrize(
        "changes",
        [
            {"timeout": -1},
            {"logging_interval": 59_999},
            {"interval_type": IntervalType.ABSOLUTE, "absolute_interval_start_hour": 24},
            {"interval_type": IntervalType.ABSOLUTE, "absolute_interval_start_hour": -1},
            {"rate_limit_max_request_in_hour": 0},
            {"time_zone": "Not/AZone"},
            {"offline_mode": True, "offline_file": ""},
        ],
    )
    def test_violations(self, changes):
        assert len(AppSettings(**changes).validate()) == 1

    def test_start_hour_ignored_for_relative_interval(self):
        assert AppSettings(absolute_interval_start_hour=30).validate() == []


class TestCBaseSettingsValidation:
    def test_valid_settings(self, cbase_settings):
        assert cbase_settings.validate() == []

    @pytest.mark.parametrize(
        "changes",
        [
            {"latitude": 90.5},
            {"longitude": -181.0},
            {"latitude": 60.1234567},
            {"panel_qty": 0},
            {"panel_output": 0},
            {"inverter_capacity": -1.0},
            {"inverter_capacity": 5.125},
            {"api_key": ""},
            {"slope": 91},
            {"azimuth": 361},
        ],
    )
    def test_violations(self, cbase_settings, changes):
        assert len(replace(cbase_settings, **changes).validate()) == 1

    def test_slope_not_checked_when_not_sent(self, cbase_settings):
        settings = replace(cbase_settings, tracking=TrackingOption.Y_AXIS, slope=120)

        assert settings.validate() == []

    def test_azimuth_not_checked_when_not_sent(self, cbase_settings):
        settings = replace(cbase_settings, tracking=TrackingOption.X_AXIS, azimuth=400)

        assert settings.validate() == []


class TestTrackingOption:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (0, TrackingOption.FIXED_ANGLE),
            ("FixedAngle", TrackingOption.FIXED_ANGLE),
            ("YAxis", TrackingOption.Y_AXIS),
            ("x_axis", TrackingOption.X_AXIS),
            (3, TrackingOption.YX_AXIS),
        ],
    )
    def test_parse(self, value, expected):
        assert TrackingOption.parse(value) == expected

    def test_from_dict_parses_tracking(self):
        settings = CBaseSettings.from_dict(dict(CONFIG["cbase"], tracking=2))

        assert settings.tracking == TrackingOption.X_AXIS
