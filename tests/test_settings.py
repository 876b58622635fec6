import json
from pathlib import Path

from location import Location
from settings import DEFAULT_METHOD, GEO_API_ENDPOINTS, Settings, load_settings, settings_from_dict


def test_missing_file_gives_defaults(tmp_path):
    settings = load_settings(tmp_path / "config.json")
    assert settings == Settings()
    assert settings.default_location == Location("Turkey", "Istanbul")
    assert settings.geo_endpoints == GEO_API_ENDPOINTS
    assert settings.calculation_method == DEFAULT_METHOD
    assert settings.cache_expiration_hours == 24
    assert settings.notification_thresholds == (30, 10)


def test_values_are_read_from_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "default_location": {"country": "Egypt", "city": "Cairo"},
                "auto_location": False,
                "calculation_method": "5",
                "cache_expiration_hours": 12,
                "retry_attempts": 2,
                "notification_thresholds": [10, 15, 10],
                "refresh_hour": 1,
                "refresh_minute": 30,
                "state_path": str(tmp_path / "state.json"),
                "log_level": "debug",
            }
        ),
        encoding="utf-8",
    )

    settings = load_settings(path)

    assert settings.default_location == Location("Egypt", "Cairo")
    assert settings.auto_location is False
    assert settings.calculation_method == 5
    assert settings.cache_expiration_hours == 12
    assert settings.retry_attempts == 2
    assert settings.notification_thresholds == (15, 10)
    assert (settings.refresh_hour, settings.refresh_minute) == (1, 30)
    assert settings.state_path == Path(tmp_path / "state.json")
    assert settings.log_level == "DEBUG"


def test_invalid_values_fall_back_to_defaults():
    settings = settings_from_dict(
        {
            "default_location": {"country": "", "city": "Izmir"},
            "cache_expiration_hours": -1,
            "retry_attempts": "many",
            "notification_thresholds": ["soon"],
            "geo_endpoints": [],
        }
    )
    defaults = Settings()
    assert settings.default_location == defaults.default_location
    assert settings.cache_expiration_hours == defaults.cache_expiration_hours
    assert settings.retry_attempts == defaults.retry_attempts
    assert settings.notification_thresholds == defaults.notification_thresholds
    assert settings.geo_endpoints == defaults.geo_endpoints


def test_unreadable_file_gives_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("[1, 2", encoding="utf-8")
    assert load_settings(path) == Settings()


def test_non_object_file_gives_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("[1, 2]", encoding="utf-8")
    assert load_settings(path) == Settings()
