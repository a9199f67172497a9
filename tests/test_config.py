"""
Tests for YAML configuration loading.
"""

from pathlib import Path

import pytest

from bookingcore.config import AppConfig, BusinessProfile, UtilizationConfig
from bookingcore.domain.models import AppointmentStatus

EXAMPLE_CONFIG = Path(__file__).parent.parent / "config.example.yaml"


def _write(tmp_path: Path, text: str) -> Path:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(text, encoding="utf-8")
    return config_path


class TestAppConfig:
    """Tests for AppConfig.load_from_yaml and helpers."""

    def test_example_config_loads(self):
        config = AppConfig.load_from_yaml(EXAMPLE_CONFIG)

        assert config.default_timezone == "America/New_York"
        assert config.find_business("salon-nyc").capacity == 50
        assert config.utilization.excluded_statuses == [AppointmentStatus.CANCELLED]

    def test_defaults_for_empty_file(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, ""))

        assert config.default_timezone is None
        assert config.defaults.duration_minutes == 60
        assert config.cache.utilization_ttl_seconds == 120
        assert config.businesses == []
        assert config.appointments_file == tmp_path / "appointments.json"

    def test_business_lookup_and_maps(self, tmp_path):
        config = AppConfig.load_from_yaml(
            _write(
                tmp_path,
                """
businesses:
  - id: salon
    name: Downtown Salon
    capacity: 50
    timezone: America/New_York
  - id: popup
""",
            )
        )

        assert config.find_business("salon").display_name() == "Downtown Salon"
        assert config.find_business("popup").display_name() == "popup"
        assert config.find_business("missing") is None
        assert config.capacities() == {"salon": 50, "popup": 0}
        assert config.timezones() == {"salon": "America/New_York"}

    def test_scheduling_settings(self, tmp_path):
        config = AppConfig.load_from_yaml(
            _write(
                tmp_path,
                """
default_timezone: Asia/Kolkata
defaults:
  duration_minutes: 45
cache:
  utilization_ttl_seconds: 30
utilization:
  excluded_statuses: [cancelled, completed]
""",
            )
        )

        settings = config.scheduling_settings()

        assert settings.default_timezone == "Asia/Kolkata"
        assert settings.default_duration_minutes == 45
        assert settings.utilization_ttl_seconds == 30
        assert settings.excluded_statuses == (AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED)

    def test_absolute_appointments_file_kept(self, tmp_path):
        target = tmp_path / "elsewhere" / "data.json"
        config = AppConfig.load_from_yaml(_write(tmp_path, f"appointments_file: {target}\n"))

        assert config.appointments_file == target

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ValueError):
            AppConfig.load_from_yaml(_write(tmp_path, "businesses: [unclosed"))

    def test_non_mapping_root(self, tmp_path):
        with pytest.raises(ValueError):
            AppConfig.load_from_yaml(_write(tmp_path, "- just\n- a list\n"))


class TestValidation:
    """Tests for model-level validation."""

    def test_invalid_default_timezone(self):
        with pytest.raises(ValueError):
            AppConfig(default_timezone="Mars/Base")

    def test_invalid_business_timezone(self):
        with pytest.raises(ValueError):
            BusinessProfile(id="salon", timezone="Nope/Zone")

    def test_duplicate_business_ids(self):
        with pytest.raises(ValueError):
            AppConfig(businesses=[{"id": "salon"}, {"id": "salon"}])

    def test_threshold_order(self):
        with pytest.raises(ValueError):
            UtilizationConfig(medium_threshold=90, high_threshold=80)

    def test_unknown_status(self):
        with pytest.raises(ValueError):
            UtilizationConfig(excluded_statuses=["archived"])

    @pytest.mark.parametrize("section", [{"defaults": {"party_size": 0}}, {"cache": {"default_ttl_seconds": 0}}])
    def test_non_positive_values(self, section):
        with pytest.raises(ValueError):
            AppConfig(**section)
