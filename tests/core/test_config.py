"""Tests for the configuration loader."""

import pytest
import yaml

from navplan.core.config import DEFAULT_SETTINGS, ConfigError, ConfigLoader


class TestDefaults:
    """Test built-in defaults."""

    def test_values(self) -> None:
        """Test the documented defaults."""
        config = ConfigLoader.defaults()

        assert config.get("facility_lookup.timeout_ms") == 1000
        assert config.get("flight_plan.plan_count") == 2
        assert config.get("flight_plan.default_cruise_altitude_ft") == 0
        assert config.get("gps.sync_on_change") is True

    def test_defaults_are_copied(self) -> None:
        """Test editing a config does not change the module defaults."""
        config = ConfigLoader.defaults()
        config.set("flight_plan.plan_count", 5)

        assert DEFAULT_SETTINGS["flight_plan"]["plan_count"] == 2
        assert ConfigLoader.defaults().get("flight_plan.plan_count") == 2


class TestLoad:
    """Test loading YAML files."""

    def test_load(self, tmp_path) -> None:
        """Test a YAML mapping is loaded as is."""
        path = tmp_path / "navplan.yaml"
        path.write_text("gps:\n  sync_on_change: false\n")

        config = ConfigLoader.load(path)

        assert config.get("gps.sync_on_change") is False
        assert config.get("flight_plan.plan_count") is None

    def test_load_empty_file(self, tmp_path) -> None:
        """Test an empty file loads as an empty configuration."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert ConfigLoader.load(path).to_dict() == {}

    def test_missing_file(self, tmp_path) -> None:
        """Test a missing file raises ConfigError."""
        with pytest.raises(ConfigError, match="not found"):
            ConfigLoader.load(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path) -> None:
        """Test malformed YAML raises ConfigError."""
        path = tmp_path / "broken.yaml"
        path.write_text("gps: [unclosed\n")

        with pytest.raises(ConfigError, match="Failed to load"):
            ConfigLoader.load(path)

    def test_non_mapping_root(self, tmp_path) -> None:
        """Test a list at the root is rejected."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="mapping"):
            ConfigLoader.load(path)

    def test_load_with_defaults(self, tmp_path) -> None:
        """Test file values override defaults section by section."""
        path = tmp_path / "navplan.yaml"
        path.write_text("flight_plan:\n  plan_count: 4\n")

        config = ConfigLoader.load_with_defaults(path)

        assert config.get("flight_plan.plan_count") == 4
        assert config.get("flight_plan.default_cruise_altitude_ft") == 0
        assert config.get("facility_lookup.timeout_ms") == 1000

    def test_load_with_defaults_missing_file(self, tmp_path) -> None:
        """Test a missing file falls back to the defaults."""
        config = ConfigLoader.load_with_defaults(tmp_path / "missing.yaml")
        assert config.to_dict() == DEFAULT_SETTINGS


class TestAccess:
    """Test dot-notation access."""

    def test_get_default(self) -> None:
        """Test missing keys return the default."""
        config = ConfigLoader.defaults()
        assert config.get("gps.port", 500) == 500
        assert config.get("gps.sync_on_change.nested", "x") == "x"

    def test_set_creates_sections(self) -> None:
        """Test set creates missing sections."""
        config = ConfigLoader({})
        config.set("display.map.range_nm", 40)
        assert config.get_section("display.map") == {"range_nm": 40}

    def test_set_through_value(self) -> None:
        """Test set refuses to descend into a plain value."""
        config = ConfigLoader.defaults()
        with pytest.raises(ConfigError):
            config.set("gps.sync_on_change.enabled", True)

    def test_get_section_errors(self) -> None:
        """Test get_section on missing keys and plain values."""
        config = ConfigLoader.defaults()
        with pytest.raises(ConfigError, match="not found"):
            config.get_section("display")
        with pytest.raises(ConfigError, match="not a section"):
            config.get_section("gps.sync_on_change")

    def test_merge(self) -> None:
        """Test merged values win and nested sections are combined."""
        config = ConfigLoader.defaults()
        config.merge(ConfigLoader({"gps": {"host": "localhost"}, "extra": 1}))

        assert config.get("gps.sync_on_change") is True
        assert config.get("gps.host") == "localhost"
        assert config.get("extra") == 1

    def test_to_dict_is_a_copy(self) -> None:
        """Test to_dict cannot change the configuration."""
        config = ConfigLoader.defaults()
        config.to_dict()["gps"]["sync_on_change"] = False
        assert config.get("gps.sync_on_change") is True


class TestSave:
    """Test writing YAML files."""

    def test_save_and_reload(self, tmp_path) -> None:
        """Test a saved configuration loads back the same."""
        config = ConfigLoader.defaults()
        config.set("flight_plan.default_cruise_altitude_ft", 11000)
        path = tmp_path / "nested" / "navplan.yaml"

        config.save(path)

        saved = yaml.safe_load(path.read_text())
        assert saved["flight_plan"]["default_cruise_altitude_ft"] == 11000
        assert ConfigLoader.load(path).to_dict() == config.to_dict()
