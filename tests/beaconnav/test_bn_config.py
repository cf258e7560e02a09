"""
Unit tests for configuration presets, overrides and loading.

Tests cover:
- Default thresholds
- Named presets and unknown preset names
- Nested overrides and validation errors
- JSON loading and environment settings
- API key kept out of to_dict()

Run with: pytest tests/beaconnav/test_bn_config.py -v
"""

import json
import math
import unittest

import pytest

from beaconnav.config import (
    PRESETS,
    BeaconNavConfig,
    CalibrationConfig,
    NavigationConfig,
    load_config,
)


class TestDefaults(unittest.TestCase):
    """Test default values."""

    def test_navigation_defaults(self) -> None:
        """Test the navigation thresholds."""
        nav = NavigationConfig()
        self.assertEqual(nav.arrival_threshold, 0.5)
        self.assertEqual(nav.arrival_cooldown, 0.7)
        self.assertEqual((nav.approach_min, nav.approach_max), (1.0, 2.5))
        self.assertEqual(nav.doorway_announce_distance, 1.8)
        self.assertAlmostEqual(nav.alignment_tolerance, math.radians(15.0))

    def test_calibration_defaults(self) -> None:
        """Test the calibration thresholds."""
        cal = CalibrationConfig()
        self.assertEqual((cal.min_beacons, cal.max_beacons), (3, 5))
        self.assertEqual(cal.alignment_threshold, 0.7)
        self.assertEqual(cal.failsafe_timeout, 8.0)


class TestPresets(unittest.TestCase):
    """Test named presets."""

    def test_all_presets_validate(self) -> None:
        """Test every preset builds a valid config."""
        for name in PRESETS:
            config = BeaconNavConfig.preset(name)
            self.assertIsInstance(config, BeaconNavConfig)

    def test_simulation_preset(self) -> None:
        """Test the simulation preset overrides."""
        config = BeaconNavConfig.preset("simulation")
        self.assertEqual(config.navigation.arrival_cooldown, 0.0)
        self.assertEqual(config.navigation.tick_interval, 0.05)
        self.assertEqual(config.calibration.room_detection_frames, 1)
        self.assertEqual(config.navigation.arrival_threshold, 0.5)

    def test_unknown_preset(self) -> None:
        """Test an unknown preset name is rejected."""
        with pytest.raises(ValueError, match="Unknown preset"):
            BeaconNavConfig.preset("turbo")


class TestOverrides(unittest.TestCase):
    """Test overrides and validation."""

    def test_override_applied(self) -> None:
        """Test overrides return a new config."""
        base = BeaconNavConfig()
        config = base.with_overrides({"navigation": {"step_length": 0.65}})
        self.assertEqual(config.navigation.step_length, 0.65)
        self.assertEqual(base.navigation.step_length, 0.70)

    def test_unknown_names(self) -> None:
        """Test unknown sections and fields raise ValueError."""
        with pytest.raises(ValueError, match="section"):
            BeaconNavConfig().with_overrides({"audio": {}})
        with pytest.raises(ValueError, match="step_size"):
            BeaconNavConfig().with_overrides({"navigation": {"step_size": 1.0}})

    def test_invalid_values(self) -> None:
        """Test out-of-range values fail validation."""
        with pytest.raises(ValueError):
            BeaconNavConfig().with_overrides({"calibration": {"min_beacons": 2}})
        with pytest.raises(ValueError):
            BeaconNavConfig().with_overrides({"navigation": {"approach_min": 3.0}})
        with pytest.raises(ValueError):
            BeaconNavConfig().with_overrides({"triangulation": {"min_confidence": 1.5}})


class TestLoading(unittest.TestCase):
    """Test loading from files and the environment."""

    @pytest.fixture(autouse=True)
    def _fixtures(self, tmp_path, monkeypatch) -> None:
        self.tmp_path = tmp_path
        self.monkeypatch = monkeypatch

    def test_load_json(self) -> None:
        """Test a preset plus overrides loads from JSON."""
        path = self.tmp_path / "config.json"
        path.write_text(json.dumps({"preset": "cautious", "navigation": {"step_length": 0.65}}))

        config = load_config(path)
        self.assertEqual(config.navigation.step_length, 0.65)
        self.assertEqual(config.navigation.arrival_threshold, 0.4)
        self.assertEqual(config.calibration.alignment_threshold, 0.8)

    def test_load_rejects_non_object(self) -> None:
        """Test a JSON list is rejected."""
        path = self.tmp_path / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError):
            load_config(path)

    def test_round_trip_dict(self) -> None:
        """Test to_dict output loads back and omits the API key."""
        self.monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        self.monkeypatch.setenv("BEACONNAV_PRESET", "cautious")
        config = BeaconNavConfig.from_env()
        self.assertEqual(config.narration.api_key, "sk-test")
        self.assertEqual(config.navigation.walking_speed, 0.9)

        data = config.to_dict()
        self.assertNotIn("api_key", data["narration"])
        self.assertNotIn("sk-test", repr(config))
        self.assertEqual(BeaconNavConfig.from_dict(data).navigation, config.navigation)


if __name__ == "__main__":
    unittest.main()
