"""
Tunable parameters for positioning, calibration, navigation and narration.

All thresholds live here as frozen dataclasses. A BeaconNavConfig instance
is passed to every engine that needs settings; nothing reads module-level
globals at runtime.

Named presets in PRESETS override the defaults. A JSON file with the same
nested layout as BeaconNavConfig.to_dict() can be loaded with load_config().

Environment variables:
    BEACONNAV_PRESET: Preset applied by BeaconNavConfig.from_env().
    OPENAI_API_KEY: API key for the optional description generator.
    BEACONNAV_GPT_MODEL: Model name for the optional description generator.
"""

import json
import math
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union


@dataclass(frozen=True)
class TriangulationConfig:
    min_confidence: float = 0.6            # sightings below this are discarded
    parallel_epsilon: float = 1e-3         # |cross| at or below → no intersection
    zero_confidence_error: float = math.pi / 6  # 30° mean error → confidence 0

    def validate(self) -> None:
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ValueError(f"min_confidence must be in [0, 1], got {self.min_confidence}")
        if self.parallel_epsilon <= 0:
            raise ValueError("parallel_epsilon must be positive")
        if self.zero_confidence_error <= 0:
            raise ValueError("zero_confidence_error must be positive")


@dataclass(frozen=True)
class CalibrationConfig:
    min_beacons: int = 3                   # fewer candidates / measurements → failure
    max_beacons: int = 5                   # candidate cap
    alignment_threshold: float = 0.7       # confirm only when alignment > this
    room_detection_frames: int = 10        # frames before room lookup
    ready_frames_normal: int = 3
    ready_frames_insufficient_features: int = 60
    ready_frames_relocalizing: int = 30
    failsafe_timeout: float = 8.0          # seconds before forcing tracking-ready
    quality_window: int = 30               # tracking-quality samples kept
    heading_scan_steps: int = 360          # coarse heading grid for resection

    def validate(self) -> None:
        if self.min_beacons < 3:
            raise ValueError("min_beacons must be at least 3")
        if self.max_beacons < self.min_beacons:
            raise ValueError("max_beacons must be >= min_beacons")
        if not 0.0 <= self.alignment_threshold < 1.0:
            raise ValueError("alignment_threshold must be in [0, 1)")
        if self.failsafe_timeout <= 0:
            raise ValueError("failsafe_timeout must be positive")
        if self.heading_scan_steps < 8:
            raise ValueError("heading_scan_steps must be at least 8")


@dataclass(frozen=True)
class NavigationConfig:
    tick_interval: float = 0.1             # seconds between ticks
    arrival_threshold: float = 0.5         # metres
    arrival_cooldown: float = 0.7          # seconds
    approach_min: float = 1.0              # approach window, metres
    approach_max: float = 2.5
    step_length: float = 0.70              # metres per step
    min_step_length: float = 0.3
    recalculation_threshold: float = 2.0   # metres
    doorway_announce_distance: float = 1.8  # metres
    walking_speed: float = 1.2             # m/s, for ETA
    alignment_tolerance: float = math.radians(15.0)
    room_padding: float = 1.0              # metres around a room's beacon bbox
    room_centroid_radius: float = 5.0      # max distance to a room centroid

    def validate(self) -> None:
        if self.tick_interval <= 0:
            raise ValueError("tick_interval must be positive")
        if self.arrival_threshold <= 0:
            raise ValueError("arrival_threshold must be positive")
        if self.arrival_cooldown < 0:
            raise ValueError("arrival_cooldown must be non-negative")
        if not 0 < self.approach_min < self.approach_max:
            raise ValueError("approach window must satisfy 0 < approach_min < approach_max")
        if self.step_length <= 0 or self.min_step_length <= 0:
            raise ValueError("step lengths must be positive")
        if self.walking_speed <= 0:
            raise ValueError("walking_speed must be positive")


@dataclass(frozen=True)
class NarrationConfig:
    enable_ai_descriptions: bool = False
    model: str = "gpt-4o-mini"
    temperature: float = 0.3
    max_tokens: int = 120
    timeout: float = 10.0                  # seconds per description request
    api_key: Optional[str] = field(default=None, repr=False)

    def validate(self) -> None:
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")


_SECTIONS = {
    'triangulation': TriangulationConfig,
    'calibration': CalibrationConfig,
    'navigation': NavigationConfig,
    'narration': NarrationConfig,
}


@dataclass(frozen=True)
class BeaconNavConfig:
    """Complete configuration, one section per engine."""

    triangulation: TriangulationConfig = field(default_factory=TriangulationConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    navigation: NavigationConfig = field(default_factory=NavigationConfig)
    narration: NarrationConfig = field(default_factory=NarrationConfig)

    def validate(self) -> "BeaconNavConfig":
        """Check every section; returns self for chaining."""
        self.triangulation.validate()
        self.calibration.validate()
        self.navigation.validate()
        self.narration.validate()
        return self

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        data = asdict(self)
        data['narration'].pop('api_key', None)
        return data

    def with_overrides(self, overrides: Dict[str, Dict[str, Any]]) -> "BeaconNavConfig":
        """
        Return a copy with nested section overrides applied.

        Args:
            overrides: Mapping of section name to {field: value}.

        Raises:
            ValueError: On an unknown section or field name.
        """
        sections = {}
        for name, values in overrides.items():
            if name not in _SECTIONS:
                raise ValueError(f"Unknown config section '{name}'")
            current = getattr(self, name)
            known = {f.name for f in fields(current)}
            unknown = set(values) - known
            if unknown:
                raise ValueError(f"Unknown {name} option(s): {', '.join(sorted(unknown))}")
            sections[name] = replace(current, **values)
        return replace(self, **sections).validate()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BeaconNavConfig":
        """
        Build a config from a nested dictionary.

        An optional top-level 'preset' key is applied first, then the
        section overrides.
        """
        data = dict(data)
        preset = data.pop('preset', None)
        data.pop('description', None)
        base = cls.preset(preset) if preset else cls()
        return base.with_overrides(data)

    @classmethod
    def preset(cls, name: str) -> "BeaconNavConfig":
        if name not in PRESETS:
            raise ValueError(f"Unknown preset '{name}'. Available: {', '.join(PRESETS)}")
        overrides = {k: v for k, v in PRESETS[name].items() if k != 'description'}
        return cls().with_overrides(overrides)

    @classmethod
    def from_env(cls) -> "BeaconNavConfig":
        """Defaults (or BEACONNAV_PRESET) plus narration settings from the environment."""
        preset = os.getenv("BEACONNAV_PRESET")
        config = cls.preset(preset) if preset else cls()
        narration = replace(
            config.narration,
            api_key=os.getenv("OPENAI_API_KEY") or config.narration.api_key,
            model=os.getenv("BEACONNAV_GPT_MODEL", config.narration.model),
        )
        return replace(config, narration=narration)


PRESETS = {
    'default': {
        'description': 'Nominal thresholds for a handheld phone',
    },
    'cautious': {
        'description': 'Earlier announcements and a tighter arrival radius',
        'navigation': {
            'arrival_threshold': 0.4,
            'approach_max': 3.0,
            'doorway_announce_distance': 2.2,
            'walking_speed': 0.9,
        },
        'calibration': {'alignment_threshold': 0.8},
    },
    'simulation': {
        'description': 'Fast, deterministic settings for simulated walks',
        'navigation': {'arrival_cooldown': 0.0, 'tick_interval': 0.05},
        'calibration': {'failsafe_timeout': 1.0, 'room_detection_frames': 1},
    },
}


def load_config(path: Union[str, Path]) -> BeaconNavConfig:
    """
    Load a configuration from a JSON file.

    Example file:
        {"preset": "cautious", "navigation": {"step_length": 0.65}}
    """
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    return BeaconNavConfig.from_dict(data)


DEFAULT_CONFIG = BeaconNavConfig()
