"""
Configuration management for stabilization.

Stabilization settings live in a single dataclass that can be loaded from
and saved to JSON files, and overridden from environment variables.
"""

import json
import os
from dataclasses import dataclass, asdict, fields
from enum import Enum
from pathlib import Path
from typing import Any


class StabilizationMethod(str, Enum):
    """Motion models for stabilization."""
    TRANSLATION = "translation"  # dx, dy only
    ROTATION = "rotation"        # dx, dy + in-plane rotation
    PERSPECTIVE = "perspective"  # dx, dy, rotation from the perspective-capable analysis

    @classmethod
    def parse(cls, value: "str | StabilizationMethod") -> "StabilizationMethod":
        """Accept an enum member, its value or its name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if text in (member.value, member.name.lower()):
                return member
        choices = ", ".join(m.value for m in cls)
        raise ValueError(f"Unknown stabilization method '{value}' (expected one of: {choices})")


# Smoothness below this is treated as "no smoothing"
MIN_SMOOTHNESS = 0.5


@dataclass
class StabilizationParams:
    """
    Stabilization and tracking settings.

    Example:
        params = StabilizationParams(smoothness=15.0)
        params.save("stab.json")
        params = StabilizationParams.load("stab.json")
    """
    method: StabilizationMethod = StabilizationMethod.TRANSLATION
    smoothness: float = 30.0
    crop_ratio: float = 0.9

    # Tracker tunables
    pyramid_levels: int = 2
    window_size: int = 21
    max_iterations: int = 30
    epsilon: float = 0.01
    max_residual: float = 0.1
    min_eigenvalue: float = 1e-5
    max_displacement: float = 21.0

    # Motion analysis
    grid_spacing: int = 40

    def __post_init__(self):
        self.method = StabilizationMethod.parse(self.method)
        self.validate()

    def validate(self) -> None:
        """
        Check every field against its allowed range.

        Raises:
            ValueError: On the first invalid field
        """
        if not self.smoothness >= 0:
            raise ValueError(f"smoothness must be >= 0, got {self.smoothness}")
        if not 0 < self.crop_ratio <= 1:
            raise ValueError(f"crop_ratio must be in (0, 1], got {self.crop_ratio}")
        if not 1 <= self.pyramid_levels <= 8:
            raise ValueError(f"pyramid_levels must be in [1, 8], got {self.pyramid_levels}")
        if self.window_size < 3 or self.window_size % 2 == 0:
            raise ValueError(f"window_size must be odd and >= 3, got {self.window_size}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if not self.epsilon > 0:
            raise ValueError(f"epsilon must be > 0, got {self.epsilon}")
        if not self.max_residual > 0:
            raise ValueError(f"max_residual must be > 0, got {self.max_residual}")
        if not self.min_eigenvalue >= 0:
            raise ValueError(f"min_eigenvalue must be >= 0, got {self.min_eigenvalue}")
        if not self.max_displacement > 0:
            raise ValueError(f"max_displacement must be > 0, got {self.max_displacement}")
        if self.grid_spacing < 1:
            raise ValueError(f"grid_spacing must be >= 1, got {self.grid_spacing}")

    @property
    def smoothing_enabled(self) -> bool:
        """True when smoothness is large enough to run the filter."""
        return self.smoothness >= MIN_SMOOTHNESS

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StabilizationParams":
        """
        Build params from a dictionary.

        Raises:
            ValueError: If the dictionary holds unknown keys or invalid values
        """
        known = {f.name: f for f in fields(cls)}
        unknown = set(data) - set(known)
        if unknown:
            raise ValueError(f"Unknown stabilization settings: {', '.join(sorted(unknown))}")

        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            default = known[key].default
            if key == "method":
                kwargs[key] = StabilizationMethod.parse(value)
            elif isinstance(default, int):
                kwargs[key] = int(value)
            elif isinstance(default, float):
                kwargs[key] = float(value)
            else:
                kwargs[key] = value
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        data = asdict(self)
        data["method"] = self.method.value
        return data

    def replace(self, **changes) -> "StabilizationParams":
        """Return a copy with some fields changed."""
        data = self.to_dict()
        data.update(changes)
        return StabilizationParams.from_dict(data)

    @classmethod
    def load(cls, path: str | Path) -> "StabilizationParams":
        """Load params from a JSON file."""
        return load_params(path)

    def save(self, path: str | Path) -> None:
        """Save params to a JSON file."""
        save_params(self, path)


def load_params(path: str | Path) -> StabilizationParams:
    """
    Load stabilization params from a JSON file.

    Missing keys keep their defaults.

    Args:
        path: Path to the JSON file

    Returns:
        Parsed StabilizationParams

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError: If the JSON is invalid
        ValueError: If the file holds unknown keys or invalid values
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}")

    return StabilizationParams.from_dict(data)


def save_params(params: StabilizationParams, path: str | Path) -> None:
    """
    Save stabilization params to a JSON file.

    Args:
        params: Params to save
        path: Output path for the JSON file
    """
    path = Path(path)
    with open(path, "w") as f:
        json.dump(params.to_dict(), f, indent=2)


def create_example_params(path: str | Path = "stab_params.json") -> StabilizationParams:
    """
    Write a params file holding the defaults.

    Args:
        path: Output path for the example file

    Returns:
        The written StabilizationParams
    """
    params = StabilizationParams()
    params.save(path)
    return params


def get_env_config(prefix: str = "VSTAB_") -> dict[str, Any]:
    """
    Get configuration from environment variables.

    All environment variables starting with the prefix will be included.
    Variable names are converted to lowercase with the prefix removed.

    Example:
        VSTAB_SMOOTHNESS=12 -> {"smoothness": "12"}
    """
    config = {}
    for key, value in os.environ.items():
        if key.startswith(prefix):
            config_key = key[len(prefix):].lower()
            config[config_key] = value
    return config


def params_from_env(
    base: StabilizationParams | None = None,
    prefix: str = "VSTAB_",
) -> StabilizationParams:
    """
    Apply environment overrides to a set of params.

    Only variables naming a StabilizationParams field are used, so
    unrelated VSTAB_* variables are ignored.

    Args:
        base: Params to start from (defaults when None)
        prefix: Environment variable prefix

    Returns:
        New StabilizationParams with overrides applied
    """
    base = base or StabilizationParams()
    names = {f.name for f in fields(StabilizationParams)}
    overrides = {k: v for k, v in get_env_config(prefix).items() if k in names}
    if not overrides:
        return base
    return base.replace(**overrides)
