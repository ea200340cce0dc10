#!/usr/bin/env python3

"""Target ABI parameters used by the layout engine.

True layouts are empirical, so every size here is a documented default that
callers can override from the environment or from a JSON file.
"""

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

# Opaque generic containers: name -> (size, alignment)
DEFAULT_CONTAINER_LAYOUTS: dict[str, tuple[int, int]] = {
    "DynArray": (16, 8),
    "HashMap": (48, 8),
    "Handle": (16, 8),
    "WeakHandle": (16, 8),
    "CString": (32, 8),
    "CName": (8, 8),
}


@dataclass
class AbiConfig:
    """ABI description: pointer width, alignment rules and opaque type sizes."""

    pointer_size: int = 8
    max_alignment: int = 8
    """Upper bound for any natural alignment (acts like a packing limit)"""
    default_enum_size: int = 4
    unknown_type_size: int | None = None
    """Size assumed for opaque types without a container entry (pointer size if None)"""
    scalar_sizes: dict[str, int] = field(default_factory=dict)
    """Overrides for built-in scalar sizes, e.g. {"long": 4} for LLP64"""
    container_layouts: dict[str, tuple[int, int]] = field(
        default_factory=lambda: dict(DEFAULT_CONTAINER_LAYOUTS)
    )
    offsets_authoritative: bool = True
    """When True, inference resumes from an explicit offset annotation"""

    @property
    def fallback_size(self) -> int:
        return self.unknown_type_size if self.unknown_type_size is not None else self.pointer_size

    def validate(self) -> None:
        """
        Validate the ABI parameters.

        Raises:
            ValueError: If a size or alignment is not usable
        """
        if self.pointer_size not in (2, 4, 8, 16):
            raise ValueError(f"Unsupported pointer size: {self.pointer_size}")
        if self.max_alignment < 1 or self.max_alignment & (self.max_alignment - 1):
            raise ValueError(f"Maximum alignment must be a power of two: {self.max_alignment}")
        if self.default_enum_size not in (1, 2, 4, 8):
            raise ValueError(f"Unsupported enum size: {self.default_enum_size}")
        for name, (size, alignment) in self.container_layouts.items():
            if size < 0 or alignment < 1:
                raise ValueError(f"Invalid layout for {name}: size={size} alignment={alignment}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AbiConfig":
        """
        Build a config from a plain mapping (e.g. parsed JSON).

        Container layouts given in ``data`` are merged over the defaults.

        Raises:
            ValueError: On unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown ABI settings: {', '.join(sorted(unknown))}")

        values = dict(data)
        if "container_layouts" in values:
            layouts = dict(DEFAULT_CONTAINER_LAYOUTS)
            for name, layout in values["container_layouts"].items():
                size, alignment = layout
                layouts[name] = (int(size), int(alignment))
            values["container_layouts"] = layouts
        if "scalar_sizes" in values:
            values["scalar_sizes"] = {k: int(v) for k, v in values["scalar_sizes"].items()}

        config = cls(**values)
        config.validate()
        return config

    @classmethod
    def from_file(cls, path: Path) -> "AbiConfig":
        """Load ABI settings from a JSON file."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"ABI file must contain a JSON object: {path}")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> "AbiConfig":
        """Defaults with ``TYPEMODEL_ABI_<FIELD>`` environment overrides for scalar settings."""
        config = cls()

        for key in ("pointer_size", "max_alignment", "default_enum_size", "unknown_type_size"):
            env_value = os.getenv(f"TYPEMODEL_ABI_{key.upper()}")
            if env_value is not None:
                try:
                    setattr(config, key, int(env_value, 0))
                except ValueError:
                    pass

        env_value = os.getenv("TYPEMODEL_ABI_OFFSETS_AUTHORITATIVE")
        if env_value is not None:
            config.offsets_authoritative = env_value.lower() in ("true", "1", "yes", "on")

        config.validate()
        return config
