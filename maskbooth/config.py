"""Tunables for the registry, the pose engine and the frame loop."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

from maskbooth.io_utils import load_yaml

LOGGER = logging.getLogger("maskbooth.config")

T = TypeVar("T")


def _from_mapping(cls: Type[T], data: Optional[Mapping[str, Any]], section: str) -> T:
    data = dict(data or {})
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        LOGGER.warning("Ignoring unknown %s config keys: %s", section, unknown)
    return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class RegistryConfig:
    max_slots: int = 5
    match_threshold: float = 0.15
    min_similarity: float = 0.6
    max_frames_missing: int = 1
    max_track_age_ms: float = 2000.0
    # Off reproduces the greedy pass where one track may absorb several detections
    exclusive_matching: bool = False
    distance_weight: float = 0.7
    size_weight: float = 0.3

    def __post_init__(self) -> None:
        if int(self.max_slots) < 1:
            raise ValueError(f"max_slots must be >= 1, got {self.max_slots}")
        if self.match_threshold <= 0:
            raise ValueError(f"match_threshold must be positive, got {self.match_threshold}")
        if self.max_frames_missing < 0:
            raise ValueError(f"max_frames_missing must be >= 0, got {self.max_frames_missing}")
        if self.max_track_age_ms <= 0:
            raise ValueError(f"max_track_age_ms must be positive, got {self.max_track_age_ms}")
        self.max_slots = int(self.max_slots)
        self.max_frames_missing = int(self.max_frames_missing)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "RegistryConfig":
        return _from_mapping(cls, data, "registry")


@dataclass
class SmoothingConfig:
    smoothing_factor: float = 0.2
    mask_size_min: float = 100.0
    mask_size_max: float = 800.0
    size_scale_factor: float = 2.5
    mirror: bool = True

    def __post_init__(self) -> None:
        if not 0.0 < self.smoothing_factor <= 1.0:
            raise ValueError(f"smoothing_factor must be in (0, 1], got {self.smoothing_factor}")
        if self.mask_size_min > self.mask_size_max:
            raise ValueError(
                f"mask_size_min ({self.mask_size_min}) exceeds mask_size_max ({self.mask_size_max})"
            )
        if self.size_scale_factor <= 0:
            raise ValueError(f"size_scale_factor must be positive, got {self.size_scale_factor}")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "SmoothingConfig":
        return _from_mapping(cls, data, "smoothing")


@dataclass
class PipelineConfig:
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    smoothing: SmoothingConfig = field(default_factory=SmoothingConfig)
    detection_fps: float = 30.0

    def __post_init__(self) -> None:
        if self.detection_fps <= 0:
            raise ValueError(f"detection_fps must be positive, got {self.detection_fps}")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "PipelineConfig":
        data = dict(data or {})
        pipeline_section = dict(data.get("pipeline") or {})
        unknown = sorted(set(data) - {"registry", "smoothing", "pipeline"})
        if unknown:
            LOGGER.warning("Ignoring unknown config sections: %s", unknown)
        return cls(
            registry=RegistryConfig.from_dict(data.get("registry")),
            smoothing=SmoothingConfig.from_dict(data.get("smoothing")),
            **_pipeline_kwargs(pipeline_section),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "registry": asdict(self.registry),
            "smoothing": asdict(self.smoothing),
            "pipeline": {"detection_fps": self.detection_fps},
        }


def _pipeline_kwargs(section: Dict[str, Any]) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {}
    if "detection_fps" in section:
        kwargs["detection_fps"] = float(section.pop("detection_fps"))
    if section:
        LOGGER.warning("Ignoring unknown pipeline config keys: %s", sorted(section))
    return kwargs


def load_config(path: Optional[Path]) -> PipelineConfig:
    """Load a pipeline config from YAML; a missing path yields the defaults."""
    if path is None:
        return PipelineConfig()
    path = Path(path)
    if not path.exists():
        LOGGER.warning("Config %s not found; using defaults", path)
        return PipelineConfig()
    cfg = PipelineConfig.from_dict(load_yaml(path))
    LOGGER.info(
        "Loaded config %s max_slots=%d match_threshold=%.3f smoothing=%.2f",
        path,
        cfg.registry.max_slots,
        cfg.registry.match_threshold,
        cfg.smoothing.smoothing_factor,
    )
    return cfg
