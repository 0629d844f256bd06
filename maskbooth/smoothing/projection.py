"""Project tracked faces into mirrored screen space and smooth them per identity."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np

from maskbooth.config import SmoothingConfig
from maskbooth.types import CoverFit, DisplayGeometry, SmoothedPose, TrackedFace

LOGGER = logging.getLogger("maskbooth.smoothing.projection")


def lerp(previous: float, target: float, alpha: float) -> float:
    return previous + (target - previous) * alpha


def cover_fit(geometry: DisplayGeometry) -> CoverFit:
    """Scale the source frame to fill the display rectangle, cropping the overflow evenly.

    Expects ``geometry.is_valid``.
    """
    video_aspect = geometry.video_width / geometry.video_height
    display_aspect = geometry.display_width / geometry.display_height
    if video_aspect > display_aspect:
        # Wider source: height fills, sides are cropped
        height = float(geometry.display_height)
        width = height * video_aspect
        return CoverFit(width=width, height=height, offset_x=(width - geometry.display_width) / 2.0, offset_y=0.0)
    width = float(geometry.display_width)
    height = width / video_aspect
    return CoverFit(width=width, height=height, offset_x=0.0, offset_y=(height - geometry.display_height) / 2.0)


def project_face(
    face: TrackedFace,
    fit: CoverFit,
    config: Optional[SmoothingConfig] = None,
) -> SmoothedPose:
    """Raw (unsmoothed) screen-space pose of one face."""
    cfg = config or SmoothingConfig()
    norm_x, norm_y = face.center
    rotation = face.rotation
    if cfg.mirror:
        norm_x = 1.0 - norm_x
        rotation = -rotation
    size = float(
        np.clip(face.size * fit.height * cfg.size_scale_factor, cfg.mask_size_min, cfg.mask_size_max)
    )
    return SmoothedPose(
        track_id=face.track_id,
        slot=face.slot,
        x=norm_x * fit.width - fit.offset_x,
        y=norm_y * fit.height - fit.offset_y,
        rotation=rotation,
        size=size,
    )


class MaskPoseEngine:
    """Turns registry output into smoothed mask poses.

    The previous frame's poses are cached by track id; an identity that is
    absent from a frame loses its history, so it restarts unsmoothed if it
    comes back.
    """

    def __init__(self, config: Optional[SmoothingConfig] = None) -> None:
        self.config = config or SmoothingConfig()
        self._previous: Dict[int, SmoothedPose] = {}

    @property
    def cached_ids(self) -> List[int]:
        return list(self._previous.keys())

    def _smooth(self, raw: SmoothedPose) -> SmoothedPose:
        prev = self._previous.get(raw.track_id)
        if prev is None:
            return raw
        alpha = self.config.smoothing_factor
        return SmoothedPose(
            track_id=raw.track_id,
            slot=raw.slot,
            x=lerp(prev.x, raw.x, alpha),
            y=lerp(prev.y, raw.y, alpha),
            rotation=lerp(prev.rotation, raw.rotation, alpha),
            size=lerp(prev.size, raw.size, alpha),
        )

    def update(self, faces: Sequence[TrackedFace], geometry: DisplayGeometry) -> List[SmoothedPose]:
        """Produce one smoothed pose per face for the current frame layout."""
        if not faces:
            self._previous.clear()
            return []
        if not geometry.is_valid:
            LOGGER.debug("Skipping projection for degenerate display geometry %s", geometry)
            return []

        fit = cover_fit(geometry)
        poses: List[SmoothedPose] = []
        current: Dict[int, SmoothedPose] = {}
        for face in faces:
            raw = project_face(face, fit, self.config)
            pose = self._smooth(raw)
            poses.append(pose)
            current[pose.track_id] = pose
        self._previous = current
        return poses

    def reset(self) -> None:
        self._previous.clear()
