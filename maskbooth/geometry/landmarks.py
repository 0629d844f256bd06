"""Geometric features derived from face-mesh landmarks.

Indices follow the 468/478-point MediaPipe face mesh. Every function here is
pure and total: missing or malformed landmarks degrade to a fixed default
instead of raising, because they run inside the per-frame loop.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any, Optional

import numpy as np

from maskbooth.types import Landmarks, Point

LOGGER = logging.getLogger("maskbooth.geometry.landmarks")

LEFT_EYE_OUTER = 33
LEFT_EYE_INNER = 133
RIGHT_EYE_INNER = 362
RIGHT_EYE_OUTER = 263
NOSE_TIP = 1
FOREHEAD_TOP = 10
CHIN_BOTTOM = 152
LEFT_CHEEK = 234
RIGHT_CHEEK = 454

DEFAULT_FACE_SIZE = 0.2
DEFAULT_EYE_TO_NOSE = 0.03
NOSE_SHIFT_RATIO = 0.6


def _is_empty(landmarks: Optional[Landmarks]) -> bool:
    if landmarks is None:
        return True
    try:
        return len(landmarks) == 0
    except TypeError:
        return True


def landmark_point(landmarks: Optional[Landmarks], index: int) -> Optional[Point]:
    """Return landmark ``index`` as an ``(x, y)`` tuple, or None if unavailable.

    Accepts ``(x, y[, z])`` sequences, numpy rows, ``{"x": .., "y": ..}``
    mappings and objects exposing ``.x``/``.y`` (MediaPipe NormalizedLandmark).
    """
    if _is_empty(landmarks):
        return None
    try:
        raw: Any = landmarks[index]
    except (IndexError, KeyError, TypeError):
        return None
    if raw is None:
        return None
    try:
        if isinstance(raw, Mapping):
            x, y = raw.get("x"), raw.get("y")
        elif hasattr(raw, "x") and hasattr(raw, "y"):
            x, y = raw.x, raw.y
        else:
            coords = np.asarray(raw, dtype=np.float64).reshape(-1)
            if coords.size < 2:
                return None
            x, y = coords[0], coords[1]
        point = (float(x), float(y))
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(point[0]) and math.isfinite(point[1])):
        return None
    return point


def _midpoint(a: Point, b: Point) -> Point:
    return ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)


def eye_centers(landmarks: Optional[Landmarks]) -> Optional[tuple[Point, Point]]:
    """Centers of the left and right eye, or None when any eye corner is missing."""
    corners = [
        landmark_point(landmarks, idx)
        for idx in (LEFT_EYE_OUTER, LEFT_EYE_INNER, RIGHT_EYE_INNER, RIGHT_EYE_OUTER)
    ]
    if any(c is None for c in corners):
        return None
    left_outer, left_inner, right_inner, right_outer = corners
    return _midpoint(left_outer, left_inner), _midpoint(right_inner, right_outer)


def face_center(landmarks: Optional[Landmarks]) -> Optional[Point]:
    """Mask anchor: midpoint between the eyes pulled 60% of the way down to the nose tip."""
    eyes = eye_centers(landmarks)
    if eyes is None:
        if not _is_empty(landmarks):
            LOGGER.debug("Missing eye landmarks; no face center")
        return None
    eye_mid = _midpoint(*eyes)
    nose = landmark_point(landmarks, NOSE_TIP)
    eye_to_nose = (nose[1] - eye_mid[1]) if nose is not None else DEFAULT_EYE_TO_NOSE
    return eye_mid[0], eye_mid[1] + eye_to_nose * NOSE_SHIFT_RATIO


def face_size(landmarks: Optional[Landmarks]) -> float:
    """Larger of forehead-to-chin height and cheek-to-cheek width, in normalized units."""
    top = landmark_point(landmarks, FOREHEAD_TOP)
    bottom = landmark_point(landmarks, CHIN_BOTTOM)
    left = landmark_point(landmarks, LEFT_CHEEK)
    right = landmark_point(landmarks, RIGHT_CHEEK)
    if top is None or bottom is None or left is None or right is None:
        return DEFAULT_FACE_SIZE
    height = abs(bottom[1] - top[1])
    width = abs(right[0] - left[0])
    return max(height, width)


def head_rotation(landmarks: Optional[Landmarks]) -> float:
    """Roll angle of the eye line in degrees."""
    eyes = eye_centers(landmarks)
    if eyes is None:
        return 0.0
    (lx, ly), (rx, ry) = eyes
    return math.degrees(math.atan2(ry - ly, rx - lx))
