import math
from types import SimpleNamespace

import numpy as np
import pytest

from maskbooth.geometry.landmarks import (
    DEFAULT_FACE_SIZE,
    face_center,
    face_size,
    head_rotation,
    landmark_point,
)
from maskbooth.types import Detection


def _level_face() -> np.ndarray:
    pts = np.zeros((478, 3), dtype=np.float64)
    pts[33, :2] = (0.40, 0.40)
    pts[133, :2] = (0.46, 0.40)
    pts[362, :2] = (0.54, 0.40)
    pts[263, :2] = (0.60, 0.40)
    pts[1, :2] = (0.50, 0.50)
    pts[10, :2] = (0.50, 0.25)
    pts[152, :2] = (0.50, 0.65)
    pts[234, :2] = (0.35, 0.50)
    pts[454, :2] = (0.65, 0.50)
    return pts


def test_face_center_shifts_toward_nose():
    center = face_center(_level_face())
    assert center is not None
    assert center[0] == pytest.approx(0.50)
    assert center[1] == pytest.approx(0.46)


def test_face_center_uses_default_nose_offset_when_nose_missing():
    pts = [tuple(p[:2]) for p in _level_face()]
    pts[1] = None
    center = face_center(pts)
    assert center == pytest.approx((0.50, 0.40 + 0.03 * 0.6))


def test_face_size_takes_larger_extent():
    assert face_size(_level_face()) == pytest.approx(0.40)
    pts = _level_face()
    pts[234, 0] = 0.10
    pts[454, 0] = 0.90
    assert face_size(pts) == pytest.approx(0.80)


def test_head_rotation_follows_eye_line():
    pts = _level_face()
    assert head_rotation(pts) == pytest.approx(0.0)
    pts[362, 1] = 0.44
    pts[263, 1] = 0.44
    expected = math.degrees(math.atan2(0.04, 0.14))
    assert head_rotation(pts) == pytest.approx(expected)


@pytest.mark.parametrize("landmarks", [None, [], np.zeros((0, 3)), np.zeros((50, 2)), "not landmarks"])
def test_missing_landmarks_degrade_to_defaults(landmarks):
    assert face_center(landmarks) is None
    assert face_size(landmarks) == DEFAULT_FACE_SIZE
    assert head_rotation(landmarks) == 0.0


def test_landmark_point_accepts_common_point_shapes():
    assert landmark_point([(0.1, 0.2)], 0) == (0.1, 0.2)
    assert landmark_point([{"x": 0.3, "y": 0.4, "z": 0.0}], 0) == (0.3, 0.4)
    assert landmark_point([SimpleNamespace(x=0.5, y=0.6, z=0.1)], 0) == (0.5, 0.6)
    assert landmark_point(np.array([[0.7, 0.8, 0.0]]), 0) == pytest.approx((0.7, 0.8))


def test_landmark_point_rejects_malformed_points():
    assert landmark_point([(0.1,)], 0) is None
    assert landmark_point([(float("nan"), 0.2)], 0) is None
    assert landmark_point([{"x": "left", "y": 0.2}], 0) is None
    assert landmark_point([object()], 0) is None
    assert landmark_point([(0.1, 0.2)], 5) is None


def test_detection_from_landmarks(face_landmarks):
    det = Detection.from_landmarks(face_landmarks(0.3, 0.4, 0.2), index=2)
    assert det.index == 2
    assert det.center == pytest.approx((0.3, 0.4))
    assert det.size == pytest.approx(0.2)
    assert det.rotation == pytest.approx(0.0)
