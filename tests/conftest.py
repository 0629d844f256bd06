from typing import Callable

import numpy as np
import pytest

from maskbooth.types import Detection


def build_face_landmarks(cx: float, cy: float, size: float, n_points: int = 478) -> np.ndarray:
    """Synthetic face mesh whose extracted center is (cx, cy) and size is ``size``."""
    pts = np.zeros((n_points, 3), dtype=np.float64)
    eye_y = cy - 0.15 * size
    half_span = 0.25 * size
    pts[33, :2] = (cx - half_span - 0.02, eye_y)
    pts[133, :2] = (cx - half_span + 0.02, eye_y)
    pts[362, :2] = (cx + half_span - 0.02, eye_y)
    pts[263, :2] = (cx + half_span + 0.02, eye_y)
    pts[1, :2] = (cx, eye_y + 0.25 * size)
    pts[10, :2] = (cx, cy - size / 2.0)
    pts[152, :2] = (cx, cy + size / 2.0)
    pts[234, :2] = (cx - 0.4 * size, cy)
    pts[454, :2] = (cx + 0.4 * size, cy)
    return pts


@pytest.fixture
def face_landmarks() -> Callable[..., np.ndarray]:
    return build_face_landmarks


@pytest.fixture
def make_detection() -> Callable[..., Detection]:
    def _make(x: float, y: float, size: float = 0.2, rotation: float = 0.0, index: int = 0) -> Detection:
        return Detection(landmarks=None, center=(x, y), size=size, rotation=rotation, index=index)

    return _make
