import pytest

from maskbooth.config import SmoothingConfig
from maskbooth.smoothing.projection import MaskPoseEngine, cover_fit, lerp, project_face
from maskbooth.types import DisplayGeometry, TrackedFace

LANDSCAPE = DisplayGeometry(display_width=800, display_height=600, video_width=1920, video_height=1080)


def _face(track_id: int, x: float, y: float, size: float = 0.2, rotation: float = 0.0, slot: int = 1) -> TrackedFace:
    return TrackedFace(track_id=track_id, slot=slot, center=(x, y), size=size, rotation=rotation)


def test_cover_fit_crops_sides_of_wide_source():
    fit = cover_fit(LANDSCAPE)
    assert fit.height == pytest.approx(600.0)
    assert fit.width == pytest.approx(600.0 * 1920 / 1080)
    assert fit.offset_x == pytest.approx((fit.width - 800) / 2)
    assert fit.offset_y == 0.0


def test_cover_fit_crops_top_and_bottom_of_tall_source():
    fit = cover_fit(DisplayGeometry(display_width=1920, display_height=1080, video_width=640, video_height=480))
    assert fit.width == pytest.approx(1920.0)
    assert fit.height == pytest.approx(1440.0)
    assert fit.offset_x == 0.0
    assert fit.offset_y == pytest.approx(180.0)


def test_project_face_mirrors_position_and_rotation():
    pose = project_face(_face(1, 0.25, 0.5, size=0.2, rotation=10.0), cover_fit(LANDSCAPE))
    assert pose.x == pytest.approx(0.75 * 600.0 * 1920 / 1080 - (600.0 * 1920 / 1080 - 800) / 2)
    assert pose.y == pytest.approx(300.0)
    assert pose.rotation == pytest.approx(-10.0)
    assert pose.size == pytest.approx(300.0)
    assert pose.asset_name == "mask1"


def test_project_face_without_mirroring():
    cfg = SmoothingConfig(mirror=False)
    fit = cover_fit(LANDSCAPE)
    pose = project_face(_face(1, 0.25, 0.5, rotation=10.0), fit, cfg)
    assert pose.x == pytest.approx(0.25 * fit.width - fit.offset_x)
    assert pose.rotation == pytest.approx(10.0)


@pytest.mark.parametrize("size, expected", [(0.01, 100.0), (1.0, 800.0)])
def test_mask_size_is_clamped(size, expected):
    pose = project_face(_face(1, 0.5, 0.5, size=size), cover_fit(LANDSCAPE))
    assert pose.size == pytest.approx(expected)


def test_first_observation_is_unsmoothed():
    engine = MaskPoseEngine()
    face = _face(1, 0.4, 0.5)
    poses = engine.update([face], LANDSCAPE)
    raw = project_face(face, cover_fit(LANDSCAPE))
    assert poses[0] == raw


def test_smoothing_converges_geometrically():
    alpha = 0.2
    engine = MaskPoseEngine(SmoothingConfig(smoothing_factor=alpha))
    start = engine.update([_face(1, 0.5, 0.5, rotation=0.0)], LANDSCAPE)[0]
    target_face = _face(1, 0.6, 0.3, rotation=12.0)
    target = project_face(target_face, cover_fit(LANDSCAPE))
    n_frames = 15
    for _ in range(n_frames):
        pose = engine.update([target_face], LANDSCAPE)[0]
    decay = (1 - alpha) ** n_frames
    assert abs(pose.x - target.x) == pytest.approx(abs(start.x - target.x) * decay, rel=1e-9)
    assert abs(pose.y - target.y) == pytest.approx(abs(start.y - target.y) * decay, rel=1e-9)
    assert abs(pose.rotation - target.rotation) == pytest.approx(abs(start.rotation - target.rotation) * decay, rel=1e-9)


def test_history_is_keyed_by_identity_not_position():
    engine = MaskPoseEngine()
    engine.update([_face(1, 0.2, 0.5), _face(2, 0.8, 0.5, slot=2)], LANDSCAPE)
    swapped = engine.update([_face(2, 0.8, 0.5, slot=2), _face(1, 0.2, 0.5)], LANDSCAPE)
    fit = cover_fit(LANDSCAPE)
    assert swapped[0].track_id == 2
    assert swapped[0].x == pytest.approx(project_face(_face(2, 0.8, 0.5, slot=2), fit).x)
    assert swapped[1].x == pytest.approx(project_face(_face(1, 0.2, 0.5), fit).x)


def test_absent_identity_is_evicted():
    engine = MaskPoseEngine()
    engine.update([_face(1, 0.2, 0.5), _face(2, 0.8, 0.5, slot=2)], LANDSCAPE)
    engine.update([_face(1, 0.2, 0.5)], LANDSCAPE)
    assert engine.cached_ids == [1]
    back = engine.update([_face(1, 0.2, 0.5), _face(2, 0.7, 0.5, slot=2)], LANDSCAPE)
    assert back[1].x == pytest.approx(project_face(_face(2, 0.7, 0.5, slot=2), cover_fit(LANDSCAPE)).x)


def test_empty_frame_clears_cache():
    engine = MaskPoseEngine()
    engine.update([_face(1, 0.2, 0.5)], LANDSCAPE)
    assert engine.update([], LANDSCAPE) == []
    assert engine.cached_ids == []
    pose = engine.update([_face(1, 0.6, 0.5)], LANDSCAPE)[0]
    assert pose.x == pytest.approx(project_face(_face(1, 0.6, 0.5), cover_fit(LANDSCAPE)).x)


def test_degenerate_geometry_yields_no_poses():
    engine = MaskPoseEngine()
    engine.update([_face(1, 0.2, 0.5)], LANDSCAPE)
    broken = DisplayGeometry(display_width=800, display_height=0, video_width=1920, video_height=1080)
    assert engine.update([_face(1, 0.2, 0.5)], broken) == []
    assert engine.cached_ids == [1]


def test_lerp():
    assert lerp(10.0, 20.0, 0.2) == pytest.approx(12.0)
    assert lerp(10.0, 20.0, 1.0) == pytest.approx(20.0)
