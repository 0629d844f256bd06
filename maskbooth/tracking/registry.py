"""Identity registry assigning persistent ids and mask slots to detected faces."""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from maskbooth.config import RegistryConfig
from maskbooth.types import (
    Detection,
    Landmarks,
    RegistryStats,
    Track,
    TrackedFace,
    distance,
)

LOGGER = logging.getLogger("maskbooth.tracking.registry")

OVERFLOW_SLOT = 1


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def similarity(
    detection: Detection,
    track: Track,
    match_threshold: float,
    distance_weight: float = 0.7,
    size_weight: float = 0.3,
) -> float:
    """Blend of center proximity and relative size agreement, in [0, 1].

    Returns 0.0 when the detection has no center.
    """
    if detection.center is None:
        return 0.0
    dist = distance(detection.center, track.center)
    distance_score = max(0.0, 1.0 - dist / match_threshold)
    largest = max(detection.size, track.size)
    if largest > 0:
        size_score = max(0.0, 1.0 - abs(detection.size - track.size) / largest)
    else:
        size_score = 1.0
    return distance_weight * distance_score + size_weight * size_score


class FaceRegistry:
    """Owns the active tracks of one session and the bounded pool of mask slots.

    ``process_detections`` is called once per detection cycle. Detections are
    matched greedily in input order; by default a track already matched in the
    current frame remains eligible for later detections of the same frame
    (``RegistryConfig.exclusive_matching`` turns that off).
    """

    def __init__(
        self,
        config: Optional[RegistryConfig] = None,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        self.config = config or RegistryConfig()
        self._clock = clock
        self._tracks: Dict[int, Track] = {}
        self._next_id = 1
        LOGGER.debug(
            "Initialised FaceRegistry max_slots=%d match_threshold=%.3f min_similarity=%.2f",
            self.config.max_slots,
            self.config.match_threshold,
            self.config.min_similarity,
        )

    @property
    def tracks(self) -> Mapping[int, Track]:
        return dict(self._tracks)

    def __len__(self) -> int:
        return len(self._tracks)

    def active_slots(self) -> Set[int]:
        return {track.slot for track in self._tracks.values()}

    def _find_best_match(self, detection: Detection, claimed: Set[int]) -> Optional[Tuple[Track, float]]:
        cfg = self.config
        best: Optional[Tuple[Track, float]] = None
        best_score = 0.0
        for track_id, track in self._tracks.items():
            if cfg.exclusive_matching and track_id in claimed:
                continue
            score = similarity(
                detection,
                track,
                cfg.match_threshold,
                distance_weight=cfg.distance_weight,
                size_weight=cfg.size_weight,
            )
            if score > best_score and score > cfg.min_similarity:
                best_score = score
                best = (track, score)
        return best

    def _next_free_slot(self) -> Optional[int]:
        used = self.active_slots()
        for slot in range(1, self.config.max_slots + 1):
            if slot not in used:
                return slot
        return None

    def _allocate_id(self) -> int:
        track_id = self._next_id
        self._next_id += 1
        return track_id

    def process_detections(
        self,
        detections: Sequence[Detection],
        now_ms: Optional[float] = None,
    ) -> List[TrackedFace]:
        """Match one frame of detections against the active tracks.

        Returns the detections tagged with ``track_id``/``slot`` in input order.
        """
        now = self._clock() if now_ms is None else float(now_ms)
        usable = [det for det in detections if det is not None and det.center is not None]
        if not usable:
            if self._tracks:
                LOGGER.info("No faces detected - clearing %d tracked faces", len(self._tracks))
                self._tracks.clear()
            return []

        results: List[TrackedFace] = []
        matched_ids: Set[int] = set()
        for det in usable:
            match = self._find_best_match(det, matched_ids)
            if match is not None:
                track, score = match
                track.observe(det, now)
                matched_ids.add(track.track_id)
                results.append(self._tag(det, track.track_id, track.slot))
                LOGGER.debug(
                    "Detection %d matched track %d slot=%d score=%.3f",
                    det.index,
                    track.track_id,
                    track.slot,
                    score,
                )
                continue

            track_id = self._allocate_id()
            slot = self._next_free_slot()
            if slot is None:
                LOGGER.warning(
                    "All %d mask slots in use; face %d shares mask%d",
                    self.config.max_slots,
                    track_id,
                    OVERFLOW_SLOT,
                )
                results.append(self._tag(det, track_id, OVERFLOW_SLOT, registered=False))
                continue

            self._tracks[track_id] = Track(
                track_id=track_id,
                slot=slot,
                center=det.center,
                size=det.size,
                rotation=det.rotation,
                landmarks=det.landmarks,
                first_seen_ms=now,
                last_seen_ms=now,
            )
            matched_ids.add(track_id)
            results.append(self._tag(det, track_id, slot))
            LOGGER.info("New person detected! Assigned mask%d (id=%d)", slot, track_id)

        self._expire(matched_ids, now)
        return results

    def process_landmarks(
        self,
        faces: Iterable[Optional[Landmarks]],
        now_ms: Optional[float] = None,
    ) -> List[TrackedFace]:
        """Extract geometry from raw landmark sets and process them as one frame."""
        detections = [Detection.from_landmarks(landmarks, index=idx) for idx, landmarks in enumerate(faces)]
        return self.process_detections(detections, now_ms=now_ms)

    def _expire(self, matched_ids: Set[int], now: float) -> None:
        cfg = self.config
        to_remove: List[int] = []
        for track_id, track in self._tracks.items():
            if track_id not in matched_ids:
                track.frames_missing += 1
                if track.frames_missing > cfg.max_frames_missing:
                    LOGGER.info("Person left frame - removing mask%d (id=%d)", track.slot, track_id)
                    to_remove.append(track_id)
                    continue
            age = track.age_ms(now)
            if age > cfg.max_track_age_ms:
                LOGGER.info("Removing stale mask%d (id=%d) age=%.0fms", track.slot, track_id, age)
                to_remove.append(track_id)
        for track_id in to_remove:
            self._tracks.pop(track_id, None)

    @staticmethod
    def _tag(det: Detection, track_id: int, slot: int, registered: bool = True) -> TrackedFace:
        return TrackedFace(
            track_id=track_id,
            slot=slot,
            center=det.center,
            size=det.size,
            rotation=det.rotation,
            landmarks=det.landmarks,
            registered=registered,
        )

    def get_stats(self) -> RegistryStats:
        return RegistryStats(
            tracked_faces=len(self._tracks),
            track_ids=list(self._tracks.keys()),
            assignments=[
                {"track_id": t.track_id, "slot": t.slot, "frames_missing": t.frames_missing}
                for t in self._tracks.values()
            ],
        )

    def reset(self) -> None:
        """Forget every track and restart id numbering; safe to call at any time."""
        if self._tracks:
            LOGGER.info("Resetting face registry - clearing %d tracked faces", len(self._tracks))
        self._tracks.clear()
        self._next_id = 1
