"""Replay recorded landmark frames through the mask tracker and export poses."""

from __future__ import annotations

import argparse
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd
from tqdm import tqdm

from maskbooth.config import load_config
from maskbooth.io_utils import dump_json, dump_yaml, ensure_dir, iter_jsonl, setup_logging
from maskbooth.pipeline import FramePacer, FrameResult, MaskPipeline
from maskbooth.types import DisplayGeometry

LOGGER = logging.getLogger("maskbooth.replay")

POSE_COLUMNS = ["frame_idx", "timestamp_ms", "track_id", "slot", "asset", "x", "y", "rotation", "size"]


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Replay recorded face landmarks through the mask tracker")
    parser.add_argument("landmarks", type=Path, help="JSON-lines file with one frame of landmarks per line")
    parser.add_argument(
        "--display-size",
        type=float,
        nargs=2,
        metavar=("WIDTH", "HEIGHT"),
        required=True,
        help="On-screen display rectangle in pixels",
    )
    parser.add_argument(
        "--video-size",
        type=float,
        nargs=2,
        metavar=("WIDTH", "HEIGHT"),
        required=True,
        help="Intrinsic source frame size in pixels",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("configs/masks.yaml"),
        help="Tracker configuration YAML",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Pose table to write (.parquet or .csv)",
    )
    parser.add_argument("--summary", type=Path, default=None, help="Optional JSON summary path")
    parser.add_argument(
        "--save-config",
        type=Path,
        default=None,
        help="Write the effective configuration to this YAML path",
    )
    parser.add_argument(
        "--fps",
        type=float,
        default=None,
        help="Source frame rate used when frames carry no timestamp_ms (default: detection_fps)",
    )
    parser.add_argument("--paced", action="store_true", help="Drop frames arriving faster than detection_fps")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser.parse_args(argv)


def _frame_timestamp(record: Dict[str, Any], position: int, fps: float) -> float:
    ts = record.get("timestamp_ms")
    if ts is not None:
        return float(ts)
    frame_idx = record.get("frame_idx", position)
    return float(frame_idx) / fps * 1000.0


def replay(
    records: Iterable[Dict[str, Any]],
    pipeline: MaskPipeline,
    geometry: DisplayGeometry,
    fps: Optional[float] = None,
    pacer: Optional[FramePacer] = None,
) -> List[FrameResult]:
    """Feed landmark records through ``pipeline`` and collect per-frame results."""
    fps = fps or pipeline.config.detection_fps
    results: List[FrameResult] = []
    skipped = 0
    for position, record in enumerate(records):
        timestamp_ms = _frame_timestamp(record, position, fps)
        if pacer is not None and not pacer.should_run(timestamp_ms):
            skipped += 1
            continue
        faces = record.get("faces") or []
        results.append(pipeline.process_frame(faces, geometry, timestamp_ms=timestamp_ms))
    if skipped:
        LOGGER.info("Pacing skipped %d frames", skipped)
    return results


def poses_to_frame(results: Sequence[FrameResult]) -> pd.DataFrame:
    rows = [row for result in results for row in result.pose_rows()]
    if not rows:
        return pd.DataFrame(columns=POSE_COLUMNS)
    return pd.DataFrame(rows, columns=POSE_COLUMNS)


def summarize(results: Sequence[FrameResult]) -> Dict[str, Any]:
    track_ids = set()
    slot_frames: Counter = Counter()
    max_simultaneous = 0
    empty_frames = 0
    for result in results:
        if not result.faces:
            empty_frames += 1
        registered = [face for face in result.faces if face.registered]
        max_simultaneous = max(max_simultaneous, len({face.track_id for face in registered}))
        for face in result.faces:
            track_ids.add(face.track_id)
            slot_frames[face.slot] += 1
    return {
        "frames": len(results),
        "empty_frames": empty_frames,
        "distinct_track_ids": len(track_ids),
        "max_simultaneous_tracks": max_simultaneous,
        "slot_frames": {str(slot): count for slot, count in sorted(slot_frames.items())},
    }


def write_poses(df: pd.DataFrame, path: Path) -> None:
    ensure_dir(path.parent)
    if path.suffix.lower() == ".csv":
        df.to_csv(path, index=False)
    else:
        df.to_parquet(path, index=False)
    LOGGER.info("Wrote %d pose rows to %s", len(df), path)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    setup_logging(getattr(logging, str(args.log_level).upper(), logging.INFO))

    config = load_config(args.config)
    if args.save_config:
        ensure_dir(args.save_config.parent)
        dump_yaml(args.save_config, config.to_dict())

    geometry = DisplayGeometry(
        display_width=args.display_size[0],
        display_height=args.display_size[1],
        video_width=args.video_size[0],
        video_height=args.video_size[1],
    )
    if not geometry.is_valid:
        raise SystemExit(f"Display and video sizes must be positive, got {geometry}")

    pipeline = MaskPipeline(config)
    pacer = FramePacer(config.detection_fps) if args.paced else None
    records = tqdm(iter_jsonl(args.landmarks), desc="Replaying", unit="frame")
    results = replay(records, pipeline, geometry, fps=args.fps, pacer=pacer)

    summary = summarize(results)
    LOGGER.info(
        "Replayed %d frames: %d identities, max %d simultaneous",
        summary["frames"],
        summary["distinct_track_ids"],
        summary["max_simultaneous_tracks"],
    )
    if args.output:
        write_poses(poses_to_frame(results), args.output)
    if args.summary:
        ensure_dir(args.summary.parent)
        dump_json(args.summary, summary)


if __name__ == "__main__":
    main()
