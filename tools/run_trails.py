from __future__ import annotations

import argparse
import contextlib
import logging
import time
from pathlib import Path
from typing import Optional

from analysis.motion.config import load_motion_config
from analysis.motion.engine import MotionEngine
from analysis.motion.model import ConfigError, MotionError
from analysis.motion.sidecar import MotionSidecarWriter
from capture.reader import ReaderConfig, ReaderFactory
from capture.video_source import VideoSource

_LOG = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="run_trails",
        description="Run frame-differencing motion detection + trail tracking.",
    )
    ap.add_argument(
        "--prefer",
        type=str,
        choices=["camera", "file", "synthetic"],
        default="camera",
        help='Capture backend ("camera" for a device, "file" for a video, "synthetic" for tests).',
    )
    ap.add_argument("--device", type=int, default=0, help="Camera index for --prefer camera.")
    ap.add_argument("--path", type=str, default=None, help="Video path for --prefer file.")
    ap.add_argument(
        "--scale",
        type=float,
        default=0.5,
        help="Downscale factor applied to captured frames before analysis.",
    )
    ap.add_argument(
        "--config-module",
        type=str,
        default=None,
        help="Python module with motion constants (default: $MOTION_TRAILS_CONFIG_MODULE).",
    )
    ap.add_argument(
        "--sidecar",
        type=str,
        default=None,
        help="Optional path for a JSONL stream of per-tick trail snapshots.",
    )
    ap.add_argument(
        "--max-ticks",
        type=int,
        default=0,
        help="If > 0, stop after this many processed frames.",
    )
    ap.add_argument(
        "--max-seconds",
        type=int,
        default=0,
        help="If > 0, stop after this many seconds; otherwise run until Ctrl+C.",
    )

    # Motion tuning (overrides the config module)
    ap.add_argument("--diff-mode", choices=["luma", "rgb"], default=None)
    ap.add_argument(
        "--blur-radius", type=int, default=None, help="Box-blur radius applied before differencing."
    )
    ap.add_argument("--motion-threshold", type=float, default=None)
    ap.add_argument(
        "--grid-size", type=int, default=None, help="Cell edge length; 1 selects pixel mode."
    )
    ap.add_argument("--min-blob-size", type=int, default=None)
    ap.add_argument("--max-blobs", type=int, default=None)
    ap.add_argument("--position-smooth", type=float, default=None)
    ap.add_argument("--velocity-smooth", type=float, default=None)
    ap.add_argument("--max-trail-length", type=int, default=None)
    ap.add_argument("--trail-decay", type=float, default=None)
    ap.add_argument("--max-match-distance", type=float, default=None)

    ap.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return ap


def main(argv: Optional[list[str]] = None) -> int:
    ap = build_arg_parser()
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    # ------------------------------------------------------------------ config

    try:
        motion_cfg = load_motion_config(
            args.config_module,
            diff_mode=args.diff_mode,
            blur_radius=args.blur_radius,
            motion_threshold=args.motion_threshold,
            grid_size=args.grid_size,
            min_blob_size=args.min_blob_size,
            max_blobs=args.max_blobs,
            position_smooth_factor=args.position_smooth,
            velocity_smooth_factor=args.velocity_smooth,
            max_trail_length=args.max_trail_length,
            trail_decay=args.trail_decay,
            max_match_distance=args.max_match_distance,
        )
    except ConfigError as exc:
        _LOG.error("Invalid motion configuration: %s", exc)
        return 2

    # ------------------------------------------------------------------ source

    reader_cfg = ReaderConfig(
        prefer=args.prefer,
        device=args.device,
        path=args.path,
        scale=args.scale,
        max_frames=args.max_ticks + 1 if args.prefer == "synthetic" and args.max_ticks > 0 else 0,
    )
    try:
        stream = ReaderFactory.from_config(reader_cfg)
    except ValueError as exc:
        _LOG.error("Invalid capture configuration: %s", exc)
        return 2
    except RuntimeError as exc:
        _LOG.error("Capture source unavailable: %s", exc)
        return 1
    source = VideoSource(stream)
    engine = MotionEngine(config=motion_cfg)

    # ------------------------------------------------------------------ main loop

    sidecar_cm = (
        MotionSidecarWriter(Path(args.sidecar), config=motion_cfg)
        if args.sidecar
        else contextlib.nullcontext()
    )
    if args.sidecar:
        _LOG.info("Writing trail snapshots to %s", args.sidecar)

    source.start()
    t0 = time.time()
    processed = 0
    idle_polls = 0

    with sidecar_cm as sidecar:
        try:
            while True:
                if args.max_seconds > 0 and (time.time() - t0) >= args.max_seconds:
                    _LOG.info("Reached max-seconds=%d, exiting loop.", args.max_seconds)
                    break

                res = engine.tick(source)
                if res is None:
                    # A finite source that has delivered frames and then goes quiet is done.
                    idle_polls += 1
                    if source.ready and args.prefer != "camera" and idle_polls > 100:
                        _LOG.info("Source exhausted after %d processed frame(s).", processed)
                        break
                    time.sleep(0.005)
                    continue
                idle_polls = 0

                if sidecar is not None:
                    sidecar.write_result(res)
                if not res.processed:
                    continue

                processed += 1
                if res.is_motion:
                    _LOG.debug(
                        "frame %d: %d blob(s), %d active trail(s)",
                        res.frame_id,
                        len(res.blobs),
                        len(res.active_trails),
                    )

                if args.max_ticks > 0 and processed >= args.max_ticks:
                    _LOG.info("Reached max-ticks=%d, exiting loop.", args.max_ticks)
                    break

        except KeyboardInterrupt:
            _LOG.info("KeyboardInterrupt received, shutting down.")
        except MotionError as exc:
            _LOG.error("Motion pipeline stopped: %s", exc)
            return 1
        finally:
            with contextlib.suppress(Exception):
                source.close()

    _LOG.info(
        "Processed %d frame(s); %d live trail(s) at exit.",
        processed,
        len(engine.tracker.trails()),
    )
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
