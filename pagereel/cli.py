"""Thin CLI entry point — builds a RenderRequest and calls the engine."""

import argparse
import json
import logging
import sys
from pathlib import Path

from pagereel.engine import prepare, render_in_worker
from pagereel.ffutil import RenderFailedError
from pagereel.manifest import EncoderConfig, RenderRequest, load_request, region_from_dict
from pagereel.timeline import format_seconds


def _parse_size(value: str) -> tuple[int, int]:
    try:
        w, h = value.lower().split("x")
        return int(w), int(h)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got {value!r}")


def _add_request_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--manifest", "-m", type=Path, help="Path to a JSON render request")
    p.add_argument("--image", "-i", type=Path, action="append", dest="images", help="Page image (repeatable, in page order)")
    p.add_argument("--audio", "-a", type=Path, help="Background audio track")
    p.add_argument("--regions", "-r", type=Path, help="JSON file with the region list")
    p.add_argument("--duration", "-d", type=float, help="Total video duration in seconds")
    p.add_argument("--output", "-o", type=Path, help="Output file path")
    p.add_argument("--size", type=_parse_size, default=(1920, 1080), help="Output size, e.g. 1920x1080")
    p.add_argument("--video-encoder", type=str, default="libx264", help="ffmpeg video encoder (e.g. h264_nvenc)")
    p.add_argument("--audio-encoder", type=str, default="aac", help="ffmpeg audio encoder")


def _build_request(args: argparse.Namespace) -> RenderRequest:
    if args.manifest:
        return load_request(args.manifest)

    missing = [
        flag for flag, value in (
            ("--image", args.images),
            ("--audio", args.audio),
            ("--regions", args.regions),
            ("--duration", args.duration),
            ("--output", args.output),
        )
        if value is None
    ]
    if missing:
        raise ValueError(f"provide --manifest or all of: {', '.join(missing)}")

    regions = [region_from_dict(r) for r in json.loads(args.regions.read_text())]
    width, height = args.size
    return RenderRequest(
        output=args.output,
        audio=args.audio,
        images=args.images,
        regions=regions,
        duration=args.duration,
        width=width,
        height=height,
        encoder=EncoderConfig(video=args.video_encoder, audio=args.audio_encoder),
    )


def _print_plan(request: RenderRequest) -> None:
    job, program = prepare(request)
    print(f"{len(job.plan)} segments, {format_seconds(job.duration)} total")
    for i, seg in enumerate(job.plan):
        print(
            f"  seg{i}: page {seg.page_index} "
            f"{format_seconds(seg.start)} -> {format_seconds(seg.end)} "
            f"({seg.duration:.3f}s) region {seg.region_id}"
        )
    print()
    print(program.text)


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="pagereel",
        description="pagereel — render timed crops of page images into a video.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    rend = sub.add_parser("render", help="Render a video")
    _add_request_args(rend)

    plan = sub.add_parser("plan", help="Print the segment plan and filter graph without rendering")
    _add_request_args(plan)

    serve = sub.add_parser("serve", help="Launch the web API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        from pagereel.web import create_app
        app = create_app()
        print(f"pagereel web API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False, threaded=True)
        return

    try:
        request = _build_request(args)
        if args.command == "plan":
            _print_plan(request)
            return

        def on_progress(pct: float) -> None:
            print(f"\r  [{pct:5.1f}%] rendering", end="", flush=True)

        result = render_in_worker(request, on_progress=on_progress)
    except RenderFailedError as e:
        print(f"\nError: {e}", file=sys.stderr)
        if e.stderr:
            print(e.stderr[-2000:], file=sys.stderr)
        sys.exit(1)
    except (ValueError, KeyError, TypeError, OSError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print()
    print(f"Done! Output: {result.output_path}")
    print(f"  Segments: {result.segments}")
