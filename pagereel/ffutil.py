"""FFmpeg subprocess helpers."""

import logging
import math
import shutil
import subprocess
import sys
import threading
from pathlib import Path
from typing import Callable

from pagereel.manifest import EncoderConfig
from pagereel.models import FilterProgram

logger = logging.getLogger(__name__)

PROGRESS_PREFIX = "out_time_us="
PROGRESS_END = "progress=end"
HARDWARE_ENCODER_MARKERS = ("nvenc",)
CREATE_NO_WINDOW = 0x08000000
IS_WINDOWS = sys.platform == "win32"


class FFmpegError(RuntimeError):
    """Base class for failures of the ffmpeg environment or process."""


class FFmpegNotFoundError(FFmpegError):
    pass


class FFmpegLaunchError(FFmpegError):
    """Raised when the ffmpeg process cannot be started or read."""


class FilterScriptError(FFmpegError):
    """Raised when the filter-graph script cannot be written."""


class RenderFailedError(FFmpegError):
    """ffmpeg exited unsuccessfully. ``stderr`` holds its raw output."""

    def __init__(self, returncode: int, stderr: str = "") -> None:
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"ffmpeg render failed (rc={returncode})")


def check_ffmpeg(binary: str = "ffmpeg") -> None:
    """Raise FFmpegNotFoundError if ffmpeg is not on PATH."""
    if shutil.which(binary) is None:
        raise FFmpegNotFoundError(f"{binary} not found on PATH")


def is_hardware_encoder(video_encoder: str) -> bool:
    return any(marker in video_encoder for marker in HARDWARE_ENCODER_MARKERS)


def encoder_quality_args(video_encoder: str, quality: int = 23) -> list[str]:
    """Preset and rate-control flags for the chosen video encoder.

    NVENC takes ``-cq`` with its own preset names; software encoders use
    ``-crf``.
    """
    if is_hardware_encoder(video_encoder):
        return ["-preset", "p4", "-cq", str(quality)]
    return ["-preset", "medium", "-crf", str(quality)]


def build_render_command(
    images: list[Path],
    audio: Path,
    script_path: Path,
    output: Path,
    encoder: EncoderConfig,
    output_label: str = "outv",
) -> list[str]:
    """Assemble the ffmpeg argv for a render.

    Every image is looped so it behaves as an endless stream that ``trim``
    can cut to any length. The audio input follows the images, so its index
    is ``len(images)``.
    """
    cmd = [
        encoder.binary, "-y",
        "-hide_banner", "-loglevel", "warning",
        "-progress", "pipe:1",
    ]
    for image in images:
        cmd += ["-loop", "1", "-i", str(image)]
    cmd += ["-i", str(audio)]

    cmd += [
        "-filter_complex_script", str(script_path),
        "-map", f"[{output_label}]",
        "-map", f"{len(images)}:a",
        "-c:v", encoder.video,
        *encoder_quality_args(encoder.video, encoder.quality),
        "-pix_fmt", encoder.pix_fmt,
        "-c:a", encoder.audio,
        "-b:a", encoder.audio_bitrate,
        "-shortest",
        str(output),
    ]
    return cmd


def write_filter_script(program: FilterProgram, directory: Path) -> Path:
    """Write the filter graph to ``directory`` for ``-filter_complex_script``."""
    path = Path(directory) / "filter_graph.txt"
    try:
        path.write_text(program.text, encoding="utf-8")
    except OSError as e:
        raise FilterScriptError(f"Failed to write filter script: {e}") from e
    return path


def parse_progress_line(line: str, total_duration: float) -> float | None:
    """Map one line of ``-progress`` output to a percentage.

    Returns None for lines that carry no usable progress, including
    malformed ``out_time_us`` values.
    """
    line = line.rstrip("\r\n")
    if line == PROGRESS_END:
        return 100.0
    if not line.startswith(PROGRESS_PREFIX):
        return None
    try:
        us = float(line[len(PROGRESS_PREFIX):].strip())
        pct = us / 1_000_000 / total_duration * 100
    except (ValueError, ZeroDivisionError):
        return None
    if math.isnan(pct):
        return None
    return min(max(pct, 0.0), 100.0)


def _popen_kwargs() -> dict:
    kwargs: dict = {
        "stdout": subprocess.PIPE,
        "stderr": subprocess.PIPE,
        "text": True,
        "encoding": "utf-8",
        "errors": "replace",
    }
    if IS_WINDOWS:
        kwargs["creationflags"] = CREATE_NO_WINDOW
    return kwargs


def run_ffmpeg(cmd: list[str], on_line: Callable[[str], None]) -> tuple[int, str]:
    """Run ffmpeg, feeding each stdout line to ``on_line``.

    stderr is drained on a helper thread so a full stderr pipe can't stall
    the stdout reader. Returns ``(returncode, stderr_text)``.
    """
    logger.debug("Executing ffmpeg: %s", subprocess.list2cmdline(cmd))
    try:
        proc = subprocess.Popen(cmd, **_popen_kwargs())
    except OSError as e:
        raise FFmpegLaunchError(f"Failed to start ffmpeg: {e}") from e

    if proc.stdout is None:
        proc.kill()
        proc.wait()
        raise FFmpegLaunchError("Failed to open ffmpeg stdout")

    stderr_chunks: list[str] = []

    def drain_stderr() -> None:
        if proc.stderr is not None:
            stderr_chunks.append(proc.stderr.read())

    stderr_thread = threading.Thread(target=drain_stderr, daemon=True)
    stderr_thread.start()

    try:
        with proc.stdout:
            for line in proc.stdout:
                on_line(line)
    except Exception:
        proc.kill()
        proc.wait()
        stderr_thread.join()
        raise

    returncode = proc.wait()
    stderr_thread.join()
    return returncode, "".join(stderr_chunks)
