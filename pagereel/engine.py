"""Orchestrator — compiles a render request and drives ffmpeg to completion."""

import logging
import tempfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable

from pagereel import ffutil
from pagereel.filters import build_program
from pagereel.manifest import EncoderConfig, RenderRequest
from pagereel.models import FilterProgram, SegmentPlan
from pagereel.timeline import TimelineError, build_plan, check_durations

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class WorkerDispatchError(RuntimeError):
    """The render worker could not be run or joined."""


class RenderState(Enum):
    PREPARING = "preparing"
    LAUNCHING = "launching"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RenderJob:
    """Everything needed to launch a single encode."""

    output: Path
    audio: Path
    images: list[Path]
    plan: SegmentPlan
    duration: float
    width: int
    height: int
    encoder: EncoderConfig = field(default_factory=EncoderConfig)


@dataclass
class RenderResult:
    output_path: Path
    state: RenderState = RenderState.COMPLETED
    segments: int = 0
    stderr: str = ""


def prepare(request: RenderRequest) -> tuple[RenderJob, FilterProgram]:
    """Validate the timeline and compile the filter graph.

    Nothing is written or launched here, so every validation error surfaces
    before ffmpeg is involved.
    """
    plan = build_plan(request.regions, len(request.images), request.duration)
    check_durations(plan)
    program = build_program(plan, request.width, request.height, request.background)

    job = RenderJob(
        output=request.output,
        audio=request.audio,
        images=list(request.images),
        plan=plan,
        duration=request.duration,
        width=request.width,
        height=request.height,
        encoder=request.encoder,
    )
    return job, program


def execute(
    job: RenderJob,
    program: FilterProgram,
    on_progress: ProgressCallback | None = None,
    on_state: Callable[[RenderState], None] | None = None,
) -> RenderResult:
    """Run ffmpeg for a prepared job.

    The filter script lives in a temporary directory that is removed on every
    exit path. Progress is reported as a percentage in [0, 100] and always
    finishes at exactly 100.0 on success.

    Raises:
        FilterScriptError: the script or its temp directory could not be written.
        FFmpegNotFoundError: the ffmpeg binary is not on PATH.
        FFmpegLaunchError: ffmpeg could not be started.
        RenderFailedError: ffmpeg exited non-zero.
    """
    last_emitted: float | None = None

    def _state(state: RenderState) -> None:
        logger.debug("Render %s -> %s", job.output, state.value)
        if on_state:
            on_state(state)

    def _emit(pct: float) -> None:
        nonlocal last_emitted
        last_emitted = pct
        if on_progress is None:
            return
        try:
            on_progress(pct)
        except Exception:
            logger.warning("Dropped progress notification (%.1f%%)", pct, exc_info=True)

    def _on_line(line: str) -> None:
        pct = ffutil.parse_progress_line(line, job.duration)
        if pct is not None:
            _emit(pct)

    try:
        _state(RenderState.PREPARING)
        try:
            workdir = tempfile.TemporaryDirectory(prefix="pagereel_")
        except OSError as e:
            raise ffutil.FilterScriptError(f"Failed to create temp filter directory: {e}") from e
        with workdir as tmpdir:
            script_path = ffutil.write_filter_script(program, Path(tmpdir))
            logger.debug("Filter graph:\n%s", program.text)

            _state(RenderState.LAUNCHING)
            ffutil.check_ffmpeg(job.encoder.binary)
            cmd = ffutil.build_render_command(
                job.images,
                job.audio,
                script_path,
                job.output,
                job.encoder,
                output_label=program.output_label,
            )

            _state(RenderState.RUNNING)
            logger.info(
                "Rendering %d segments (%.1fs) to %s",
                len(job.plan), job.duration, job.output,
            )
            returncode, stderr = ffutil.run_ffmpeg(cmd, _on_line)

        if returncode != 0:
            logger.error("ffmpeg exited with %d: %s", returncode, stderr[-500:])
            raise ffutil.RenderFailedError(returncode, stderr)
    except Exception:
        _state(RenderState.FAILED)
        raise

    if last_emitted != 100.0:
        _emit(100.0)
    _state(RenderState.COMPLETED)
    logger.info("Render complete: %s", job.output)
    return RenderResult(
        output_path=job.output,
        state=RenderState.COMPLETED,
        segments=len(job.plan),
        stderr=stderr,
    )


def render(
    request: RenderRequest,
    on_progress: ProgressCallback | None = None,
    on_state: Callable[[RenderState], None] | None = None,
) -> RenderResult:
    """Plan, compile and encode a render request."""
    job, program = prepare(request)
    return execute(job, program, on_progress=on_progress, on_state=on_state)


def render_in_worker(
    request: RenderRequest,
    on_progress: ProgressCallback | None = None,
) -> RenderResult:
    """Run ``render`` on a dedicated worker thread and wait for it.

    Timeline and ffmpeg errors propagate unchanged. Anything else escaping
    the worker is reported as WorkerDispatchError.
    """
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="pagereel-render") as pool:
        try:
            future = pool.submit(render, request, on_progress)
            return future.result()
        except (TimelineError, ffutil.FFmpegError):
            raise
        except Exception as e:
            raise WorkerDispatchError(f"Render worker failed: {e}") from e
