"""Timeline normalizer: turns raw regions into an ordered segment plan."""

import math
from bisect import bisect_right
from collections.abc import Iterable

from pagereel.models import CropRect, PlannedSegment, Region, SegmentPlan

MIN_CROP = 0.001


class TimelineError(ValueError):
    """Base class for region/timeline validation failures."""


class EmptyTimelineError(TimelineError):
    def __init__(self) -> None:
        super().__init__("No regions with valid start time found")


class InvalidPageIndexError(TimelineError):
    def __init__(self, region_id: str, page_index: int) -> None:
        self.region_id = region_id
        self.page_index = page_index
        super().__init__(f"Region {region_id} refers to invalid page_index {page_index}")


class NonPositiveDurationError(TimelineError):
    def __init__(self, region_id: str, duration: float) -> None:
        self.region_id = region_id
        self.duration = duration
        super().__init__(
            f"Region {region_id} would last {duration:.3f}s; "
            "start times must be distinct and earlier than the total duration"
        )


def _clamp(value: float, low: float, high: float) -> float:
    if math.isnan(value):
        return low
    return min(max(value, low), high)


def clamp_crop(region: Region) -> CropRect:
    """Pull a region's rectangle back inside the unit square.

    Width/height are clamped first so the position bounds can depend on them.
    """
    width = _clamp(region.width, MIN_CROP, 1.0)
    height = _clamp(region.height, MIN_CROP, 1.0)
    return CropRect(
        x=_clamp(region.x, 0.0, 1.0 - width),
        y=_clamp(region.y, 0.0, 1.0 - height),
        width=width,
        height=height,
    )


def build_plan(
    regions: Iterable[Region], image_count: int, total_duration: float
) -> SegmentPlan:
    """Filter, sort and time the regions.

    Regions without a start are dropped. The rest are ordered by start
    (stable, so ties keep input order). Each segment runs until the next one
    starts; the last runs until ``total_duration``.

    Raises:
        EmptyTimelineError: no region has a start time.
        InvalidPageIndexError: for the first region (in plan order) whose
            page index is outside ``[0, image_count)``.
    """
    active = sorted(
        (r for r in regions if r.start is not None), key=lambda r: r.start
    )
    if not active:
        raise EmptyTimelineError()

    for region in active:
        if not 0 <= region.page_index < image_count:
            raise InvalidPageIndexError(region.id, region.page_index)

    plan: SegmentPlan = []
    for i, region in enumerate(active):
        end = active[i + 1].start if i + 1 < len(active) else total_duration
        plan.append(
            PlannedSegment(
                region_id=region.id,
                page_index=region.page_index,
                crop=clamp_crop(region),
                start=region.start,
                end=end,
            )
        )
    return plan


def check_durations(plan: SegmentPlan) -> None:
    """Reject plans containing zero, negative or NaN-length segments."""
    for seg in plan:
        if not seg.duration > 0:
            raise NonPositiveDurationError(seg.region_id, seg.duration)


def segment_at(plan: SegmentPlan, seconds: float) -> PlannedSegment | None:
    """Return the segment on screen at ``seconds`` of playback.

    Past the end of the plan the last segment stays on screen; before the
    first start nothing is.
    """
    if not plan:
        return None
    idx = bisect_right([seg.start for seg in plan], seconds) - 1
    if idx < 0:
        return None
    return plan[idx]


def format_seconds(value: float | None) -> str:
    """Format seconds as ``m:ss.ss``; ``-`` for missing values."""
    if value is None or math.isnan(value):
        return "-"
    v = max(0.0, value)
    m = int(v // 60)
    s = v % 60
    return f"{m}:{s:05.2f}"
