"""Filter-graph compiler for per-segment clauses and the final concat stage.

Each segment clause reads a looped page image and turns it into a clip of the
target size:

    [N:v] -> crop -> scale -> pad -> trim -> setpts/setsar -> [segI]

The clips are then joined by a single video-only concat filter. Audio is not
part of the graph; the background track is mapped straight from its input.
"""

from pagereel.models import FilterProgram, PlannedSegment, SegmentFilter, SegmentPlan

DEFAULT_BACKGROUND = "white"


def segment_label(index: int) -> str:
    return f"seg{index}"


def compile_segment(
    segment: PlannedSegment,
    index: int,
    width: int,
    height: int,
    background: str = DEFAULT_BACKGROUND,
) -> SegmentFilter:
    """Build the filter clause for one planned segment."""
    crop = segment.crop
    label = segment_label(index)
    clause = (
        f"[{segment.page_index}:v]"
        f"crop=iw*{crop.width:.4f}:ih*{crop.height:.4f}:iw*{crop.x:.4f}:ih*{crop.y:.4f},"
        f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:{background},"
        f"trim=duration={segment.duration:.3f},"
        f"setpts=PTS-STARTPTS,setsar=1[{label}]"
    )
    return SegmentFilter(label=label, clause=clause)


def assemble(filters: list[SegmentFilter], output_label: str = "outv") -> FilterProgram:
    """Append the concat stage after all segment clauses.

    No validation happens here; ffmpeg rejects malformed graphs itself.
    """
    concat_inputs = "".join(f"[{f.label}]" for f in filters)
    concat = f"{concat_inputs}concat=n={len(filters)}:v=1:a=0[{output_label}]"
    return FilterProgram(
        clauses=[f.clause for f in filters] + [concat],
        output_label=output_label,
    )


def build_program(
    plan: SegmentPlan,
    width: int,
    height: int,
    background: str = DEFAULT_BACKGROUND,
) -> FilterProgram:
    """Compile every planned segment in order and assemble the program."""
    filters = [
        compile_segment(seg, i, width, height, background)
        for i, seg in enumerate(plan)
    ]
    return assemble(filters)
