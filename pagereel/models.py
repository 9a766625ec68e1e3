"""Shared data types used across pagereel."""

from dataclasses import dataclass

STATEMENT_SEPARATOR = ";\n"


@dataclass(frozen=True)
class Region:
    """A crop window over one page, active from ``start`` seconds.

    Coordinates are fractions of the page's width/height. ``label`` and
    ``color`` only matter to the editor that produced the region.
    """

    id: str
    x: float
    y: float
    width: float
    height: float
    page_index: int
    start: float | None = None
    label: str = ""
    color: str = ""


@dataclass(frozen=True)
class CropRect:
    """A crop window guaranteed to lie inside the page."""

    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class PlannedSegment:
    """One timed clip of the output video."""

    region_id: str
    page_index: int
    crop: CropRect
    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


SegmentPlan = list[PlannedSegment]


@dataclass
class SegmentFilter:
    label: str
    clause: str


@dataclass
class FilterProgram:
    """Ordered filter-graph statements; the last one writes ``output_label``."""

    clauses: list[str]
    output_label: str = "outv"

    @property
    def text(self) -> str:
        return STATEMENT_SEPARATOR.join(self.clauses)

