"""Shared test fixtures."""

from pathlib import Path

import pytest

from pagereel.models import Region

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def make_region(
    id: str = "r",
    start: float | None = 0.0,
    page_index: int = 0,
    x: float = 0.0,
    y: float = 0.25,
    width: float = 1.0,
    height: float = 0.2,
) -> Region:
    return Region(
        id=id, x=x, y=y, width=width, height=height,
        page_index=page_index, start=start, label=id, color="#22d3ee",
    )


@pytest.fixture
def sample_request_path() -> Path:
    return FIXTURES_DIR / "sample_request.json"
