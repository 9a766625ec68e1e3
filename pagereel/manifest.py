"""JSON render request schema — the contract between CLI/API and engine."""

import json
from dataclasses import dataclass, field
from pathlib import Path

from pagereel.models import Region

REQUIRED_FIELDS = ("output", "audio", "images", "regions", "duration")


@dataclass
class EncoderConfig:
    """Encoder selection and output quality settings."""

    video: str = "libx264"
    audio: str = "aac"
    audio_bitrate: str = "192k"
    pix_fmt: str = "yuv420p"
    quality: int = 23
    binary: str = "ffmpeg"


@dataclass
class RenderRequest:
    """Top-level render request."""

    output: Path
    audio: Path
    images: list[Path]
    regions: list[Region]
    duration: float
    width: int = 1920
    height: int = 1080
    background: str = "white"
    version: str = "1"
    encoder: EncoderConfig = field(default_factory=EncoderConfig)


def region_from_dict(data: dict) -> Region:
    """Build a Region from editor JSON (``pageIndex`` or ``page_index``)."""
    page_index = data["page_index"] if "page_index" in data else data["pageIndex"]
    start = data.get("start")
    return Region(
        id=str(data["id"]),
        x=float(data["x"]),
        y=float(data["y"]),
        width=float(data["width"]),
        height=float(data["height"]),
        page_index=int(page_index),
        start=None if start is None else float(start),
        label=data.get("label", ""),
        color=data.get("color", ""),
    )


def request_from_dict(data: dict) -> RenderRequest:
    """Validate and convert a decoded JSON object into a RenderRequest."""
    missing = [name for name in REQUIRED_FIELDS if name not in data]
    if missing:
        raise ValueError(
            f"Render request must contain {', '.join(REQUIRED_FIELDS)} "
            f"(missing: {', '.join(missing)})"
        )

    encoder = EncoderConfig(**data["encoder"]) if "encoder" in data else EncoderConfig()
    if "video_encoder" in data:
        encoder.video = data["video_encoder"]
    if "audio_encoder" in data:
        encoder.audio = data["audio_encoder"]

    return RenderRequest(
        version=data.get("version", "1"),
        output=Path(data["output"]),
        audio=Path(data["audio"]),
        images=[Path(p) for p in data["images"]],
        regions=[region_from_dict(r) for r in data["regions"]],
        duration=float(data["duration"]),
        width=int(data.get("width", 1920)),
        height=int(data.get("height", 1080)),
        background=data.get("background", "white"),
        encoder=encoder,
    )


def load_request(path: str | Path) -> RenderRequest:
    """Load and validate a render request from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())
    return request_from_dict(data)
