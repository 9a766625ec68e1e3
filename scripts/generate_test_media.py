#!/usr/bin/env python3
"""Generate synthetic pages, a tone track and a render request for pagereel.

Produces, in the target directory:
  page1.png   1200x1600 blue page with a white band
  page2.png   1200x1600 red page
  music.wav   12s 440 Hz tone
  request.json  three regions across both pages, 12s total
"""

import json
import subprocess
import sys
from pathlib import Path


def generate_test_media(out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)

    pages = {
        "page1.png": "color=c=blue:s=1200x1600:d=1,drawbox=y=400:w=iw:h=320:color=white:t=fill",
        "page2.png": "color=c=red:s=1200x1600:d=1",
    }
    for name, source in pages.items():
        cmd = [
            "ffmpeg", "-y",
            "-f", "lavfi", "-i", source,
            "-frames:v", "1",
            str(out_dir / name),
        ]
        subprocess.run(cmd, check=True)

    cmd = [
        "ffmpeg", "-y",
        "-f", "lavfi", "-i", "sine=f=440:d=12",
        str(out_dir / "music.wav"),
    ]
    subprocess.run(cmd, check=True)

    request = {
        "output": str(out_dir / "rendered.mp4"),
        "audio": str(out_dir / "music.wav"),
        "images": [str(out_dir / "page1.png"), str(out_dir / "page2.png")],
        "duration": 12.0,
        "width": 640,
        "height": 360,
        "regions": [
            {"id": "a", "x": 0, "y": 0.25, "width": 1, "height": 0.2, "pageIndex": 0, "start": 0},
            {"id": "b", "x": 0.1, "y": 0.1, "width": 0.5, "height": 0.5, "pageIndex": 1, "start": 4},
            {"id": "c", "x": 0, "y": 0.6, "width": 1, "height": 0.4, "pageIndex": 0, "start": 8},
        ],
    }
    request_path = out_dir / "request.json"
    request_path.write_text(json.dumps(request, indent=2))
    print(f"Generated: {request_path}")
    return request_path


if __name__ == "__main__":
    out = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("tests/fixtures/media")
    generate_test_media(out)
