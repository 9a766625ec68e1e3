"""Tests for the command-line entry point."""

import json
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from pagereel.cli import main
from pagereel.engine import RenderResult
from pagereel.ffutil import RenderFailedError


def _run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["pagereel", *argv])
    main()


class TestPlan:
    def test_prints_segments_and_graph(self, monkeypatch, capsys, sample_request_path: Path):
        _run(monkeypatch, "plan", "--manifest", str(sample_request_path))
        out = capsys.readouterr().out
        assert "2 segments, 0:12.00 total" in out
        assert "seg0: page 0 0:00.00 -> 0:06.00 (6.000s) region r1" in out
        assert "concat=n=2:v=1:a=0[outv]" in out

    def test_explicit_flags(self, monkeypatch, capsys, tmp_path: Path):
        regions = tmp_path / "regions.json"
        regions.write_text(json.dumps([
            {"id": "only", "x": 0, "y": 0, "width": 1, "height": 1, "pageIndex": 0, "start": 0},
        ]))
        _run(
            monkeypatch, "plan",
            "--image", "p.png", "--audio", "m.mp3", "--regions", str(regions),
            "--duration", "3", "--output", "o.mp4", "--size", "640x360",
        )
        out = capsys.readouterr().out
        assert "scale=640:360" in out

    def test_missing_flags(self, monkeypatch, capsys):
        with pytest.raises(SystemExit) as exc:
            _run(monkeypatch, "plan", "--image", "p.png")
        assert exc.value.code == 1
        assert "--audio" in capsys.readouterr().err

    def test_validation_error_exits(self, monkeypatch, capsys, tmp_path: Path):
        request = tmp_path / "req.json"
        request.write_text(json.dumps({
            "output": "o.mp4", "audio": "m.mp3", "images": ["p.png"], "duration": 5,
            "regions": [{"id": "bad", "x": 0, "y": 0, "width": 1, "height": 1, "pageIndex": 3, "start": 0}],
        }))
        with pytest.raises(SystemExit) as exc:
            _run(monkeypatch, "plan", "-m", str(request))
        assert exc.value.code == 1
        assert "Region bad" in capsys.readouterr().err


    def test_malformed_regions_file_exits(self, monkeypatch, capsys, tmp_path: Path):
        regions = tmp_path / "regions.json"
        regions.write_text(json.dumps({"id": "not-a-list"}))
        with pytest.raises(SystemExit) as exc:
            _run(
                monkeypatch, "plan",
                "--image", "p.png", "--audio", "m.mp3", "--regions", str(regions),
                "--duration", "3", "--output", "o.mp4",
            )
        assert exc.value.code == 1
        assert capsys.readouterr().err.startswith("Error:")

    def test_unknown_encoder_key_exits(self, monkeypatch, capsys, tmp_path: Path, sample_request_path: Path):
        data = json.loads(sample_request_path.read_text())
        data["encoder"] = {"speed": "fast"}
        request = tmp_path / "req.json"
        request.write_text(json.dumps(data))
        with pytest.raises(SystemExit) as exc:
            _run(monkeypatch, "plan", "-m", str(request))
        assert exc.value.code == 1
        assert "Error:" in capsys.readouterr().err


class TestRender:
    @patch("pagereel.cli.render_in_worker")
    def test_success(self, mock_render, monkeypatch, capsys, sample_request_path: Path):
        mock_render.return_value = RenderResult(output_path=Path("out.mp4"), segments=2)
        _run(monkeypatch, "render", "-m", str(sample_request_path))
        out = capsys.readouterr().out
        assert "Done! Output: out.mp4" in out

    @patch("pagereel.cli.render_in_worker", side_effect=RenderFailedError(1, "Conversion failed!"))
    def test_failure(self, mock_render, monkeypatch, capsys, sample_request_path: Path):
        with pytest.raises(SystemExit) as exc:
            _run(monkeypatch, "render", "-m", str(sample_request_path))
        assert exc.value.code == 1
        assert "Conversion failed!" in capsys.readouterr().err
