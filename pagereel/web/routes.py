"""Web API routes for pagereel."""

import json
import logging
import queue
import threading
import uuid
from pathlib import Path

from flask import Blueprint, Response, abort, current_app, jsonify, make_response, request, send_file

from pagereel.engine import execute, prepare
from pagereel.ffutil import RenderFailedError
from pagereel.manifest import request_from_dict

logger = logging.getLogger(__name__)

bp = Blueprint("web", __name__)

SSE_TIMEOUT = 120

# In-memory job store: job_id -> job dict
_jobs: dict[str, dict] = {}


def _job_or_404(job_id: str) -> dict:
    job = _jobs.get(job_id)
    if job is None:
        abort(make_response(jsonify({"error": "Job not found"}), 404))
    return job


def _output_in(job_dir: Path, output: Path) -> Path:
    """Place the requested output file name inside the job directory.

    Only the final path component is kept, so clients cannot write outside
    the work dir.
    """
    name = output.name
    if name in ("", ".", ".."):
        raise ValueError(f"Invalid output file name: {str(output)!r}")
    return job_dir / name


def _terminal_event(job: dict) -> dict:
    if job["status"] == "error":
        return {"error": job["error"]}
    return {"stage": "complete", "progress": 100.0, "result": job.get("result")}


def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


@bp.route("/api/render", methods=["POST"])
def start_render():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Expected a JSON object"}), 400

    job_id = uuid.uuid4().hex[:12]
    job_dir = Path(current_app.config["WORK_DIR"]) / job_id

    try:
        render_request = request_from_dict(data)
        render_request.output = _output_in(job_dir, render_request.output)
        render_job, program = prepare(render_request)
    except (ValueError, KeyError, TypeError) as e:
        return jsonify({"error": str(e)}), 400

    job_dir.mkdir(parents=True, exist_ok=True)
    progress_queue: queue.Queue = queue.Queue()
    job = {
        "dir": job_dir,
        "status": "rendering",
        "error": None,
        "progress": 0.0,
        "progress_queue": progress_queue,
    }
    _jobs[job_id] = job

    def on_progress(pct: float):
        job["progress"] = pct
        progress_queue.put({"progress": round(pct, 2)})

    def run():
        try:
            result = execute(render_job, program, on_progress=on_progress)
            job["result"] = {
                "output_path": str(result.output_path),
                "segments": result.segments,
            }
            job["status"] = "done"
        except RenderFailedError as e:
            job["status"] = "error"
            job["error"] = f"{e}: {e.stderr[-500:]}" if e.stderr else str(e)
        except Exception as e:
            logger.exception("Render job %s failed", job_id)
            job["status"] = "error"
            job["error"] = str(e)
        finally:
            progress_queue.put(None)  # sentinel

    threading.Thread(target=run, daemon=True).start()
    return jsonify({"job_id": job_id, "status": "started", "segments": len(render_job.plan)})


@bp.route("/api/jobs/<job_id>/progress")
def progress_stream(job_id: str):
    job = _job_or_404(job_id)
    q = job["progress_queue"]

    def generate():
        while True:
            try:
                msg = q.get(timeout=SSE_TIMEOUT)
            except queue.Empty:
                yield _sse({"error": "timeout"})
                return
            if msg is None:
                yield _sse(_terminal_event(job))
                return
            yield _sse(msg)

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/jobs/<job_id>/result")
def download_result(job_id: str):
    job = _job_or_404(job_id)
    if job["status"] != "done":
        return jsonify({"error": "Job not complete"}), 409
    return send_file(Path(job["result"]["output_path"]), as_attachment=False)


@bp.route("/api/jobs/<job_id>/status")
def job_status(job_id: str):
    job = _job_or_404(job_id)
    resp = {"status": job["status"], "progress": job["progress"]}
    if job["status"] == "done":
        resp["result"] = job["result"]
    elif job["status"] == "error":
        resp["error"] = job["error"]
    return jsonify(resp)
