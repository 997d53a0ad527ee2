"""
Work-items blueprint — tasks, progress logs, issues, client feedback.

Endpoints:
    GET|POST  /api/v1/tasks              PATCH /api/v1/tasks/<task_id>
    GET|POST  /api/v1/progress
    GET|POST  /api/v1/issues             PATCH /api/v1/issues/<issue_id>
    GET|POST  /api/v1/feedback

List endpoints accept ?project_id= (and ?status= for tasks / issues) and
return only what the session role may see.
"""

from flask import Blueprint, jsonify, request

from nightowl.core.container import get_core
from nightowl.utils.errors import E, api_error
from nightowl.utils.helpers import json_body

work_bp = Blueprint("work", __name__, url_prefix="/api/v1")


def _listing(items):
    return jsonify({"items": [i.to_dict() for i in items], "total": len(items)})


def _require(data: dict, *fields):
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        return api_error(E.VALIDATION_REQUIRED, f"Missing required field(s): {', '.join(missing)}",
                         details={f: "required" for f in missing})
    return None


# ── Tasks ────────────────────────────────────────────────────────────────────

@work_bp.route("/tasks", methods=["GET"])
def list_tasks():
    return _listing(get_core().views.tasks(
        project_id=request.args.get("project_id"), status=request.args.get("status"),
    ))


@work_bp.route("/tasks", methods=["POST"])
def create_task():
    """Body: { "project_id", "title", "description"?, "priority"? }"""
    data = json_body()
    err = _require(data, "project_id", "title")
    if err:
        return err
    task = get_core().work.create_task(data["project_id"], data)
    return jsonify(task.to_dict()), 201


@work_bp.route("/tasks/<task_id>", methods=["PATCH"])
def update_task(task_id):
    """Body: { "status": "todo" | "in_progress" | "done" }"""
    data = json_body()
    err = _require(data, "status")
    if err:
        return err
    task = get_core().work.update_task_status(task_id, data["status"])
    return jsonify(task.to_dict()), 200


# ── Progress logs ────────────────────────────────────────────────────────────

@work_bp.route("/progress", methods=["GET"])
def list_progress():
    return _listing(get_core().views.progress_logs(project_id=request.args.get("project_id")))


@work_bp.route("/progress", methods=["POST"])
def record_progress():
    """Body: { "project_id", "short_update", "hours", "date"?, "developer_id"? }"""
    data = json_body()
    err = _require(data, "project_id", "short_update", "hours")
    if err:
        return err
    log = get_core().work.record_progress(
        data["project_id"], data.get("developer_id"), data["short_update"], data["hours"], data.get("date"),
    )
    return jsonify(log.to_dict()), 201


# ── Issues ───────────────────────────────────────────────────────────────────

@work_bp.route("/issues", methods=["GET"])
def list_issues():
    return _listing(get_core().views.issues(
        project_id=request.args.get("project_id"), status=request.args.get("status"),
    ))


@work_bp.route("/issues", methods=["POST"])
def report_issue():
    """Body: { "project_id", "title", "type"?, "description"?, "reporter_id"? }"""
    data = json_body()
    err = _require(data, "project_id", "title")
    if err:
        return err
    issue = get_core().work.report_issue(
        data["project_id"], data.get("reporter_id"), data.get("type"), data["title"], data.get("description", ""),
    )
    return jsonify(issue.to_dict()), 201


@work_bp.route("/issues/<issue_id>", methods=["PATCH"])
def update_issue(issue_id):
    """Body: { "status": "open" | "in_progress" | "resolved" }"""
    data = json_body()
    err = _require(data, "status")
    if err:
        return err
    issue = get_core().work.update_issue_status(issue_id, data["status"])
    return jsonify(issue.to_dict()), 200


# ── Feedback ─────────────────────────────────────────────────────────────────

@work_bp.route("/feedback", methods=["GET"])
def list_feedback():
    return _listing(get_core().views.feedback(project_id=request.args.get("project_id")))


@work_bp.route("/feedback", methods=["POST"])
def submit_feedback():
    """Body: { "project_id", "phase_id", "rating": 1-5, "comments"? }"""
    data = json_body()
    err = _require(data, "project_id", "phase_id", "rating")
    if err:
        return err
    feedback = get_core().work.submit_feedback(
        data["project_id"], data["phase_id"], data["rating"], data.get("comments", ""),
    )
    return jsonify(feedback.to_dict()), 201
