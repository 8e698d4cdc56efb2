# sperm_analysis/api/analyze_routes.py
from flask import Blueprint, request, jsonify

from sperm_analysis.api.request_utils import get_user_id, missing_user_response
from sperm_analysis.core.errors import PersistenceError
from sperm_analysis.services.analysis_service import analyze_upload, upload_policy
from sperm_analysis.services.save_service import save_analysis

analyze_bp = Blueprint("analyze", __name__)


@analyze_bp.get("/upload-policy")
def get_upload_policy():
    """Allow-list plus the server limit and the (separate) client pre-check limit."""
    return jsonify(upload_policy()), 200


@analyze_bp.route("/analyze", methods=["POST"])
def analyze():
    """
    Main endpoint:
    - accepts "file" (multipart/form-data) + user id
    - analyzes, then saves to storage + DB
    - a failed save still returns the computed result (502) together with
      analysis_id, so the client can call /analyses/<id>/save again
    """
    user_id = get_user_id()
    if not user_id:
        return missing_user_response()

    file = request.files.get("file") or request.files.get("image")
    if file is None:
        return jsonify({"success": False, "error": "No file provided"}), 400

    # ValidationError / InternalError are turned into JSON by the app error handlers
    analysis = analyze_upload(file, user_id)
    result = analysis["result"].to_dict()

    try:
        saved = save_analysis(analysis["analysis_id"], user_id)
    except PersistenceError as e:
        payload = e.to_dict()
        payload["result"] = result
        return jsonify(payload), e.status_code

    return jsonify({"success": True, "data": saved}), 200


@analyze_bp.post("/analyses/<analysis_id>/save")
def retry_save(analysis_id):
    """Persist an already computed analysis again (after a failed save)."""
    user_id = get_user_id()
    if not user_id:
        return missing_user_response()

    try:
        saved = save_analysis(analysis_id, user_id)
    except FileNotFoundError:
        return jsonify({"success": False, "error": "Analysis not found"}), 404
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    return jsonify({"success": True, "data": saved}), 200
