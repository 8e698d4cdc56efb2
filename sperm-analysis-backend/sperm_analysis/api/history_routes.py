# sperm_analysis/api/history_routes.py
from flask import Blueprint, request, jsonify

from sperm_analysis.api.request_utils import get_user_id, missing_user_response
from sperm_analysis.services.history_service import (
    list_history, get_history_detail, delete_history_item, history_stats,
)

history_bp = Blueprint("history", __name__)


def _int_arg(name: str, default: int) -> int:
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


@history_bp.get("")
def get_history():
    user_id = get_user_id()
    if not user_id:
        return missing_user_response()

    data = list_history(user_id, limit=_int_arg("limit", 50), offset=_int_arg("offset", 0))
    return jsonify(data), 200


@history_bp.get("/stats")
def get_stats():
    user_id = get_user_id()
    if not user_id:
        return missing_user_response()
    return jsonify(history_stats(user_id)), 200


@history_bp.get("/<analysis_id>")
def get_detail(analysis_id):
    user_id = get_user_id()
    if not user_id:
        return missing_user_response()

    data = get_history_detail(analysis_id, user_id)
    if data is None:
        return jsonify({"success": False, "error": "Analysis not found"}), 404
    return jsonify(data), 200


@history_bp.delete("/<analysis_id>")
def delete_item(analysis_id):
    user_id = get_user_id()
    if not user_id:
        return missing_user_response()

    delete_files = request.args.get("delete_files", "1").strip().lower() not in ("0", "false", "no")
    data = delete_history_item(analysis_id, user_id, delete_files=delete_files)
    if data is None:
        return jsonify({"success": False, "error": "Analysis not found"}), 404
    return jsonify(data), 200
