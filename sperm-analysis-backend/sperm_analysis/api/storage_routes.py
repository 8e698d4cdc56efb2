# sperm_analysis/api/storage_routes.py
import os
from flask import Blueprint, send_file
from werkzeug.utils import safe_join

from sperm_analysis.api.request_utils import get_user_id, missing_user_response
from sperm_analysis.core.config import Config
from sperm_analysis.database.db import SessionLocal
from sperm_analysis.models.analysis_result import SavedAnalysisResult

storage_bp = Blueprint("storage", __name__)


def _authorize(db, analysis_id: str, user_id: str) -> bool:
    row = (
        db.query(SavedAnalysisResult.id)
        .filter(SavedAnalysisResult.id == analysis_id)
        .filter(SavedAnalysisResult.user_id == user_id)
        .first()
    )
    return bool(row)


@storage_bp.get("/<user_id>/<analysis_id>/<path:filename>")
def get_storage_file(user_id, analysis_id, filename):
    """
    /api/storage/<user_id>/<analysis_id>/media.jpg?user_id=...
    The caller's id (header or query) must match the path owner.
    """
    caller = get_user_id()
    if not caller:
        return missing_user_response()
    if caller != user_id:
        return {"success": False, "error": "user_id mismatch"}, 403

    db = SessionLocal()
    try:
        if not _authorize(db, analysis_id, user_id):
            return {"success": False, "error": "Analysis not found"}, 404
    finally:
        db.close()

    # filename may carry Windows backslashes; normalize
    filename = (filename or "").replace("\\", "/")
    abs_path = safe_join(Config.STORAGE_ANALYSIS_DIR, user_id, analysis_id, filename)
    if not abs_path or not os.path.isfile(abs_path):
        return {"success": False, "error": "File not found"}, 404

    return send_file(abs_path, as_attachment=False)
