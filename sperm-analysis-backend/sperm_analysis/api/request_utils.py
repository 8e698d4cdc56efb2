# sperm_analysis/api/request_utils.py
from flask import request

from sperm_analysis.core.errors import ValidationError
from sperm_analysis.utils.storage_io import is_safe_path_part


def _raw_user_id() -> str:
    uid = (request.headers.get("X-User-Id") or "").strip()
    if uid:
        return uid
    uid = (request.args.get("user_id") or "").strip()
    if uid:
        return uid
    return (request.form.get("user_id") or request.form.get("userId") or "").strip()


def get_user_id() -> str:
    """
    Caller identity (no login in this service):
    X-User-Id header, then ?user_id=, then form field user_id / userId.
    <img>/<video> tags cannot send headers, so the query string is accepted too.
    The id is used as a storage directory name, so only [A-Za-z0-9_.@-] is allowed.
    """
    uid = _raw_user_id()
    if uid and not is_safe_path_part(uid):
        raise ValidationError("Invalid user_id")
    return uid


def missing_user_response():
    return {"success": False, "error": "user_id is required"}, 400
