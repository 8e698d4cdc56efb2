# sperm_analysis/services/history_service.py
import json
import os
from datetime import timezone

from loguru import logger
from sqlalchemy import case, func

from sperm_analysis.core.config import Config
from sperm_analysis.database.db import SessionLocal
from sperm_analysis.models.analysis_result import SavedAnalysisResult
from sperm_analysis.utils.storage_io import safe_abs_path

SUMMARY_FIELDS = (
    "id",
    "file_name",
    "file_type",
    "sperm_count",
    "concentration",
    "progressive_motility_percentage",
    "morphology_percentage",
    "confidence_score",
    "image_quality",
    "who_classification",
    "synthetic",
)


def _to_iso_utc(dt):
    """
    Always return an ISO string.
    A naive datetime from the DB (e.g. SQLite) is treated as UTC.
    """
    if dt is None:
        return None
    if getattr(dt, "tzinfo", None) is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def row_to_dict(row: SavedAnalysisResult) -> dict:
    data = {c.name: getattr(row, c.name) for c in SavedAnalysisResult.__table__.columns}
    data["created_at"] = _to_iso_utc(row.created_at)
    raw = data.pop("detected_objects_json", None)
    data["detected_objects"] = json.loads(raw) if raw else []
    return data


def _summary(row: SavedAnalysisResult) -> dict:
    item = {name: getattr(row, name) for name in SUMMARY_FIELDS}
    item["created_at"] = _to_iso_utc(row.created_at)
    return item


def _try_remove_file(path):
    if not path:
        return
    try:
        if os.path.isfile(path):
            os.remove(path)
    except OSError as e:
        # the row is already gone; a locked file should not fail the delete
        logger.warning("could not remove {}: {}", path, e)


def _try_cleanup_dirs(path):
    """
    Remove empty .../<user_id>/<analysis_id>/ and then .../<user_id>/
    """
    if not path:
        return
    d = os.path.dirname(path)
    for folder in (d, os.path.dirname(d)):
        try:
            if os.path.isdir(folder) and not os.listdir(folder):
                os.rmdir(folder)
        except OSError:
            return


def _clamp_page(limit, offset):
    limit = max(1, min(int(limit), int(Config.HISTORY_MAX_LIMIT)))
    offset = max(0, int(offset))
    return limit, offset


def _owned(db, analysis_id: str, user_id: str):
    return (
        db.query(SavedAnalysisResult)
        .filter(SavedAnalysisResult.id == analysis_id)
        .filter(SavedAnalysisResult.user_id == user_id)
        .first()
    )


def list_history(user_id: str, limit: int = 50, offset: int = 0) -> dict:
    if not user_id:
        raise ValueError("user_id is required")
    limit, offset = _clamp_page(limit, offset)

    db = SessionLocal()
    try:
        base = db.query(SavedAnalysisResult).filter(SavedAnalysisResult.user_id == user_id)
        total = base.count()
        rows = (
            base.order_by(SavedAnalysisResult.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "items": [_summary(r) for r in rows],
            "total": int(total),
            "limit": limit,
            "offset": offset,
        }
    finally:
        db.close()


def get_history_detail(analysis_id: str, user_id: str):
    if not user_id:
        raise ValueError("user_id is required")

    db = SessionLocal()
    try:
        row = _owned(db, analysis_id, user_id)
        return row_to_dict(row) if row else None
    finally:
        db.close()


def delete_history_item(analysis_id: str, user_id: str, delete_files: bool = True):
    """
    Remove one history item:
    - check ownership by user_id
    - delete the DB row
    - optionally delete the stored media
    """
    if not user_id:
        raise ValueError("user_id is required")

    db = SessionLocal()
    try:
        row = _owned(db, analysis_id, user_id)
        if not row:
            return None

        media_path = safe_abs_path(row.file_path)

        # row first, so the API view stays consistent even if file removal fails
        db.delete(row)
        db.commit()
    finally:
        db.close()

    if delete_files:
        _try_remove_file(media_path)
        _try_cleanup_dirs(media_path)

    logger.info("deleted analysis {} for user {}", analysis_id, user_id)
    return {"deleted": True, "id": analysis_id}


def history_stats(user_id: str) -> dict:
    """
    Aggregates for the charts / analytics page.
    """
    if not user_id:
        raise ValueError("user_id is required")

    db = SessionLocal()
    try:
        cols = SavedAnalysisResult
        total, avg_count, avg_conf, avg_prog, avg_conc, n_synth = (
            db.query(
                func.count(cols.id),
                func.avg(cols.sperm_count),
                func.avg(cols.confidence_score),
                func.avg(cols.progressive_motility_percentage),
                func.avg(cols.concentration),
                func.sum(case((cols.synthetic.is_(True), 1), else_=0)),
            )
            .filter(cols.user_id == user_id)
            .one()
        )

        by_class = (
            db.query(cols.who_classification, func.count(cols.id))
            .filter(cols.user_id == user_id)
            .group_by(cols.who_classification)
            .all()
        )
        by_quality = (
            db.query(cols.image_quality, func.count(cols.id))
            .filter(cols.user_id == user_id)
            .group_by(cols.image_quality)
            .all()
        )

        def _avg(v):
            return round(float(v), 2) if v is not None else None

        return {
            "total": int(total or 0),
            "average_sperm_count": _avg(avg_count),
            "average_confidence_score": _avg(avg_conf),
            "average_progressive_motility_percentage": _avg(avg_prog),
            "average_concentration": _avg(avg_conc),
            "synthetic_count": int(n_synth or 0),
            "who_classification_counts": {label: int(n) for label, n in by_class},
            "image_quality_counts": {label: int(n) for label, n in by_quality},
        }
    finally:
        db.close()
