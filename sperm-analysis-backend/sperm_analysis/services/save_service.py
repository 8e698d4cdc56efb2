# sperm_analysis/services/save_service.py
import json
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from sperm_analysis.core.config import Config
from sperm_analysis.core.errors import PersistenceError
from sperm_analysis.database.db import SessionLocal
from sperm_analysis.models.analysis_result import SavedAnalysisResult
from sperm_analysis.models.schemas import AnalysisResult
from sperm_analysis.services.history_service import row_to_dict
from sperm_analysis.utils.storage_io import is_safe_path_part, persist_file, public_url
from sperm_analysis.utils.temp_store import (
    read_meta, write_meta, find_media_path, delete_bundle, is_expired, ext_for_media_type,
)


def _meta_created_at_dt(meta: dict) -> datetime:
    """
    meta["created_at"] is epoch seconds; the DB column is a DateTime.
    """
    v = meta.get("created_at", None)
    if isinstance(v, (int, float)) and v > 0:
        return datetime.fromtimestamp(float(v), tz=timezone.utc)
    return datetime.now(timezone.utc)


def _load_bundle(analysis_id: str, user_id: str) -> dict:
    meta = read_meta(analysis_id)  # FileNotFoundError if missing

    if str(meta.get("user_id", "")) != user_id:
        # another user's bundle looks the same as a missing one
        raise FileNotFoundError(f"meta not found for analysis_id={analysis_id}")

    if meta.get("stage") == "saved":
        raise ValueError("Analysis already saved.")

    if is_expired(meta):
        delete_bundle(analysis_id)
        raise ValueError("Analysis expired. Please upload the file again.")

    return meta


def save_analysis(analysis_id: str, user_id: str, delete_temp_after: bool = None) -> dict:
    """
    Persist a computed analysis:
    - copy the media from tmp_uploads into storage
    - insert one SavedAnalysisResult row
    On failure the temp bundle is kept so the caller can retry this step
    without re-running the analysis.
    """
    user_id = (str(user_id).strip() if user_id is not None else "")
    if not user_id:
        raise ValueError("user_id is required")
    if not is_safe_path_part(user_id):
        raise ValueError("Invalid user_id")

    meta = _load_bundle(analysis_id, user_id)
    result = AnalysisResult(**meta["result"])

    media_tmp_path = find_media_path(analysis_id)
    if not media_tmp_path:
        raise FileNotFoundError("Uploaded media not found in tmp_uploads.")

    ext = ext_for_media_type(meta.get("file_type", ""), meta.get("file_name", ""))
    try:
        file_path = persist_file(media_tmp_path, user_id, analysis_id, f"media.{ext}")
    except OSError as e:
        logger.error("storage write failed for {}: {}", analysis_id, e)
        raise PersistenceError(
            "Failed to store uploaded file",
            analysis_id=analysis_id,
            result=result.to_dict(),
        ) from e

    fields = result.model_dump(mode="json", exclude={"detected_objects"})
    db = SessionLocal()
    try:
        row = SavedAnalysisResult(
            id=analysis_id,
            user_id=user_id,
            created_at=_meta_created_at_dt(meta),

            file_name=str(meta.get("file_name", "")),
            file_type=str(meta.get("file_type", "")),
            file_size=int(meta.get("file_size", 0)),
            file_path=file_path,
            file_url=public_url(file_path),

            detected_objects_json=json.dumps(
                [d.model_dump() for d in result.detected_objects], ensure_ascii=False
            ),
            **fields,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        saved = row_to_dict(row)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("DB write failed for {}: {}", analysis_id, e)
        raise PersistenceError(
            "Failed to save analysis results",
            analysis_id=analysis_id,
            result=result.to_dict(),
        ) from e
    finally:
        db.close()

    logger.info("saved analysis {} for user {}", analysis_id, user_id)

    if delete_temp_after is None:
        delete_temp_after = bool(Config.TEMP_DELETE_AFTER_SAVE)
    if delete_temp_after:
        delete_bundle(analysis_id)
    else:
        meta["stage"] = "saved"
        write_meta(analysis_id, meta)

    return saved
