# sperm_analysis/services/analysis_service.py
import uuid

from loguru import logger

from sperm_analysis.core.config import Config
from sperm_analysis.core.errors import (
    AnalysisError, DetectorUnavailable, InternalError, PersistenceError, ValidationError,
)
from sperm_analysis.ml.detection.predict import detect_objects
from sperm_analysis.services.synthesis_service import synthesize_result
from sperm_analysis.utils.storage_io import is_safe_path_part
from sperm_analysis.utils.temp_store import ext_for_media_type, write_meta, write_temp_media


def normalize_media_type(media_type) -> str:
    # "image/JPEG; charset=binary" -> "image/jpeg"
    return str(media_type or "").split(";", 1)[0].strip().lower()


def upload_policy() -> dict:
    return {
        "allowed_types": list(Config.ALLOWED_MEDIA_TYPES),
        "max_bytes": int(Config.MAX_UPLOAD_BYTES),
        "client_max_bytes": int(Config.CLIENT_MAX_UPLOAD_BYTES),
    }


def validate_media_type(media_type: str) -> str:
    mt = normalize_media_type(media_type)
    if mt not in Config.ALLOWED_MEDIA_TYPES:
        raise ValidationError(
            f"Unsupported file type '{mt or 'unknown'}'. "
            f"Allowed: {', '.join(Config.ALLOWED_MEDIA_TYPES)}",
            allowed_types=list(Config.ALLOWED_MEDIA_TYPES),
        )
    return mt


def validate_size(size: int):
    size = int(size)
    if size <= 0:
        raise ValidationError("Empty file")
    if size > Config.MAX_UPLOAD_BYTES:
        raise ValidationError(
            f"File too large ({size} bytes). Maximum is {Config.MAX_UPLOAD_BYTES} bytes",
            max_bytes=int(Config.MAX_UPLOAD_BYTES),
        )


def validate_upload(file_name: str, media_type: str, size: int) -> str:
    """
    Reject an upload before any analysis work.
    return: normalized media type
    """
    if not str(file_name or "").strip():
        raise ValidationError("Empty filename")
    mt = validate_media_type(media_type)
    validate_size(size)
    return mt


def validate_user_id(user_id) -> str:
    user_id = (str(user_id).strip() if user_id is not None else "")
    if not user_id:
        raise ValidationError("user_id is required")
    if not is_safe_path_part(user_id):
        raise ValidationError("Invalid user_id")
    return user_id


def run_analysis(file_bytes: bytes, media_type: str, rng=None):
    """
    Detector first (images only, when enabled), synthetic branch otherwise.
    Detector failures never reach the caller.
    """
    detections = None
    try:
        if Config.DETECTOR_ENABLED and media_type.startswith("image/"):
            try:
                detections = detect_objects(file_bytes)
            except DetectorUnavailable as e:
                logger.warning("detector unavailable, using synthetic result: {}", e.message)
                detections = None

        result = synthesize_result(len(file_bytes), media_type, detections, rng=rng)
    except AnalysisError:
        raise
    except Exception as e:
        logger.exception("analysis failed")
        raise InternalError("Analysis failed") from e

    logger.info(
        "analysis done: branch={} count={} who={}",
        "synthetic" if result.synthetic else "detector",
        result.sperm_count,
        result.who_classification.value,
    )
    return result


def read_upload(file_storage) -> bytes:
    """
    Read at most MAX_UPLOAD_BYTES + 1 so an oversize upload is not fully
    buffered before it is rejected.
    """
    return file_storage.stream.read(int(Config.MAX_UPLOAD_BYTES) + 1)


def analyze_upload(file_storage, user_id: str, rng=None) -> dict:
    """
    Called by the endpoint:
    - read at most MAX_UPLOAD_BYTES + 1, validate name/type/size
    - run detector / synthesizer
    - keep a temp bundle (media + meta) so the save can be retried
    """
    user_id = validate_user_id(user_id)

    file_name = file_storage.filename or ""
    file_bytes = read_upload(file_storage)
    media_type = validate_upload(
        file_name, file_storage.mimetype or file_storage.content_type, len(file_bytes)
    )

    result = run_analysis(file_bytes, media_type, rng=rng)

    analysis_id = uuid.uuid4().hex
    meta = {
        "stage": "analyzed",
        "user_id": user_id,
        "file_name": file_name,
        "file_type": media_type,
        "file_size": len(file_bytes),
        "result": result.to_dict(),
    }
    try:
        write_temp_media(analysis_id, file_bytes, ext_for_media_type(media_type, file_name))
        write_meta(analysis_id, meta)
    except OSError as e:
        logger.error("failed to write temp bundle {}: {}", analysis_id, e)
        raise PersistenceError(
            "Failed to stage uploaded file",
            analysis_id=analysis_id,
            result=result.to_dict(),
        ) from e

    return {
        "analysis_id": analysis_id,
        "file_name": file_name,
        "file_type": media_type,
        "file_size": len(file_bytes),
        "result": result,
    }
