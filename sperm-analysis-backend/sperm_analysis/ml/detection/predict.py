# sperm_analysis/ml/detection/predict.py
import requests
from loguru import logger
from pydantic import ValidationError as SchemaError

from sperm_analysis.core.config import Config
from sperm_analysis.core.errors import DetectorUnavailable
from sperm_analysis.models.schemas import DetectedObject
from sperm_analysis.utils.image_io import encode_image_for_detector
from .client import get_detector_session


def _to_detected_object(item) -> DetectedObject:
    """
    item (object-detection pipeline format):
        {"score": 0.91, "label": "...", "box": {"xmin", "ymin", "xmax", "ymax"}}
    Detector labels are ignored; every box counts as a sperm-like object.
    """
    box = item["box"]
    xmin, ymin = float(box["xmin"]), float(box["ymin"])
    xmax, ymax = float(box["xmax"]), float(box["ymax"])
    return DetectedObject(
        x=max(0.0, xmin),
        y=max(0.0, ymin),
        width=max(0.0, xmax - xmin),
        height=max(0.0, ymax - ymin),
        confidence=float(item["score"]),
        label="sperm",
    )


def parse_detections(payload) -> list:
    if not isinstance(payload, list):
        raise DetectorUnavailable("Detector response is not a list of detections")
    try:
        return [_to_detected_object(item) for item in payload]
    except (KeyError, TypeError, ValueError, SchemaError) as e:
        raise DetectorUnavailable(f"Malformed detection entry: {e}") from e


def detect_objects(image_bytes: bytes, timeout: float = None) -> list:
    """
    Send one image to the external detector.

    return:
        list[DetectedObject] (may be empty)
    raise:
        DetectorUnavailable on timeout, connection error, non-2xx status,
        or a body that is not a detection list.
    """
    if not Config.DETECTOR_URL:
        raise DetectorUnavailable("DETECTOR_URL is not configured")

    timeout = Config.DETECTOR_TIMEOUT_SECONDS if timeout is None else timeout
    body = {
        "inputs": encode_image_for_detector(image_bytes),
        "parameters": {
            "threshold": Config.DETECTION_ACCEPT_THRESHOLD,
            "iou_threshold": Config.DETECTION_IOU_THRESHOLD,
        },
    }

    session = get_detector_session()
    try:
        resp = session.post(Config.DETECTOR_URL, json=body, timeout=timeout)
    except requests.RequestException as e:
        raise DetectorUnavailable(f"Detector request failed: {e}") from e

    if not 200 <= resp.status_code < 300:
        raise DetectorUnavailable(f"Detector returned HTTP {resp.status_code}")

    try:
        payload = resp.json()
    except ValueError as e:
        raise DetectorUnavailable("Detector response is not valid JSON") from e

    detections = parse_detections(payload)
    logger.debug("detector returned {} boxes", len(detections))
    return detections
