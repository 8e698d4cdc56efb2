import io
import math
import os
import time

import numpy as np
import pytest
from werkzeug.datastructures import FileStorage

from sperm_analysis.core.config import Config
from sperm_analysis.core.errors import InternalError, ValidationError
from sperm_analysis.services import analysis_service
from sperm_analysis.services.analysis_service import analyze_upload, run_analysis, validate_upload
from sperm_analysis.utils import temp_store


def upload(data: bytes, name="sample.png", content_type="image/png"):
    return FileStorage(stream=io.BytesIO(data), filename=name, content_type=content_type)


@pytest.mark.parametrize(
    "media_type",
    ["image/jpeg", "image/png", "image/gif", "image/webp",
     "video/mp4", "video/avi", "video/mov", "video/wmv", "IMAGE/PNG; charset=binary"],
)
def test_validate_upload_accepts_allow_list(media_type):
    assert validate_upload("a.bin", media_type, 10) in Config.ALLOWED_MEDIA_TYPES


def test_validate_upload_rejects_pdf_with_allow_list():
    with pytest.raises(ValidationError) as exc:
        validate_upload("report.pdf", "application/pdf", 1000)
    assert exc.value.status_code == 400
    assert exc.value.details["allowed_types"] == list(Config.ALLOWED_MEDIA_TYPES)


def test_validate_upload_rejects_oversize_with_limit(monkeypatch):
    monkeypatch.setattr(Config, "MAX_UPLOAD_BYTES", 100)
    with pytest.raises(ValidationError) as exc:
        validate_upload("big.mp4", "video/mp4", 101)
    assert exc.value.details["max_bytes"] == 100
    validate_upload("ok.mp4", "video/mp4", 100)


@pytest.mark.parametrize("name, size", [("", 10), ("a.png", 0)])
def test_validate_upload_rejects_empty(name, size):
    with pytest.raises(ValidationError):
        validate_upload(name, "image/png", size)


def test_unsupported_type_rejected_before_synthesis(monkeypatch):
    def _boom(*args, **kwargs):
        raise AssertionError("synthesis must not run")

    monkeypatch.setattr(analysis_service, "synthesize_result", _boom)

    with pytest.raises(ValidationError):
        analyze_upload(upload(b"%PDF-1.4", "r.pdf", "application/pdf"), "user-1")

    assert not os.path.isdir(Config.TEMP_DIR) or os.listdir(Config.TEMP_DIR) == []


def test_oversize_upload_rejected(monkeypatch, png_bytes):
    monkeypatch.setattr(Config, "MAX_UPLOAD_BYTES", 16)
    with pytest.raises(ValidationError):
        analyze_upload(upload(png_bytes), "user-1")


def test_detector_failure_falls_back_to_complete_synthetic_result(fake_detector, png_bytes):
    fake_detector(status_code=503, payload={"error": "Model is loading"})

    result = run_analysis(png_bytes, "image/png", rng=np.random.default_rng(11))

    assert result.synthetic is True
    data = result.to_dict()
    assert all(v is not None for k, v in data.items() if k != "analysis_notes")
    assert not any(isinstance(v, float) and math.isnan(v) for v in data.values())
    assert isinstance(data["who_classification"], str)


def test_detector_success_uses_detector_branch(fake_detector, png_bytes):
    det = {"score": 0.9, "label": "x", "box": {"xmin": 1, "ymin": 1, "xmax": 9, "ymax": 9}}
    session = fake_detector(payload=[det, det, det])

    result = run_analysis(png_bytes, "image/png", rng=np.random.default_rng(1))

    assert len(session.calls) == 1
    assert result.synthetic is False
    assert result.sperm_count == 3


def test_video_skips_detector(fake_detector):
    session = fake_detector(payload=[])
    result = run_analysis(b"\x00" * 64, "video/mp4", rng=np.random.default_rng(2))
    assert session.calls == []
    assert result.synthetic is True


def test_unexpected_error_becomes_internal_error(monkeypatch):
    def _broken(*args, **kwargs):
        raise ZeroDivisionError("bad math")

    monkeypatch.setattr(analysis_service, "synthesize_result", _broken)
    with pytest.raises(InternalError) as exc:
        run_analysis(b"x", "image/png")
    assert exc.value.message == "Analysis failed"


def test_analyze_upload_writes_temp_bundle(png_bytes):
    out = analyze_upload(upload(png_bytes), " user-1 ", rng=np.random.default_rng(4))

    meta = temp_store.read_meta(out["analysis_id"])
    assert meta["user_id"] == "user-1"
    assert meta["file_type"] == "image/png"
    assert meta["file_size"] == len(png_bytes)
    assert meta["result"] == out["result"].to_dict()
    assert temp_store.find_media_path(out["analysis_id"]).endswith(".png")


def test_analyze_upload_requires_user(png_bytes):
    with pytest.raises(ValidationError):
        analyze_upload(upload(png_bytes), "")


def test_cleanup_expired_removes_old_bundles(png_bytes, monkeypatch):
    out = analyze_upload(upload(png_bytes), "user-1")
    assert temp_store.cleanup_expired() == 0

    monkeypatch.setattr(temp_store, "_now_ts", lambda: int(time.time()) + Config.TEMP_TTL_SECONDS + 5)
    assert temp_store.cleanup_expired() == 1
    assert temp_store.find_media_path(out["analysis_id"]) is None


def test_analyze_upload_rejects_empty_filename(png_bytes):
    with pytest.raises(ValidationError) as exc:
        analyze_upload(upload(png_bytes, name=""), "user-1")
    assert exc.value.message == "Empty filename"


@pytest.mark.parametrize("user_id", ["../escaped", "a/b", ".."])
def test_analyze_upload_rejects_unsafe_user_id(png_bytes, user_id):
    with pytest.raises(ValidationError) as exc:
        analyze_upload(upload(png_bytes), user_id)
    assert exc.value.message == "Invalid user_id"
