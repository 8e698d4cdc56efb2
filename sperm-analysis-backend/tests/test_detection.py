import base64
import io

import numpy as np
import pytest
import requests
from PIL import Image

from sperm_analysis.core.config import Config
from sperm_analysis.core.errors import DetectorUnavailable
from sperm_analysis.ml.detection.predict import detect_objects, parse_detections
from sperm_analysis.services.analysis_service import run_analysis
from sperm_analysis.utils.image_io import encode_image_for_detector


def hf_detection(score, xmin=10, ymin=20, xmax=40, ymax=60, label="person"):
    return {
        "score": score,
        "label": label,
        "box": {"xmin": xmin, "ymin": ymin, "xmax": xmax, "ymax": ymax},
    }


def test_detect_objects_parses_boxes(fake_detector, png_bytes):
    session = fake_detector(payload=[hf_detection(0.92), hf_detection(0.2, xmin=0, xmax=5)])

    found = detect_objects(png_bytes)

    assert len(found) == 2
    first = found[0]
    assert (first.x, first.y, first.width, first.height) == (10.0, 20.0, 30.0, 40.0)
    assert first.confidence == pytest.approx(0.92)
    assert first.label == "sperm"

    call = session.calls[0]
    assert call["url"] == Config.DETECTOR_URL
    assert call["timeout"] == Config.DETECTOR_TIMEOUT_SECONDS
    assert call["json"]["parameters"]["threshold"] == Config.DETECTION_ACCEPT_THRESHOLD
    # inputs is a base64 JPEG
    decoded = Image.open(io.BytesIO(base64.b64decode(call["json"]["inputs"])))
    assert decoded.format == "JPEG"


@pytest.mark.parametrize("status", [400, 401, 500, 503])
def test_non_2xx_is_detector_unavailable(fake_detector, png_bytes, status):
    fake_detector(status_code=status, payload={"error": "loading"})
    with pytest.raises(DetectorUnavailable):
        detect_objects(png_bytes)


def test_timeout_is_detector_unavailable(fake_detector, png_bytes):
    fake_detector(exc=requests.Timeout("read timed out"))
    with pytest.raises(DetectorUnavailable):
        detect_objects(png_bytes)


def test_invalid_json_is_detector_unavailable(fake_detector, png_bytes):
    fake_detector(payload=ValueError("no json"))
    with pytest.raises(DetectorUnavailable):
        detect_objects(png_bytes)


@pytest.mark.parametrize(
    "payload",
    [
        {"error": "Model is loading"},
        [{"score": 0.9}],
        [{"score": "high", "box": {"xmin": 0, "ymin": 0, "xmax": 1, "ymax": 1}}],
        [hf_detection(1.7)],
    ],
)
def test_malformed_payload(payload):
    with pytest.raises(DetectorUnavailable):
        parse_detections(payload)


def test_inverted_box_gets_zero_size():
    found = parse_detections([hf_detection(0.5, xmin=50, xmax=40)])
    assert found[0].width == 0.0


def test_undecodable_image_is_detector_unavailable():
    with pytest.raises(DetectorUnavailable):
        encode_image_for_detector(b"definitely not an image")


def test_palette_image_is_converted_to_rgb():
    img = Image.new("P", (8, 8))
    buf = io.BytesIO()
    img.save(buf, format="GIF")
    out = base64.b64decode(encode_image_for_detector(buf.getvalue()))
    assert Image.open(io.BytesIO(out)).mode == "RGB"


def test_decompression_bomb_is_detector_unavailable(monkeypatch, png_bytes):
    # 64x48 is over twice the lowered limit, so Pillow raises instead of warning
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    with pytest.raises(DetectorUnavailable):
        encode_image_for_detector(png_bytes)


def test_decompression_bomb_falls_back_to_synthetic(monkeypatch, fake_detector, png_bytes):
    session = fake_detector(payload=[hf_detection(0.9)])
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

    result = run_analysis(png_bytes, "image/png", rng=np.random.default_rng(0))

    assert session.calls == []
    assert result.synthetic is True
