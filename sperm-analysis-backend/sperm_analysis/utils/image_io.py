# sperm_analysis/utils/image_io.py
import base64
import io

from PIL import Image, UnidentifiedImageError

from sperm_analysis.core.errors import DetectorUnavailable

DETECTOR_JPEG_QUALITY = 90


def load_rgb_image(image_bytes: bytes) -> Image.Image:
    """
    Decode upload bytes with PIL, force RGB (GIF/PNG palette, RGBA, ...).
    Animated GIF/WebP: first frame only.
    Images over Image.MAX_IMAGE_PIXELS (decompression bombs) count as undecodable.
    """
    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
        return img.convert("RGB")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DetectorUnavailable(f"Image could not be decoded: {e}") from e


def encode_image_for_detector(image_bytes: bytes) -> str:
    """
    Upload bytes -> RGB JPEG -> base64 string (payload "inputs" for the detector).
    """
    img = load_rgb_image(image_bytes)
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=DETECTOR_JPEG_QUALITY)
    return base64.b64encode(buf.getvalue()).decode("utf-8")
