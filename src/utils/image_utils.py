"""Data-URI helpers: codec detection, size estimation and transcoding."""
import base64
import binascii
import logging
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image as PILImage

logger = logging.getLogger(__name__)

# Pillow format names per codec tag
PIL_FORMATS = {"webp": "WEBP", "jpeg": "JPEG", "png": "PNG"}

# Media type subtypes that name the same codec
CODEC_ALIASES = {"jpg": "jpeg", "pjpeg": "jpeg", "x-png": "png"}


def detect_image_format(data_uri: str) -> str:
    """
    Return the codec tag declared by a data-URI's media type.

    ``data:image/jpeg;base64,...`` -> ``"jpeg"``. Anything that is not an
    ``image/*`` data-URI yields ``"unknown"``.
    """
    if not data_uri or not data_uri.startswith("data:image/"):
        return "unknown"

    mime_type = data_uri.split(";", 1)[0].split(",", 1)[0][len("data:"):]
    subtype = mime_type.split("/", 1)[1].lower()
    subtype = subtype.split("+", 1)[0]
    return CODEC_ALIASES.get(subtype, subtype)


def estimate_image_size(data_uri: str) -> int:
    """
    Estimate the decoded byte size of a base64 data-URI.

    Base64 inflates by 4/3, so the payload is about 75% of the encoded length.
    """
    if not data_uri or not data_uri.startswith("data:"):
        return 0

    parts = data_uri.split(",", 1)
    if len(parts) < 2 or not parts[1]:
        return 0

    return round(len(parts[1]) * 0.75)


def decode_data_uri(data_uri: str) -> Tuple[bytes, str]:
    """
    Decode a base64 data-URI.

    Returns:
        Tuple of (raw_bytes, mime_type)

    Raises:
        ValueError: If the URI is not a base64 data-URI
    """
    if not data_uri.startswith("data:") or "," not in data_uri:
        raise ValueError("Not a data URI")

    header, payload = data_uri.split(",", 1)
    if not header.endswith(";base64"):
        raise ValueError("Only base64 data URIs are supported")

    mime_type = header[len("data:"):].split(";", 1)[0]
    try:
        return base64.b64decode(payload, validate=True), mime_type
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e


def encode_data_uri(content: bytes, mime_type: str) -> str:
    b64 = base64.b64encode(content).decode("utf-8")
    return f"data:{mime_type};base64,{b64}"


def transcode_data_uri(data_uri: str, codec: str = "webp", quality: int = 80) -> Tuple[str, Optional[Tuple[int, int]]]:
    """
    Re-encode an inline image into ``codec`` at ``quality``.

    - Animated images keep their first frame only
    - Palette/CMYK images are converted to RGB(A); JPEG drops alpha

    Returns:
        Tuple of (new_data_uri, (width, height))

    Raises:
        ValueError: If the payload cannot be decoded or the codec is unsupported
    """
    pil_format = PIL_FORMATS.get(codec)
    if pil_format is None:
        raise ValueError(f"Unsupported target codec: {codec}")

    content, _ = decode_data_uri(data_uri)
    try:
        img = PILImage.open(BytesIO(content))
        img.load()
    except Exception as e:
        raise ValueError(f"Cannot decode image payload: {e}") from e

    if getattr(img, "n_frames", 1) > 1:
        img.seek(0)

    if codec == "jpeg":
        if img.mode != "RGB":
            img = img.convert("RGB")
    elif img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA" if "A" in (img.mode or "") or "transparency" in img.info else "RGB")

    buffer = BytesIO()
    img.save(buffer, format=pil_format, quality=quality)
    return encode_data_uri(buffer.getvalue(), f"image/{codec}"), img.size
