"""Utility modules."""

from src.utils.image_utils import (
    decode_data_uri,
    detect_image_format,
    encode_data_uri,
    estimate_image_size,
    transcode_data_uri,
)

__all__ = [
    "decode_data_uri",
    "detect_image_format",
    "encode_data_uri",
    "estimate_image_size",
    "transcode_data_uri",
]
