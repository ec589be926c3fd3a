"""
Processing module for generated image payloads.

Handles signature sniffing, decode probing, and saving of image bytes.
"""

from .image_utils import (
    ImageOutcome,
    ImageValidation,
    SignatureCheck,
    check_image_signature,
    describe_bytes,
    get_unique_name,
    probe_decode,
    save_image_bytes,
    save_image_bytes_as_png,
    validate_image_bytes,
)

__all__ = [
    "ImageOutcome",
    "ImageValidation",
    "SignatureCheck",
    "check_image_signature",
    "describe_bytes",
    "get_unique_name",
    "probe_decode",
    "save_image_bytes",
    "save_image_bytes_as_png",
    "validate_image_bytes",
]
