"""
Image utility functions for checking and saving generated image payloads.

Generated bytes are never displayed or saved on trust: the container
signature is sniffed first, then Pillow has to actually decode the buffer.
"""

from dataclasses import dataclass
from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image

from ..api.exceptions import InvalidImageError
from ..config import PLACEHOLDER_MAX_BYTES
from ..logging_utils import log_debug, log_warning

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff"
RIFF_TAG = b"RIFF"
WEBP_TAG = b"WEBP"

MIN_SIGNATURE_BYTES = 8
DIAGNOSTIC_BYTES = 16

# Detected container -> file extension / Pillow format name
FORMAT_EXTENSIONS = {"png": ".png", "jpeg": ".jpg", "webp": ".webp"}
PIL_FORMATS = {"png": "PNG", "jpeg": "JPEG", "webp": "WEBP"}


class ImageOutcome(Enum):
    VALID = "valid"
    INVALID = "invalid"
    PLACEHOLDER = "placeholder"


@dataclass
class SignatureCheck:
    ok: bool
    format: Optional[str] = None
    reason: str = ""
    diagnostics: str = ""


@dataclass
class ImageValidation:
    outcome: ImageOutcome
    format: Optional[str] = None
    reason: str = ""
    diagnostics: str = ""
    size: int = 0

    @property
    def is_valid(self) -> bool:
        return self.outcome is ImageOutcome.VALID

    @property
    def is_placeholder(self) -> bool:
        return self.outcome is ImageOutcome.PLACEHOLDER


def describe_bytes(data: bytes) -> str:
    """First and last 16 bytes as hex, for logging unknown payloads."""
    head = data[:DIAGNOSTIC_BYTES].hex(" ")
    tail = data[-DIAGNOSTIC_BYTES:].hex(" ")
    return f"first={head} last={tail} (len={len(data)})"


def check_image_signature(data: bytes) -> SignatureCheck:
    """
    Identify the container format from its magic bytes.

    JPEG only needs its 3-byte start-of-image marker. Everything else needs
    at least 8 bytes; PNG matches its full 8-byte signature, WebP needs a
    RIFF header with "WEBP" at offset 8 (so at least 12 bytes).

    Args:
        data: Raw payload.

    Returns:
        SignatureCheck with the detected format, or the rejection reason.
    """
    if len(data) >= len(JPEG_SIGNATURE) and data[:3] == JPEG_SIGNATURE:
        return SignatureCheck(ok=True, format="jpeg")

    if len(data) < MIN_SIGNATURE_BYTES:
        return SignatureCheck(
            ok=False,
            reason=f"too small ({len(data)} bytes)",
            diagnostics=describe_bytes(data),
        )

    if data[:8] == PNG_SIGNATURE:
        return SignatureCheck(ok=True, format="png")

    if len(data) >= 12 and data[:4] == RIFF_TAG and data[8:12] == WEBP_TAG:
        return SignatureCheck(ok=True, format="webp")

    return SignatureCheck(
        ok=False,
        reason="unrecognized image signature",
        diagnostics=describe_bytes(data),
    )


def probe_decode(data: bytes) -> bool:
    """
    Check that Pillow can really decode the buffer.

    verify() catches structural damage but not truncated pixel data, so the
    image is reopened and fully loaded as well.
    """
    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
        with Image.open(BytesIO(data)) as img:
            img.load()
        return True
    except Exception as e:
        log_debug(f"Image decode probe failed: {e}")
        return False


def validate_image_bytes(data: Optional[bytes]) -> ImageValidation:
    """
    Decide whether a generated payload can be shown to the user.

    Outcomes:
        INVALID      - empty, bad signature, or the decode probe failed
        PLACEHOLDER  - decodes cleanly but is below PLACEHOLDER_MAX_BYTES
                       (mock/test backends)
        VALID        - recognized signature and a clean decode

    Args:
        data: Raw payload from the image service.

    Returns:
        ImageValidation describing the outcome.
    """
    if not data:
        return ImageValidation(ImageOutcome.INVALID, reason="no image data")

    size = len(data)
    signature = check_image_signature(data)
    if not signature.ok:
        log_warning(f"Image signature check failed: {signature.reason} - {signature.diagnostics}")
        return ImageValidation(
            ImageOutcome.INVALID,
            reason=signature.reason,
            diagnostics=signature.diagnostics,
            size=size,
        )

    if not probe_decode(data):
        return ImageValidation(
            ImageOutcome.INVALID,
            format=signature.format,
            reason="decode failed",
            diagnostics=describe_bytes(data),
            size=size,
        )

    if size < PLACEHOLDER_MAX_BYTES:
        log_warning(f"Image payload looks like a placeholder ({size} bytes, {signature.format})")
        return ImageValidation(
            ImageOutcome.PLACEHOLDER,
            format=signature.format,
            reason=f"placeholder payload ({size} bytes)",
            size=size,
        )

    return ImageValidation(ImageOutcome.VALID, format=signature.format, size=size)


def save_image_bytes(image_bytes: bytes, dest_stem: Path) -> Path:
    """
    Write validated image bytes unchanged, using the detected container's extension.

    Args:
        image_bytes: Raw image data.
        dest_stem: Destination path without extension.

    Returns:
        Path to the written file.

    Raises:
        InvalidImageError: If the bytes are not a valid, decodable image.
    """
    validation = validate_image_bytes(image_bytes)
    if not validation.is_valid:
        raise InvalidImageError(f"Refusing to save image: {validation.reason}", validation)

    dest_stem = Path(dest_stem)
    dest_stem.parent.mkdir(parents=True, exist_ok=True)
    out_path = dest_stem.with_suffix(FORMAT_EXTENSIONS[validation.format])
    out_path.write_bytes(image_bytes)
    return out_path


def save_image_bytes_as_png(image_bytes: bytes, dest_stem: Path) -> Path:
    """
    Re-encode raw image bytes as PNG to dest_stem.png.

    Args:
        image_bytes: Raw image data.
        dest_stem: Destination path without extension.

    Returns:
        Path to saved PNG file.
    """
    dest_stem = Path(dest_stem)
    dest_stem.parent.mkdir(parents=True, exist_ok=True)
    img = Image.open(BytesIO(image_bytes)).convert("RGBA")
    out_path = dest_stem.with_suffix(".png")
    img.save(out_path, format="PNG", compress_level=0, optimize=False)
    return out_path


def get_unique_name(base_path: Path, desired_name: str, suffix: str = "") -> str:
    """
    Ensure a file or folder name is unique within base_path by appending a counter.

    Args:
        base_path: Parent directory.
        desired_name: Desired name (without suffix).
        suffix: Extension checked alongside the name, e.g. ".png".

    Returns:
        Unique name (may have _2, _3, etc. appended).
    """
    candidate = desired_name
    counter = 1
    while (base_path / f"{candidate}{suffix}").exists():
        counter += 1
        candidate = f"{desired_name}_{counter}"
    return candidate
