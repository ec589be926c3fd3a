"""Tests for generated image payload validation and saving."""

import pytest

from asset_craft.api.exceptions import InvalidImageError
from asset_craft.processing.image_utils import (
    ImageOutcome,
    check_image_signature,
    describe_bytes,
    get_unique_name,
    probe_decode,
    save_image_bytes,
    save_image_bytes_as_png,
    validate_image_bytes,
)

from .conftest import encode_image

PNG_SIG = b"\x89PNG\r\n\x1a\n"


# ============================================================================
# Signature sniffing
# ============================================================================


@pytest.mark.parametrize("size", range(0, 8))
def test_short_buffers_rejected_unless_jpeg(size):
    data = b"\x00" * size
    check = check_image_signature(data)
    assert check.ok is False
    assert check.reason == f"too small ({size} bytes)"


@pytest.mark.parametrize("tail", [b"", b"\xe0", b"\xe0\x00\x10JFIF"])
def test_jpeg_marker_accepted_from_three_bytes(tail):
    check = check_image_signature(b"\xff\xd8\xff" + tail)
    assert check.ok is True
    assert check.format == "jpeg"


def test_png_signature():
    check = check_image_signature(PNG_SIG + b"\x00" * 4)
    assert check.ok and check.format == "png"


def test_webp_needs_riff_and_webp_tags():
    assert check_image_signature(b"RIFF\x00\x00\x00\x00WEBPVP8 ").format == "webp"
    assert check_image_signature(b"RIFF\x00\x00\x00\x00WAVEfmt ").ok is False


def test_unrecognized_signature_has_diagnostics():
    data = b"<!DOCTYPE html><html>" + b"x" * 40
    check = check_image_signature(data)
    assert check.ok is False
    assert check.reason == "unrecognized image signature"
    assert "3c 21 44 4f" in check.diagnostics
    assert f"len={len(data)}" in check.diagnostics


def test_describe_bytes_head_and_tail():
    data = bytes(range(40))
    text = describe_bytes(data)
    assert text.startswith("first=00 01 02")
    assert "last=18 19" in text


# ============================================================================
# Full validation
# ============================================================================


@pytest.mark.parametrize("fmt, expected", [("PNG", "png"), ("JPEG", "jpeg"), ("WEBP", "webp")])
def test_real_images_are_valid(fmt, expected):
    result = validate_image_bytes(encode_image(fmt))
    assert result.outcome is ImageOutcome.VALID
    assert result.is_valid
    assert result.format == expected


def test_empty_payload_invalid():
    result = validate_image_bytes(b"")
    assert result.outcome is ImageOutcome.INVALID
    assert result.reason == "no image data"


def test_none_payload_invalid():
    assert validate_image_bytes(None).outcome is ImageOutcome.INVALID


def test_small_decodable_payload_is_placeholder(tiny_png_bytes):
    assert len(tiny_png_bytes) < 100
    result = validate_image_bytes(tiny_png_bytes)
    assert result.outcome is ImageOutcome.PLACEHOLDER
    assert result.is_placeholder
    assert result.format == "png"


@pytest.mark.parametrize(
    "data",
    [b"\xff\xd8\xff", b"\xff\xd8\xffjunk", PNG_SIG + b"\x00" * 10, b"RIFF\x00\x00\x00\x00WEBPVP8 "],
)
def test_small_undecodable_payload_is_invalid_not_placeholder(data):
    result = validate_image_bytes(data)
    assert result.outcome is ImageOutcome.INVALID
    assert result.reason == "decode failed"
    assert not result.is_placeholder


def test_signature_ok_but_decode_fails():
    data = PNG_SIG + b"\x00" * 500
    result = validate_image_bytes(data)
    assert result.outcome is ImageOutcome.INVALID
    assert result.reason == "decode failed"
    assert result.format == "png"


def test_truncated_png_fails_decode():
    data = encode_image("PNG", size=(64, 64))
    assert probe_decode(data) is True
    assert probe_decode(data[: len(data) // 2]) is False


def test_jpeg_header_without_body_fails_decode():
    data = b"\xff\xd8\xff\xe0" + b"\x00" * 200
    assert validate_image_bytes(data).outcome is ImageOutcome.INVALID


# ============================================================================
# Saving
# ============================================================================


def test_save_keeps_bytes_and_uses_detected_extension(tmp_path, jpeg_bytes):
    out = save_image_bytes(jpeg_bytes, tmp_path / "nested" / "hero")
    assert out == tmp_path / "nested" / "hero.jpg"
    assert out.read_bytes() == jpeg_bytes


def test_save_refuses_invalid_bytes(tmp_path):
    with pytest.raises(InvalidImageError) as excinfo:
        save_image_bytes(b"not an image" * 20, tmp_path / "bad")
    assert excinfo.value.validation.outcome is ImageOutcome.INVALID
    assert not list(tmp_path.iterdir())


def test_save_refuses_placeholder(tmp_path, tiny_png_bytes):
    with pytest.raises(InvalidImageError) as excinfo:
        save_image_bytes(tiny_png_bytes, tmp_path / "tiny")
    assert excinfo.value.validation.outcome is ImageOutcome.PLACEHOLDER


def test_save_as_png_reencodes(tmp_path, webp_bytes):
    out = save_image_bytes_as_png(webp_bytes, tmp_path / "icon")
    assert out.suffix == ".png"
    assert out.read_bytes().startswith(PNG_SIG)


def test_unique_name_appends_counter(tmp_path):
    (tmp_path / "logo.png").write_bytes(b"x")
    (tmp_path / "logo_2.png").write_bytes(b"x")
    assert get_unique_name(tmp_path, "logo", ".png") == "logo_3"
    assert get_unique_name(tmp_path, "badge", ".png") == "badge"
