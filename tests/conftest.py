"""Shared pytest fixtures for asset_craft tests."""

from __future__ import annotations

import random
from io import BytesIO

import pytest
from PIL import Image

from asset_craft.api.mock_client import MockImageService
from asset_craft.core.ledger import CreditLedger, LocalCreditStore
from asset_craft.core.flow import GenerationFlow

# ============================================================================
# Image Fixtures
# ============================================================================


def encode_image(fmt: str, size: tuple[int, int] = (32, 32), seed: int = 0) -> bytes:
    """Encode a noise image with Pillow (noise keeps it well above placeholder size)."""
    rng = random.Random(seed)
    pixels = bytes(rng.randrange(256) for _ in range(size[0] * size[1] * 3))
    buf = BytesIO()
    Image.frombytes("RGB", size, pixels).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return encode_image("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return encode_image("JPEG")


@pytest.fixture
def webp_bytes() -> bytes:
    return encode_image("WEBP")


@pytest.fixture
def tiny_png_bytes() -> bytes:
    """A real 1x1 PNG, small enough to count as a placeholder."""
    return encode_image("PNG", size=(1, 1))


# ============================================================================
# Service / Ledger Fixtures
# ============================================================================


@pytest.fixture
def mock_service() -> MockImageService:
    """Mock service returning a small but real PNG."""
    return MockImageService(payload=encode_image("PNG", seed=1))


@pytest.fixture
def local_store() -> LocalCreditStore:
    """Local store with 3 purchased gemstones and no daily allowance."""
    return LocalCreditStore(balance=3, daily_allowance=0)


@pytest.fixture
def ledger(local_store: LocalCreditStore) -> CreditLedger:
    return CreditLedger(fallback=local_store)


@pytest.fixture
def flow(mock_service: MockImageService, ledger: CreditLedger) -> GenerationFlow:
    return GenerationFlow(mock_service, ledger)


@pytest.fixture
def prompt_ready_flow(flow: GenerationFlow) -> GenerationFlow:
    """Flow sitting at prompt input for Character / Hero with a prompt set."""
    flow.select_asset_type("Character")
    flow.select_subtype("Hero")
    flow.set_prompt("a brave knight with a glowing sword")
    return flow
