"""Tests for the generation flow controller."""

import asyncio
import random
from datetime import datetime, timedelta

import pytest

from asset_craft import catalog
from asset_craft.api.exceptions import (
    CreditServiceError,
    GeminiAPIError,
    GeminiSafetyError,
    InvalidImageError,
    InvalidTransitionError,
    UnknownAssetTypeError,
)
from asset_craft.api.mock_client import MOCK_PALETTE, MockImageService
from asset_craft.config import MAX_PROMPT_LENGTH, QUALITY_MODIFIERS
from asset_craft.core.flow import (
    GENERATION_FAILED_MESSAGE,
    INSUFFICIENT_GEMSTONES_MESSAGE,
    GenerationFlow,
    SuggestionCache,
)
from asset_craft.core.ledger import CreditLedger, LocalCreditStore
from asset_craft.core.models import GenerationStep
from asset_craft.library import AssetLibrary

from .conftest import encode_image

Step = GenerationStep


class RefundFailingStore(LocalCreditStore):
    """Debits work, refunds blow up."""

    def credit(self, amount: int) -> None:
        raise CreditServiceError("refund endpoint down")


class PrimaryThatDropsOut(LocalCreditStore):
    """Takes the first debit, then is unreachable for debits."""

    name = "primary"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.debits = 0

    def debit(self, amount: int) -> bool:
        self.debits += 1
        if self.debits > 1:
            raise CreditServiceError("primary offline")
        return super().debit(amount)


class StubService:
    """Service double for suggestion and palette calls."""

    is_configured = True

    def __init__(self, suggestions=None, error=None):
        self.suggestions = suggestions or []
        self.error = error
        self.suggestion_calls = 0

    def generate(self, prompt):
        return None

    def get_suggestions(self, category, style=None, theme=None):
        self.suggestion_calls += 1
        if self.error is not None:
            raise self.error
        return list(self.suggestions)

    def generate_palette(self, context):
        raise GeminiAPIError("palette service down")


def make_flow(service, balance=3):
    store = LocalCreditStore(balance=balance, daily_allowance=0)
    return GenerationFlow(service, CreditLedger(fallback=store)), store


def ready(flow, prompt="a brave knight"):
    flow.select_asset_type("Character")
    flow.select_subtype("Hero")
    flow.set_prompt(prompt)
    return flow


# ============================================================================
# Happy path
# ============================================================================


@pytest.mark.asyncio
async def test_successful_generation_reaches_preview(prompt_ready_flow, local_store, mock_service):
    """A valid image moves to preview and costs exactly one gemstone."""
    assert await prompt_ready_flow.submit() is True

    session = prompt_ready_flow.session
    assert session.step is Step.PREVIEW
    assert session.image_format == "png"
    assert session.image_bytes == mock_service.payload
    assert session.error is None
    assert not session.is_placeholder
    assert local_store.get_balance() == 2


@pytest.mark.asyncio
async def test_service_receives_composed_prompt(prompt_ready_flow, mock_service):
    await prompt_ready_flow.submit()

    expected = (
        f"Character, (Hero style), a brave knight with a glowing sword, {QUALITY_MODIFIERS}"
    )
    assert mock_service.calls == [expected]
    assert prompt_ready_flow.session.last_prompt == expected


@pytest.mark.asyncio
async def test_color_selections_flow_into_prompt():
    service = MockImageService(payload=encode_image("PNG"))
    flow, _ = make_flow(service)
    flow.select_asset_type("Logo")
    assert flow.select_subtype("Logo only") is Step.ASSET_SUBTYPE_SELECTION
    assert flow.select_color_count(2) is Step.COLOR_INPUT
    flow.set_color(0, "Red")
    flow.set_color(1, "Blue")
    assert flow.confirm_colors() is True
    flow.set_prompt("coffee shop")

    assert await flow.submit() is True
    assert service.calls == [
        f"Logo, (Logo only style), coffee shop, using colors: Red, Blue, {QUALITY_MODIFIERS}"
    ]


# ============================================================================
# Gemstone accounting
# ============================================================================


@pytest.mark.asyncio
async def test_insufficient_gemstones_blocks_generation():
    service = MockImageService(payload=encode_image("PNG"))
    flow, store = make_flow(service, balance=0)
    ready(flow)

    assert await flow.submit() is False
    assert flow.step is Step.PROMPT_INPUT
    assert flow.session.error == INSUFFICIENT_GEMSTONES_MESSAGE
    assert service.calls == []
    assert store.get_balance() == 0


@pytest.mark.asyncio
async def test_service_error_refunds_gemstone():
    flow, store = make_flow(MockImageService(fail_with=GeminiAPIError("quota exceeded")))
    ready(flow)

    assert await flow.submit() is False
    assert flow.step is Step.PROMPT_INPUT
    assert "quota exceeded" in flow.session.error
    assert store.get_balance() == 3


@pytest.mark.asyncio
async def test_no_image_returned_refunds_gemstone():
    flow, store = make_flow(MockImageService(return_none=True))
    ready(flow)

    assert await flow.submit() is False
    assert flow.session.error == GENERATION_FAILED_MESSAGE
    assert flow.session.image_bytes is None
    assert store.get_balance() == 3


@pytest.mark.asyncio
async def test_safety_block_reports_friendly_error():
    flow, store = make_flow(MockImageService(fail_with=GeminiSafetyError("blocked", [])))
    ready(flow)

    assert await flow.submit() is False
    assert "safety" in flow.session.error.lower()
    assert store.get_balance() == 3


@pytest.mark.asyncio
async def test_unrecognized_bytes_never_reach_preview():
    flow, store = make_flow(MockImageService(payload=b"<html>rate limited, try later</html>" * 4))
    ready(flow)

    assert await flow.submit() is False
    assert flow.step is Step.PROMPT_INPUT
    assert flow.session.image_bytes is None
    assert flow.session.error
    assert store.get_balance() == 3


@pytest.mark.asyncio
async def test_corrupt_png_is_rejected():
    payload = b"\x89PNG\r\n\x1a\n" + b"\x00" * 300
    flow, store = make_flow(MockImageService(payload=payload))
    ready(flow)

    assert await flow.submit() is False
    assert flow.step is Step.PROMPT_INPUT
    assert store.get_balance() == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [b"\xff\xd8\xffjunk", b"\x89PNG\r\n\x1a\n" + b"\x00" * 20])
async def test_tiny_undecodable_payload_never_reaches_preview(payload):
    flow, store = make_flow(MockImageService(payload=payload))
    ready(flow)

    assert await flow.submit() is False
    assert flow.step is Step.PROMPT_INPUT
    assert flow.session.image_bytes is None
    assert flow.session.is_placeholder is False
    assert flow.session.error
    assert store.get_balance() == 3


@pytest.mark.asyncio
async def test_shared_ledger_refunds_each_flow_to_its_paying_store():
    primary = PrimaryThatDropsOut(balance=3, daily_allowance=0)
    local = LocalCreditStore(balance=3, daily_allowance=0)
    ledger = CreditLedger(fallback=local, primary=primary)
    flows = [ready(GenerationFlow(MockImageService(delay=0.05, return_none=True), ledger)) for _ in range(2)]

    results = await asyncio.gather(*(f.submit() for f in flows))

    assert results == [False, False]
    assert primary.debits == 2
    assert primary.get_balance() == 3
    assert local.get_balance() == 3


@pytest.mark.asyncio
async def test_refund_failure_keeps_original_error():
    store = RefundFailingStore(balance=3, daily_allowance=0)
    flow = GenerationFlow(
        MockImageService(fail_with=GeminiAPIError("upstream 500")),
        CreditLedger(fallback=store),
    )
    ready(flow)

    assert await flow.submit() is False
    assert flow.step is Step.PROMPT_INPUT
    assert "upstream 500" in flow.session.error
    assert store.get_balance() == 2


@pytest.mark.asyncio
async def test_placeholder_payload_previews_with_refund(tmp_path, tiny_png_bytes):
    flow, store = make_flow(MockImageService(payload=tiny_png_bytes))
    ready(flow)

    assert await flow.submit() is True
    assert flow.step is Step.PREVIEW
    assert flow.session.is_placeholder is True
    assert store.get_balance() == 3

    with pytest.raises(InvalidImageError):
        await flow.save_to_library(AssetLibrary(tmp_path), "user-1")


# ============================================================================
# Submit gating
# ============================================================================


@pytest.mark.asyncio
async def test_blank_prompt_is_rejected_without_debit(flow, local_store, mock_service):
    ready(flow, prompt="   ")

    assert await flow.submit() is False
    assert flow.step is Step.PROMPT_INPUT
    assert flow.session.error
    assert mock_service.calls == []
    assert local_store.get_balance() == 3


@pytest.mark.asyncio
async def test_overlong_prompt_is_rejected(flow, local_store):
    ready(flow, prompt="x" * (MAX_PROMPT_LENGTH + 1))

    assert await flow.submit() is False
    assert str(MAX_PROMPT_LENGTH) in flow.session.error
    assert local_store.get_balance() == 3


@pytest.mark.asyncio
async def test_unavailable_ai_blocks_submit(mock_service, ledger, local_store):
    flow = GenerationFlow(mock_service, ledger, ai_available=False)
    ready(flow)

    assert await flow.submit() is False
    assert mock_service.calls == []
    assert local_store.get_balance() == 3


@pytest.mark.asyncio
async def test_resubmit_while_generating_is_ignored():
    service = MockImageService(delay=0.2, payload=encode_image("PNG"))
    flow, store = make_flow(service)
    ready(flow)

    first = asyncio.create_task(flow.submit())
    await asyncio.sleep(0)
    assert flow.step is Step.GENERATING

    assert await flow.submit() is False
    assert await first is True
    assert len(service.calls) == 1
    assert store.get_balance() == 2


def test_submit_outside_prompt_step_raises(flow):
    with pytest.raises(InvalidTransitionError):
        asyncio.run(flow.submit())


# ============================================================================
# Navigation
# ============================================================================


def test_selections_walk_forward(flow):
    info = flow.select_asset_type("ui_element")
    assert info.title == "UI Element"
    assert flow.step is Step.ASSET_SUBTYPE_SELECTION
    assert flow.select_subtype("card") is Step.PROMPT_INPUT
    assert flow.session.asset_subtype == "Card"


def test_unknown_asset_type_raises(flow):
    with pytest.raises(UnknownAssetTypeError):
        flow.select_asset_type("Spaceship")


def test_subtype_before_type_raises(flow):
    with pytest.raises(InvalidTransitionError):
        flow.select_subtype("Hero")


def test_color_count_must_be_an_option(flow):
    flow.select_asset_type("Logo")
    flow.select_subtype("Name only")
    with pytest.raises(ValueError):
        flow.select_color_count(7)


def test_incomplete_colors_cannot_be_confirmed(flow):
    flow.select_asset_type("Icon")
    flow.select_subtype("Flat")
    flow.select_color_count(3)
    flow.set_color(0, "#FF0000")
    flow.set_color(1, "  ")

    assert flow.can_confirm_colors is False
    assert flow.confirm_colors() is False
    assert flow.step is Step.COLOR_INPUT
    assert "3" in flow.session.error


def test_apply_palette_fills_slots(flow):
    flow.select_asset_type("Logo")
    flow.select_subtype("Logo + Name")
    flow.select_color_count(2)
    flow.apply_palette(MOCK_PALETTE)

    assert flow.session.colors == ["Royal Blue", "Tomato"]
    assert flow.can_confirm_colors is True


def test_changing_asset_type_clears_downstream(flow):
    flow.select_asset_type("Logo")
    flow.select_subtype("Logo only")
    flow.select_asset_type("Icon")

    assert flow.session.asset_type == "Icon"
    assert flow.session.asset_subtype == ""
    assert flow.session.color_count is None
    assert flow.session.colors == []


def test_changing_color_count_keeps_entered_colors(flow):
    flow.select_asset_type("Logo")
    flow.select_subtype("Logo only")
    flow.select_color_count(2)
    flow.set_color(0, "Gold")
    flow.select_color_count(3)

    assert flow.session.colors == ["Gold", "", ""]


def test_go_back_walks_each_step(flow):
    flow.select_asset_type("Texture")
    flow.select_subtype("Pattern")
    flow.select_color_count(1)
    flow.set_color(0, "Teal")
    flow.confirm_colors()

    assert flow.go_back() is Step.COLOR_INPUT
    assert flow.session.colors == ["Teal"]
    assert flow.go_back() is Step.ASSET_SUBTYPE_SELECTION
    assert flow.session.colors == []
    assert flow.go_back() is Step.ASSET_TYPE_SELECTION
    assert flow.session.asset_type == ""
    assert flow.go_back() is Step.ASSET_TYPE_SELECTION


def test_go_back_from_prompt_without_colors(flow):
    ready(flow)
    assert flow.go_back() is Step.ASSET_SUBTYPE_SELECTION
    assert flow.session.asset_subtype == ""


@pytest.mark.asyncio
async def test_generate_another_keeps_selections(prompt_ready_flow):
    await prompt_ready_flow.submit()
    prompt_ready_flow.generate_another()

    session = prompt_ready_flow.session
    assert session.step is Step.PROMPT_INPUT
    assert session.image_bytes is None
    assert session.asset_type == "Character"
    assert session.prompt == "a brave knight with a glowing sword"


@pytest.mark.asyncio
async def test_start_over_resets_session(prompt_ready_flow):
    await prompt_ready_flow.submit()
    prompt_ready_flow.start_over()

    session = prompt_ready_flow.session
    assert session.step is Step.ASSET_TYPE_SELECTION
    assert session.asset_type == ""
    assert session.prompt == ""
    assert session.image_bytes is None


@pytest.mark.asyncio
async def test_start_over_refused_while_generating():
    flow, _ = make_flow(MockImageService(delay=0.1, payload=encode_image("PNG")))
    ready(flow)
    task = asyncio.create_task(flow.submit())
    await asyncio.sleep(0)

    with pytest.raises(InvalidTransitionError):
        flow.start_over()
    assert await task is True


# ============================================================================
# Teardown
# ============================================================================


@pytest.mark.asyncio
async def test_close_during_generation_refunds_and_discards_result():
    service = MockImageService(delay=0.3, payload=encode_image("PNG"))
    flow, store = make_flow(service)
    ready(flow)

    task = asyncio.create_task(flow.submit())
    await asyncio.sleep(0.05)
    flow.close()

    assert await task is False
    assert flow.closed
    assert flow.session.image_bytes is None
    assert store.get_balance() == 3


@pytest.mark.asyncio
async def test_aclose_waits_for_cancelled_generation():
    flow, store = make_flow(MockImageService(delay=0.2, payload=encode_image("PNG")))
    ready(flow)

    task = asyncio.create_task(flow.submit())
    await asyncio.sleep(0.05)
    await flow.aclose()

    assert store.get_balance() == 3
    assert await task is False


@pytest.mark.asyncio
async def test_closed_flow_rejects_actions(flow):
    ready(flow)
    flow.close()

    assert await flow.submit() is False
    with pytest.raises(InvalidTransitionError):
        flow.set_prompt("again")


# ============================================================================
# Suggestions, palettes, library
# ============================================================================


@pytest.mark.asyncio
async def test_suggestions_are_cached_per_category():
    service = StubService(suggestions=["A glowing lantern", "  ", "A rusty key"])
    flow, _ = make_flow(service)
    flow.select_asset_type("Object")

    first = await flow.load_suggestions()
    second = await flow.load_suggestions("object")

    assert first == ["A glowing lantern", "A rusty key"]
    assert second == first
    assert service.suggestion_calls == 1


@pytest.mark.asyncio
async def test_suggestion_failure_falls_back_to_curated_list():
    flow, _ = make_flow(StubService(error=GeminiAPIError("down")))

    suggestions = await flow.load_suggestions("Character")

    assert sorted(suggestions) == sorted(catalog.default_suggestions("Character"))
    assert flow.suggestion_cache.get("Character") is None


@pytest.mark.asyncio
async def test_empty_suggestions_fall_back():
    flow, _ = make_flow(StubService(suggestions=[]))
    assert sorted(await flow.load_suggestions("Unheard Of")) == sorted(catalog.GENERIC_SUGGESTIONS)


@pytest.mark.asyncio
async def test_fallback_suggestion_order_comes_from_flow_rng():
    service = StubService(error=GeminiAPIError("down"))
    flow = GenerationFlow(service, CreditLedger(fallback=LocalCreditStore()), rng=random.Random(11))

    suggestions = await flow.load_suggestions("Icon")

    assert suggestions == catalog.shuffled_suggestions("Icon", random.Random(11))


@pytest.mark.asyncio
async def test_fallback_suggestion_order_varies():
    service = StubService(suggestions=[])
    firsts = set()
    for seed in range(100):
        flow = GenerationFlow(service, CreditLedger(fallback=LocalCreditStore()), rng=random.Random(seed))
        firsts.add((await flow.load_suggestions("Logo"))[0])

    assert firsts == set(catalog.default_suggestions("Logo"))


@pytest.mark.asyncio
async def test_load_suggestions_without_category_is_empty(flow):
    assert await flow.load_suggestions() == []


@pytest.mark.asyncio
async def test_palette_from_service(flow):
    assert await flow.load_palette("coffee") == MOCK_PALETTE


@pytest.mark.asyncio
async def test_palette_failure_uses_curated_palette():
    flow, _ = make_flow(StubService())
    palette = await flow.load_palette("coffee")
    assert tuple(palette) in catalog.CURATED_PALETTES


def test_suggestion_cache_expires():
    now = [datetime(2026, 1, 1, 12, 0)]
    cache = SuggestionCache(ttl=timedelta(hours=24), clock=lambda: now[0])
    cache.put("Icon", ["a", "b"])

    now[0] += timedelta(hours=23)
    assert cache.get("icon") == ["a", "b"]
    now[0] += timedelta(hours=1)
    assert cache.get("icon") is None


@pytest.mark.asyncio
async def test_save_to_library_records_prompt_and_tags(prompt_ready_flow, tmp_path):
    await prompt_ready_flow.submit()
    library = AssetLibrary(tmp_path)

    record = await prompt_ready_flow.save_to_library(library, "user-1")

    assert record.prompt == prompt_ready_flow.session.last_prompt
    assert record.tags == ["character", "hero"]
    assert record.status == "saved"
    assert library.image_file(record).read_bytes() == prompt_ready_flow.session.image_bytes


@pytest.mark.asyncio
async def test_save_outside_preview_raises(prompt_ready_flow, tmp_path):
    with pytest.raises(InvalidTransitionError):
        await prompt_ready_flow.save_to_library(AssetLibrary(tmp_path), "user-1")
