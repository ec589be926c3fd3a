"""
Generation flow controller.

Drives one asset generation wizard:

    asset type -> subtype -> (colors) -> prompt -> generating -> preview

and wraps the single external "generate image" call in a debit-before /
refund-on-failure protocol. All session mutation happens on the event loop;
blocking service and ledger calls run in worker threads.
"""

import asyncio
import random
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .. import catalog
from ..api.exceptions import (
    GeminiSafetyError,
    InvalidImageError,
    InvalidTransitionError,
)
from ..api.prompt_builders import compose_prompt
from ..config import (
    COLOR_COUNT_OPTIONS,
    GENERATION_COST,
    MAX_PROMPT_LENGTH,
    SUGGESTION_CACHE_TTL,
)
from ..logging_utils import (
    log_debug,
    log_error,
    log_generation_complete,
    log_generation_start,
    log_info,
    log_warning,
)
from ..processing.image_utils import ImageOutcome, validate_image_bytes
from .ledger import CreditLedger, CreditStore
from .models import AssetRecord, GenerationSession, GenerationStep, PaletteColor

Step = GenerationStep

INSUFFICIENT_GEMSTONES_MESSAGE = (
    f"Insufficient gemstones. You need {GENERATION_COST} Gemstone to generate an asset."
)
GENERATION_FAILED_MESSAGE = "Failed to generate asset. Please try again."


class SuggestionCache:
    """In-memory suggestion lists per category, expiring after a TTL."""

    def __init__(self, ttl=SUGGESTION_CACHE_TTL, clock=datetime.now):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[datetime, List[str]]] = {}

    @staticmethod
    def _key(category: str) -> str:
        return category.strip().lower()

    def get(self, category: str) -> Optional[List[str]]:
        entry = self._entries.get(self._key(category))
        if entry is None:
            return None
        stored_at, suggestions = entry
        if self._clock() - stored_at >= self.ttl:
            del self._entries[self._key(category)]
            return None
        return list(suggestions)

    def put(self, category: str, suggestions: List[str]) -> None:
        self._entries[self._key(category)] = (self._clock(), list(suggestions))

    def clear(self) -> None:
        self._entries.clear()


class _DebitHold:
    """A debit awaiting its outcome. Refunded at most once."""

    def __init__(self, ledger: CreditLedger, amount: int, store: CreditStore):
        self.ledger = ledger
        self.amount = amount
        self.store = store
        self.settled = False

    def keep(self) -> None:
        self.settled = True

    async def refund(self) -> None:
        if self.settled:
            return
        self.settled = True
        try:
            await asyncio.to_thread(self.ledger.credit, self.amount, self.store)
            log_info(f"Refunded {self.amount} gemstone(s)")
        except Exception as e:
            # Never replaces the generation error shown to the user
            log_error("Gemstone refund failed", str(e), exc_info=True)


class GenerationFlow:
    """
    State machine for one generation screen.

    Args:
        image_service: Object with generate(prompt), get_suggestions(category)
            and generate_palette(context); see api.GeminiImageService.
        ledger: Gemstone ledger charged per attempt.
        ai_available: Force the availability flag; defaults to the
            service's `is_configured`.
        suggestion_cache: Shared cache for suggestion lists.
        rng: Random source for fallback picks.
    """

    def __init__(
        self,
        image_service,
        ledger: CreditLedger,
        *,
        ai_available: Optional[bool] = None,
        suggestion_cache: Optional[SuggestionCache] = None,
        rng: Optional[random.Random] = None,
    ):
        self.image_service = image_service
        self.ledger = ledger
        self.session = GenerationSession()
        self.suggestion_cache = suggestion_cache or SuggestionCache()
        self._ai_available = ai_available
        self._rng = rng or random.Random()
        self._active_task: Optional[asyncio.Task] = None
        self._closed = False

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    @property
    def step(self) -> GenerationStep:
        return self.session.step

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def ai_available(self) -> bool:
        if self._ai_available is not None:
            return self._ai_available
        return bool(getattr(self.image_service, "is_configured", True))

    @ai_available.setter
    def ai_available(self, value: Optional[bool]) -> None:
        self._ai_available = value

    @property
    def is_generating(self) -> bool:
        return self.session.step is Step.GENERATING

    def _require(self, action: str, *steps: GenerationStep) -> None:
        if self._closed:
            raise InvalidTransitionError(f"Cannot {action}: flow is closed")
        if self.session.step not in steps:
            allowed = ", ".join(s.value for s in steps)
            raise InvalidTransitionError(
                f"Cannot {action} during {self.session.step.value} (allowed: {allowed})"
            )

    def _move(self, step: GenerationStep) -> None:
        log_debug(f"FLOW: {self.session.step.value} -> {step.value}")
        self.session.step = step

    def _subtype_needs_color(self) -> bool:
        s = self.session
        return bool(s.asset_subtype) and catalog.needs_color(s.asset_type, s.asset_subtype)

    # ------------------------------------------------------------------
    # Selections
    # ------------------------------------------------------------------

    def select_asset_type(self, name: str) -> catalog.AssetTypeInfo:
        """Pick the asset type; everything chosen after it is discarded."""
        self._require(
            "select an asset type",
            Step.ASSET_TYPE_SELECTION,
            Step.ASSET_SUBTYPE_SELECTION,
            Step.COLOR_INPUT,
            Step.PROMPT_INPUT,
            Step.PREVIEW,
        )
        info = catalog.get_asset_type(name)
        self.session.asset_type = info.title
        self.session.clear_from_asset_type()
        self._move(Step.ASSET_SUBTYPE_SELECTION)
        return info

    def select_subtype(self, name: str) -> GenerationStep:
        """
        Pick the subtype.

        Goes straight to prompt input unless the subtype needs colors, in
        which case the flow waits for select_color_count().
        """
        self._require("select a subtype", Step.ASSET_SUBTYPE_SELECTION)
        info = catalog.get_subtype(self.session.asset_type, name)
        self.session.asset_subtype = info.name
        self.session.clear_from_subtype()
        if not info.needs_color:
            self._move(Step.PROMPT_INPUT)
        return self.session.step

    def select_color_count(self, count: int) -> GenerationStep:
        """Choose how many colors to use and move to color input."""
        self._require("choose a color count", Step.ASSET_SUBTYPE_SELECTION, Step.COLOR_INPUT)
        if not self._subtype_needs_color():
            raise InvalidTransitionError(
                f"{self.session.asset_subtype or 'This selection'} does not take colors"
            )
        if count not in COLOR_COUNT_OPTIONS:
            raise ValueError(f"Color count must be one of {COLOR_COUNT_OPTIONS}, got {count!r}")

        kept = self.session.colors[:count]
        self.session.color_count = count
        self.session.colors = kept + [""] * (count - len(kept))
        self.session.error = None
        self._move(Step.COLOR_INPUT)
        return self.session.step

    def set_color(self, index: int, value: str) -> None:
        self._require("edit colors", Step.COLOR_INPUT)
        if not 0 <= index < len(self.session.colors):
            raise IndexError(f"Color slot {index} out of range (0-{len(self.session.colors) - 1})")
        self.session.colors[index] = value
        self.session.error = None

    def apply_palette(self, palette: Sequence[Union[PaletteColor, str]]) -> None:
        """Fill color slots in order from a suggested palette."""
        self._require("apply a palette", Step.COLOR_INPUT)
        for index, entry in enumerate(palette[: len(self.session.colors)]):
            value = entry.display_value() if isinstance(entry, PaletteColor) else str(entry)
            self.session.colors[index] = value
        self.session.error = None

    @property
    def can_confirm_colors(self) -> bool:
        return self.session.step is Step.COLOR_INPUT and self.session.colors_complete

    def confirm_colors(self) -> bool:
        """Move on to the prompt once every color slot is filled."""
        self._require("confirm colors", Step.COLOR_INPUT)
        if not self.session.colors_complete:
            self.session.error = f"Please fill in all {self.session.color_count} colors"
            return False
        self.session.error = None
        self._move(Step.PROMPT_INPUT)
        return True

    def set_prompt(self, text: str) -> None:
        self._require("edit the prompt", Step.PROMPT_INPUT)
        self.session.prompt = text
        self.session.error = None

    def composed_prompt(self) -> str:
        s = self.session
        return compose_prompt(s.asset_type, s.asset_subtype, s.colors, s.prompt, s.color_count)

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def submit(self) -> bool:
        """
        Spend a gemstone and generate an image from the current prompt.

        Calling this while a generation is running does nothing.

        Returns:
            True if the flow reached preview, False otherwise (the reason is
            in session.error).
        """
        if self._closed:
            return False
        if self.session.step is Step.GENERATING:
            log_debug("Submit ignored: generation already in progress")
            return False
        self._require("submit", Step.PROMPT_INPUT)

        text = self.session.prompt.strip()
        if not text:
            self.session.error = "Please enter a description for your asset"
            return False
        if len(text) > MAX_PROMPT_LENGTH:
            self.session.error = f"Description is too long (max {MAX_PROMPT_LENGTH} characters)"
            return False
        if not self.ai_available:
            self.session.error = "AI generation is not available right now"
            return False

        # Entering GENERATING before the first await makes re-entrant submits no-ops
        self.session.clear_result()
        self._move(Step.GENERATING)
        prompt = self.composed_prompt()
        self.session.last_prompt = prompt

        task = asyncio.create_task(self._attempt(prompt))
        self._active_task = task
        try:
            return await task
        except asyncio.CancelledError:
            if self._closed:
                return False
            raise
        finally:
            if self._active_task is task:
                self._active_task = None

    async def _attempt(self, prompt: str) -> bool:
        session = self.session
        debit = asyncio.ensure_future(asyncio.to_thread(self.ledger.debit, GENERATION_COST))
        try:
            store = await asyncio.shield(debit)
        except asyncio.CancelledError:
            if not self._closed:
                self._revert("Generation was cancelled.")
            await self._settle_cancelled_debit(debit)
            raise
        except Exception as e:
            log_error("Gemstone debit failed", str(e), exc_info=True)
            self._revert("Could not check your gemstone balance. Please try again.")
            return False

        if store is None:
            log_info("Generation declined: insufficient gemstones")
            self._revert(INSUFFICIENT_GEMSTONES_MESSAGE)
            return False

        hold = _DebitHold(self.ledger, GENERATION_COST, store)
        log_generation_start(session.asset_type, prompt)
        try:
            try:
                data = await asyncio.to_thread(self.image_service.generate, prompt)
            except GeminiSafetyError as e:
                log_generation_complete(session.asset_type, False, str(e))
                return await self._fail(
                    "Your description was blocked by the safety filters. Try rewording it.", hold
                )
            except Exception as e:
                log_generation_complete(session.asset_type, False, str(e))
                return await self._fail(f"Error generating asset: {e}", hold)

            if self._closed:
                await hold.refund()
                return False

            if data is None:
                log_generation_complete(session.asset_type, False, "service returned no data")
                return await self._fail(GENERATION_FAILED_MESSAGE, hold)

            validation = validate_image_bytes(data)
            if validation.outcome is ImageOutcome.INVALID:
                log_generation_complete(session.asset_type, False, f"invalid image: {validation.reason}")
                return await self._fail(
                    "The generated image could not be displayed. Please try again.", hold
                )

            session.image_bytes = data
            session.image_format = validation.format
            session.error = None
            self._move(Step.PREVIEW)

            if validation.outcome is ImageOutcome.PLACEHOLDER:
                session.is_placeholder = True
                log_warning("Placeholder image received; refunding the gemstone")
                await hold.refund()
            else:
                hold.keep()
            log_generation_complete(
                session.asset_type, True, f"{validation.format}, {validation.size} bytes"
            )
            return True
        except asyncio.CancelledError:
            if not self._closed and session.step is Step.GENERATING:
                self._revert("Generation was cancelled.")
            await hold.refund()
            raise

    async def _settle_cancelled_debit(self, debit: "asyncio.Future[Optional[CreditStore]]") -> None:
        # The debit thread keeps running after cancellation; refund it if it went through
        try:
            store = await debit
        except Exception as e:
            log_error("Gemstone debit failed", str(e))
            return
        if store is not None:
            await _DebitHold(self.ledger, GENERATION_COST, store).refund()

    def _revert(self, message: str) -> None:
        self.session.clear_result()
        self.session.error = message
        self._move(Step.PROMPT_INPUT)

    async def _fail(self, message: str, hold: _DebitHold) -> bool:
        self._revert(message)
        await hold.refund()
        return False

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def generate_another(self) -> None:
        """Back to the prompt with the same selections, dropping the result."""
        self._require("generate another", Step.PREVIEW)
        self.session.clear_result()
        self._move(Step.PROMPT_INPUT)

    def start_over(self) -> None:
        """Discard everything and return to asset type selection."""
        if self._closed:
            raise InvalidTransitionError("Cannot start over: flow is closed")
        if self.session.step is Step.GENERATING:
            raise InvalidTransitionError("Cannot start over while generating")
        self.session.reset()
        log_debug("FLOW: start over")

    def go_back(self) -> GenerationStep:
        """Step back one screen. Does nothing on the first step or while generating."""
        if self._closed:
            raise InvalidTransitionError("Cannot go back: flow is closed")
        s = self.session
        if s.step is Step.ASSET_SUBTYPE_SELECTION:
            s.asset_type = ""
            s.clear_from_asset_type()
            self._move(Step.ASSET_TYPE_SELECTION)
        elif s.step is Step.COLOR_INPUT:
            s.clear_colors()
            s.error = None
            self._move(Step.ASSET_SUBTYPE_SELECTION)
        elif s.step is Step.PROMPT_INPUT:
            s.error = None
            if self._subtype_needs_color():
                self._move(Step.COLOR_INPUT)
            else:
                s.asset_subtype = ""
                self._move(Step.ASSET_SUBTYPE_SELECTION)
        elif s.step is Step.PREVIEW:
            s.clear_result()
            self._move(Step.PROMPT_INPUT)
        return s.step

    # ------------------------------------------------------------------
    # Suggestions and palettes
    # ------------------------------------------------------------------

    async def load_suggestions(self, category: Optional[str] = None) -> List[str]:
        """
        Prompt ideas for a category (default: the selected asset type).

        Served from cache when fresh. When the service fails or returns nothing,
        the curated suggestions come back in random order.
        """
        category = (category or self.session.asset_type).strip()
        if not category:
            return []

        cached = self.suggestion_cache.get(category)
        if cached is not None:
            log_debug(f"Using cached suggestions for {category}")
            return cached

        try:
            suggestions = await asyncio.to_thread(self.image_service.get_suggestions, category)
        except Exception as e:
            log_error(f"Failed to fetch suggestions for {category}", str(e))
            return catalog.shuffled_suggestions(category, self._rng)

        suggestions = [s.strip() for s in (suggestions or []) if s and s.strip()]
        if not suggestions:
            log_warning(f"No suggestions returned for {category}, using fallback")
            return catalog.shuffled_suggestions(category, self._rng)

        self.suggestion_cache.put(category, suggestions)
        return suggestions

    async def load_palette(self, context: Optional[str] = None) -> List[PaletteColor]:
        """Palette suggestion for the current selection, or a curated one on failure."""
        if context is None:
            s = self.session
            context = " ".join(p for p in (s.asset_type, s.asset_subtype, s.prompt.strip()) if p)
        try:
            palette = await asyncio.to_thread(self.image_service.generate_palette, context or "design")
        except Exception as e:
            log_error("Failed to generate palette", str(e))
            palette = []
        palette = [c for c in (palette or []) if c.display_value()]
        if not palette:
            return catalog.random_palette(self._rng)
        return palette

    # ------------------------------------------------------------------
    # Hand-off
    # ------------------------------------------------------------------

    async def save_to_library(self, library, user_id: str) -> AssetRecord:
        """
        Save the previewed image with its composed prompt and tags.

        Raises:
            InvalidTransitionError: Outside preview.
            InvalidImageError: For placeholder results.
        """
        self._require("save", Step.PREVIEW)
        s = self.session
        if s.is_placeholder or s.image_bytes is None:
            raise InvalidImageError("Placeholder images cannot be saved to the library")
        record = AssetRecord(
            user_id=user_id,
            prompt=s.last_prompt,
            tags=s.to_tags(),
            asset_type=s.asset_type,
            asset_subtype=s.asset_subtype,
        )
        return await asyncio.to_thread(library.save_asset, record, s.image_bytes)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> None:
        """
        Tear the flow down.

        A running generation is cancelled; whatever it returns later is
        discarded and its gemstone is refunded.
        """
        if self._closed:
            return
        self._closed = True
        task = self._active_task
        if task is not None and not task.done():
            log_info("Flow closed during generation; cancelling request")
            task.cancel()

    async def aclose(self) -> None:
        """close(), then wait for the cancelled generation to finish unwinding."""
        task = self._active_task
        self.close()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
