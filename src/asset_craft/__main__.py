#!/usr/bin/env python3
"""
AssetCraft AI - Main Entry Point

Run with: python -m asset_craft  (or the `assetcraft` console script)

Walks through one generation flow in the terminal:
asset type -> subtype -> colors -> description -> preview -> save.
"""

import argparse
import asyncio
import getpass
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from . import catalog
from .api import GeminiImageService, MockImageService, store_api_key
from .api.exceptions import AssetCraftError, InvalidImageError
from .config import APP_NAME, APP_TAGLINE, APP_VERSION, COLOR_COUNT_OPTIONS, Settings, load_settings
from .core import CreditLedger, GenerationStep, LocalCreditStore
from .core.flow import GenerationFlow
from .library import AssetLibrary
from .logging_utils import get_log_file_path, log_exception, log_info, setup_logging

Step = GenerationStep


async def _ask(text: str) -> str:
    try:
        answer = await asyncio.to_thread(input, text)
    except EOFError:
        return "q"
    return answer.strip()


async def _choose(title: str, options: Sequence[str], extra: str = "b=back, q=quit") -> str:
    """Print a numbered menu; return the chosen option or a command letter."""
    print(f"\n{title}")
    for i, option in enumerate(options, 1):
        print(f"  {i}. {option}")
    while True:
        answer = await _ask(f"Select 1-{len(options)} ({extra}): ")
        if answer.lower() in ("b", "q", "s", "p"):
            return answer.lower()
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return options[int(answer) - 1]
        print("[WARN] Invalid choice.")


def asset_type_menu() -> List[str]:
    """Menu lines for the asset type step: title, description and icon name."""
    return [
        f"{t.title} - {catalog.get_description(t.title)} [{catalog.get_icon(t.title)}]"
        for t in catalog.list_asset_types()
    ]


def _print_error(flow: GenerationFlow) -> None:
    if flow.session.error:
        print(f"[ERROR] {flow.session.error}")


async def run_wizard(flow: GenerationFlow, library: AssetLibrary, user_id: str) -> None:
    """Drive the flow from the terminal until the user quits."""
    session = flow.session
    while True:
        step = flow.step

        if step is Step.ASSET_TYPE_SELECTION:
            choice = await _choose("What would you like to create?", asset_type_menu(), "q=quit")
            if choice == "q":
                return
            if choice in ("b", "s", "p"):
                continue
            flow.select_asset_type(choice.split(" - ", 1)[0])

        elif step is Step.ASSET_SUBTYPE_SELECTION:
            if session.asset_subtype:
                counts = [str(n) for n in COLOR_COUNT_OPTIONS]
                choice = await _choose(f"How many colors for {session.asset_subtype}?", counts)
            else:
                choice = await _choose(f"{session.asset_type} style", catalog.get_subtypes(session.asset_type))
            if choice == "q":
                return
            if choice == "b":
                if session.asset_subtype:
                    session.asset_subtype = ""
                else:
                    flow.go_back()
                continue
            if choice in ("s", "p"):
                continue
            if session.asset_subtype:
                flow.select_color_count(int(choice))
            else:
                flow.select_subtype(choice)

        elif step is Step.COLOR_INPUT:
            await _collect_colors(flow)
            if flow.closed:
                return

        elif step is Step.PROMPT_INPUT:
            if not await _collect_prompt(flow):
                return

        elif step is Step.PREVIEW:
            if not await _show_preview(flow, library, user_id):
                return


async def _collect_colors(flow: GenerationFlow) -> None:
    session = flow.session
    print(f"\nEnter {session.color_count} color(s): names, hex (#4169E1) or RGB.")
    answer = await _ask("Press Enter to type them, p=suggest a palette, b=back, q=quit: ")
    if answer.lower() == "q":
        await flow.aclose()
        return
    if answer.lower() == "b":
        flow.go_back()
        return
    if answer.lower() == "p":
        palette = await flow.load_palette()
        flow.apply_palette(palette)
        print("Suggested: " + ", ".join(c.display_value() for c in palette))
    for i in range(session.color_count or 0):
        current = session.colors[i]
        value = await _ask(f"Color {i + 1}{f' [{current}]' if current else ''}: ")
        if value:
            flow.set_color(i, value)
    if not flow.confirm_colors():
        _print_error(flow)


async def _collect_prompt(flow: GenerationFlow) -> bool:
    session = flow.session
    balance = await asyncio.to_thread(flow.ledger.get_balance)
    print(f"\nGemstones: {balance}")
    examples = catalog.example_prompts(session.asset_type, session.asset_subtype)
    if examples:
        print("Examples: " + " | ".join(examples[:3]))
    text = await _ask("Describe your asset (s=suggestions, b=back, q=quit): ")
    if text.lower() == "q":
        await flow.aclose()
        return False
    if text.lower() == "b":
        flow.go_back()
        return True
    if text.lower() == "s":
        suggestions: List[str] = await flow.load_suggestions()
        choice = await _choose("Suggestions", suggestions)
        if choice == "q":
            await flow.aclose()
            return False
        if choice in ("b", "s", "p"):
            return True
        text = choice

    flow.set_prompt(text)
    print("\n[INFO] Generating... (1 gemstone)")
    if not await flow.submit():
        _print_error(flow)
    return True


async def _show_preview(flow: GenerationFlow, library: AssetLibrary, user_id: str) -> bool:
    session = flow.session
    note = " (placeholder, gemstone refunded)" if session.is_placeholder else ""
    print(f"\n[INFO] Generated {session.image_format} image, {len(session.image_bytes or b'')} bytes{note}")
    print(f"Prompt: {session.last_prompt}")
    actions = ["Save to library", "Generate another", "Start over"]
    choice = await _choose("What next?", actions)
    if choice == "q":
        await flow.aclose()
        return False
    if choice == "b":
        flow.go_back()
    elif choice == "Save to library":
        try:
            record = await flow.save_to_library(library, user_id)
            print(f"[INFO] Saved: {library.image_file(record)}")
        except InvalidImageError as e:
            print(f"[ERROR] {e}")
    elif choice == "Generate another":
        flow.generate_another()
    elif choice == "Start over":
        flow.start_over()
    return True


def _ensure_api_key(settings: Settings) -> Optional[str]:
    """Return the configured key, asking for one (and storing it) if missing."""
    if settings.api_key:
        return settings.api_key
    print("[INFO] No Gemini API key configured.")
    key = getpass.getpass("Paste your Gemini API key (leave empty to cancel): ").strip()
    if not key:
        return None
    store_api_key(key)
    log_info("Stored new Gemini API key")
    return key


def build_ledger(settings: Settings) -> CreditLedger:
    local = LocalCreditStore(balance=settings.starting_gemstones)
    if not settings.uses_remote_credits:
        return CreditLedger(fallback=local)
    from .core.supabase_credits import SupabaseCreditStore
    remote = SupabaseCreditStore(settings.supabase_url, settings.supabase_key, settings.user_id)
    return CreditLedger(fallback=local, primary=remote)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="assetcraft",
        description=f"{APP_NAME} - generate game and design assets with Gemini.",
    )
    parser.add_argument("--mock", action="store_true", help="Use the offline mock image service.")
    parser.add_argument("--library", type=Path, default=None, help="Asset library folder.")
    parser.add_argument("--gemstones", type=int, default=None,
                        help="Starting balance for the local gemstone store.")
    parser.add_argument("--user", type=str, default=None, help="User id for the library and gemstones.")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the console wizard."""
    args = parse_args(argv)
    setup_logging()

    print(f"\n{'=' * 60}")
    print(f"  {APP_NAME} v{APP_VERSION} - {APP_TAGLINE}")
    print(f"{'=' * 60}\n")

    settings = load_settings()
    if args.library is not None:
        settings.library_dir = args.library
    if args.gemstones is not None:
        settings.starting_gemstones = args.gemstones
    if args.user:
        settings.user_id = args.user

    if args.mock or settings.mock_ai:
        log_info("Using mock image service")
        service = MockImageService()
    else:
        api_key = _ensure_api_key(settings)
        if not api_key:
            print("[INFO] API key setup cancelled. Exiting.")
            return 1
        service = GeminiImageService(api_key)

    flow = GenerationFlow(service, build_ledger(settings))
    library = AssetLibrary(settings.library_dir)

    try:
        asyncio.run(run_wizard(flow, library, settings.user_id))
    except KeyboardInterrupt:
        print("\n[INFO] Interrupted.")
    except AssetCraftError as e:
        log_exception(f"Error in generation wizard: {e}")
        print(f"[ERROR] {e}")
        print(f"[INFO] See log: {get_log_file_path()}")
        return 1
    finally:
        flow.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
