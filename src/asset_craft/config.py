#!/usr/bin/env python3
"""
config.py

All global paths, constants, and runtime settings for AssetCraft.
"""

import json
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional, Tuple

# ═══════════════════════════════════════════════════════════════════════════════
# APPLICATION INFO
# ═══════════════════════════════════════════════════════════════════════════════
APP_NAME = "AssetCraft AI"
APP_TAGLINE = "Create. Design. Build."
APP_VERSION = "1.0.0"

# Paths for configuration and data files
CONFIG_PATH = Path.home() / ".assetcraft_config.json"
DEFAULT_LIBRARY_DIR = Path.home() / ".assetcraft" / "library"

# Gemini API constants
GEMINI_IMAGE_MODEL = "gemini-2.5-flash-image"
GEMINI_TEXT_MODEL = "gemini-2.0-flash"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
GEMINI_IMAGE_URL = f"{GEMINI_BASE_URL}/{GEMINI_IMAGE_MODEL}:generateContent"
GEMINI_TEXT_URL = f"{GEMINI_BASE_URL}/{GEMINI_TEXT_MODEL}:generateContent"

# HTTP statuses worth a retry
RETRYABLE_STATUS_CODES: Tuple[int, ...] = (429, 500, 502, 503, 504)
MAX_API_RETRIES = 3
REQUEST_TIMEOUT_SECONDS = 120

# ═══════════════════════════════════════════════════════════════════════════════
# GEMSTONES
# ═══════════════════════════════════════════════════════════════════════════════
GENERATION_COST = 1               # Gemstones per generation attempt
DAILY_FREE_GEMSTONES = 5          # Refilled once per calendar day
STARTING_GEMSTONES = 25           # Purchased balance for a fresh local store
SUPABASE_PROFILE_TABLE = "user_profiles"

# ═══════════════════════════════════════════════════════════════════════════════
# GENERATION
# ═══════════════════════════════════════════════════════════════════════════════
QUALITY_MODIFIERS = "high quality, professional design, clean and modern"
COLOR_COUNT_OPTIONS: Tuple[int, ...] = (1, 2, 3, 4)
MAX_PROMPT_LENGTH = 500
SUGGESTION_COUNT = 5
PALETTE_SIZE = 3

# Payloads this small come from mock/test backends, not real renders
PLACEHOLDER_MAX_BYTES = 100

SUGGESTION_CACHE_TTL = timedelta(hours=24)

# Mock image size (pixels)
MOCK_IMAGE_SIZE = (512, 512)


@dataclass
class Settings:
    """Runtime settings resolved from the config file and environment."""
    api_key: Optional[str] = None
    mock_ai: bool = False
    library_dir: Path = DEFAULT_LIBRARY_DIR
    starting_gemstones: int = STARTING_GEMSTONES
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    user_id: str = "local-user"

    @property
    def uses_remote_credits(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config_file(path: Path = CONFIG_PATH) -> dict:
    """
    Load the JSON config file if present.

    Returns:
        Dictionary containing configuration, or empty dict if missing or unreadable.
    """
    if path.is_file():
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            return data if isinstance(data, dict) else {}
        except (OSError, ValueError):
            return {}
    return {}


def save_config_file(config: dict, path: Path = CONFIG_PATH) -> None:
    """
    Save configuration dictionary to path.

    Sets file permissions to 0o600 since the file holds API keys.
    """
    path.write_text(json.dumps(config, indent=2), encoding="utf-8")
    try:
        os.chmod(path, 0o600)
    except OSError:
        pass  # Permissions may not be supported on all platforms


def load_settings(path: Path = CONFIG_PATH) -> Settings:
    """
    Resolve settings: config file values first, environment variables override.

    Environment variables:
        GEMINI_API_KEY, ASSETCRAFT_MOCK_AI, ASSETCRAFT_LIBRARY_DIR,
        ASSETCRAFT_STARTING_GEMSTONES, SUPABASE_URL, SUPABASE_ANON_KEY,
        ASSETCRAFT_USER_ID
    """
    file_cfg = load_config_file(path)
    settings = Settings(
        api_key=file_cfg.get("api_key"),
        mock_ai=bool(file_cfg.get("mock_ai", False)),
        library_dir=Path(file_cfg.get("library_dir", DEFAULT_LIBRARY_DIR)),
        starting_gemstones=int(file_cfg.get("starting_gemstones", STARTING_GEMSTONES)),
        supabase_url=file_cfg.get("supabase_url"),
        supabase_key=file_cfg.get("supabase_key"),
        user_id=file_cfg.get("user_id", "local-user"),
    )

    env_key = os.environ.get("GEMINI_API_KEY")
    if env_key:
        settings.api_key = env_key
    settings.mock_ai = _env_flag("ASSETCRAFT_MOCK_AI", settings.mock_ai)
    if os.environ.get("ASSETCRAFT_LIBRARY_DIR"):
        settings.library_dir = Path(os.environ["ASSETCRAFT_LIBRARY_DIR"])
    if os.environ.get("ASSETCRAFT_STARTING_GEMSTONES"):
        settings.starting_gemstones = int(os.environ["ASSETCRAFT_STARTING_GEMSTONES"])
    settings.supabase_url = os.environ.get("SUPABASE_URL", settings.supabase_url)
    settings.supabase_key = os.environ.get("SUPABASE_ANON_KEY", settings.supabase_key)
    settings.user_id = os.environ.get("ASSETCRAFT_USER_ID", settings.user_id)
    return settings
