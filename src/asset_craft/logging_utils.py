"""
Logging utilities for AssetCraft.

Provides file-based logging that:
- Writes to logs/asset_craft.log in the project root (or ASSETCRAFT_LOG_DIR)
- Wipes the log on each program restart
- Captures uncaught exceptions
- Logs key events (API calls, generation, gemstone movements)
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from .config import APP_NAME, APP_VERSION


def _get_log_dir() -> Path:
    """Get the log directory - ASSETCRAFT_LOG_DIR if set, else project root."""
    override = os.environ.get("ASSETCRAFT_LOG_DIR")
    if override:
        return Path(override)
    # Development - use project root (parent of src/)
    return Path(__file__).resolve().parent.parent.parent / "logs"


# Log directory and file
LOG_DIR = _get_log_dir()
LOG_FILE = LOG_DIR / "asset_craft.log"

# Module-level logger
_logger: Optional[logging.Logger] = None
_initialized = False


def _ensure_log_dir() -> bool:
    """Ensure the log directory exists."""
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        return True
    except OSError as e:
        print(f"[WARN] Could not create log directory: {e}")
        return False


def setup_logging(console: bool = True) -> logging.Logger:
    """
    Initialize the logging system.

    Call this once at application startup. The log file is wiped on each restart.

    Args:
        console: Also echo INFO and above to stdout.

    Returns:
        The configured logger instance.
    """
    global _logger, _initialized

    if _initialized and _logger:
        return _logger

    _logger = logging.getLogger("asset_craft")
    _logger.setLevel(logging.DEBUG)

    # Clear any existing handlers
    _logger.handlers.clear()

    if _ensure_log_dir():
        try:
            file_handler = logging.FileHandler(
                LOG_FILE,
                mode='w',  # Wipe on restart
                encoding='utf-8',
            )
            file_handler.setLevel(logging.DEBUG)
            formatter = logging.Formatter(
                '%(asctime)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(formatter)
            _logger.addHandler(file_handler)
        except OSError as e:
            print(f"[WARN] Could not set up file logging: {e}")

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter('%(levelname)s - %(message)s'))
        _logger.addHandler(console_handler)

    _logger.info("=" * 60)
    _logger.info(f"{APP_NAME} v{APP_VERSION} started")
    _logger.info(f"Log file: {LOG_FILE}")
    _logger.info(f"Python version: {sys.version}")
    _logger.info("=" * 60)

    _setup_exception_handler()

    _initialized = True
    return _logger


def _setup_exception_handler() -> None:
    """Set up global exception handler to log uncaught exceptions."""
    original_excepthook = sys.excepthook

    def exception_handler(exc_type, exc_value, exc_traceback):
        # Don't log KeyboardInterrupt
        if issubclass(exc_type, KeyboardInterrupt):
            original_excepthook(exc_type, exc_value, exc_traceback)
            return

        if _logger:
            _logger.critical("Uncaught exception:", exc_info=(exc_type, exc_value, exc_traceback))

        original_excepthook(exc_type, exc_value, exc_traceback)

    sys.excepthook = exception_handler


def get_logger() -> logging.Logger:
    """
    Get the logger instance.

    Library code never configures handlers on its own; until setup_logging()
    runs, records go to the plain "asset_craft" logger and whatever the host
    application (or pytest) attached to it.
    """
    if _initialized and _logger:
        return _logger
    return logging.getLogger("asset_craft")


# Convenience functions for direct logging
def log_debug(message: str) -> None:
    """Log a debug message."""
    get_logger().debug(message)


def log_info(message: str) -> None:
    """Log an info message."""
    get_logger().info(message)


def log_warning(message: str) -> None:
    """Log a warning message."""
    get_logger().warning(message)


def log_error(message: str, detail: str = "", exc_info: bool = False) -> None:
    """
    Log an error message.

    Args:
        message: The error message (or context label if detail is provided)
        detail: Optional detail string appended after ": "
        exc_info: If True, include exception traceback
    """
    if detail:
        message = f"{message}: {detail}"
    get_logger().error(message, exc_info=exc_info)


def log_exception(message: str) -> None:
    """Log an error with full exception traceback."""
    get_logger().exception(message)


def log_api_call(endpoint: str, success: bool, details: str = "") -> None:
    """
    Log an API call for debugging.

    Args:
        endpoint: The API endpoint or operation name
        success: Whether the call succeeded
        details: Additional details (error message, etc.)
    """
    status = "SUCCESS" if success else "FAILED"
    msg = f"API [{status}] {endpoint}"
    if details:
        msg += f" - {details}"

    if success:
        get_logger().info(msg)
    else:
        get_logger().error(msg)


def log_generation_start(asset_type: str, prompt: str) -> None:
    """Log the start of a generation attempt."""
    preview = prompt if len(prompt) <= 100 else prompt[:100] + "..."
    get_logger().info(f"Generation started: {asset_type or 'untyped'} - {preview}")


def log_generation_complete(asset_type: str, success: bool, details: str = "") -> None:
    """Log the completion of a generation attempt."""
    status = "completed" if success else "failed"
    msg = f"Generation {status}: {asset_type or 'untyped'}"
    if details:
        msg += f" - {details}"

    if success:
        get_logger().info(msg)
    else:
        get_logger().error(msg)


def log_credit_event(action: str, amount: int, source: str, balance: Optional[int] = None) -> None:
    """Log a gemstone debit/credit against a named store."""
    msg = f"Gemstones {action}: {amount} via {source}"
    if balance is not None:
        msg += f" (balance={balance})"
    get_logger().info(msg)


def get_log_file_path() -> Path:
    """Get the path to the log file."""
    return LOG_FILE


def get_log_contents() -> str:
    """
    Read and return the current log file contents.

    Useful for displaying logs to the user or copying to clipboard.
    """
    try:
        if LOG_FILE.exists():
            return LOG_FILE.read_text(encoding='utf-8')
        return "(Log file not found)"
    except OSError as e:
        return f"(Error reading log: {e})"
