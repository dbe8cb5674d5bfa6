"""Configuration management for Music Organizer."""

import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from music_organizer.interactive import ConsoleLogHandler, InteractivePrompts

DISCOGS_TOKEN_FILE_NAME = ".discogs_token"


def eprint(*args, **kwargs):
    """Print to stderr."""
    print(*args, file=sys.stderr, **kwargs)


def _read_token_file() -> Optional[str]:
    """Read a Discogs token from ~/.discogs_token if it exists."""
    token_file = Path.home() / DISCOGS_TOKEN_FILE_NAME
    if not token_file.is_file():
        return None
    token = token_file.read_text(encoding="utf-8").strip()
    return token or None


def load_config(env_file: Optional[str] = None) -> dict:
    """
    Load configuration from .env file.

    Args:
        env_file: Path to .env file. Defaults to .env in current directory.

    Returns:
        Dictionary of configuration values.
    """
    if env_file is None:
        env_file = ".env"

    env_path = Path(env_file)
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
        eprint(f"Loaded environment from {env_path.resolve()}")
    else:
        eprint(
            f"Warning: .env file not found at {env_path.resolve()} "
            "- falling back to process env."
        )

    return {
        # Discogs credentials
        "discogs_user_token": os.getenv("DISCOGS_USER_TOKEN") or _read_token_file(),
        # Editor for the interactive edit pass
        "editor": os.getenv("VISUAL") or os.getenv("EDITOR") or "vi",
    }


def validate_config(config: dict) -> List[str]:
    """
    Validate configuration and return list of missing credentials.

    Args:
        config: Configuration dictionary from load_config()

    Returns:
        List of missing credential names (empty if all present).
    """
    missing = []

    if not config.get("discogs_user_token"):
        missing.append("DISCOGS_USER_TOKEN")

    return missing


def get_discogs_token_instructions() -> str:
    """Return instructions for obtaining a Discogs user token."""
    return f"""
To get a Discogs user token:
1. Go to https://www.discogs.com/settings/developers
2. Click "Generate new token"
3. Copy the token and add to your .env file:
   DISCOGS_USER_TOKEN=your_token_here
   or save it to ~/{DISCOGS_TOKEN_FILE_NAME}, or pass --discogs-token
"""


def setup_logging(prompts: InteractivePrompts, verbose: bool = False) -> logging.Logger:
    """Configure package logging to go through the interactive console."""
    logger = logging.getLogger("music_organizer")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    console_handler = ConsoleLogHandler(prompts)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console_handler)

    return logger
