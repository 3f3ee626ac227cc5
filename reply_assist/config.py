"""reply-assist configuration: data paths, LLM defaults, Keychain helpers."""

from __future__ import annotations

import json
import logging
import os
import subprocess
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".reply_assist"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.json"
KEYCHAIN_SERVICE = "reply-assist"

DEFAULT_IMESSAGE_DB = Path.home() / "Library" / "Messages" / "chat.db"
DEFAULT_CONTEXT_DB = CONFIG_DIR / "context.db"
DEFAULT_ADDRESSBOOK_DIR = Path.home() / "Library" / "Application Support" / "AddressBook"

DEFAULT_CONFIG: Dict[str, Any] = {
    "provider": "gemini",
    "model": None,
    "timeout": 60,
}


def imessage_db_path() -> Path:
    """chat.db location; IMESSAGE_DB_PATH overrides the default."""
    return Path(os.environ.get("IMESSAGE_DB_PATH") or DEFAULT_IMESSAGE_DB)


def context_db_path() -> Path:
    """Local context store location; CONTEXT_DB_PATH overrides the default."""
    return Path(os.environ.get("CONTEXT_DB_PATH") or DEFAULT_CONTEXT_DB)


def addressbook_dir() -> Path:
    return Path(os.environ.get("ADDRESSBOOK_DIR") or DEFAULT_ADDRESSBOOK_DIR)


def config_path() -> Path:
    return Path(os.environ.get("REPLY_ASSIST_CONFIG") or DEFAULT_CONFIG_PATH)


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load the JSON config file, falling back to defaults for missing keys."""
    config = dict(DEFAULT_CONFIG)
    path = path or config_path()
    if path.exists():
        try:
            config.update(json.loads(path.read_text()))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable config %s: %s", path, exc)
    return config


def save_config(config: Dict[str, Any], path: Optional[Path] = None):
    """Save config to disk."""
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config, indent=2))


def get_api_key(env_var: str, keychain_account: str) -> Optional[str]:
    """Load an API key from an environment variable or macOS Keychain.

    Checks env var first, then Keychain (set via `reply-assist set-key`).
    """
    key = os.environ.get(env_var)
    if key:
        return key

    try:
        result = subprocess.run(
            ["security", "find-generic-password", "-a", keychain_account, "-s", KEYCHAIN_SERVICE, "-w"],
            capture_output=True, text=True,
        )
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
    except FileNotFoundError:
        pass

    return None


def store_api_key(keychain_account: str, key: str) -> bool:
    """Store an API key in macOS Keychain, replacing any previous value."""
    try:
        subprocess.run(
            ["security", "delete-generic-password", "-a", keychain_account, "-s", KEYCHAIN_SERVICE],
            capture_output=True,
        )
        result = subprocess.run(
            ["security", "add-generic-password", "-a", keychain_account, "-s", KEYCHAIN_SERVICE, "-w", key],
            capture_output=True, text=True,
        )
    except FileNotFoundError:
        logger.error("The macOS `security` tool is not available")
        return False
    if result.returncode != 0:
        logger.error("Keychain write failed: %s", result.stderr.strip())
    return result.returncode == 0
