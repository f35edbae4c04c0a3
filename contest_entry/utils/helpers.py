"""
Helper utilities for the contest entry engine.
"""

import os
import random
import platform
import uuid
from datetime import datetime, timezone
from pathlib import Path


def get_app_data_directory() -> Path:
    """
    Get a writable directory for app data based on platform.
    This is used for the entries database, screenshots, and logs.

    Paths:
    - macOS: ~/Library/Application Support/contest-entry
    - Windows: %APPDATA%/contest-entry
    - Linux: $XDG_DATA_HOME/contest-entry (~/.local/share/contest-entry)

    CONTEST_ENTRY_HOME overrides the platform default.
    """
    override = os.environ.get("CONTEST_ENTRY_HOME")
    if override:
        data_dir = Path(override)
    else:
        system = platform.system()
        app_id = "contest-entry"

        if system == "Darwin":  # macOS
            data_dir = Path.home() / "Library" / "Application Support" / app_id
        elif system == "Windows":
            app_data = os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming")
            data_dir = Path(app_data) / app_id
        else:  # Linux and others
            xdg_data = os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share")
            data_dir = Path(xdg_data) / app_id

    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def utc_now() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_entry_id() -> str:
    """Generate a unique id for an entry attempt."""
    return uuid.uuid4().hex


def truncate(text: str, limit: int = 60) -> str:
    """Shorten text for one-line log output."""
    if text is None:
        return ""
    return text[:limit] + "..." if len(text) > limit else text


def get_adjacent_key(char: str) -> str:
    """Get an adjacent QWERTY key for typo simulation, preserving case."""
    keyboard = {
        'q': 'wa', 'w': 'qes', 'e': 'wrd', 'r': 'etf', 't': 'ryg',
        'y': 'tuh', 'u': 'yij', 'i': 'uok', 'o': 'ipl', 'p': 'ol',
        'a': 'qwsz', 's': 'awedzx', 'd': 'serfxc', 'f': 'drtgcv',
        'g': 'ftyhvb', 'h': 'gyujbn', 'j': 'huiknm', 'k': 'jiolm',
        'l': 'kop', 'z': 'asx', 'x': 'zsdc', 'c': 'xdfv', 'v': 'cfgb',
        'b': 'vghn', 'n': 'bhjm', 'm': 'njk'
    }

    adjacent = keyboard.get(char.lower())
    if not adjacent:
        return char

    typo = random.choice(adjacent)
    return typo.upper() if char.isupper() else typo
