"""File-name validation for saved config profiles and log snapshots."""

from __future__ import annotations

import re

from screen_assistant.catalogs import INVALID_NAME_CHARS, RESERVED_DEVICE_NAMES
from screen_assistant.errors import ProfileNameError

MAX_PROFILE_NAME_LENGTH = 64

_LOG_PREFIX_RE = re.compile(r"[^A-Za-z0-9_-]")


def sanitize_profile_name(name: str) -> str:
    """Return the validated base name for a profile file.

    A trailing ``.json`` suffix is stripped. Names that cannot be used as a
    portable file name are rejected, including names with leading or
    trailing whitespace.

    Raises:
        ProfileNameError: If the name is empty, too long, reserved, or
            contains characters that are invalid in file names.
    """
    base = name[: -len(".json")] if name.endswith(".json") else name

    if not base.strip():
        raise ProfileNameError("Profile name must not be empty")
    if len(base) > MAX_PROFILE_NAME_LENGTH:
        raise ProfileNameError(
            f"Profile name is longer than {MAX_PROFILE_NAME_LENGTH} characters"
        )
    if base in (".", ".."):
        raise ProfileNameError(f"Profile name {base!r} is not allowed")
    if base.endswith(".") or base != base.strip():
        raise ProfileNameError(
            "Profile name must not start or end with a space or end with a period"
        )
    if any(ch in INVALID_NAME_CHARS or not ch.isprintable() for ch in base):
        raise ProfileNameError("Profile name contains invalid characters")
    if base.upper() in RESERVED_DEVICE_NAMES:
        raise ProfileNameError(f"Profile name {base!r} is reserved")

    return base


def sanitize_log_prefix(prefix: str) -> str:
    """Reduce a log file prefix to ``[A-Za-z0-9_-]``, defaulting to "log"."""
    clean = _LOG_PREFIX_RE.sub("", prefix)
    return clean or "log"
