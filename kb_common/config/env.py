"""Environment variable parsing utilities."""

from __future__ import annotations


def parse_bool_env(value: str | None) -> bool | None:
    """Parse a boolean from an environment variable string.

    Returns True for "1", "true", "yes", "on" (case-insensitive).
    Returns None if value is None.
    """
    if value is None:
        return None
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_csv(value: str | None) -> list[str]:
    """Split a comma-separated string, dropping blanks.

    Example: "TLSv1.2, TLSv1.3" -> ["TLSv1.2", "TLSv1.3"]
    """
    if not value:
        return []
    return [token.strip() for token in value.split(",") if token.strip()]
