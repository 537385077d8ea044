"""Human-readable formatting helpers."""

from __future__ import annotations

_SUFFIXES = ("B", "KB", "MB", "GB", "TB")


def format_bytes(size: int) -> str:
    """Format a byte count with a binary unit suffix.

    Args:
        size: Number of bytes.

    Returns:
        Text such as ``"1.5 GB"`` with one decimal place.

    """
    number = float(size)
    index = 0
    while abs(number) >= 1024 and index < len(_SUFFIXES) - 1:
        number /= 1024
        index += 1
    return f"{number:.1f} {_SUFFIXES[index]}"
