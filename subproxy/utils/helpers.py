"""Utility functions and helpers."""


def format_elapsed(elapsed_ms: int) -> str:
    """Format an elapsed time.

    Args:
        elapsed_ms: Milliseconds

    Returns:
        Formatted string (e.g., "850ms", "2.31s")
    """
    if elapsed_ms < 1000:
        return f"{elapsed_ms}ms"
    return f"{elapsed_ms / 1000:.2f}s"


def format_size(size: int) -> str:
    """Format a byte count.

    Args:
        size: Number of bytes

    Returns:
        Formatted size string (e.g., "512 B", "1.5 KB")
    """
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def truncate_text(text: str, limit: int) -> str:
    """Truncate text to at most ``limit`` characters.

    A limit of 0 or less disables truncation.
    """
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit]


def append_query_param(url: str, name: str, value: str) -> str:
    """Append ``name=value`` to a URL that may already carry a query string."""
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{name}={value}"
