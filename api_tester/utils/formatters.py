from typing import Optional

__all__ = ["truncate_text"]


def truncate_text(text: Optional[str], limit: int) -> Optional[str]:
    """Cut *text* down to at most *limit* characters; a non-positive limit disables it."""
    if text is None or limit <= 0 or len(text) <= limit:
        return text
    return text[:limit]
