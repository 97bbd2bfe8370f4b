"""Public-link slug generation.

A slug is derived once, when a survey is first published, and kept for
the survey's lifetime (unpublish does not release it).
"""

import re
import time

from survey_engine.constants import (
    SLUG_FALLBACK_BASE,
    SLUG_MAX_LENGTH,
    SLUG_SEARCH_WINDOW,
)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify_title(title: str, *, max_length: int = SLUG_MAX_LENGTH) -> str:
    """Lowercase ``title``, collapse non-alphanumeric runs to ``-``, trim, cap.

    Returns ``"survey"`` when nothing usable is left.
    """
    base = _NON_ALNUM.sub("-", title.strip().lower()).strip("-")
    # Capping can expose a hyphen at the cut
    base = base[:max_length].rstrip("-")
    return base or SLUG_FALLBACK_BASE


def pick_unique_slug(
    base: str,
    taken: set[str],
    *,
    window: int = SLUG_SEARCH_WINDOW,
) -> str:
    """Return ``base`` or the first free ``base-N`` (N = 2 .. window-1).

    If every candidate in the window is taken, appends the current epoch
    time in milliseconds instead.
    """
    if base not in taken:
        return base
    for i in range(2, window):
        candidate = f"{base}-{i}"
        if candidate not in taken:
            return candidate
    return f"{base}-{time.time_ns() // 1_000_000}"
