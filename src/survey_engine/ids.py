"""Opaque identifier generation for survey documents."""

import random
import time
import uuid


def new_id() -> str:
    """Return a fresh identifier for a survey, step, field or option.

    Uses a random UUID.  If the OS randomness source is unavailable, falls
    back to ``id_<random hex>_<ms timestamp hex>``; two calls in the same
    millisecond are only distinguished by the pseudo-random part.
    """
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        millis = time.time_ns() // 1_000_000
        return f"id_{random.getrandbits(52):x}_{millis:x}"
