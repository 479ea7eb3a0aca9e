"""Transaction code generation and scanned customer-code checks."""

from __future__ import annotations

import random
import time

MIN_CODE_LENGTH = 3
MAX_CODE_LENGTH = 50


def generate_transaction_code(
    now_ms: int | None = None, rng: random.Random | None = None
) -> str:
    """Return a code of the form ``TXN-<epoch ms>-<0..999>``."""

    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    suffix = (rng or random).randrange(1000)
    return f"TXN-{now_ms}-{suffix}"


def is_valid_customer_code(code: str | None) -> bool:
    """A scanned code is usable when it is 3 to 50 characters long."""

    if not code:
        return False
    return MIN_CODE_LENGTH <= len(code) <= MAX_CODE_LENGTH
