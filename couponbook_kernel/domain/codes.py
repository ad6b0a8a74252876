"""
couponbook_kernel.domain.codes -- Human-facing identifier generation.

Shared by payout references, referral codes and coupon redemption codes.
Randomness and time are injected so callers (and tests) control output.
"""

from __future__ import annotations

import random
import string

BASE36_ALPHABET = string.digits + string.ascii_uppercase
CODE_ALPHABET = string.ascii_uppercase + string.digits


def encode_base36(value: int) -> str:
    """Encode a non-negative integer in upper-case base 36."""
    if value < 0:
        raise ValueError(f"Cannot base36-encode negative value {value}")
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def random_code(
    length: int,
    rng: random.Random | None = None,
    alphabet: str = CODE_ALPHABET,
) -> str:
    """Random string of ``length`` characters drawn from ``alphabet``."""
    if length <= 0:
        raise ValueError(f"Code length must be positive, got {length}")
    rng = rng or random.SystemRandom()
    return "".join(rng.choice(alphabet) for _ in range(length))
