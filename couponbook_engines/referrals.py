"""Referral code generation and format checks."""

from __future__ import annotations

import random
import re

from couponbook_kernel.domain.clock import Clock, SystemClock
from couponbook_kernel.domain.codes import BASE36_ALPHABET, encode_base36, random_code

REFERRAL_CODE_PATTERN = re.compile(r"^[A-Z]{3}_[A-Z0-9]{8,12}$")


def generate_referral_code(
    user_id: str,
    prefix: str = "STU",
    clock: Clock | None = None,
    rng: random.Random | None = None,
) -> str:
    """Referral code ``<PREFIX>_<base36 millis><4 chars>``, upper-cased.

    ``user_id`` identifies the owner for logging by callers; the code
    itself is not derived from it.
    """
    now = (clock or SystemClock()).now_utc()
    millis = int(now.timestamp() * 1000)
    suffix = random_code(4, rng, alphabet=BASE36_ALPHABET)
    return f"{prefix}_{encode_base36(millis)}{suffix}".upper()


def is_valid_referral_code(code: str) -> bool:
    return isinstance(code, str) and REFERRAL_CODE_PATTERN.fullmatch(code) is not None
