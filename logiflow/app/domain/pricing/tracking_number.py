"""
Tracking-number generation.

Format: prefix + 4-digit year + 6-digit zero-padded random number,
e.g. LF2026004217. Uniqueness is enforced by the bookings table; callers
regenerate on a constraint violation.
"""

import secrets
from datetime import datetime, timezone
from typing import Optional

RANDOM_DIGITS = 6


def generate_tracking_number(prefix: str = "LF", now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    serial = secrets.randbelow(10 ** RANDOM_DIGITS)
    return f"{prefix}{now.year:04d}{serial:0{RANDOM_DIGITS}d}"
