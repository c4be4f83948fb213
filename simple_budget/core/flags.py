"""Runtime feature flags stored in the database.

A flag narrows who sees a feature: it must be enabled, cover the requesting
platform and one of the user's types, and then either target the user
explicitly or place them inside the rollout percentage. Rollout buckets are
stable per (user, flag) pair.
"""

import re
from enum import Enum
from typing import Any, FrozenSet, Iterable, Optional

from .plans import effective_plan

KEY_PATTERN = re.compile(r"^[a-z0-9_-]+$")


class Platform(str, Enum):
    WEB = "web"
    MOBILE = "mobile"


class UserType(str, Enum):
    FREE = "free"
    PRO = "pro"
    ADMIN = "admin"


def normalize_key(key: str) -> str:
    return re.sub(r"[^a-z0-9_-]", "_", key.strip().lower())


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def string_hash(text: str) -> int:
    """31-based rolling hash over UTF-16 code units, wrapped to 32 bits, absolute value."""
    h = 0
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        h = _int32(h * 31 + int.from_bytes(data[i:i + 2], "little"))
    return abs(h)


def rollout_bucket(user_id: str, key: str) -> int:
    """Bucket in [0, 100) for a user and flag key; the same inputs always land in the same bucket."""
    return string_hash(f"{user_id}{key}") % 100


def user_types(user: Any, admin_emails: Iterable[str] = ()) -> FrozenSet[UserType]:
    types = {UserType(effective_plan(user).value)}
    email = (getattr(user, "email", None) or "").lower()
    if email and email in admin_emails:
        types.add(UserType.ADMIN)
    return frozenset(types)


def flag_applies(
    flag: Any,
    user_id: str,
    types: FrozenSet[UserType],
    platform: Optional[Platform] = None,
) -> bool:
    """Whether ``flag`` is on for this user.

    ``platform=None`` skips the platform check (server-side gates).
    """
    if not flag.enabled:
        return False
    if platform is not None and platform.value not in (flag.platforms or []):
        return False
    if not types & {UserType(t) for t in (flag.user_types or [])}:
        return False
    if user_id in (flag.exclude_users or []):
        return False
    if flag.target_users:
        return user_id in flag.target_users
    if flag.rollout_percentage < 100:
        return rollout_bucket(user_id, flag.key) < flag.rollout_percentage
    return True
