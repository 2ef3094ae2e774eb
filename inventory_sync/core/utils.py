"""
Utility functions for the application.
"""
from datetime import datetime, timezone
from typing import Iterable, List, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Return ``value`` as an aware UTC datetime.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns; those are stored in UTC so they are tagged rather than converted.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def unique_emails(*groups: Iterable[str]) -> List[str]:
    """Merge email lists, dropping blanks and case-insensitive duplicates while keeping order."""
    seen = set()
    merged: List[str] = []
    for group in groups:
        for email in group or []:
            email = (email or "").strip()
            if not email or email.lower() in seen:
                continue
            seen.add(email.lower())
            merged.append(email)
    return merged
