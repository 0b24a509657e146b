# flowguard/utils/helpers.py

import textwrap
import datetime


def dedent_and_strip(text: str) -> str:
    """
    Cleans up multiline strings by removing indentation and stripping.
    """
    return textwrap.dedent(text).strip()


def utc_timestamp() -> str:
    """
    Current UTC time as ISO-8601 with microseconds, sortable as text.
    """
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="microseconds")


def conversation_title(text: str, limit: int = 80) -> str:
    return (text or "").strip()[:limit] or "New conversation"
