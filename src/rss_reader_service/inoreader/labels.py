"""Inoreader stream and label identifiers.

Outgoing requests use the ``user/-/`` shorthand for the current user, but
items returned by ``stream/contents`` carry the numeric user id
(``user/1005921515/state/com.google/read``). State checks on incoming
categories therefore match on the state suffix only.
"""

from collections.abc import Iterable

READING_LIST = "user/-/state/com.google/reading-list"
READ_STATE = "user/-/state/com.google/read"
STARRED_STATE = "user/-/state/com.google/starred"

_LABEL_MARKER = "/label/"
_STATE_MARKER = "/state/com.google/"


def is_label(stream_id: str) -> bool:
    """True for user labels (folders and tags), False for system states."""
    return _LABEL_MARKER in stream_id


def is_state(stream_id: str, state: str) -> bool:
    """True when ``stream_id`` is the given system state for any user id.

    Example:
        >>> is_state("user/1005921515/state/com.google/read", "read")
        True
        >>> is_state("user/-/state/com.google/reading-list", "read")
        False
    """
    return stream_id.startswith("user/") and stream_id.endswith(_STATE_MARKER + state)


def has_state(categories: Iterable[str], state: str) -> bool:
    return any(is_state(category, state) for category in categories)


def label_name(stream_id: str) -> str:
    """Extract the display name from a label id.

    Example:
        >>> label_name("user/1005921515/label/Tech News")
        'Tech News'
        >>> label_name("Tech")
        'Tech'
    """
    _, marker, name = stream_id.rpartition(_LABEL_MARKER)
    return name if marker else stream_id
