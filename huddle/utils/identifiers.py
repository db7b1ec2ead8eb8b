import secrets
import string
from datetime import datetime
from typing import Callable, Optional

MEETING_ID_PREFIX = "MTG"
MEETING_ID_SUFFIX_WIDTH = 8

ANNOUNCEMENT_ID_PREFIX = "ANN"
ANNOUNCEMENT_ID_SUFFIX_WIDTH = 6

DEFAULT_CODE_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_CODE_LENGTH = 6

CodeFactory = Callable[[], str]


def _random_suffix(width: int) -> str:
    return secrets.token_hex(width)[:width].upper()


def generate_meeting_id() -> str:
    """Return an opaque meeting id such as ``MTG-3F9A01C2``."""
    return f"{MEETING_ID_PREFIX}-{_random_suffix(MEETING_ID_SUFFIX_WIDTH)}"


def generate_announcement_id(created_at: Optional[datetime] = None) -> str:
    """
    Announcement ids sort by creation time: a millisecond timestamp stem
    followed by a short random suffix to separate same-millisecond posts.
    """
    stem = int(created_at.timestamp() * 1000) if created_at else 0
    return f"{ANNOUNCEMENT_ID_PREFIX}-{stem}-{_random_suffix(ANNOUNCEMENT_ID_SUFFIX_WIDTH)}"


def generate_attendance_code(
    length: int = DEFAULT_CODE_LENGTH,
    alphabet: str = DEFAULT_CODE_ALPHABET,
) -> str:
    """Short shared code for one attendance session; collisions across sessions are harmless."""
    return "".join(secrets.choice(alphabet) for _ in range(max(1, length)))


def attendance_code_factory(
    length: int = DEFAULT_CODE_LENGTH,
    alphabet: str = DEFAULT_CODE_ALPHABET,
) -> CodeFactory:
    return lambda: generate_attendance_code(length, alphabet)
