"""
filtering.py — banned-word masking for chat text.

Each banned word is matched case-insensitively and every occurrence is
overwritten with '*' of the same length, one word after another. Nothing else
in the message changes, so the length is preserved and filtering an already
filtered message is a no-op.

Works on bytes (what comes off the socket) and on str. Banned words are ASCII
and case folding is ASCII-only for both, so the two agree on every input.
"""

import re
from typing import Iterable, Sequence, Tuple, TypeVar, Union

MASK_CHAR = "*"
DEFAULT_BANNED_WORDS: Tuple[str, ...] = ("badword1", "badword2", "badword3")

AnyText = TypeVar("AnyText", str, bytes)


def check_banned_word(word: str) -> str:
    """Return word if it can be used as a banned word, else raise ValueError."""
    if not word:
        raise ValueError("Banned words must be non-empty")
    if MASK_CHAR in word:
        raise ValueError(f"Banned word may not contain {MASK_CHAR!r}: {word!r}")
    if not word.isascii():
        raise ValueError(f"Banned words must be ASCII: {word!r}")
    return word


class ContentFilter:
    """Masks a fixed set of banned words. Stateless after construction."""

    def __init__(self, banned_words: Iterable[str] = DEFAULT_BANNED_WORDS) -> None:
        self.banned_words: Tuple[str, ...] = tuple(check_banned_word(w) for w in banned_words)

        # Word order matters when two banned words overlap, so keep one
        # pattern per word instead of a single alternation. re.ASCII keeps
        # str folding identical to the bytes patterns.
        self._str_patterns: Sequence[re.Pattern[str]] = [
            re.compile(re.escape(w), re.IGNORECASE | re.ASCII) for w in self.banned_words
        ]
        self._bytes_patterns: Sequence[re.Pattern[bytes]] = [
            re.compile(re.escape(w.encode("ascii")), re.IGNORECASE) for w in self.banned_words
        ]

    def filter(self, message: AnyText) -> AnyText:
        """Return message with every banned word masked."""
        if isinstance(message, bytes):
            mask = MASK_CHAR.encode("ascii")
            for pattern in self._bytes_patterns:
                message = pattern.sub(lambda m: mask * len(m.group(0)), message)
            return message

        for pattern in self._str_patterns:
            message = pattern.sub(lambda m: MASK_CHAR * len(m.group(0)), message)
        return message

    __call__ = filter


_default_filter = ContentFilter()


def filter_message(message: Union[str, bytes]) -> Union[str, bytes]:
    """Mask the default banned words in message."""
    return _default_filter.filter(message)
