"""Character-level cleanup of raw OCR text.

Corrections are applied in a fixed order and each one is a fixed point of
itself, so normalizing twice yields the same string as normalizing once.
Line breaks are never added or removed.
"""

import re
from collections.abc import Callable

# (name, pattern, replacement) applied in order.
_PUNCTUATION_FIXES: list[tuple[str, re.Pattern[str], str]] = [
    ("collapse_dots", re.compile(r"\.{2,}"), "."),
    ("collapse_commas", re.compile(r",{2,}"), ","),
    ("collapse_colons", re.compile(r":{2,}"), ":"),
]

# Letters OCR engines commonly emit in place of digits.
_DIGIT_CONFUSIONS = str.maketrans({"O": "0", "I": "1", "l": "1"})
_CONFUSION_RUN = re.compile(r"(?<![A-Za-z])[OIl]+(?=\d)")

_HORIZONTAL_WS = re.compile(r"[ \t]+")
_WS_AROUND_NEWLINE = re.compile(r" *\n *")


def _fix_digit_confusions(text: str) -> str:
    """Replace O/I/l runs that precede a digit and do not continue a word."""
    return _CONFUSION_RUN.sub(lambda m: m.group(0).translate(_DIGIT_CONFUSIONS), text)


def _collapse_whitespace(text: str) -> str:
    text = _HORIZONTAL_WS.sub(" ", text)
    return _WS_AROUND_NEWLINE.sub("\n", text)


class TextNormalizer:
    """Applies the ordered OCR correction list to a string.

    Args:
        collapse_whitespace: Whether to collapse runs of spaces and tabs.
            The line tokenizer disables this so column spacing survives.
    """

    def __init__(self, collapse_whitespace: bool = True) -> None:
        self.collapse_whitespace = collapse_whitespace
        self._steps: list[Callable[[str], str]] = [
            self._fix_punctuation,
            _fix_digit_confusions,
        ]
        if collapse_whitespace:
            self._steps.append(_collapse_whitespace)

    def normalize(self, text: str) -> str:
        """Return ``text`` with every correction applied.

        Raises:
            TypeError: If ``text`` is not a string.
        """
        if not isinstance(text, str):
            raise TypeError(f"Expected str, got {type(text).__name__}")
        for step in self._steps:
            text = step(text)
        return text

    @staticmethod
    def _fix_punctuation(text: str) -> str:
        for _, pattern, replacement in _PUNCTUATION_FIXES:
            text = pattern.sub(replacement, text)
        return text


_default = TextNormalizer()


def normalize(text: str) -> str:
    """Normalize ``text`` with the default whitespace-collapsing normalizer."""
    return _default.normalize(text)
