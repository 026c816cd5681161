"""Anchor and regex based field extraction.

Each field owns an ordered list of strategies. A single dispatch loop tries
them in order and keeps the first value produced, recording which strategy
won so results can be traced back to the rule that fired.
"""

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

from docstruct.utils.logger import get_logger

logger = get_logger(__name__)

Validator = Callable[[str], bool]

# Characters OCR leaves between a label and its value.
_LABEL_SEPARATORS = re.compile(r"^[\s:;.\-#|=]*")
_TOKEN_JUNK = re.compile(r"^[|:;,]+|[|:;,]+$")


@dataclass
class ExtractedField:
    """A field value extracted by a strategy."""

    field_name: str
    value: str
    confidence: float
    start_pos: int
    end_pos: int
    extraction_method: str


class ExtractionStrategy:
    """Base class for one way of finding a field value in text.

    Args:
        name: Identifier recorded when this strategy wins.
        confidence: Confidence attached to values it produces.
        validator: Optional check a candidate value must pass.
    """

    def __init__(
        self,
        name: str,
        confidence: float = 0.8,
        validator: Validator | None = None,
    ) -> None:
        self.name = name
        self.confidence = confidence
        self.validator = validator

    def find(self, field_name: str, text: str) -> ExtractedField | None:
        raise NotImplementedError

    def _accept(self, value: str) -> bool:
        return bool(value) and (self.validator is None or self.validator(value))


class AnchorStrategy(ExtractionStrategy):
    """Find a label and take the next few whitespace-delimited tokens.

    Tokens are read from the rest of the anchor's line. Reading stops after
    ``max_tokens`` tokens or at the first token that starts another field's
    label.

    Args:
        anchor: Regex matching the label, e.g. ``r"patient\\s*name"``.
        max_tokens: Maximum number of tokens to take.
        stop_pattern: Regex for labels of other fields.
    """

    def __init__(
        self,
        anchor: str,
        max_tokens: int = 1,
        stop_pattern: re.Pattern[str] | None = None,
        name: str = "anchor",
        confidence: float = 0.9,
        validator: Validator | None = None,
    ) -> None:
        super().__init__(name, confidence, validator)
        self.anchor = re.compile(anchor, re.IGNORECASE)
        self.max_tokens = max_tokens
        self.stop_pattern = stop_pattern

    def find(self, field_name: str, text: str) -> ExtractedField | None:
        for match in self.anchor.finditer(text):
            line_end = text.find("\n", match.end())
            if line_end == -1:
                line_end = len(text)
            rest = text[match.end() : line_end]
            offset = match.end() + len(_LABEL_SEPARATORS.match(rest).group(0))
            value, end = self._take_tokens(text, offset, line_end)
            if self._accept(value):
                return ExtractedField(
                    field_name=field_name,
                    value=value,
                    confidence=self.confidence,
                    start_pos=match.start(),
                    end_pos=end,
                    extraction_method=self.name,
                )
        return None

    def _take_tokens(self, text: str, start: int, stop: int) -> tuple[str, int]:
        tokens: list[str] = []
        end = start
        for token_match in re.finditer(r"\S+", text[start:stop]):
            if len(tokens) >= self.max_tokens:
                break
            remainder = text[start + token_match.start() : stop]
            if self.stop_pattern is not None and self.stop_pattern.match(remainder):
                break
            token = _TOKEN_JUNK.sub("", token_match.group(0))
            if token:
                tokens.append(token)
            end = start + token_match.end()
        return " ".join(tokens), end


class RegexStrategy(ExtractionStrategy):
    """Search the full text with a pattern and return a capture group.

    Args:
        pattern: Regex with the value in group ``group``.
        flags: Regex flags, case-insensitive by default.
        transform: Optional cleanup applied to the captured value.
    """

    def __init__(
        self,
        pattern: str,
        group: int = 1,
        flags: int = re.IGNORECASE,
        name: str = "regex",
        confidence: float = 0.8,
        validator: Validator | None = None,
        transform: Callable[[str], str] | None = None,
    ) -> None:
        super().__init__(name, confidence, validator)
        self.pattern = re.compile(pattern, flags)
        self.group = group
        self.transform = transform

    def _value(self, match: re.Match[str]) -> str:
        value = match.group(self.group) if match.groups() else match.group(0)
        value = (value or "").strip()
        return self.transform(value) if self.transform else value

    def find(self, field_name: str, text: str) -> ExtractedField | None:
        for match in self.pattern.finditer(text):
            value = self._value(match)
            if self._accept(value):
                return ExtractedField(
                    field_name=field_name,
                    value=value,
                    confidence=self.confidence,
                    start_pos=match.start(),
                    end_pos=match.end(),
                    extraction_method=self.name,
                )
        return None

    def find_all(self, text: str) -> list[str]:
        """Return every accepted value in order, without duplicates."""
        values: list[str] = []
        for match in self.pattern.finditer(text):
            value = self._value(match)
            if self._accept(value) and value not in values:
                values.append(value)
        return values


class LineKeywordStrategy(ExtractionStrategy):
    """Return the first line that contains one of ``keywords``.

    Args:
        keywords: Lowercase substrings to look for.
        max_words: Trim the line to at most this many words.
        transform: Optional cleanup applied to the line.
    """

    def __init__(
        self,
        keywords: Iterable[str],
        max_words: int | None = None,
        name: str = "line_keyword",
        confidence: float = 0.7,
        validator: Validator | None = None,
        transform: Callable[[str], str] | None = None,
    ) -> None:
        super().__init__(name, confidence, validator)
        self.keywords = tuple(k.lower() for k in keywords)
        self.max_words = max_words
        self.transform = transform

    def find(self, field_name: str, text: str) -> ExtractedField | None:
        position = 0
        for line in text.splitlines(keepends=True):
            start = position
            position += len(line)
            lowered = line.lower()
            if not any(keyword in lowered for keyword in self.keywords):
                continue
            words = line.split()
            if self.max_words is not None:
                words = words[: self.max_words]
            value = " ".join(words)
            if self.transform:
                value = self.transform(value)
            if self._accept(value):
                return ExtractedField(
                    field_name=field_name,
                    value=value,
                    confidence=self.confidence,
                    start_pos=start,
                    end_pos=position,
                    extraction_method=self.name,
                )
        return None


class FallbackStrategy(ExtractionStrategy):
    """Always returns a fixed value. Only meant for test fixtures."""

    def __init__(self, value: str, name: str = "fallback") -> None:
        super().__init__(name, confidence=0.1)
        self.value = value

    def find(self, field_name: str, text: str) -> ExtractedField | None:
        return ExtractedField(field_name, self.value, self.confidence, 0, 0, self.name)


@dataclass
class ExtractionResult:
    """Winning values per field plus the strategy that produced each."""

    fields: dict[str, ExtractedField] = field(default_factory=dict)

    @property
    def values(self) -> dict[str, str]:
        return {name: f.value for name, f in self.fields.items()}

    @property
    def sources(self) -> dict[str, str]:
        return {name: f.extraction_method for name, f in self.fields.items()}


def build_stop_pattern(anchors: Iterable[str]) -> re.Pattern[str]:
    """Combine field labels into one pattern anchored at a token start."""
    return re.compile("|".join(f"(?:{a})" for a in anchors), re.IGNORECASE)


class RuleExtractor:
    """Runs each field's strategy chain against a text.

    Args:
        strategies: Ordered strategies per field name.
    """

    def __init__(self, strategies: Mapping[str, list[ExtractionStrategy]]) -> None:
        self.strategies = {name: list(chain) for name, chain in strategies.items()}

    def extract_field(self, field_name: str, text: str) -> ExtractedField | None:
        """Try the field's strategies in order and return the first hit."""
        for strategy in self.strategies.get(field_name, []):
            result = strategy.find(field_name, text)
            if result is not None:
                logger.debug(
                    "Field %s resolved by %s: %r",
                    field_name,
                    strategy.name,
                    result.value,
                )
                return result
        return None

    def extract(self, text: str, fields: list[str] | None = None) -> ExtractionResult:
        """Extract every configured field from ``text``.

        Args:
            text: Normalized document text.
            fields: Specific field names to extract. If ``None``, extracts all.

        Returns:
            The fields that some strategy resolved.
        """
        result = ExtractionResult()
        for field_name in fields or list(self.strategies):
            extracted = self.extract_field(field_name, text)
            if extracted is not None:
                result.fields[field_name] = extracted

        logger.info(
            "Rule extraction resolved %d of %d fields",
            len(result.fields),
            len(fields or self.strategies),
        )
        return result
