"""Delimiter-based column splitting for OCR text without positions.

Each line is split with the delimiter that yields the most segments, and the
document as a whole is scored for how table-like it is. The score is a
weighted sum of four signals; weights and thresholds come from
:class:`~docstruct.utils.config.TokenizerConfig`.
"""

import re
from collections import Counter
from dataclasses import dataclass, field

from docstruct.utils.config import TokenizerConfig
from docstruct.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Delimiter:
    """A candidate column delimiter."""

    name: str
    pattern: re.Pattern[str]
    single_char: bool


# Priority order: earlier entries win ties after the single-char preference.
DELIMITERS: tuple[Delimiter, ...] = (
    Delimiter("tab", re.compile(r"\t"), True),
    Delimiter("pipe", re.compile(r"\|"), True),
    Delimiter("double_space", re.compile(r" {2,}"), False),
    Delimiter("triple_space", re.compile(r" {3,}"), False),
)

_DIGIT = re.compile(r"\d")


@dataclass
class TokenizedLine:
    """One input line split into candidate columns."""

    text: str
    segments: list[str]
    delimiter: str | None

    @property
    def segment_count(self) -> int:
        return len(self.segments)

    @property
    def has_explicit_delimiter(self) -> bool:
        return "|" in self.text or "\t" in self.text

    @property
    def has_numbers(self) -> bool:
        return bool(_DIGIT.search(self.text))


@dataclass
class TokenizationResult:
    """Split lines plus the table-likelihood verdict for the document."""

    lines: list[TokenizedLine]
    score: float
    is_tabular: bool
    modal_count: int
    consistency: float
    first_line_is_header: bool
    signals: dict[str, float] = field(default_factory=dict)


def split_line(line: str) -> TokenizedLine:
    """Split a line with the delimiter that yields the most segments.

    Ties go to single-character delimiters, then to the earlier candidate.
    A line that no delimiter splits is returned as one segment.
    """
    text = line.strip()
    best: tuple[int, bool] | None = None
    best_segments = [text] if text else []
    best_name: str | None = None

    for delimiter in DELIMITERS:
        segments = [s.strip() for s in delimiter.pattern.split(text)]
        segments = [s for s in segments if s]
        if len(segments) < 2:
            continue
        rank = (len(segments), delimiter.single_char)
        if best is None or rank > best:
            best = rank
            best_segments = segments
            best_name = delimiter.name

    return TokenizedLine(text=text, segments=best_segments, delimiter=best_name)


class LineTokenizer:
    """Splits plain OCR lines into columns and scores table likelihood.

    Args:
        config: Tokenizer weights and thresholds.
    """

    def __init__(self, config: TokenizerConfig | None = None) -> None:
        self.config = config or TokenizerConfig()

    def tokenize(self, lines: list[str]) -> TokenizationResult:
        """Split every non-blank line and decide whether the text is a table.

        Args:
            lines: Physical text lines.

        Returns:
            Tokenization result; ``is_tabular`` is false for fewer than
            ``min_lines`` lines.
        """
        tokenized = [split_line(line) for line in lines if line.strip()]
        if not tokenized:
            return TokenizationResult([], 0.0, False, 0, 0.0, False)

        counts = [t.segment_count for t in tokenized]
        modal_count = self._modal_count(counts)
        total = len(tokenized)

        consistency = sum(1 for c in counts if abs(c - modal_count) <= 1) / total
        delimiter_ratio = sum(1 for t in tokenized if t.has_explicit_delimiter) / total
        numeric_ratio = sum(1 for t in tokenized if t.has_numbers) / total
        header = self._looks_like_header(tokenized[0])

        cfg = self.config
        score = (
            consistency * cfg.consistency_weight
            + delimiter_ratio * cfg.delimiter_weight
            + numeric_ratio * cfg.numeric_weight
            + (1.0 if header else 0.0) * cfg.header_weight
        )
        weight_total = (
            cfg.consistency_weight
            + cfg.delimiter_weight
            + cfg.numeric_weight
            + cfg.header_weight
        )
        score = min(1.0, max(0.0, score / weight_total)) if weight_total > 0 else 0.0

        is_tabular = (
            total >= cfg.min_lines
            and score > cfg.table_threshold
            and consistency >= cfg.min_consistency
            and modal_count > 1
        )

        logger.info(
            "Line tokenizer: %d lines, modal=%d, consistency=%.2f, score=%.2f, "
            "tabular=%s",
            total,
            modal_count,
            consistency,
            score,
            is_tabular,
        )
        return TokenizationResult(
            lines=tokenized,
            score=round(score, 4),
            is_tabular=is_tabular,
            modal_count=modal_count,
            consistency=consistency,
            first_line_is_header=header,
            signals={
                "consistency": consistency,
                "delimiters": delimiter_ratio,
                "numeric": numeric_ratio,
                "header": 1.0 if header else 0.0,
            },
        )

    @staticmethod
    def _modal_count(counts: list[int]) -> int:
        """Most common segment count; ties go to the larger count."""
        tally = Counter(counts)
        return max(tally.items(), key=lambda kv: (kv[1], kv[0]))[0]

    def _looks_like_header(self, line: TokenizedLine) -> bool:
        """Short, digit-free segments on a split line read as a header."""
        if line.segment_count < 2 or line.has_numbers:
            return False
        limit = self.config.header_max_segment_length
        return all(len(s) <= limit for s in line.segments)
