"""Header row detection, multi-line header merging, and label mapping.

Invoice tables often print their header across two or three physical lines
("Unit" above "Price"). The resolver finds the header anchor row, folds the
continuation lines into it column by column, and maps every merged label to
the canonical vocabulary through a keyword synonym table.
"""

import re
from dataclasses import dataclass, field

from docstruct.models import Row
from docstruct.utils.config import ClusteringConfig, HeaderConfig
from docstruct.utils.logger import get_logger

logger = get_logger(__name__)

# Checked in order; the first canonical field whose keyword is contained in
# the lowercased label wins. Specific keywords come before generic ones.
INVOICE_SYNONYMS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("SGST", ("sgst", "s.gst", "state gst")),
    ("CGST", ("cgst", "c.gst", "central gst")),
    ("HSN", ("hsn", "sac")),
    ("Batch", ("batch", "lot", "b.no")),
    ("MRP", ("mrp", "m.r.p", "max retail")),
    ("Rate", ("unit price", "unit cost", "rate", "price")),
    ("Amount", ("amount", "amt", "total", "value")),
    ("Qty", ("qty", "quantity", "units", "pcs")),
    ("Product", ("product", "item", "description", "particulars", "medicine", "name")),
)

_INCOMPLETE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^(prod|desc|quan|qua|amo|amt|tota|rat|bat|hsn|gst|uni|pri)$", re.I),
    re.compile(r"\w+\s*[/\\\-.&]\s*$"),
)

_CONTINUATION_PAIRS: tuple[tuple[re.Pattern[str], re.Pattern[str]], ...] = (
    (re.compile(r"product", re.I), re.compile(r"name|description", re.I)),
    (re.compile(r"unit", re.I), re.compile(r"price|rate|cost", re.I)),
    (re.compile(r"total", re.I), re.compile(r"amount|value", re.I)),
    (re.compile(r"hsn", re.I), re.compile(r"code", re.I)),
    (re.compile(r"gst", re.I), re.compile(r"rate|%|amt|amount", re.I)),
    (re.compile(r"batch", re.I), re.compile(r"no|number", re.I)),
)

_DIGIT = re.compile(r"\d")


@dataclass
class HeaderResolution:
    """Where the header sits and what its columns mean.

    ``header_row_count`` is 0 when no header was found; ``start_index`` is
    then the number of rows (nothing is skipped as preamble).
    """

    headers: list[str]
    labels: list[str]
    header_row_count: int
    start_index: int
    positions: list[float] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.header_row_count > 0

    @property
    def end_index(self) -> int:
        """Index of the first row after the header block."""
        return self.start_index + self.header_row_count

    @property
    def canonical_columns(self) -> list[str]:
        return [h for h in self.headers if not h.startswith("Column_")]


def map_label(
    label: str,
    synonyms: tuple[tuple[str, tuple[str, ...]], ...] = INVOICE_SYNONYMS,
) -> str | None:
    """Map a free-text header label to a canonical field, or ``None``."""
    text = " ".join(label.lower().split())
    if not text:
        return None
    for canonical, keywords in synonyms:
        if any(keyword in text for keyword in keywords):
            return canonical
    return None


def is_incomplete_label(text: str) -> bool:
    """Check whether a header cell looks cut off (truncated word, separator)."""
    return any(p.search(text.strip()) for p in _INCOMPLETE_PATTERNS)


def is_continuation(upper: str, lower: str) -> bool:
    """Check whether ``lower`` completes ``upper`` as a known label pair."""
    return any(a.search(upper) and b.search(lower) for a, b in _CONTINUATION_PAIRS)


class HeaderResolver:
    """Detects and canonicalizes table header rows.

    Args:
        config: Header merge tunables.
        clustering: Supplies the column tolerance for aligning cells of
            spatial rows.
        synonyms: Ordered synonym table of the document domain.
    """

    def __init__(
        self,
        config: HeaderConfig | None = None,
        clustering: ClusteringConfig | None = None,
        synonyms: tuple[tuple[str, tuple[str, ...]], ...] = INVOICE_SYNONYMS,
    ) -> None:
        self.config = config or HeaderConfig()
        self.column_tolerance = (clustering or ClusteringConfig()).column_tolerance
        self.synonyms = synonyms

    def header_hits(self, row: Row) -> int:
        """Number of distinct canonical columns a digit-free row names."""
        if _DIGIT.search(row.text):
            return 0
        mapped = {map_label(cell, self.synonyms) for cell in row.non_empty_cells}
        mapped.discard(None)
        return len(mapped)

    def looks_like_header(self, row: Row) -> bool:
        """A digit-free row naming enough distinct canonical columns."""
        return self.header_hits(row) >= self.config.min_header_hits

    def resolve(self, rows: list[Row]) -> HeaderResolution:
        """Find the header block in ``rows`` and map its labels.

        Every header-like row within the first ``search_window`` rows is a
        candidate anchor. The candidate whose merged block yields the most
        canonical columns wins; ties go to the earliest row.

        Args:
            rows: Rows in reading order.

        Returns:
            Header resolution. Rows before ``start_index`` are preamble.
        """
        best: HeaderResolution | None = None
        for index, row in enumerate(rows[: self.config.search_window]):
            if not self.looks_like_header(row):
                continue
            candidate = self._resolve_at(rows, index)
            if best is None or len(candidate.canonical_columns) > len(
                best.canonical_columns
            ):
                best = candidate

        if best is None:
            logger.debug("No header row found among %d rows", len(rows))
            return HeaderResolution([], [], 0, len(rows))

        logger.info(
            "Resolved header at row %d spanning %d rows: %s",
            best.start_index,
            best.header_row_count,
            best.headers,
        )
        return best

    def _resolve_at(self, rows: list[Row], anchor: int) -> HeaderResolution:
        """Merge continuation rows below ``anchor`` and map the labels."""
        header_row = rows[anchor]
        labels = list(header_row.cells)
        positions = list(header_row.positions)
        row_count = 1

        limit = min(self.config.max_header_rows, len(rows) - anchor)
        while row_count < limit:
            below = rows[anchor + row_count]
            if _DIGIT.search(below.text) or not self._merge_row(
                labels, positions, below
            ):
                break
            row_count += 1

        return HeaderResolution(
            headers=self._canonicalize(labels),
            labels=[" ".join(label.split()) for label in labels],
            header_row_count=row_count,
            start_index=anchor,
            positions=positions,
        )

    def _merge_row(self, labels: list[str], positions: list[float], below: Row) -> bool:
        """Fold continuation cells of ``below`` into ``labels`` in place.

        Returns:
            True when at least one label absorbed a cell from ``below``.
        """
        merged = False
        for index, upper in enumerate(labels):
            lower = self._aligned_cell(index, positions, below)
            if lower is None or not self._should_merge(upper, lower):
                continue
            labels[index] = f"{upper} {lower}".strip()
            merged = True
        return merged

    def _aligned_cell(
        self, index: int, positions: list[float], below: Row
    ) -> str | None:
        """Return the cell of ``below`` in the same column as header ``index``.

        Spatial rows align by x within the column tolerance; plain rows by
        column index.
        """
        if positions and below.positions:
            target = positions[index]
            best: tuple[float, str] | None = None
            for pos, cell in zip(below.positions, below.cells, strict=False):
                distance = abs(pos - target)
                if distance <= self.column_tolerance and (
                    best is None or distance < best[0]
                ):
                    best = (distance, cell)
            if best is None:
                return None
            return best[1].strip() or None

        if index < len(below.cells):
            return below.cells[index].strip() or None
        return None

    def _should_merge(self, upper: str, lower: str) -> bool:
        upper = upper.strip()
        return (
            len(upper) < self.config.merge_length_threshold
            or " " not in upper
            or is_incomplete_label(upper)
            or is_continuation(upper, lower)
        )

    def _canonicalize(self, labels: list[str]) -> list[str]:
        """Map labels to canonical fields; unmapped or repeated become placeholders."""
        headers: list[str] = []
        seen: set[str] = set()
        for index, label in enumerate(labels):
            canonical = map_label(label, self.synonyms)
            if canonical is None or canonical in seen:
                headers.append(f"Column_{index + 1}")
                continue
            seen.add(canonical)
            headers.append(canonical)
        return headers
