"""Row classification into header, data, footer and noise rows."""

import dataclasses
import re

from docstruct.models import Row, RowKind
from docstruct.utils.config import ClassifierConfig
from docstruct.utils.logger import get_logger

from .header_resolver import HeaderResolution, HeaderResolver

logger = get_logger(__name__)

FOOTER_PATTERN = re.compile(
    r"\b(sub\s*total|grand\s*total|total|net\s+amount|round\s*off|less\s+discount"
    r"|thank\s*you|thanks|terms|conditions|signature|signatory|authori[sz]ed"
    r"|amount\s+in\s+words|e\.\s*&\s*o\.?\s*e)\b",
    re.IGNORECASE,
)

_NUMERIC_TOKEN = re.compile(
    r"^(?:[₹$€£]|rs\.?|inr)?\s*\d[\d,]*(?:\.\d+)?%?$", re.I
)


def has_description_token(text: str, min_length: int = 4) -> bool:
    """Check for an alphabetic token long enough to describe an item."""
    return any(len(m.group(0)) >= min_length for m in re.finditer(r"[A-Za-z]+", text))


def has_numeric_token(cells: list[str]) -> bool:
    """Check for a number or currency amount among cells or their words."""
    for cell in cells:
        if _NUMERIC_TOKEN.match(cell.strip()):
            return True
        if any(_NUMERIC_TOKEN.match(word) for word in cell.split()):
            return True
    return False


class RowClassifier:
    """Labels rows relative to a resolved header block.

    Args:
        config: Classifier thresholds.
        header_resolver: Used to recognize headers repeated after a page
            break.
    """

    def __init__(
        self,
        config: ClassifierConfig | None = None,
        header_resolver: HeaderResolver | None = None,
    ) -> None:
        self.config = config or ClassifierConfig()
        self.header_resolver = header_resolver or HeaderResolver()

    def classify_row(self, row: Row) -> RowKind:
        """Classify a row that follows the header block."""
        text = row.text
        if FOOTER_PATTERN.search(text):
            return RowKind.FOOTER

        cells = row.non_empty_cells
        if len(cells) < self.config.min_data_cells:
            return RowKind.NOISE

        if self.header_resolver.looks_like_header(row):
            return RowKind.HEADER

        if has_description_token(
            text, self.config.min_description_length
        ) and has_numeric_token(cells):
            return RowKind.DATA
        return RowKind.NOISE

    def classify(self, rows: list[Row], header: HeaderResolution) -> list[Row]:
        """Return new rows tagged with their kind.

        Rows inside the header block are headers, rows before it are noise
        (titles, addresses), and the rest go through :meth:`classify_row`.
        When no header was found every row is classified on its own.
        """
        start = header.start_index if header.found else 0
        end = header.end_index if header.found else 0

        classified: list[Row] = []
        for index, row in enumerate(rows):
            if index < start:
                kind = RowKind.NOISE
            elif index < end:
                kind = RowKind.HEADER
            else:
                kind = self.classify_row(row)
            classified.append(dataclasses.replace(row, kind=kind))

        counts = {kind.value: 0 for kind in RowKind}
        for row in classified:
            counts[row.kind.value] += 1
        logger.debug("Row classification: %s", counts)
        return classified
