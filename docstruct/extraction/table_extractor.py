"""Invoice line-item table reconstruction.

Two paths feed the same header/classify/map/score pipeline:

* the spatial path clusters positioned fragments into rows, and
* the line-tokenized path splits plain text lines on delimiters when no
  positions are available, bailing out to a flat line list when the text
  does not look tabular.
"""

import dataclasses
from typing import Any

from docstruct.models import (
    INVOICE_FIELDS,
    VOCABULARY_VERSION,
    ExtractedTable,
    ParsingMethod,
    Row,
    RowKind,
)
from docstruct.ocr.fragments import SpatialResult
from docstruct.ocr.layout_analyzer import BlockClusterer
from docstruct.utils.config import AppConfig
from docstruct.utils.logger import get_logger

from .confidence import ConfidenceScorer
from .field_mapper import FieldMapper
from .header_resolver import HeaderResolver
from .line_tokenizer import LineTokenizer
from .normalizer import TextNormalizer
from .row_classifier import RowClassifier

logger = get_logger(__name__)


def empty_table(method: ParsingMethod, **metadata: Any) -> ExtractedTable:
    """Zero-confidence table with no headers and no rows."""
    meta: dict[str, Any] = {
        "parsingMethod": method.value,
        "headerRowCount": 0,
        "detectedHeaders": [],
        "vocabularyVersion": VOCABULARY_VERSION,
    }
    meta.update(metadata)
    return ExtractedTable(headers=[], rows=[], confidence=0.0, metadata=meta)


def summarize_items(rows: list[dict[str, Any]]) -> dict[str, Any]:
    """Invoice-level summary of the mapped line items."""
    amounts = [r.get("Amount") for r in rows]
    return {
        "totalItems": len(rows),
        "hasBatchNumbers": any(r.get("Batch") for r in rows),
        "hasHSNCodes": any(r.get("HSN") for r in rows),
        "totalAmount": round(
            sum(a for a in amounts if isinstance(a, (int, float))), 2
        ),
    }


class TableExtractor:
    """Builds an :class:`ExtractedTable` from spatial or plain OCR output.

    Args:
        config: Engine configuration. Defaults are used when omitted.
    """

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config or AppConfig()
        self.normalizer = TextNormalizer()
        self.line_normalizer = TextNormalizer(collapse_whitespace=False)
        self.clusterer = BlockClusterer(self.config.clustering)
        self.tokenizer = LineTokenizer(self.config.tokenizer)
        self.header_resolver = HeaderResolver(
            self.config.header, self.config.clustering
        )
        self.classifier = RowClassifier(self.config.classifier, self.header_resolver)
        self.mapper = FieldMapper()
        self.scorer = ConfidenceScorer(self.config.scoring)

    def extract_spatial(self, result: SpatialResult) -> ExtractedTable:
        """Reconstruct the table from positioned fragments.

        When no fragment survives validation the full text, if any, is
        handed to the line-tokenized path instead.
        """
        if not result.fragments:
            if result.full_text.strip():
                logger.info("No usable fragments, falling back to line tokenizer")
                table = self.extract_text(result.full_text)
                table.metadata["droppedFragments"] = result.dropped_fragments
                return table
            return empty_table(
                ParsingMethod.SPATIAL, droppedFragments=result.dropped_fragments
            )

        fragments = [
            dataclasses.replace(f, text=self.normalizer.normalize(f.text))
            for f in result.fragments
        ]
        fragments = [f for f in fragments if f.text.strip()]
        rows = self.clusterer.cluster(fragments)

        table = self._build_table(rows, ParsingMethod.SPATIAL)
        table.metadata["droppedFragments"] = result.dropped_fragments
        table.metadata["rowsClustered"] = len(rows)
        return table

    def extract_text(self, text: str) -> ExtractedTable:
        """Reconstruct the table from plain text lines.

        Returns:
            The table, or a non-tabular result (no rows, ``lines``
            populated, ``metadata.tabular`` false) when the text does not
            look like a table.
        """
        normalized = self.line_normalizer.normalize(text)
        raw_lines = normalized.splitlines()
        lines = [self.normalizer.normalize(line).strip() for line in raw_lines]
        lines = [line for line in lines if line]
        if not lines:
            return empty_table(ParsingMethod.LINE_TOKENIZED)

        tokenization = self.tokenizer.tokenize(raw_lines)
        if not tokenization.is_tabular:
            logger.info(
                "Text is not tabular (score=%.2f), returning line list",
                tokenization.score,
            )
            table = empty_table(
                ParsingMethod.LINE_TOKENIZED,
                tabular=False,
                tableLikelihood=tokenization.score,
            )
            table.lines = lines
            return table

        rows = [
            Row(cells=tuple(self.normalizer.normalize(s) for s in t.segments))
            for t in tokenization.lines
        ]
        table = self._build_table(rows, ParsingMethod.LINE_TOKENIZED)
        table.lines = lines
        table.metadata["tableLikelihood"] = tokenization.score
        table.metadata["modalSegmentCount"] = tokenization.modal_count
        return table

    def _build_table(self, rows: list[Row], method: ParsingMethod) -> ExtractedTable:
        header = self.header_resolver.resolve(rows)
        classified = self.classifier.classify(rows, header)

        headers = header.canonical_columns or list(INVOICE_FIELDS)
        data_rows = [r for r in classified if r.kind == RowKind.DATA]
        mapped = [self.mapper.map_row(r, headers) for r in data_rows]
        confidence = self.scorer.score_table(mapped, headers)

        kinds = {kind.value: 0 for kind in RowKind}
        for row in classified:
            kinds[row.kind.value] += 1

        metadata: dict[str, Any] = {
            "parsingMethod": method.value,
            "tabular": True,
            "headerRowCount": header.header_row_count,
            "detectedHeaders": header.headers,
            "headerLabels": header.labels,
            "rowKinds": kinds,
            "vocabularyVersion": VOCABULARY_VERSION,
        }
        metadata.update(summarize_items(mapped))

        logger.info(
            "Extracted %d line items via %s (confidence=%.1f)",
            len(mapped),
            method.value,
            confidence,
        )
        return ExtractedTable(
            headers=list(headers),
            rows=mapped,
            confidence=confidence,
            metadata=metadata,
            lines=[r.text for r in classified],
        )

