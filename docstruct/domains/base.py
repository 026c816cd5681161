"""Shared pipeline for anchor-based domain extractors."""

from collections.abc import Mapping
from typing import Any

from docstruct.extraction.confidence import ConfidenceScorer
from docstruct.extraction.normalizer import TextNormalizer
from docstruct.extraction.rule_extractor import (
    ExtractionResult,
    ExtractionStrategy,
    RuleExtractor,
)
from docstruct.models import (
    VOCABULARY_VERSION,
    DocumentType,
    ExtractedDocument,
    ParsingMethod,
)
from docstruct.utils.config import AppConfig
from docstruct.utils.logger import get_logger
from docstruct.validation.rules_engine import RulesEngine

logger = get_logger(__name__)


def parse_number(value: str) -> float:
    """Parse ``"1,234.50"`` style amounts; unparseable text gives 0."""
    cleaned = value.replace(",", "").strip()
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


class DomainExtractor:
    """Base class: normalize, run the strategy chains, validate, score.

    Subclasses define the field vocabulary, default strategies, numeric
    fields, confidence weights and any extra post-processing.

    Args:
        config: Engine configuration.
        strategies: Per-field strategy chains replacing the defaults.
        rules_engine: Validation engine; built from config when omitted.
    """

    document_type: DocumentType
    fields: tuple[str, ...] = ()
    numeric_fields: frozenset[str] = frozenset()
    list_fields: frozenset[str] = frozenset()
    confidence_weights: Mapping[str, float] = {}

    def __init__(
        self,
        config: AppConfig | None = None,
        strategies: Mapping[str, list[ExtractionStrategy]] | None = None,
        rules_engine: RulesEngine | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.normalizer = TextNormalizer()
        self.extractor = RuleExtractor(
            strategies if strategies is not None else self.default_strategies()
        )
        self.rules_engine = rules_engine or RulesEngine(self.config.validation.rules)

    def default_strategies(self) -> dict[str, list[ExtractionStrategy]]:
        raise NotImplementedError

    def empty_value(self, name: str) -> Any:
        if name in self.list_fields:
            return []
        if name in self.numeric_fields:
            return 0
        return ""

    def extract(self, text: str) -> ExtractedDocument:
        """Extract the domain fields from OCR text.

        Args:
            text: Raw OCR text; it is normalized first.

        Returns:
            The extracted document. Unresolved fields hold empty values.
        """
        if not isinstance(text, str):
            raise TypeError(f"Expected str, got {type(text).__name__}")

        normalized = self.normalizer.normalize(text)
        result = self.extractor.extract(normalized)

        fields: dict[str, Any] = {name: self.empty_value(name) for name in self.fields}
        for name, extracted in result.fields.items():
            if name in self.numeric_fields:
                fields[name] = parse_number(extracted.value)
            else:
                fields[name] = extracted.value

        sources = result.sources
        items = self.post_process(normalized, fields, sources)

        scoring = dict(fields)
        scoring["items"] = items
        scoring.update(self.extra_scoring(fields, items))
        confidence = ConfidenceScorer.score_fields(scoring, self.confidence_weights)

        report = self.rules_engine.validate(
            scoring,
            self.document_type.value,
            field_confidences=self._field_confidences(result),
        )

        logger.info(
            "Extracted %s: %d/%d fields, %d items (confidence=%.1f)",
            self.document_type.value,
            len(sources),
            len(self.fields),
            len(items),
            confidence,
        )
        return ExtractedDocument(
            fields=fields,
            confidence=confidence,
            items=items,
            metadata={
                "parsingMethod": ParsingMethod.ANCHOR_EXTRACTION.value,
                "documentType": self.document_type.value,
                "fieldSources": sources,
                "fieldConfidences": report.field_confidences,
                "isValid": report.is_valid,
                "errors": report.errors,
                "warnings": report.warnings,
                "vocabularyVersion": VOCABULARY_VERSION,
            },
        )

    def post_process(
        self, text: str, fields: dict[str, Any], sources: dict[str, str]
    ) -> list[dict[str, Any]]:
        """Fill derived fields in place and return the item rows."""
        return []

    def extra_scoring(
        self, fields: dict[str, Any], items: list[dict[str, Any]]
    ) -> dict[str, Any]:
        """Synthetic values that only exist for confidence weighting."""
        return {}

    @staticmethod
    def _field_confidences(result: ExtractionResult) -> dict[str, float]:
        return {name: f.confidence for name, f in result.fields.items()}
