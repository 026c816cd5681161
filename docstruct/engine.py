"""Entry point of the structuring engine.

:func:`extract` turns one OCR result into either an :class:`ExtractedTable`
(invoice line items) or an :class:`ExtractedDocument` (medical bill,
payslip). The engine keeps no state between calls.
"""

from collections.abc import Mapping
from functools import lru_cache
from typing import Any

from docstruct.domains.base import DomainExtractor
from docstruct.domains.medical_bill import MedicalBillExtractor
from docstruct.domains.payslip import PayslipExtractor
from docstruct.extraction.table_extractor import TableExtractor
from docstruct.extraction.template_matcher import DocumentClassifier
from docstruct.models import (
    VOCABULARY_VERSION,
    DocumentType,
    ExtractedDocument,
    ExtractedTable,
    ParsingMethod,
)
from docstruct.ocr.fragments import (
    SpatialResult,
    TextFragment,
    parse_fragments,
    spatial_result_from_mapping,
)
from docstruct.ocr.layout_analyzer import BlockClusterer
from docstruct.utils.config import AppConfig
from docstruct.utils.logger import get_logger
from docstruct.validation.rules_engine import RulesEngine

logger = get_logger(__name__)

OcrOutput = str | SpatialResult | Mapping[str, Any] | list


def to_spatial_result(ocr_output: OcrOutput) -> str | SpatialResult:
    """Coerce the accepted input shapes to raw text or a spatial result.

    Raises:
        TypeError: If the input is none of the accepted shapes.
    """
    if isinstance(ocr_output, (str, SpatialResult)):
        return ocr_output
    if isinstance(ocr_output, Mapping):
        return spatial_result_from_mapping(ocr_output)
    if isinstance(ocr_output, (list, tuple)):
        fragments, dropped = parse_fragments(ocr_output)
        return SpatialResult(fragments=tuple(fragments), dropped_fragments=dropped)
    raise TypeError(
        "OCR output must be str, SpatialResult, mapping or list of fragments, "
        f"got {type(ocr_output).__name__}"
    )


class StructuringEngine:
    """Dispatches OCR output to the table pipeline or a domain extractor.

    Args:
        config: Engine configuration. Defaults are used when omitted.
    """

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config or AppConfig()
        self.tables = TableExtractor(self.config)
        self.classifier = DocumentClassifier(self.config.classification.templates)
        self.clusterer = BlockClusterer(self.config.clustering)
        rules = RulesEngine(self.config.validation.rules)
        self.domains: dict[DocumentType, DomainExtractor] = {
            DocumentType.MEDICAL_BILL: MedicalBillExtractor(
                self.config, rules_engine=rules
            ),
            DocumentType.PAYSLIP: PayslipExtractor(self.config, rules_engine=rules),
        }

    def extract(
        self,
        ocr_output: OcrOutput,
        document_type: DocumentType | str = DocumentType.AUTO,
    ) -> ExtractedTable | ExtractedDocument:
        """Structure one OCR result.

        Args:
            ocr_output: Raw text, a :class:`SpatialResult`, a
                ``{"fullText", "fragments"}`` mapping or a list of fragments.
            document_type: ``invoice``, ``medical_bill``, ``payslip`` or
                ``auto`` to detect it from the text.

        Returns:
            A table for invoices, a flat document for the other types.
            Empty input yields a zero-confidence empty result.

        Raises:
            TypeError: If ``ocr_output`` has an unsupported type.
            ValueError: If ``document_type`` is unknown.
        """
        doc_type = DocumentType(document_type)
        source = to_spatial_result(ocr_output)
        text = self._text_of(source)

        if doc_type == DocumentType.AUTO:
            if text.strip():
                doc_type = self.classifier.classify(text)
            else:
                doc_type = DocumentType.INVOICE
            logger.info("Detected document type: %s", doc_type.value)

        if doc_type == DocumentType.INVOICE:
            if isinstance(source, SpatialResult):
                return self.tables.extract_spatial(source)
            return self.tables.extract_text(source)

        if not text.strip():
            return self._empty_document(doc_type)
        return self.domains[doc_type].extract(text)

    def _text_of(self, source: str | SpatialResult) -> str:
        """Plain text of the input, rebuilt from fragments when needed."""
        if isinstance(source, str):
            return source
        if source.full_text.strip() or not source.fragments:
            return source.full_text
        return self._fragments_text(list(source.fragments))

    def _fragments_text(self, fragments: list[TextFragment]) -> str:
        rows = self.clusterer.cluster(fragments)
        return "\n".join(row.text for row in rows)

    def _empty_document(self, doc_type: DocumentType) -> ExtractedDocument:
        extractor = self.domains[doc_type]
        return ExtractedDocument(
            fields={name: extractor.empty_value(name) for name in extractor.fields},
            confidence=0.0,
            metadata={
                "parsingMethod": ParsingMethod.ANCHOR_EXTRACTION.value,
                "documentType": doc_type.value,
                "fieldSources": {},
                "isValid": False,
                "errors": ["Empty OCR input"],
                "warnings": [],
                "vocabularyVersion": VOCABULARY_VERSION,
            },
        )


@lru_cache(maxsize=1)
def default_engine() -> StructuringEngine:
    """Engine with default configuration, built once and reused."""
    return StructuringEngine()


def extract(
    ocr_output: OcrOutput,
    document_type: DocumentType | str = DocumentType.AUTO,
    config: AppConfig | None = None,
) -> ExtractedTable | ExtractedDocument:
    """Structure one OCR result.

    Without a config the shared :func:`default_engine` is used; otherwise
    an engine is built for ``config``. See :meth:`StructuringEngine.extract`.
    """
    engine = default_engine() if config is None else StructuringEngine(config)
    return engine.extract(ocr_output, document_type)
