"""Document type detection by keyword templates.

Each template lists keyword groups; a document matches a template when
every group has at least ``min_matches`` of its keywords present in the
text. Templates are tried in file order and the first match wins.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from docstruct.models import DocumentType
from docstruct.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TEMPLATES: dict[str, dict] = {
    "payslip": {
        "keyword_groups": [
            {
                "keywords": [
                    "payslip",
                    "pay slip",
                    "salary",
                    "employee",
                    "earnings",
                    "deductions",
                    "basic",
                    "allowance",
                    "pf",
                    "income tax",
                    "net salary",
                    "net pay",
                    "payable days",
                    "paid days",
                    "joining date",
                    "employee code",
                ],
                "min_matches": 3,
            }
        ]
    },
    "medical_bill": {
        "keyword_groups": [
            {
                "keywords": [
                    "medical",
                    "medicine",
                    "medicose",
                    "pharmacy",
                    "pharmacist",
                    "chemist",
                    "prescription",
                    "prescribed",
                    "doctor",
                    "dr.",
                    "patient",
                    "clinic",
                    "hospital",
                ],
                "min_matches": 2,
            },
            {
                "keywords": [
                    "invoice",
                    "bill",
                    "receipt",
                    "total",
                    "amount",
                    "discount",
                    "gst",
                    "round off",
                ],
                "min_matches": 1,
            },
        ]
    },
}


@dataclass
class TemplateMatch:
    """Result of matching a document against known templates."""

    template_name: str
    confidence: float
    matched_keywords: list[str]


def _contains(text: str, keyword: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(keyword)}(?!\w)", text) is not None


class DocumentClassifier:
    """Detects the document type of OCR text from keyword templates.

    Args:
        templates: Template definitions keyed by name, as parsed from the
            templates file. The built-in templates are used when omitted
            or empty.
    """

    def __init__(self, templates: Mapping[str, Any] | None = None) -> None:
        if templates:
            self.templates = dict(templates)
            logger.debug("Using %d configured templates", len(self.templates))
        else:
            self.templates = DEFAULT_TEMPLATES

    def match_template(self, text: str) -> TemplateMatch | None:
        """Find the first template whose keyword groups are all satisfied.

        Args:
            text: OCR text from the document.

        Returns:
            The matching template, or ``None`` when nothing matches.
        """
        lowered = text.lower()
        for name, template in self.templates.items():
            groups = template.get("keyword_groups", [])
            if not groups:
                continue

            matched: list[str] = []
            ratios: list[float] = []
            satisfied = True
            for group in groups:
                keywords = [k.lower() for k in group.get("keywords", [])]
                hits = [k for k in keywords if _contains(lowered, k)]
                if len(hits) < group.get("min_matches", 1):
                    satisfied = False
                    break
                matched.extend(hits)
                ratios.append(len(hits) / len(keywords))

            if satisfied:
                confidence = round(sum(ratios) / len(ratios), 3)
                logger.info(
                    "Matched template '%s' (confidence=%.2f)", name, confidence
                )
                return TemplateMatch(name, confidence, matched)
        return None

    def classify(self, text: str) -> DocumentType:
        """Return the document type of ``text``, defaulting to invoice."""
        match = self.match_template(text)
        if match is None:
            return DocumentType.INVOICE
        try:
            return DocumentType(match.template_name)
        except ValueError:
            logger.warning(
                "Template '%s' is not a known document type, using invoice",
                match.template_name,
            )
            return DocumentType.INVOICE
