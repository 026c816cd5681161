"""Tests for anchor and regex based field extraction."""

import re

from docstruct.extraction.rule_extractor import (
    AnchorStrategy,
    ExtractedField,
    FallbackStrategy,
    LineKeywordStrategy,
    RegexStrategy,
    RuleExtractor,
    build_stop_pattern,
)

STOP = build_stop_pattern([r"ph\.?\s*no", r"age\b", r"date\b"])


class TestAnchorStrategy:
    """Tests for label anchored token reading."""

    def test_reads_tokens_after_label(self) -> None:
        strategy = AnchorStrategy(r"patient\s*name", max_tokens=3, stop_pattern=STOP)
        result = strategy.find(
            "patientName", "Patient Name: JOHN SMITH Ph.No. 9876543210"
        )
        assert isinstance(result, ExtractedField)
        assert result.value == "JOHN SMITH"
        assert result.extraction_method == "anchor"
        assert result.confidence == 0.9

    def test_max_tokens(self) -> None:
        strategy = AnchorStrategy(r"patient\s*name", max_tokens=2)
        result = strategy.find("p", "Patient Name - MARY ANN JONES")
        assert result is not None
        assert result.value == "MARY ANN"

    def test_stays_on_anchor_line(self) -> None:
        strategy = AnchorStrategy(r"invoice\s*no", max_tokens=3)
        result = strategy.find("invoiceNo", "Invoice No: 42\nDate 01/02/2024")
        assert result is not None
        assert result.value == "42"

    def test_strips_separator_junk(self) -> None:
        strategy = AnchorStrategy(r"bill\s*no", max_tokens=1)
        result = strategy.find("invoiceNo", "Bill No. #: |A-113|")
        assert result is not None
        assert result.value == "A-113"

    def test_validator_moves_to_next_occurrence(self) -> None:
        strategy = AnchorStrategy(
            r"invoice", max_tokens=1, validator=lambda v: any(c.isdigit() for c in v)
        )
        result = strategy.find("invoiceNo", "TAX INVOICE\nInvoice: 7781")
        assert result is not None
        assert result.value == "7781"

    def test_label_without_value(self) -> None:
        strategy = AnchorStrategy(r"patient\s*name", max_tokens=2)
        assert strategy.find("p", "Patient Name:\nJOHN") is None

    def test_missing_label(self) -> None:
        strategy = AnchorStrategy(r"patient\s*name")
        assert strategy.find("p", "no labels here") is None


class TestRegexStrategy:
    """Tests for whole-text regex search."""

    def test_capture_group(self) -> None:
        strategy = RegexStrategy(r"grand\s*total[\s:]*([\d.]+)")
        result = strategy.find("grandTotal", "Grand Total: 250.00")
        assert result is not None
        assert result.value == "250.00"
        assert result.extraction_method == "regex"

    def test_transform(self) -> None:
        strategy = RegexStrategy(r"name:\s*([^\n]+)", transform=str.title)
        result = strategy.find("name", "name: john   smith")
        assert result is not None
        assert result.value == "John   Smith"

    def test_case_sensitive_flags(self) -> None:
        strategy = RegexStrategy(r"([A-Z]{5}\d{4}[A-Z])", flags=0)
        assert strategy.find("pan", "pan abcde1234f") is None

    def test_find_all_deduplicates(self) -> None:
        strategy = RegexStrategy(r"(?<!\d)(\d{10})(?!\d)")
        text = "Ph 9876543210, 9123456780 or 9876543210; GST 123"
        assert strategy.find_all(text) == ["9876543210", "9123456780"]


class TestLineKeywordStrategy:
    """Tests for keyword line lookup."""

    def test_first_matching_line(self) -> None:
        strategy = LineKeywordStrategy(["medicose", "pharmacy"])
        text = "TAX INVOICE\nAPOLLO MEDICOSE\nCITY PHARMACY"
        result = strategy.find("shopName", text)
        assert result is not None
        assert result.value == "APOLLO MEDICOSE"
        assert result.start_pos == len("TAX INVOICE\n")

    def test_max_words(self) -> None:
        strategy = LineKeywordStrategy(["road"], max_words=3)
        result = strategy.find("address", "12 Main Market Road Sector 5")
        assert result is not None
        assert result.value == "12 Main Market"


class TestRuleExtractor:
    """Tests for the strategy dispatch loop."""

    def test_first_strategy_wins(self) -> None:
        extractor = RuleExtractor(
            {
                "invoiceNo": [
                    AnchorStrategy(r"invoice\s*no", name="anchor"),
                    RegexStrategy(r"(\d+)", name="digits"),
                ]
            }
        )
        result = extractor.extract("Invoice No: INV-7 total 99")
        assert result.values == {"invoiceNo": "INV-7"}
        assert result.sources == {"invoiceNo": "anchor"}

    def test_falls_through_to_next_strategy(self) -> None:
        extractor = RuleExtractor(
            {
                "invoiceNo": [
                    AnchorStrategy(r"invoice\s*no"),
                    RegexStrategy(r"\b(INV-\d+)", name="pattern"),
                ]
            }
        )
        result = extractor.extract("Bill INV-7")
        assert result.values == {"invoiceNo": "INV-7"}
        assert result.sources == {"invoiceNo": "pattern"}

    def test_unresolved_fields_are_absent(self) -> None:
        extractor = RuleExtractor({"date": [RegexStrategy(r"(\d{2}/\d{2}/\d{4})")]})
        assert extractor.extract("no date").fields == {}

    def test_fallback_strategy_appended(self) -> None:
        extractor = RuleExtractor(
            {"shopName": [LineKeywordStrategy(["pharmacy"]), FallbackStrategy("N/A")]}
        )
        result = extractor.extract("nothing relevant")
        assert result.values == {"shopName": "N/A"}
        assert result.sources == {"shopName": "fallback"}

    def test_subset_of_fields(self) -> None:
        extractor = RuleExtractor(
            {
                "a": [FallbackStrategy("1")],
                "b": [FallbackStrategy("2")],
            }
        )
        assert extractor.extract("", fields=["b"]).values == {"b": "2"}

    def test_stop_pattern_is_case_insensitive(self) -> None:
        assert STOP.match("PH.NO 123")
        assert STOP.flags & re.IGNORECASE
