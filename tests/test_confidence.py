"""Tests for confidence scoring."""

import pytest

from docstruct.extraction.confidence import ConfidenceScorer, is_filled
from docstruct.models import INVOICE_FIELDS
from docstruct.utils.config import ScoringConfig

FULL_ROW = {
    "Product": "PARACIP 650MG TAB",
    "Batch": "B1234",
    "HSN": "30049099",
    "Qty": 10,
    "MRP": 22.84,
    "Rate": 20.5,
    "Amount": 205.0,
    "SGST": 6.0,
    "CGST": 6.0,
}


class TestIsFilled:
    """Tests for the emptiness check."""

    def test_values(self) -> None:
        assert is_filled("CROCIN")
        assert is_filled(3)
        assert is_filled(["9876543210"])
        assert is_filled(True)
        assert not is_filled("  ")
        assert not is_filled(0)
        assert not is_filled(0.0)
        assert not is_filled([])
        assert not is_filled(None)


class TestConfidenceScorer:
    """Tests for the ConfidenceScorer class."""

    def setup_method(self) -> None:
        self.scorer = ConfidenceScorer()

    def test_possible_points(self) -> None:
        assert self.scorer.possible_points(INVOICE_FIELDS) == 115
        assert self.scorer.possible_points(["Product", "Qty"]) == 25

    def test_full_row_scores_100(self) -> None:
        assert self.scorer.score_row(FULL_ROW) == pytest.approx(100.0)

    def test_empty_row_scores_zero(self) -> None:
        row = {name: "" for name in INVOICE_FIELDS}
        assert self.scorer.score_row(row) == 0.0

    def test_partial_row(self) -> None:
        row = {"Product": "PARACIP 650MG TAB", "MRP": 22.84, "Qty": 10}
        assert self.scorer.score_row(row) == pytest.approx(40 / 115 * 100)

    def test_short_product_gets_no_bonus(self) -> None:
        score = self.scorer.score_row({"Product": "DOLO"}, ["Product"])
        assert score == pytest.approx(10 / 15 * 100)

    def test_only_present_columns_count(self) -> None:
        row = {"Product": "CROCIN ADVANCE", "Rate": 45.5, "Amount": 91.0}
        assert self.scorer.score_row(row, ["Product", "Rate", "Amount"]) == 100.0

    def test_table_is_mean_of_rows(self) -> None:
        rows = [FULL_ROW, {name: "" for name in INVOICE_FIELDS}]
        assert self.scorer.score_table(rows) == 50.0

    def test_empty_table(self) -> None:
        assert self.scorer.score_table([]) == 0.0

    def test_configurable_points(self) -> None:
        scorer = ConfidenceScorer(ScoringConfig(field_points=1, bonus_points=0))
        assert scorer.possible_points(INVOICE_FIELDS) == 9


class TestScoreFields:
    """Tests for weighted field completeness."""

    def test_weighted(self) -> None:
        fields = {"invoiceNo": "INV-1", "grandTotal": 0, "items": [{"qty": 1}]}
        weights = {"invoiceNo": 10, "grandTotal": 15, "items": 25}
        assert ConfidenceScorer.score_fields(fields, weights) == 70.0

    def test_no_weights(self) -> None:
        assert ConfidenceScorer.score_fields({"a": 1}, {}) == 0.0
