"""Tests for row classification."""

from docstruct.extraction.header_resolver import HeaderResolution
from docstruct.extraction.row_classifier import (
    RowClassifier,
    has_description_token,
    has_numeric_token,
)
from docstruct.models import Row, RowKind


class TestTokenHelpers:
    """Tests for the description and numeric token checks."""

    def test_description_token(self) -> None:
        assert has_description_token("PARACIP 650MG")
        assert not has_description_token("TAB 10 MG")

    def test_numeric_token(self) -> None:
        assert has_numeric_token(["Rs.120.50"])
        assert has_numeric_token(["CROCIN 2"])
        assert has_numeric_token(["12%"])
        assert not has_numeric_token(["B12X", "MG"])


class TestRowClassifier:
    """Tests for the RowClassifier class."""

    def setup_method(self) -> None:
        self.classifier = RowClassifier()

    def test_data_row(self) -> None:
        row = Row(("PARACIP 650MG TAB", "1*10", "22.84", "10"))
        assert self.classifier.classify_row(row) == RowKind.DATA

    def test_footer_rows(self) -> None:
        for cells in [
            ("Sub Total", "", "261.84"),
            ("Grand Total", "250.00"),
            ("Thank you, visit again",),
            ("E.&O.E",),
        ]:
            assert self.classifier.classify_row(Row(cells)) == RowKind.FOOTER, cells

    def test_too_few_cells_is_noise(self) -> None:
        assert self.classifier.classify_row(Row(("CROCIN", "45.50"))) == RowKind.NOISE

    def test_repeated_header(self) -> None:
        row = Row(("Product", "Qty", "Rate"))
        assert self.classifier.classify_row(row) == RowKind.HEADER

    def test_no_numbers_is_noise(self) -> None:
        row = Row(("Main", "Market", "Road"))
        assert self.classifier.classify_row(row) == RowKind.NOISE

    def test_classify_uses_header_block(self) -> None:
        rows = [
            Row(("APOLLO MEDICOSE", "Sector", "5")),
            Row(("Product", "Qty", "Amount")),
            Row(("CROCIN ADVANCE", "2", "91.00")),
            Row(("Grand Total", "", "91.00")),
        ]
        header = HeaderResolution(["Product", "Qty", "Amount"], [], 1, 1)
        kinds = [r.kind for r in self.classifier.classify(rows, header)]
        assert kinds == [RowKind.NOISE, RowKind.HEADER, RowKind.DATA, RowKind.FOOTER]

    def test_classify_without_header(self) -> None:
        rows = [Row(("CROCIN ADVANCE", "2", "91.00"))]
        header = HeaderResolution([], [], 0, 1)
        classified = self.classifier.classify(rows, header)
        assert classified[0].kind == RowKind.DATA
        assert rows[0].kind is None
