"""Tests for delimiter-based line tokenization."""

from docstruct.extraction.line_tokenizer import LineTokenizer, split_line
from docstruct.utils.config import TokenizerConfig


class TestSplitLine:
    """Tests for choosing a delimiter per line."""

    def test_pipe(self) -> None:
        line = split_line("DOLO 650 | B12 | 10 | 30.00")
        assert line.segments == ["DOLO 650", "B12", "10", "30.00"]
        assert line.delimiter == "pipe"
        assert line.has_explicit_delimiter

    def test_tab(self) -> None:
        line = split_line("CROCIN\t2\t45.50")
        assert line.segments == ["CROCIN", "2", "45.50"]
        assert line.delimiter == "tab"

    def test_double_space(self) -> None:
        line = split_line("PARACIP 650MG TAB   10   22.84")
        assert line.segments == ["PARACIP 650MG TAB", "10", "22.84"]
        assert line.delimiter == "double_space"

    def test_most_segments_wins(self) -> None:
        line = split_line("A | B  C  D  E")
        assert line.delimiter == "double_space"
        assert line.segment_count == 4

    def test_single_char_wins_ties(self) -> None:
        line = split_line("A | B  C")
        assert line.delimiter == "pipe"

    def test_unsplit_line(self) -> None:
        line = split_line("Thank you for shopping")
        assert line.segments == ["Thank you for shopping"]
        assert line.delimiter is None


class TestLineTokenizer:
    """Tests for table likelihood scoring."""

    def setup_method(self) -> None:
        self.tokenizer = LineTokenizer()

    def test_pipe_table_is_tabular(self, pipe_invoice_text: str) -> None:
        result = self.tokenizer.tokenize(pipe_invoice_text.splitlines())
        assert result.is_tabular
        assert result.score > 0.4
        assert result.modal_count == 5
        assert result.consistency == 1.0
        assert result.first_line_is_header

    def test_prose_is_not_tabular(self) -> None:
        lines = [
            "Thank you for shopping with us",
            "Please visit again",
            "Goods once sold will not be taken back",
        ]
        result = self.tokenizer.tokenize(lines)
        assert not result.is_tabular
        assert result.modal_count == 1

    def test_single_line_is_not_tabular(self) -> None:
        result = self.tokenizer.tokenize(["A | B | C"])
        assert not result.is_tabular

    def test_empty_input(self) -> None:
        result = self.tokenizer.tokenize(["", "   "])
        assert result.lines == []
        assert result.score == 0.0
        assert not result.is_tabular

    def test_score_bounded(self) -> None:
        lines = ["Qty | Rate", "1 | 2.00", "3 | 4.00"]
        result = self.tokenizer.tokenize(lines)
        assert 0.0 <= result.score <= 1.0

    def test_threshold_configurable(self) -> None:
        tokenizer = LineTokenizer(TokenizerConfig(table_threshold=0.99))
        lines = ["CROCIN  2  45.50", "DOLO  1  30.00"]
        assert not tokenizer.tokenize(lines).is_tabular

    def test_modal_count_ties_prefer_larger(self) -> None:
        assert LineTokenizer._modal_count([3, 3, 5, 5]) == 5
