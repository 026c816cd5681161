"""Tests for the batch processing CLI and CSV export."""

import csv
import json
from pathlib import Path
from unittest.mock import ANY, MagicMock, patch

import pytest

from docstruct.cli import (
    _find_documents,
    _print_summary,
    _write_csv,
    extract_single,
    load_ocr_output,
    main,
    process_folder,
    run_benchmark,
)
from docstruct.utils.config import AppConfig


def _write_inputs(folder: Path, medical_bill_text: str, payslip_text: str) -> None:
    (folder / "bill.txt").write_text(medical_bill_text, encoding="utf-8")
    (folder / "slip.txt").write_text(payslip_text, encoding="utf-8")


class TestFindDocuments:
    """Tests for OCR result discovery."""

    def test_find_text_and_json(self, tmp_path: Path) -> None:
        (tmp_path / "a.txt").touch()
        (tmp_path / "b.json").touch()
        (tmp_path / "scan.png").touch()
        files = _find_documents(tmp_path)
        assert [f.name for f in files] == ["a.txt", "b.json"]

    def test_find_uppercase_extensions(self, tmp_path: Path) -> None:
        (tmp_path / "DOC.TXT").touch()
        assert len(_find_documents(tmp_path)) == 1

    def test_find_no_documents(self, tmp_path: Path) -> None:
        (tmp_path / "scan.pdf").touch()
        assert _find_documents(tmp_path) == []


class TestLoadOcrOutput:
    """Tests for reading OCR result files."""

    def test_text_file(self, tmp_path: Path) -> None:
        path = tmp_path / "ocr.txt"
        path.write_text("Grand Total 250.00", encoding="utf-8")
        assert load_ocr_output(path) == "Grand Total 250.00"

    def test_json_file(self, tmp_path: Path) -> None:
        payload = {"fullText": "", "fragments": [{"text": "A", "x": 1, "y": 2}]}
        path = tmp_path / "ocr.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        assert load_ocr_output(path) == payload


class TestWriteCsv:
    """Tests for CSV writing."""

    def test_write_csv_content(self, tmp_path: Path) -> None:
        results = [
            {
                "filename": "bill.txt",
                "status": "success",
                "error": None,
                "invoiceNo": "INV-1",
            }
        ]
        output = tmp_path / "results.csv"
        _write_csv(results, output)

        with open(output) as f:
            rows = list(csv.DictReader(f))
        assert rows[0]["filename"] == "bill.txt"
        assert rows[0]["invoiceNo"] == "INV-1"

    def test_write_csv_empty_results(self, tmp_path: Path) -> None:
        output = tmp_path / "results.csv"
        _write_csv([], output)
        assert not output.exists()

    def test_meta_columns_first(self, tmp_path: Path) -> None:
        results = [
            {"grandTotal": "250.0", "status": "success", "filename": "bill.txt"}
        ]
        output = tmp_path / "sub" / "results.csv"
        _write_csv(results, output)

        with open(output) as f:
            headers = next(csv.reader(f))
        assert headers == ["filename", "status", "grandTotal"]


class TestPrintSummary:
    """Tests for summary printing."""

    def test_print_summary(self, capsys: pytest.CaptureFixture[str]) -> None:
        _print_summary({"total": 5, "successful": 4, "failed": 1}, Path("r.csv"))
        captured = capsys.readouterr()
        assert "Total:      5" in captured.out
        assert "Failed:     1" in captured.out
        assert "r.csv" in captured.out


class TestExtractSingle:
    """Tests for single file extraction."""

    def test_medical_bill_text(self, tmp_path: Path, medical_bill_text: str) -> None:
        path = tmp_path / "bill.txt"
        path.write_text(medical_bill_text, encoding="utf-8")
        result = extract_single(path)
        assert result["filename"] == "bill.txt"
        assert result["metadata"]["documentType"] == "medical_bill"
        assert result["grandTotal"] == 250.0
        assert len(result["items"]) == 2

    def test_fragment_list_as_invoice(
        self, tmp_path: Path, split_header_fragments: list
    ) -> None:
        payload = [{"text": f.text, "x": f.x, "y": f.y} for f in split_header_fragments]
        path = tmp_path / "frags.json"
        path.write_text(json.dumps(payload), encoding="utf-8")
        result = extract_single(path, "invoice")
        assert result["headers"] == ["Product", "Rate", "Amount"]
        assert result["rowCount"] == 1

    def test_forced_type(self, tmp_path: Path, payslip_text: str) -> None:
        path = tmp_path / "slip.txt"
        path.write_text(payslip_text, encoding="utf-8")
        result = extract_single(path, "payslip")
        assert result["netPay"] == 45500.0


class TestProcessFolder:
    """Tests for batch folder processing."""

    def test_process_folder_success(
        self, tmp_path: Path, medical_bill_text: str, payslip_text: str
    ) -> None:
        _write_inputs(tmp_path, medical_bill_text, payslip_text)
        output_csv = tmp_path / "out" / "results.csv"

        summary = process_folder(tmp_path, output_csv)
        assert summary == {"total": 2, "successful": 2, "failed": 0}

        with open(output_csv) as f:
            rows = {r["filename"]: r for r in csv.DictReader(f)}
        assert rows["bill.txt"]["document_type"] == "medical_bill"
        assert rows["bill.txt"]["invoiceNo"] == "INV-2041"
        assert rows["slip.txt"]["document_type"] == "payslip"
        assert rows["slip.txt"]["item1.head"] == "Basic Salary"

    def test_malformed_json_counts_as_failure(
        self, tmp_path: Path, medical_bill_text: str
    ) -> None:
        (tmp_path / "bill.txt").write_text(medical_bill_text, encoding="utf-8")
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
        output_csv = tmp_path / "results.csv"

        summary = process_folder(tmp_path, output_csv)
        assert summary["successful"] == 1
        assert summary["failed"] == 1

        with open(output_csv) as f:
            rows = {r["filename"]: r for r in csv.DictReader(f)}
        assert rows["broken.json"]["status"] == "failed"

    def test_process_folder_empty(self, tmp_path: Path) -> None:
        summary = process_folder(tmp_path, tmp_path / "results.csv")
        assert summary["total"] == 0
        assert not (tmp_path / "results.csv").exists()

    def test_process_folder_verbose(
        self,
        tmp_path: Path,
        medical_bill_text: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        (tmp_path / "bill.txt").write_text(medical_bill_text, encoding="utf-8")
        process_folder(tmp_path, tmp_path / "results.csv", verbose=True)
        assert "Processing [1/1]: bill.txt" in capsys.readouterr().out


class TestRunBenchmark:
    """Tests for the calibration benchmark command."""

    def test_report(
        self, tmp_path: Path, medical_bill_text: str, payslip_text: str
    ) -> None:
        inputs = tmp_path / "inputs"
        inputs.mkdir()
        _write_inputs(inputs, medical_bill_text, payslip_text)
        truth = tmp_path / "truth.json"
        truth.write_text(
            json.dumps(
                {
                    "bill.txt": {"invoiceNo": "INV-2041", "grandTotal": "250.00"},
                    "slip.txt": {"employeeName": "PRIYA SHARMA", "netPay": "45500"},
                }
            ),
            encoding="utf-8",
        )
        report_path = tmp_path / "report.txt"

        report = run_benchmark(inputs, truth, output_path=report_path)
        assert "CALIBRATION REPORT" in report
        assert "Total Documents:      2" in report
        assert "employeeName" in report
        assert report_path.read_text() == report

    def test_rows_and_sweep(self, tmp_path: Path, pipe_invoice_text: str) -> None:
        inputs = tmp_path / "inputs"
        inputs.mkdir()
        (inputs / "inv.txt").write_text(pipe_invoice_text, encoding="utf-8")
        truth = tmp_path / "truth.json"
        labels = {
            "rows": [
                {"Product": "PARACIP 650MG TAB", "Qty": 10},
                {"Product": "DOLO 650 TABLET", "Rate": "28.00"},
            ]
        }
        truth.write_text(json.dumps({"inv.txt": labels}), encoding="utf-8")

        report = run_benchmark(
            inputs,
            truth,
            "invoice",
            config=AppConfig(),
            sweep=("header.search_window", [1, 10]),
        )
        assert "Row/Item Accuracy:    100.00%" in report
        assert "row.Product" in report
        assert "TUNABLE SWEEP: header.search_window" in report


class TestCLIMain:
    """Tests for the CLI argument parser and main entry point."""

    def test_no_command_shows_help(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0

    def test_batch_nonexistent_directory(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["batch", "/nonexistent/path"])
        assert exc_info.value.code == 1
        assert "not a directory" in capsys.readouterr().err

    def test_extract_nonexistent_file(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["extract", "/nonexistent/file.txt"])
        assert exc_info.value.code == 1
        assert "does not exist" in capsys.readouterr().err

    def test_invalid_type_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["extract", str(tmp_path / "a.txt"), "-t", "receipt"])
        assert exc_info.value.code == 2

    def test_extract_prints_json(
        self,
        tmp_path: Path,
        payslip_text: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        path = tmp_path / "slip.txt"
        path.write_text(payslip_text, encoding="utf-8")
        main(["extract", str(path), "-t", "payslip"])
        output = json.loads(capsys.readouterr().out)
        assert output["employeeCode"] == "EMP1024"
        assert output["metadata"]["documentType"] == "payslip"

    def test_extract_to_file(self, tmp_path: Path, pipe_invoice_text: str) -> None:
        path = tmp_path / "invoice.txt"
        path.write_text(pipe_invoice_text, encoding="utf-8")
        out = tmp_path / "out" / "invoice.json"
        main(["extract", str(path), "-o", str(out)])
        output = json.loads(out.read_text(encoding="utf-8"))
        assert output["headers"] == ["Product", "Batch", "Qty", "MRP", "Rate"]
        assert output["rowCount"] == 2

    @patch("docstruct.cli.process_folder")
    def test_batch_with_options(self, mock_pf: MagicMock, tmp_path: Path) -> None:
        mock_pf.return_value = {"total": 1, "successful": 1, "failed": 0}
        output = tmp_path / "out.csv"
        main(["batch", str(tmp_path), "-o", str(output), "-t", "payslip", "-v"])
        mock_pf.assert_called_once_with(tmp_path, output, "payslip", True, ANY)
        assert isinstance(mock_pf.call_args.args[4], AppConfig)

    @patch("docstruct.cli.run_benchmark")
    def test_benchmark_command(
        self,
        mock_bench: MagicMock,
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        truth = tmp_path / "truth.json"
        truth.write_text("{}", encoding="utf-8")
        mock_bench.return_value = "REPORT"
        main(["benchmark", str(tmp_path), str(truth)])
        mock_bench.assert_called_once_with(tmp_path, truth, "auto", None, ANY, None)
        assert "REPORT" in capsys.readouterr().out

    @patch("docstruct.cli.run_benchmark")
    def test_benchmark_sweep_option(
        self, mock_bench: MagicMock, tmp_path: Path
    ) -> None:
        truth = tmp_path / "truth.json"
        truth.write_text("{}", encoding="utf-8")
        mock_bench.return_value = "REPORT"
        main(
            [
                "benchmark",
                str(tmp_path),
                str(truth),
                "--sweep",
                "clustering.row_tolerance=8,15",
            ]
        )
        assert mock_bench.call_args.args[5] == ("clustering.row_tolerance", [8, 15])

    def test_benchmark_malformed_sweep(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["benchmark", str(tmp_path), "t.json", "--sweep", "row_tolerance"])
        assert exc_info.value.code == 2

    def test_benchmark_missing_ground_truth(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["benchmark", str(tmp_path), str(tmp_path / "missing.json")])
        assert exc_info.value.code == 1
        assert "does not exist" in capsys.readouterr().err

    @patch("docstruct.cli.process_folder")
    def test_config_option(self, mock_pf: MagicMock, tmp_path: Path) -> None:
        mock_pf.return_value = {"total": 0, "successful": 0, "failed": 0}
        config_path = tmp_path / "engine.yaml"
        config_path.write_text(
            "header:\n  search_window: 4\nclassification:\n"
            "  templates_path: custom_templates.yaml\n",
            encoding="utf-8",
        )
        (tmp_path / "custom_templates.yaml").write_text(
            "payslip:\n  keyword_groups:\n    - keywords: [zeta]\n",
            encoding="utf-8",
        )
        main(["--config", str(config_path), "batch", str(tmp_path)])

        config = mock_pf.call_args.args[4]
        assert config.header.search_window == 4
        assert list(config.classification.templates) == ["payslip"]
