"""Command-line interface for structuring saved OCR output.

Subcommands process one OCR result file, a folder of them (exported to
CSV), or run the calibration benchmark against labeled ground truth.
OCR results are ``.txt`` files (raw text) or ``.json`` files holding a
``{"fullText", "fragments"}`` object or a bare list of fragments.
"""

import argparse
import csv
import json
import sys
import time
from pathlib import Path
from typing import Any

from docstruct.benchmark.evaluator import (
    Evaluator,
    flatten_result,
    format_sweep,
    load_ground_truth,
    parse_sweep,
    sweep_tunable,
)
from docstruct.engine import StructuringEngine
from docstruct.utils.config import AppConfig, load_config
from docstruct.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = ("*.json", "*.txt")
_DOCUMENT_TYPES = ["auto", "invoice", "medical_bill", "payslip"]
_META_COLUMNS = [
    "filename",
    "status",
    "document_type",
    "parsing_method",
    "confidence",
    "row_count",
    "is_valid",
    "processing_time_s",
    "error",
]


def _find_documents(input_dir: Path) -> list[Path]:
    """Find all OCR result files in a directory.

    Args:
        input_dir: Directory to scan.

    Returns:
        Sorted list of OCR result paths.
    """
    files: list[Path] = []
    for ext in _SUPPORTED_EXTENSIONS:
        files.extend(input_dir.glob(ext))
        files.extend(input_dir.glob(ext.upper()))
    return sorted(set(files))


def load_ocr_output(path: Path) -> Any:
    """Read an OCR result file.

    Args:
        path: ``.json`` or ``.txt`` file.

    Returns:
        Raw text for text files, the decoded JSON value otherwise.
    """
    if path.suffix.lower() == ".json":
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    return path.read_text(encoding="utf-8")


def extract_single(
    file_path: Path,
    document_type: str = "auto",
    config: AppConfig | None = None,
    engine: StructuringEngine | None = None,
) -> dict[str, Any]:
    """Structure a single OCR result file.

    Args:
        file_path: OCR result file.
        document_type: Document type, or ``auto`` to detect it.
        config: Engine configuration, loaded from the default path if omitted.
        engine: Reuse an existing engine instead of building one.

    Returns:
        The serialized extraction result with the filename added.
    """
    engine = engine or StructuringEngine(config or load_config())
    result = engine.extract(load_ocr_output(file_path), document_type)
    output = result.to_dict()
    output["filename"] = file_path.name
    return output


def process_folder(
    input_dir: Path,
    output_csv: Path,
    document_type: str = "auto",
    verbose: bool = False,
    config: AppConfig | None = None,
) -> dict[str, int]:
    """Structure every OCR result in a folder and export a CSV summary.

    Args:
        input_dir: Directory containing OCR result files.
        output_csv: Path for the output CSV file.
        document_type: Document type, or ``auto`` to detect per file.
        verbose: Whether to print per-file progress.
        config: Engine configuration, loaded from the default path if omitted.

    Returns:
        Summary dict with total, successful, and failed counts.
    """
    engine = StructuringEngine(config or load_config())

    files = _find_documents(input_dir)
    if not files:
        logger.warning("No OCR results found in %s", input_dir)
        return {"total": 0, "successful": 0, "failed": 0}

    logger.info("Found %d OCR results to process", len(files))

    results: list[dict[str, object]] = []
    successful = 0
    failed = 0

    for i, file_path in enumerate(files, 1):
        if verbose:
            print(f"Processing [{i}/{len(files)}]: {file_path.name}")

        start_time = time.time()
        try:
            output = extract_single(file_path, document_type, engine=engine)
        except (OSError, ValueError, TypeError) as exc:
            logger.error("Failed to process %s: %s", file_path.name, exc)
            results.append(
                {"filename": file_path.name, "status": "failed", "error": str(exc)}
            )
            failed += 1
            continue

        row = _summary_row(output)
        row["processing_time_s"] = round(time.time() - start_time, 3)
        results.append(row)
        successful += 1

    _write_csv(results, output_csv)
    logger.info("Results written to %s", output_csv)

    summary = {"total": len(files), "successful": successful, "failed": failed}
    _print_summary(summary, output_csv)
    return summary


def _summary_row(output: dict[str, Any]) -> dict[str, object]:
    """One CSV row: bookkeeping columns plus the flattened fields."""
    metadata = output.get("metadata", {})
    row: dict[str, object] = {
        "filename": output["filename"],
        "status": "success",
        "document_type": metadata.get("documentType", "invoice"),
        "parsing_method": metadata.get("parsingMethod"),
        "confidence": output.get("confidence"),
        "row_count": output.get("rowCount", len(output.get("items", []))),
        "is_valid": metadata.get("isValid", bool(output.get("rows"))),
        "error": None,
    }
    row.update(flatten_result(output))
    return row


def _write_csv(results: list[dict[str, object]], output_path: Path) -> None:
    """Write extraction results to a CSV file.

    Args:
        results: List of result dictionaries.
        output_path: Path for the output CSV file.
    """
    if not results:
        return

    all_keys: set[str] = set()
    for r in results:
        all_keys.update(r.keys())

    field_columns = sorted(all_keys - set(_META_COLUMNS))
    columns = [c for c in _META_COLUMNS if c in all_keys] + field_columns

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=columns, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(results)


def _print_summary(summary: dict[str, int], output_csv: Path) -> None:
    """Print batch processing summary to stdout.

    Args:
        summary: Counts of total, successful, and failed documents.
        output_csv: Path to the output CSV.
    """
    print(f"\n{'=' * 50}")
    print("Batch Processing Complete")
    print(f"{'=' * 50}")
    print(f"Total:      {summary['total']}")
    print(f"Successful: {summary['successful']}")
    print(f"Failed:     {summary['failed']}")
    print(f"Output:     {output_csv}")


def run_benchmark(
    input_dir: Path,
    ground_truth_path: Path,
    document_type: str = "auto",
    output_path: Path | None = None,
    config: AppConfig | None = None,
    sweep: tuple[str, list[Any]] | None = None,
) -> str:
    """Score the engine against labeled ground truth.

    Args:
        input_dir: Directory of OCR result files.
        ground_truth_path: JSON or CSV labels keyed by filename.
        document_type: Document type, or ``auto`` to detect per file.
        output_path: Optional path to write the report.
        config: Engine configuration, loaded from the default path if omitted.
        sweep: Optional ``(tunable, values)`` to score the corpus under
            each value, appended to the report.

    Returns:
        The formatted calibration report.
    """
    config = config or load_config()
    engine = StructuringEngine(config)
    ground_truth = load_ground_truth(ground_truth_path)
    documents = {
        path.name: load_ocr_output(path) for path in _find_documents(input_dir)
    }

    predictions: dict[str, dict[str, str]] = {}
    confidences: dict[str, float] = {}
    timings: list[float] = []
    for name, ocr_output in documents.items():
        start_time = time.time()
        output = engine.extract(ocr_output, document_type).to_dict()
        timings.append((time.time() - start_time) * 1000)
        predictions[name] = flatten_result(output)
        confidences[name] = output.get("confidence", 0.0)

    evaluator = Evaluator()
    result = evaluator.evaluate(predictions, ground_truth, confidences)
    if timings:
        result.avg_processing_time_ms = sum(timings) / len(timings)
    report = evaluator.generate_report(result)

    if sweep is not None:
        tunable, values = sweep
        points = sweep_tunable(
            documents, ground_truth, tunable, values, config, document_type, evaluator
        )
        report = f"{report}\n\n{format_sweep(tunable, points)}"

    if output_path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(report, encoding="utf-8")
        logger.info("Report written to %s", output_path)
    return report


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        prog="docstruct",
        description="Structure OCR output into tables and fields",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level", default=None, help="Logging level (default: from config)"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Configuration file (default: configs/config.yaml)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    single_parser = subparsers.add_parser("extract", help="Structure one OCR result")
    single_parser.add_argument("file", type=Path, help="OCR result (.json or .txt)")
    single_parser.add_argument(
        "-t",
        "--type",
        choices=_DOCUMENT_TYPES,
        default="auto",
        dest="doc_type",
        help="Document type (default: auto)",
    )
    single_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    batch_parser = subparsers.add_parser("batch", help="Structure a folder of results")
    batch_parser.add_argument(
        "input_dir", type=Path, help="Input directory with OCR results"
    )
    batch_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("results.csv"),
        help="Output CSV file (default: results.csv)",
    )
    batch_parser.add_argument(
        "-t",
        "--type",
        choices=_DOCUMENT_TYPES,
        default="auto",
        dest="doc_type",
        help="Document type (default: auto)",
    )
    batch_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )

    bench_parser = subparsers.add_parser(
        "benchmark", help="Score extraction against ground truth"
    )
    bench_parser.add_argument("input_dir", type=Path, help="Directory of OCR results")
    bench_parser.add_argument(
        "ground_truth", type=Path, help="Ground truth labels (.json or .csv)"
    )
    bench_parser.add_argument(
        "-t",
        "--type",
        choices=_DOCUMENT_TYPES,
        default="auto",
        dest="doc_type",
        help="Document type (default: auto)",
    )
    bench_parser.add_argument("-o", "--output", type=Path, help="Report output file")
    bench_parser.add_argument(
        "--sweep",
        type=parse_sweep,
        metavar="SECTION.NAME=V1,V2",
        help="Also score the corpus for each value of one tunable",
    )

    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_logging(args.log_level or config.log_level)

    if args.command == "batch":
        if not args.input_dir.is_dir():
            print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
            sys.exit(1)
        process_folder(
            args.input_dir, args.output, args.doc_type, args.verbose, config
        )
    elif args.command == "extract":
        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        result = extract_single(args.file, args.doc_type, config)
        output_str = json.dumps(result, indent=2, ensure_ascii=False)
        if args.output:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(output_str, encoding="utf-8")
            print(f"Output written to {args.output}")
        else:
            print(output_str)
    elif args.command == "benchmark":
        if not args.input_dir.is_dir():
            print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
            sys.exit(1)
        if not args.ground_truth.exists():
            print(f"Error: {args.ground_truth} does not exist", file=sys.stderr)
            sys.exit(1)
        report = run_benchmark(
            args.input_dir,
            args.ground_truth,
            args.doc_type,
            args.output,
            config,
            args.sweep,
        )
        print(report)
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
