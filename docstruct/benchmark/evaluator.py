"""Calibration of the structuring engine against labeled OCR results.

Every document is flattened the same way on both sides (``row2.Qty``,
``item1.amount``, ``grandTotal``) so table rows and medical or payslip
items are compared cell by cell at their position. On top of per-column
accuracy the report shows whether the engine's own confidence tracks its
real accuracy, and :func:`sweep_tunable` re-runs the corpus for each value
of one ``configs/config.yaml`` tunable so a heuristic can be recalibrated
on data instead of by eye.
"""

import csv
import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
import yaml
from pydantic import BaseModel

from docstruct.engine import StructuringEngine
from docstruct.utils.config import AppConfig
from docstruct.utils.logger import get_logger

logger = get_logger(__name__)

_SKIPPED_KEYS = frozenset(
    {"metadata", "confidence", "lines", "rowCount", "columnCount", "filename"}
)
_POSITIONAL_KEY = re.compile(r"^(row|item)(\d+)\.(.+)$")
_CURRENCY_PREFIX = re.compile(r"^(?:rs\.?|inr|₹|\$)\s*")

# Upper bounds of the confidence buckets in the report (scores are 0-100).
CONFIDENCE_BUCKETS = (25.0, 50.0, 75.0, 100.0)


def flatten_result(result: Mapping[str, Any]) -> dict[str, str]:
    """Flatten a serialized result, or a ground truth entry, into strings.

    Table rows become ``row1.Product``-style keys, document items
    ``item1.amount``, and lists of scalars are joined with ``;``.
    Metadata and bookkeeping keys are left out.

    Args:
        result: Output of ``ExtractedTable.to_dict()`` or
            ``ExtractedDocument.to_dict()``, or a label entry of the same
            shape.

    Returns:
        Mapping of flat field name to string value; empty values are
        omitted.
    """
    flat: dict[str, str] = {}
    for key, value in result.items():
        if key in _SKIPPED_KEYS or key == "headers":
            continue
        if key in ("rows", "items") and isinstance(value, list):
            prefix = "row" if key == "rows" else "item"
            for index, entry in enumerate(value, start=1):
                for name, cell in entry.items():
                    if cell not in ("", 0, None):
                        flat[f"{prefix}{index}.{name}"] = str(cell)
        elif isinstance(value, list):
            if value:
                flat[key] = ";".join(str(v) for v in value)
        elif value not in ("", 0, None):
            flat[key] = str(value)
    return flat


def column_of(key: str) -> str:
    """``row3.Qty`` -> ``row.Qty``; plain document fields are unchanged."""
    match = _POSITIONAL_KEY.match(key)
    if match is None:
        return key
    return f"{match.group(1)}.{match.group(3)}"


def _line_of(key: str) -> str | None:
    """``row3.Qty`` -> ``row3``; ``None`` for plain document fields."""
    match = _POSITIONAL_KEY.match(key)
    return f"{match.group(1)}{match.group(2)}" if match else None


@dataclass
class ColumnTally:
    """Outcome counts of one column (``grandTotal``, ``row.Amount``)."""

    name: str
    expected: int = 0
    correct: int = 0
    wrong: int = 0

    @property
    def missing(self) -> int:
        return self.expected - self.correct - self.wrong

    @property
    def accuracy(self) -> float:
        return self.correct / self.expected if self.expected else 0.0


@dataclass
class DocumentScore:
    """How one document fared.

    ``lines_expected`` counts labeled table rows and items; a line is
    matched when every labeled cell in it is correct.
    """

    filename: str
    expected: int
    correct: int
    confidence: float = 0.0
    lines_expected: int = 0
    lines_matched: int = 0
    predicted: bool = True

    @property
    def accuracy(self) -> float:
        return self.correct / self.expected if self.expected else 0.0


@dataclass
class CalibrationResult:
    """Scores of a corpus run."""

    documents: list[DocumentScore]
    columns: dict[str, ColumnTally]
    errors: list[str] = field(default_factory=list)
    avg_processing_time_ms: float = 0.0

    @property
    def total_documents(self) -> int:
        return len(self.documents)

    @property
    def scored(self) -> list[DocumentScore]:
        return [d for d in self.documents if d.predicted]

    @property
    def overall_accuracy(self) -> float:
        """Correct labeled values over all labeled values."""
        expected = sum(d.expected for d in self.documents)
        correct = sum(d.correct for d in self.documents)
        return correct / expected if expected else 0.0

    @property
    def line_accuracy(self) -> float:
        expected = sum(d.lines_expected for d in self.documents)
        matched = sum(d.lines_matched for d in self.documents)
        return matched / expected if expected else 0.0

    @property
    def mean_confidence(self) -> float:
        scores = [d.confidence for d in self.scored]
        return float(np.mean(scores)) if scores else 0.0

    @property
    def confidence_correlation(self) -> float | None:
        """Pearson correlation of engine confidence with document accuracy.

        ``None`` when fewer than two documents were scored or either side
        is constant.
        """
        docs = [d for d in self.scored if d.expected]
        if len(docs) < 2:
            return None
        confidences = np.array([d.confidence for d in docs])
        accuracies = np.array([d.accuracy for d in docs])
        if np.ptp(confidences) == 0 or np.ptp(accuracies) == 0:
            return None
        return float(np.corrcoef(confidences, accuracies)[0, 1])

    def confidence_buckets(self) -> list[tuple[float, float, int, float]]:
        """``(low, high, documents, mean accuracy)`` per confidence bucket."""
        members: list[list[float]] = [[] for _ in CONFIDENCE_BUCKETS]
        for doc in self.scored:
            if doc.expected:
                index = int(np.searchsorted(CONFIDENCE_BUCKETS, doc.confidence))
                members[min(index, len(CONFIDENCE_BUCKETS) - 1)].append(doc.accuracy)

        lows = (0.0, *CONFIDENCE_BUCKETS[:-1])
        return [
            (low, high, len(accs), float(np.mean(accs)) if accs else 0.0)
            for low, high, accs in zip(lows, CONFIDENCE_BUCKETS, members)
        ]


class Evaluator:
    """Scores flattened predictions against flattened labels.

    Values match case-insensitively, with currency prefixes and thousands
    separators ignored and numbers equal within ``numeric_tolerance``.

    Args:
        numeric_tolerance: Largest difference at which two numbers match.
        target_accuracy: Accuracy the report marks as passing.
    """

    def __init__(
        self, numeric_tolerance: float = 0.01, target_accuracy: float = 0.9
    ) -> None:
        self.numeric_tolerance = numeric_tolerance
        self.target_accuracy = target_accuracy

    def matches(self, predicted: str, expected: str) -> bool:
        pred = _clean(predicted)
        exp = _clean(expected)
        if pred == exp:
            return True
        try:
            return abs(float(pred) - float(exp)) < self.numeric_tolerance
        except ValueError:
            return False

    def evaluate(
        self,
        predictions: Mapping[str, Mapping[str, str]],
        ground_truth: Mapping[str, Mapping[str, Any]],
        confidences: Mapping[str, float] | None = None,
    ) -> CalibrationResult:
        """Score every labeled document.

        Args:
            predictions: Filename to flattened engine output.
            ground_truth: Filename to labels, flat or shaped like the
                engine output (``rows``/``items`` lists).
            confidences: Engine confidence per filename.

        Returns:
            Per-document and per-column scores.
        """
        columns: dict[str, ColumnTally] = {}
        documents: list[DocumentScore] = []
        errors: list[str] = []
        confidences = confidences or {}

        for filename, labels in ground_truth.items():
            expected = flatten_result(labels)
            predicted = predictions.get(filename)
            if predicted is None:
                errors.append(f"Missing prediction for {filename}")
            documents.append(
                self._score_document(
                    filename,
                    expected,
                    predicted,
                    confidences.get(filename, 0.0),
                    columns,
                )
            )

        result = CalibrationResult(documents, columns, errors)
        logger.info(
            "Scored %d documents: accuracy=%.3f line accuracy=%.3f",
            result.total_documents,
            result.overall_accuracy,
            result.line_accuracy,
        )
        return result

    def _score_document(
        self,
        filename: str,
        expected: dict[str, str],
        predicted: Mapping[str, str] | None,
        confidence: float,
        columns: dict[str, ColumnTally],
    ) -> DocumentScore:
        correct = 0
        line_ok: dict[str, bool] = {}
        for key, value in expected.items():
            tally = columns.setdefault(column_of(key), ColumnTally(column_of(key)))
            tally.expected += 1
            found = None if predicted is None else predicted.get(key)
            hit = found is not None and self.matches(found, value)
            if hit:
                tally.correct += 1
                correct += 1
            elif found is not None:
                tally.wrong += 1
            line = _line_of(key)
            if line is not None:
                line_ok[line] = line_ok.get(line, True) and hit

        return DocumentScore(
            filename=filename,
            expected=len(expected),
            correct=correct,
            confidence=confidence,
            lines_expected=len(line_ok),
            lines_matched=sum(line_ok.values()),
            predicted=predicted is not None,
        )

    def generate_report(
        self, result: CalibrationResult, output_path: Path | None = None
    ) -> str:
        """Format the result as a plain-text report.

        Args:
            result: Corpus scores.
            output_path: Optional file to write the report to.

        Returns:
            The report text.
        """
        correlation = result.confidence_correlation
        lines = [
            "=" * 60,
            "CALIBRATION REPORT",
            "=" * 60,
            f"Total Documents:      {result.total_documents}",
            f"Scored:               {len(result.scored)}",
            f"Overall Accuracy:     {result.overall_accuracy:.2%}",
            f"Row/Item Accuracy:    {result.line_accuracy:.2%}",
            f"Mean Confidence:      {result.mean_confidence:.1f}",
            "Confidence/Accuracy:  "
            + ("n/a" if correlation is None else f"r={correlation:.3f}"),
            f"Avg Processing Time:  {result.avg_processing_time_ms:.0f}ms",
            "",
            f"{'Column':<24} {'Expected':>9} {'Correct':>8} {'Wrong':>6} "
            f"{'Missing':>8} {'Accuracy':>9}",
            "-" * 68,
        ]
        for name, tally in sorted(result.columns.items()):
            lines.append(
                f"{name:<24} {tally.expected:>9} {tally.correct:>8} "
                f"{tally.wrong:>6} {tally.missing:>8} {tally.accuracy:>9.2%}"
            )

        lines.extend(["", "Confidence buckets:"])
        for low, high, count, accuracy in result.confidence_buckets():
            lines.append(
                f"  {low:>5.0f}-{high:<5.0f} documents={count:<4} "
                f"accuracy={accuracy:.2%}"
            )

        target_met = result.overall_accuracy >= self.target_accuracy
        lines.extend(
            [
                "",
                f"Target: >={self.target_accuracy:.0%} accuracy - "
                f"{'PASSED' if target_met else 'FAILED'}",
                "=" * 60,
            ]
        )
        if result.errors:
            lines.append("Errors:")
            lines.extend(f"  - {error}" for error in result.errors)

        report = "\n".join(lines)
        if output_path:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(report, encoding="utf-8")
            logger.info("Report written to %s", output_path)
        return report


def _clean(value: str) -> str:
    text = _CURRENCY_PREFIX.sub("", str(value).strip().lower())
    return text.replace(",", "").replace(" ", "")


@dataclass
class SweepPoint:
    """Corpus scores for one value of a tunable."""

    value: Any
    accuracy: float
    line_accuracy: float
    mean_confidence: float


def parse_sweep(text: str) -> tuple[str, list[Any]]:
    """Parse ``section.name=v1,v2,...`` into the tunable and its values.

    Values are read as YAML scalars, so ``12``, ``0.5`` and ``true`` keep
    their types.

    Raises:
        ValueError: If the text is not of that form.
    """
    tunable, sep, raw_values = text.partition("=")
    if not sep or "." not in tunable or not raw_values.strip():
        raise ValueError(f"Expected section.name=v1,v2,... got {text!r}")
    values = [yaml.safe_load(v) for v in raw_values.split(",") if v.strip()]
    return tunable.strip(), values


def apply_tunable(config: AppConfig, tunable: str, value: Any) -> AppConfig:
    """Return a copy of ``config`` with ``section.name`` set to ``value``.

    Raises:
        ValueError: If the tunable does not exist or the value is out of
            bounds.
    """
    section, _, name = tunable.partition(".")
    current = getattr(config, section, None)
    if not isinstance(current, BaseModel) or name not in type(current).model_fields:
        raise ValueError(f"Unknown tunable: {tunable}")
    updated = type(current).model_validate({**current.model_dump(), name: value})
    return config.model_copy(update={section: updated})


def sweep_tunable(
    documents: Mapping[str, Any],
    ground_truth: Mapping[str, Mapping[str, Any]],
    tunable: str,
    values: list[Any],
    config: AppConfig | None = None,
    document_type: str = "auto",
    evaluator: Evaluator | None = None,
) -> list[SweepPoint]:
    """Score the corpus once per value of ``tunable``.

    Args:
        documents: Filename to OCR output, as accepted by the engine.
        ground_truth: Filename to labels.
        tunable: Dotted config path such as ``clustering.row_tolerance``.
        values: Values to try.
        config: Base configuration the tunable is applied to.
        document_type: Document type, or ``auto`` to detect per file.
        evaluator: Scorer; a default one is used when omitted.

    Returns:
        One point per value, in the order given.
    """
    base = config or AppConfig()
    evaluator = evaluator or Evaluator()
    points: list[SweepPoint] = []
    for value in values:
        engine = StructuringEngine(apply_tunable(base, tunable, value))
        predictions: dict[str, dict[str, str]] = {}
        confidences: dict[str, float] = {}
        for name, ocr_output in documents.items():
            output = engine.extract(ocr_output, document_type).to_dict()
            predictions[name] = flatten_result(output)
            confidences[name] = output.get("confidence", 0.0)
        result = evaluator.evaluate(predictions, ground_truth, confidences)
        points.append(
            SweepPoint(
                value,
                result.overall_accuracy,
                result.line_accuracy,
                result.mean_confidence,
            )
        )
        logger.info(
            "%s=%s: accuracy=%.3f", tunable, value, result.overall_accuracy
        )
    return points


def format_sweep(tunable: str, points: list[SweepPoint]) -> str:
    """Tabulate sweep points, marking the most accurate value."""
    best = max(points, key=lambda p: p.accuracy, default=None)
    lines = [
        f"TUNABLE SWEEP: {tunable}",
        f"{'Value':<12} {'Accuracy':>9} {'Row/Item':>9} {'Confidence':>11}",
    ]
    for point in points:
        marker = " *" if point is best else ""
        lines.append(
            f"{point.value!s:<12} {point.accuracy:>9.2%} "
            f"{point.line_accuracy:>9.2%} {point.mean_confidence:>11.1f}{marker}"
        )
    return "\n".join(lines)


def load_ground_truth(path: Path) -> dict[str, dict[str, Any]]:
    """Load labels keyed by filename from JSON or CSV.

    JSON entries may be flat (``{"grandTotal": "250.00"}``) or shaped like
    the engine output (``{"rows": [{"Product": ...}]}``). CSV files have a
    ``filename`` column and one column per flat key (``row1.Qty``).

    Raises:
        ValueError: If the file format is not supported.
    """
    if path.suffix == ".json":
        with open(path, encoding="utf-8") as f:
            return json.load(f)

    if path.suffix == ".csv":
        labels: dict[str, dict[str, Any]] = {}
        with open(path, encoding="utf-8", newline="") as f:
            for row in csv.DictReader(f):
                filename = row.pop("filename")
                labels[filename] = {k: v for k, v in row.items() if v}
        return labels

    raise ValueError(f"Unsupported ground truth format: {path.suffix}")
