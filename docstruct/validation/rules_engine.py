"""Advisory validation of extracted domain fields.

Rules are given per document type and checked against the
extracted values. Failed checks become warnings and confidence
adjustments; they never reject a document. A document is only flagged
invalid when no field at all could be recovered.
"""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from docstruct.utils.logger import get_logger

logger = get_logger(__name__)


DATE_FORMATS: list[str] = [
    "%d/%m/%Y",
    "%d/%m/%y",
    "%d-%m-%Y",
    "%d-%m-%y",
    "%d.%m.%Y",
    "%m/%d/%Y",
    "%Y-%m-%d",
    "%d %B %Y",
    "%d %b %Y",
    "%d-%b-%Y",
    "%d-%b-%y",
    "%B %d, %Y",
    "%b %d, %Y",
]


@dataclass
class ValidationResult:
    """Result of a single field validation check."""

    field_name: str
    is_valid: bool
    message: str
    rule_name: str
    confidence_adjustment: float = 0.0


@dataclass
class ValidationReport:
    """Aggregated validation report for a document.

    ``is_valid`` only reflects whether anything was recovered;
    ``all_valid`` tells whether every individual check passed.
    """

    is_valid: bool
    all_valid: bool
    results: list[ValidationResult]
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    field_confidences: dict[str, float] = field(default_factory=dict)


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    if isinstance(value, (int, float)):
        return value != 0
    return bool(str(value).strip())


def _to_decimal(value: Any) -> Decimal:
    cleaned = re.sub(r"(?i)^(?:rs\.?|inr|₹|\$)\s*", "", str(value).strip())
    return Decimal(cleaned.replace(",", ""))


class RulesEngine:
    """Configurable validation rules engine.

    Applies field-level and cross-field validation rules, parsed from
    the validation rules file by :func:`~docstruct.utils.config.load_config`,
    with confidence score adjustments.

    Args:
        rules: Rules keyed by document type, then field. The built-in
            rules are used when omitted or empty.
    """

    def __init__(self, rules: Mapping[str, Any] | None = None) -> None:
        if rules:
            self.rules = dict(rules)
        else:
            logger.debug("Using default validation rules")
            self.rules = self._default_rules()
        self._validators: dict[str, Callable[[str, Any, dict], ValidationResult]] = {
            "date_format": self._validate_date,
            "positive_amount": self._validate_positive_amount,
            "amount_range": self._validate_amount_range,
            "required": self._validate_required,
            "regex": self._validate_regex,
            "phone": self._validate_phone,
        }

    def _default_rules(self) -> dict:
        return {
            "medical_bill": {
                "invoiceNo": [{"type": "required"}],
                "date": [{"type": "date_format"}],
                "phone": [{"type": "phone"}],
                "patientPhone": [{"type": "phone"}],
                "doctorPhone": [{"type": "phone"}],
                "grandTotal": [
                    {"type": "required"},
                    {"type": "positive_amount"},
                    {"type": "amount_range", "min": 0, "max": 10000000},
                ],
            },
            "payslip": {
                "employeeName": [{"type": "required"}],
                "pan": [{"type": "regex", "pattern": r"^[A-Z]{5}\d{4}[A-Z]$"}],
                "joiningDate": [{"type": "date_format"}],
                "netPay": [{"type": "required"}, {"type": "positive_amount"}],
            },
        }

    def validate(
        self,
        fields: dict[str, Any],
        document_type: str,
        field_confidences: dict[str, float] | None = None,
    ) -> ValidationReport:
        """Validate extracted fields against document-type rules.

        Args:
            fields: Extracted field name-value pairs.
            document_type: Type of document for rule selection.
            field_confidences: Initial confidence scores per field.

        Returns:
            Validation report with results and adjusted confidences.
        """
        results: list[ValidationResult] = []
        warnings: list[str] = []
        errors: list[str] = []
        adjusted = dict(field_confidences or {})

        doc_rules = self.rules.get(document_type, {})

        for field_name, rules in doc_rules.items():
            value = fields.get(field_name)

            for rule in rules:
                rule_type = rule.get("type")
                validator = self._validators.get(rule_type)

                if not validator:
                    warnings.append(f"Unknown rule type: {rule_type}")
                    continue

                result = validator(field_name, value, rule)
                results.append(result)
                if not result.is_valid:
                    warnings.append(result.message)

                if field_name in adjusted:
                    adjusted[field_name] += result.confidence_adjustment
                    adjusted[field_name] = max(0.0, min(1.0, adjusted[field_name]))

        for result in self._cross_validate(fields, document_type):
            results.append(result)
            if not result.is_valid:
                warnings.append(result.message)

        is_valid = any(_is_present(v) for v in fields.values())
        if not is_valid:
            errors.append("No fields could be extracted from the document")

        all_valid = is_valid and all(r.is_valid for r in results)
        logger.info(
            "Validation for %s: %s (%d checks, %d warnings)",
            document_type,
            "VALID" if is_valid else "INVALID",
            len(results),
            len(warnings),
        )

        return ValidationReport(
            is_valid=is_valid,
            all_valid=all_valid,
            results=results,
            errors=errors,
            warnings=warnings,
            field_confidences=adjusted,
        )

    def _validate_date(
        self, field_name: str, value: Any, rule: dict
    ) -> ValidationResult:
        """Check if a value matches any supported date format."""
        if not _is_present(value):
            return ValidationResult(
                field_name, True, "No value to validate", "date_format"
            )

        for fmt in rule.get("formats", DATE_FORMATS):
            try:
                datetime.strptime(str(value).strip(), fmt)
                return ValidationResult(
                    field_name, True, f"Valid date format: {fmt}", "date_format", 0.1
                )
            except ValueError:
                continue

        return ValidationResult(
            field_name, False, f"Invalid date format: {value}", "date_format", -0.2
        )

    def _validate_positive_amount(
        self, field_name: str, value: Any, rule: dict
    ) -> ValidationResult:
        """Check if a value is a positive monetary amount."""
        if not _is_present(value):
            return ValidationResult(
                field_name, True, "No value to validate", "positive_amount"
            )

        try:
            amount = _to_decimal(value)
        except InvalidOperation:
            return ValidationResult(
                field_name,
                False,
                f"Invalid amount format: {value}",
                "positive_amount",
                -0.3,
            )
        if amount > 0:
            return ValidationResult(
                field_name,
                True,
                f"Valid positive amount: {amount}",
                "positive_amount",
                0.1,
            )
        return ValidationResult(
            field_name,
            False,
            f"Amount must be positive: {amount}",
            "positive_amount",
            -0.2,
        )

    def _validate_amount_range(
        self, field_name: str, value: Any, rule: dict
    ) -> ValidationResult:
        """Check if an amount falls within a specified range."""
        if not _is_present(value):
            return ValidationResult(
                field_name, True, "No value to validate", "amount_range"
            )

        try:
            amount = _to_decimal(value)
            min_val = Decimal(str(rule.get("min", 0)))
            max_val = Decimal(str(rule.get("max", 1000000)))
        except (InvalidOperation, TypeError):
            return ValidationResult(
                field_name, False, f"Invalid amount: {value}", "amount_range", -0.2
            )

        if min_val <= amount <= max_val:
            return ValidationResult(
                field_name, True, "Amount in valid range", "amount_range", 0.05
            )
        return ValidationResult(
            field_name,
            False,
            f"Amount {amount} outside range [{min_val}, {max_val}]",
            "amount_range",
            -0.15,
        )

    def _validate_required(
        self, field_name: str, value: Any, rule: dict
    ) -> ValidationResult:
        """Check if a required field is present and non-empty."""
        if _is_present(value):
            return ValidationResult(
                field_name, True, "Required field present", "required", 0.0
            )
        return ValidationResult(
            field_name,
            False,
            f"Required field missing: {field_name}",
            "required",
            -0.5,
        )

    def _validate_regex(
        self, field_name: str, value: Any, rule: dict
    ) -> ValidationResult:
        """Validate a field value against a custom regex pattern."""
        if not _is_present(value):
            return ValidationResult(field_name, True, "No value to validate", "regex")

        pattern = rule.get("pattern", "")
        if re.match(pattern, str(value).strip()):
            return ValidationResult(field_name, True, "Matches pattern", "regex", 0.05)
        return ValidationResult(
            field_name,
            False,
            f"{field_name} does not match pattern: {pattern}",
            "regex",
            -0.1,
        )

    def _validate_phone(
        self, field_name: str, value: Any, rule: dict
    ) -> ValidationResult:
        """Validate one phone number or every number in a list."""
        if not _is_present(value):
            return ValidationResult(field_name, True, "No value to validate", "phone")

        numbers = value if isinstance(value, (list, tuple)) else [value]
        invalid = [
            n
            for n in numbers
            if not re.match(r"^(?:\+?91)?\d{10}$", re.sub(r"[\s\-\(\)\.]", "", str(n)))
        ]
        if not invalid:
            return ValidationResult(
                field_name, True, "Valid phone format", "phone", 0.1
            )
        return ValidationResult(
            field_name,
            False,
            f"Invalid phone: {', '.join(map(str, invalid))}",
            "phone",
            -0.2,
        )

    def _cross_validate(
        self, fields: dict[str, Any], document_type: str
    ) -> list[ValidationResult]:
        """Run cross-field validation checks.

        Medical bills: the item amounts should add up to the sub total (or
        the grand total when no sub total was printed). Payslips: gross pay
        minus total deductions should equal net pay. Both use a 5%
        tolerance.

        Args:
            fields: All extracted field values.
            document_type: Type of document being validated.

        Returns:
            List of cross-field validation results.
        """
        results: list[ValidationResult] = []
        try:
            if document_type == "medical_bill":
                items = fields.get("items")
                total = fields.get("subTotal") or fields.get("grandTotal")
                if isinstance(items, list) and items and _is_present(total):
                    items_sum = sum(
                        _to_decimal(item.get("amount", 0) or 0) for item in items
                    )
                    results.append(
                        self._compare(
                            "items_total", items_sum, _to_decimal(total), "Item amounts"
                        )
                    )
            elif document_type == "payslip":
                gross = fields.get("grossPay")
                deductions = fields.get("totalDeductions")
                net = fields.get("netPay")
                if all(_is_present(v) for v in (gross, deductions, net)):
                    expected = _to_decimal(gross) - _to_decimal(deductions)
                    results.append(
                        self._compare(
                            "net_pay",
                            expected,
                            _to_decimal(net),
                            "Gross minus deductions",
                        )
                    )
        except (InvalidOperation, TypeError, AttributeError) as exc:
            logger.debug("Skipping cross-field validation: %s", exc)

        return results

    @staticmethod
    def _compare(
        name: str, actual: Decimal, expected: Decimal, label: str
    ) -> ValidationResult:
        tolerance = abs(expected) * Decimal("0.05")
        if abs(actual - expected) <= tolerance:
            return ValidationResult(
                name, True, f"{label} match {expected}", "cross_field", 0.1
            )
        return ValidationResult(
            name,
            False,
            f"{label} ({actual}) don't match {expected}",
            "cross_field",
            -0.15,
        )
