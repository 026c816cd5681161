"""Payslip field extraction.

Employee details are read after their labels up to the next label on the
same line, since payslips often print two label/value pairs per line.
Earnings, deductions and the pay summary are label + amount patterns.
"""

import re
from typing import Any

from docstruct.extraction.rule_extractor import (
    AnchorStrategy,
    ExtractionStrategy,
    RegexStrategy,
    build_stop_pattern,
)
from docstruct.models import (
    PAYSLIP_DEDUCTION_FIELDS,
    PAYSLIP_EARNING_FIELDS,
    PAYSLIP_FIELDS,
    PAYSLIP_SUMMARY_FIELDS,
    DocumentType,
)
from docstruct.utils.logger import get_logger

from .base import DomainExtractor

logger = get_logger(__name__)

EMPLOYEE_LABELS: dict[str, str] = {
    "employeeName": r"\bemp(?:loyee)?\.?\s*name\b",
    "employeeCode": r"\bemp(?:loyee)?\.?\s*(?:code|id|no)\b\.?",
    "designation": r"\bdesignation\b",
    "department": r"\b(?:department|dept)\b\.?",
    "joiningDate": r"\b(?:date\s*of\s*joining|joining\s*date|doj)\b",
    "location": r"\blocation\b",
    "bankName": r"\bbank\s*name\b",
    "bankAccountNo": r"\b(?:bank\s*)?(?:account|a/c)\s*(?:no|number)\b\.?",
    "providentFundNo": r"\b(?:provident\s*fund|pf)\s*(?:no|number)\b\.?",
    "uan": r"\buan(?:\s*no)?\b\.?",
    "pan": r"\bpan(?:\s*no)?\b\.?",
    "payableDays": r"\bpayable\s*days\b",
    "paidDays": r"\bpaid\s*days\b",
}

AMOUNT_LABELS: dict[str, str] = {
    "basicSalary": r"basic(?:\s*(?:salary|pay))?",
    "houseRentAllowance": r"(?:house\s*rent\s*allowance|h\.?r\.?a\.?)",
    "conveyanceAllowance": r"conveyance(?:\s*allowance)?",
    "medicalAllowance": r"medical\s*allowance",
    "specialAllowance": r"special\s*allowance",
    "performanceBonus": r"(?:performance\s*)?bonus",
    "overtime": r"over\s*time",
    "incentive": r"incentives?",
    "professionalTax": r"(?:professional\s*tax|p\.?\s*tax)",
    "incomeTax": r"(?:income\s*tax|tds)",
    "providentFund": r"(?:provident\s*fund|p\.?f\.?)(?!\s*(?:no|number)\b)",
    "insurance": r"(?:insurance|esic?)",
    "loanRepayment": r"loan(?:\s*repayment)?",
    "grossPay": r"(?:gross\s*(?:pay|salary|earnings?)|total\s*earnings?)",
    "totalDeductions": r"total\s*deductions?",
    "netPay": r"(?:net\s*(?:pay|salary)|take\s*home(?:\s*pay)?)",
}

STOP_PATTERN = build_stop_pattern(
    list(EMPLOYEE_LABELS.values()) + list(AMOUNT_LABELS.values())
)

_AMOUNT = r"[\s:\-=]*(?:rs\.?|₹|inr)?\s*([\d,]*\d(?:\.\d+)?)"

HEAD_NAMES: dict[str, str] = {
    "basicSalary": "Basic Salary",
    "houseRentAllowance": "House Rent Allowance",
    "conveyanceAllowance": "Conveyance Allowance",
    "medicalAllowance": "Medical Allowance",
    "specialAllowance": "Special Allowance",
    "performanceBonus": "Performance Bonus",
    "overtime": "Overtime",
    "incentive": "Incentive",
    "professionalTax": "Professional Tax",
    "incomeTax": "Income Tax",
    "providentFund": "Provident Fund",
    "insurance": "Insurance",
    "loanRepayment": "Loan Repayment",
}

_VALIDATORS = {
    "payableDays": lambda v: bool(re.fullmatch(r"\d+(?:\.\d+)?", v)),
    "paidDays": lambda v: bool(re.fullmatch(r"\d+(?:\.\d+)?", v)),
    "uan": lambda v: v.isdigit(),
    "pan": lambda v: bool(re.fullmatch(r"[A-Za-z]{5}\d{4}[A-Za-z]", v)),
    "joiningDate": lambda v: bool(re.search(r"\d", v)),
    "bankAccountNo": lambda v: bool(re.search(r"\d{4,}", v)),
}

_MAX_TOKENS = {
    "employeeName": 4,
    "designation": 4,
    "department": 3,
    "location": 3,
    "bankName": 4,
    "joiningDate": 3,
}


def _value_label(label: str) -> str:
    """Match ``label: value`` up to the end of the line."""
    return rf"{label}\s*[:\-]\s*([^\n]+)"


class PayslipExtractor(DomainExtractor):
    """Extracts employee, earnings, deductions and summary fields."""

    document_type = DocumentType.PAYSLIP
    fields = PAYSLIP_FIELDS
    numeric_fields = frozenset(
        PAYSLIP_EARNING_FIELDS + PAYSLIP_DEDUCTION_FIELDS + PAYSLIP_SUMMARY_FIELDS
    )
    confidence_weights = {
        "employeeName": 15,
        "employeeCode": 10,
        "designation": 5,
        "department": 5,
        "basicSalary": 15,
        "grossPay": 15,
        "totalDeductions": 10,
        "netPay": 20,
        "paidDays": 5,
    }

    def default_strategies(self) -> dict[str, list[ExtractionStrategy]]:
        strategies: dict[str, list[ExtractionStrategy]] = {}
        for name, label in EMPLOYEE_LABELS.items():
            validator = _VALIDATORS.get(name)
            strategies[name] = [
                AnchorStrategy(
                    label,
                    _MAX_TOKENS.get(name, 1),
                    STOP_PATTERN,
                    validator=validator,
                ),
                RegexStrategy(
                    _value_label(label),
                    name="label_line",
                    validator=validator,
                    transform=lambda v: " ".join(v.split()),
                ),
            ]
        for name, label in AMOUNT_LABELS.items():
            strategies[name] = [
                RegexStrategy(rf"\b{label}{_AMOUNT}", name="amount_label")
            ]
        return strategies

    def post_process(
        self, text: str, fields: dict[str, Any], sources: dict[str, str]
    ) -> list[dict[str, Any]]:
        items = [
            {"head": HEAD_NAMES[name], "category": "earning", "amount": fields[name]}
            for name in PAYSLIP_EARNING_FIELDS
            if fields[name]
        ]
        items += [
            {"head": HEAD_NAMES[name], "category": "deduction", "amount": fields[name]}
            for name in PAYSLIP_DEDUCTION_FIELDS
            if fields[name]
        ]

        if not fields["grossPay"] and any(i["category"] == "earning" for i in items):
            fields["grossPay"] = round(
                sum(i["amount"] for i in items if i["category"] == "earning"), 2
            )
            sources["grossPay"] = "derived"
        if not fields["totalDeductions"] and any(
            i["category"] == "deduction" for i in items
        ):
            fields["totalDeductions"] = round(
                sum(i["amount"] for i in items if i["category"] == "deduction"), 2
            )
            sources["totalDeductions"] = "derived"
        if not fields["netPay"] and fields["grossPay"]:
            fields["netPay"] = round(fields["grossPay"] - fields["totalDeductions"], 2)
            sources["netPay"] = "derived"
        return items
