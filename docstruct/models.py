"""Result types and canonical vocabularies shared across the engine.

The canonical vocabularies are the contract between this engine and its
consumers: they are closed per document type and versioned together.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from docstruct.ocr.fragments import TextFragment

VOCABULARY_VERSION = "1.0"

INVOICE_FIELDS: tuple[str, ...] = (
    "Product",
    "Batch",
    "HSN",
    "Qty",
    "MRP",
    "Rate",
    "Amount",
    "SGST",
    "CGST",
)

# Fields whose empty value is 0 rather than "".
NUMERIC_INVOICE_FIELDS = frozenset({"Qty", "MRP", "Rate", "Amount", "SGST", "CGST"})

MEDICAL_BILL_FIELDS: tuple[str, ...] = (
    "invoiceNo",
    "date",
    "shopName",
    "shopAddress",
    "phone",
    "patientName",
    "patientPhone",
    "prescribedBy",
    "doctorName",
    "doctorPhone",
    "totalQty",
    "subTotal",
    "lessDiscount",
    "otherAdj",
    "roundOff",
    "grandTotal",
    "amountInWords",
)

MEDICAL_ITEM_FIELDS: tuple[str, ...] = (
    "sNo",
    "itemDescription",
    "pack",
    "mrp",
    "batchNo",
    "exp",
    "qty",
    "rate",
    "amount",
)

PAYSLIP_EMPLOYEE_FIELDS: tuple[str, ...] = (
    "employeeName",
    "employeeCode",
    "designation",
    "department",
    "joiningDate",
    "location",
    "bankName",
    "bankAccountNo",
    "providentFundNo",
    "uan",
    "pan",
    "payableDays",
    "paidDays",
)

PAYSLIP_EARNING_FIELDS: tuple[str, ...] = (
    "basicSalary",
    "houseRentAllowance",
    "conveyanceAllowance",
    "medicalAllowance",
    "specialAllowance",
    "performanceBonus",
    "overtime",
    "incentive",
)

PAYSLIP_DEDUCTION_FIELDS: tuple[str, ...] = (
    "professionalTax",
    "incomeTax",
    "providentFund",
    "insurance",
    "loanRepayment",
)

PAYSLIP_SUMMARY_FIELDS: tuple[str, ...] = ("grossPay", "totalDeductions", "netPay")

PAYSLIP_FIELDS: tuple[str, ...] = (
    PAYSLIP_EMPLOYEE_FIELDS
    + PAYSLIP_EARNING_FIELDS
    + PAYSLIP_DEDUCTION_FIELDS
    + PAYSLIP_SUMMARY_FIELDS
)


class DocumentType(StrEnum):
    """Document types the engine knows how to structure."""

    INVOICE = "invoice"
    MEDICAL_BILL = "medical_bill"
    PAYSLIP = "payslip"
    AUTO = "auto"


class ParsingMethod(StrEnum):
    """Which reconstruction strategy produced a result."""

    SPATIAL = "spatial"
    LINE_TOKENIZED = "line-tokenized"
    ANCHOR_EXTRACTION = "anchor-extraction"


class RowKind(StrEnum):
    """Role of a physical row inside a table."""

    HEADER = "header"
    DATA = "data"
    FOOTER = "footer"
    NOISE = "noise"


@dataclass(frozen=True)
class Row:
    """An ordered run of cells on one physical line.

    ``fragments`` and ``positions`` (left x of each cell) are populated on
    the spatial path only; on the line-tokenized path the row is built from
    plain string cells.
    """

    cells: tuple[str, ...]
    fragments: tuple[TextFragment, ...] = ()
    positions: tuple[float, ...] = ()
    y: float | None = None
    kind: RowKind | None = None

    @property
    def text(self) -> str:
        return " ".join(c for c in self.cells if c.strip())

    @property
    def non_empty_cells(self) -> list[str]:
        return [c for c in self.cells if c.strip()]


@dataclass
class ExtractedTable:
    """Tabular extraction result for invoice-like documents."""

    headers: list[str]
    rows: list[dict[str, Any]]
    confidence: float
    metadata: dict[str, Any] = field(default_factory=dict)
    lines: list[str] = field(default_factory=list)

    @property
    def parsing_method(self) -> str:
        return self.metadata.get("parsingMethod", "")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase shape consumed downstream."""
        return {
            "headers": list(self.headers),
            "rows": [dict(r) for r in self.rows],
            "rowCount": len(self.rows),
            "columnCount": len(self.headers),
            "confidence": self.confidence,
            "metadata": dict(self.metadata),
            "lines": list(self.lines),
        }


@dataclass
class ExtractedDocument:
    """Flat field extraction result for medical bills and payslips."""

    fields: dict[str, Any]
    confidence: float
    items: list[dict[str, Any]] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def parsing_method(self) -> str:
        return self.metadata.get("parsingMethod", "")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a flat object keyed by canonical field names."""
        result: dict[str, Any] = dict(self.fields)
        result["items"] = [dict(i) for i in self.items]
        result["confidence"] = self.confidence
        result["metadata"] = dict(self.metadata)
        return result
