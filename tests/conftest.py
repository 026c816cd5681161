"""Shared test fixtures for the document structuring test suite."""

from pathlib import Path

import pytest

from docstruct.ocr.fragments import TextFragment
from docstruct.utils.config import AppConfig

MEDICAL_BILL_TEXT = """\
APOLLO MEDICOSE
Shop No 12, Main Market Road, Sector 5
Ph: 9123456780 GSTIN: 07ABCDE1234F1Z5
Invoice No: INV-2041 Date: 15/01/2024
Patient Name: JOHN SMITH Ph.No. 9876543210
Prescribed By: Dr. ANITA RAO
S.No Description Pack MRP Batch Exp Qty Rate Amount
1 PARACIP-650MG TAB 1*10 22.84 405 10/27 1 22.84 22.84
2 AZITHRAL 500 TAB 1*5 119.50 AZ901 08/26 2 119.50 239.00
Total Qty: 3
Sub Total: 261.84
Less Discount: 11.84
Round Off: 0.00
Grand Total: 250.00
Amount in words: Rupees Two Hundred Fifty Only
"""

PAYSLIP_TEXT = """\
ACME TECHNOLOGIES PVT LTD
Payslip for the month of January 2024
Employee Name: PRIYA SHARMA Employee Code: EMP1024
Designation: Software Engineer Department: Engineering
Date of Joining: 01/06/2020 Location: Pune
Bank Name: HDFC Bank
Account No: 50100234567890 PAN: ABCDE1234F
UAN: 100200300400 PF No: MH/BAN/12345/678
Payable Days: 31 Paid Days: 30
Earnings Amount Deductions Amount
Basic Salary 30000.00 Professional Tax 200.00
House Rent Allowance 12000.00 Income Tax 2500.00
Special Allowance 8000.00 Provident Fund 1800.00
Gross Earnings 50000.00 Total Deductions 4500.00
Net Pay: 45500.00
"""

PIPE_INVOICE_TEXT = """\
Product | Batch | Qty | MRP | Rate
PARACIP 650MG TAB | B1234 | 10 | 22.84 | 20.50
DOLO 650 TABLET | X9876 | 5 | 30.00 | 28.00
"""


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"


@pytest.fixture
def app_config() -> AppConfig:
    """Engine configuration with built-in defaults."""
    return AppConfig()


@pytest.fixture
def medical_bill_text() -> str:
    return MEDICAL_BILL_TEXT


@pytest.fixture
def payslip_text() -> str:
    return PAYSLIP_TEXT


@pytest.fixture
def pipe_invoice_text() -> str:
    return PIPE_INVOICE_TEXT


@pytest.fixture
def paracip_fragments() -> list[TextFragment]:
    """One medicine line read by a spatial OCR engine."""
    return [
        TextFragment("PARACIP 650MG TAB", x=10, y=100),
        TextFragment("1*10", x=200, y=100),
        TextFragment("22.84", x=260, y=100),
        TextFragment("10", x=320, y=100),
    ]


@pytest.fixture
def split_header_fragments() -> list[TextFragment]:
    """A header printed over two lines followed by one item line."""
    return [
        TextFragment("Product", x=10, y=50),
        TextFragment("Unit", x=200, y=50),
        TextFragment("Amount", x=300, y=50),
        TextFragment("Name", x=10, y=70),
        TextFragment("Price", x=200, y=70),
        TextFragment("CROCIN ADVANCE TAB", x=10, y=100),
        TextFragment("45.50", x=200, y=100),
        TextFragment("91.00", x=300, y=100),
    ]
