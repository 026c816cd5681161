"""Tests for payslip extraction."""

import pytest

from docstruct.domains.payslip import PayslipExtractor
from docstruct.models import PAYSLIP_FIELDS


class TestPayslipExtractor:
    """Tests for the PayslipExtractor class."""

    def setup_method(self) -> None:
        self.extractor = PayslipExtractor()

    def test_employee_details(self, payslip_text: str) -> None:
        fields = self.extractor.extract(payslip_text).fields
        assert set(fields) == set(PAYSLIP_FIELDS)
        assert fields["employeeName"] == "PRIYA SHARMA"
        assert fields["employeeCode"] == "EMP1024"
        assert fields["designation"] == "Software Engineer"
        assert fields["department"] == "Engineering"
        assert fields["joiningDate"] == "01/06/2020"
        assert fields["location"] == "Pune"

    def test_bank_and_statutory_ids(self, payslip_text: str) -> None:
        fields = self.extractor.extract(payslip_text).fields
        assert fields["bankName"] == "HDFC Bank"
        assert fields["bankAccountNo"] == "50100234567890"
        assert fields["pan"] == "ABCDE1234F"
        assert fields["uan"] == "100200300400"
        assert fields["providentFundNo"] == "MH/BAN/12345/678"
        assert fields["payableDays"] == "31"
        assert fields["paidDays"] == "30"

    def test_amounts(self, payslip_text: str) -> None:
        fields = self.extractor.extract(payslip_text).fields
        assert fields["basicSalary"] == 30000.0
        assert fields["houseRentAllowance"] == 12000.0
        assert fields["specialAllowance"] == 8000.0
        assert fields["professionalTax"] == 200.0
        assert fields["incomeTax"] == 2500.0
        assert fields["providentFund"] == 1800.0
        assert fields["grossPay"] == 50000.0
        assert fields["totalDeductions"] == 4500.0
        assert fields["netPay"] == 45500.0
        assert fields["conveyanceAllowance"] == 0

    def test_items_and_confidence(self, payslip_text: str) -> None:
        document = self.extractor.extract(payslip_text)
        assert [(i["head"], i["category"]) for i in document.items] == [
            ("Basic Salary", "earning"),
            ("House Rent Allowance", "earning"),
            ("Special Allowance", "earning"),
            ("Professional Tax", "deduction"),
            ("Income Tax", "deduction"),
            ("Provident Fund", "deduction"),
        ]
        assert document.confidence == 100.0
        assert document.metadata["isValid"] is True
        assert document.metadata["warnings"] == []

    def test_derived_summary(self) -> None:
        text = (
            "Employee Name: RAVI KUMAR\n"
            "Basic Salary 20000.00\n"
            "HRA 5000.00\n"
            "Professional Tax 200.00\n"
        )
        document = self.extractor.extract(text)
        fields = document.fields
        sources = document.metadata["fieldSources"]
        assert fields["grossPay"] == 25000.0
        assert fields["totalDeductions"] == 200.0
        assert fields["netPay"] == 24800.0
        assert sources["grossPay"] == "derived"
        assert sources["netPay"] == "derived"
        assert sources["basicSalary"] == "amount_label"
        assert document.confidence == 75.0

    def test_net_pay_without_deductions(self) -> None:
        document = self.extractor.extract("Gross Salary: Rs. 40,000")
        assert document.fields["grossPay"] == 40000.0
        assert document.fields["netPay"] == 40000.0
        assert document.items == []

    def test_empty_text(self) -> None:
        document = self.extractor.extract("")
        assert document.confidence == 0.0
        assert document.items == []
        assert document.fields["employeeName"] == ""
        assert document.fields["netPay"] == 0
        assert document.metadata["isValid"] is False

    def test_rejects_non_string(self) -> None:
        with pytest.raises(TypeError):
            self.extractor.extract(b"Net Pay 100")  # type: ignore[arg-type]
