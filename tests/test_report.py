"""Tests for the Excel reconciliation report."""

from datetime import date

import pytest
from openpyxl import load_workbook

from receipt_recon.reports.excel_generator import ExcelReportGenerator
from receipt_recon.utils.exceptions import ReportGenerationError

from .factories import make_receipt


@pytest.fixture
def reconciled(service, statement_csv):
    service.add_receipts(
        [make_receipt(), make_receipt("Unknown Vendor", "999.99", date(2023, 6, 1))]
    )
    service.ingest(statement_csv, reconcile=True)
    return service


class TestExcelReport:
    def test_sheets_and_rows(self, reconciled, config, tmp_path):
        state = reconciled.get_reconciliation_state()
        history = reconciled.get_reconciliation_history().entries
        output = tmp_path / "out" / "report.xlsx"

        path = ExcelReportGenerator(config).generate_report(state, output, history=history)

        wb = load_workbook(path)
        assert wb.sheetnames == [
            "Summary",
            "Matched",
            "Receipt Only",
            "Bank Only",
            "Match History",
        ]

        matched = wb["Matched"]
        assert matched["A1"].value == "Match ID"
        assert matched["C2"].value == "Walmart"
        assert matched["H2"].value == 96.0
        assert matched["I2"].value == "exact"
        assert matched.max_row == 2

        assert wb["Receipt Only"]["C2"].value == "Unknown Vendor"
        # Coffee shop and gas station debits have no receipt
        assert wb["Bank Only"].max_row == 3
        assert wb["Match History"].max_row == 2

        summary = wb["Summary"]
        assert summary["A7"].value == "Total Receipts:"
        assert summary["B7"].value == 2

    def test_history_sheet_needs_history(self, reconciled, config, tmp_path):
        state = reconciled.get_reconciliation_state()

        path = ExcelReportGenerator(config).generate_report(state, tmp_path / "r.xlsx")

        assert "Match History" not in load_workbook(path).sheetnames

    def test_disabled_sheet_is_skipped(self, reconciled, config, tmp_path):
        config.output.sheets.bank_only.enabled = False
        state = reconciled.get_reconciliation_state()

        path = ExcelReportGenerator(config).generate_report(state, tmp_path / "r.xlsx")

        assert "Bank Only" not in load_workbook(path).sheetnames

    def test_all_sheets_disabled(self, reconciled, config, tmp_path):
        sheets = config.output.sheets
        for sheet in (sheets.summary, sheets.matched, sheets.receipt_only, sheets.bank_only):
            sheet.enabled = False

        with pytest.raises(ReportGenerationError):
            ExcelReportGenerator(config).generate_report(
                reconciled.get_reconciliation_state(), tmp_path / "r.xlsx"
            )

    def test_default_output_path_uses_template(self, config):
        path = ExcelReportGenerator(config).default_output_path()
        assert path.name.startswith("reconciliation_report_")
        assert path.suffix == ".xlsx"
