"""
Excel report generator for reconciliation results.
Creates multi-sheet workbooks with formatted output.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Optional
import logging

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.worksheet.worksheet import Worksheet

from ..config import ReconConfig
from ..models.results import MatchDetail, ReconciliationState
from ..models.transaction import BankRecord, MatchType, ReceiptRecord
from ..utils.exceptions import ReportGenerationError

logger = logging.getLogger(__name__)

# Style definitions
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
MATCH_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
MANUAL_FILL = PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid")
VARIANCE_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
UNMATCHED_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)


class ExcelReportGenerator:
    """Generates Excel reconciliation reports with multiple sheets."""

    def __init__(self, config: ReconConfig):
        """
        Initialize the report generator.

        Args:
            config: Application configuration
        """
        self.config = config
        self.output_config = config.output.excel
        self.sheet_config = config.output.sheets

    def default_output_path(self) -> Path:
        """Output path built from the configured filename template."""
        now = datetime.now()
        return Path(
            self.output_config.filename_template.format(
                date=now.strftime("%Y%m%d"), time=now.strftime("%H%M%S")
            )
        )

    def generate_report(
        self,
        state: ReconciliationState,
        output_path: Path,
        history: Optional[list[MatchDetail]] = None,
    ) -> Path:
        """
        Generate the complete reconciliation report.

        Args:
            state: Current reconciliation state
            output_path: Path for output file
            history: Optional match history entries, newest first

        Returns:
            Path to generated report

        Raises:
            ReportGenerationError: If the workbook cannot be written
        """
        logger.info(f"Generating Excel report: {output_path}")

        wb = Workbook()
        if wb.active:
            wb.remove(wb.active)

        if self.sheet_config.summary.enabled:
            self._create_summary_sheet(wb, state)
        if self.sheet_config.matched.enabled:
            self._create_matched_sheet(wb, state.matches)
        if self.sheet_config.receipt_only.enabled:
            self._create_receipt_only_sheet(wb, state.receipt_only)
        if self.sheet_config.bank_only.enabled:
            self._create_bank_only_sheet(wb, state.bank_only)
        if history is not None and self.sheet_config.history.enabled:
            self._create_history_sheet(wb, history)

        if not wb.sheetnames:
            raise ReportGenerationError("All report sheets are disabled")

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            wb.save(output_path)
        except OSError as e:
            raise ReportGenerationError(f"Failed to save report {output_path}: {e}") from e

        logger.info(f"Report saved: {output_path}")
        return output_path

    def _create_summary_sheet(self, wb: Workbook, state: ReconciliationState) -> None:
        """Create the summary sheet with key metrics."""
        ws = wb.create_sheet(self.sheet_config.summary.name)
        summary = state.summary

        ws["A1"] = "Receipt Reconciliation Summary"
        ws["A1"].font = Font(size=16, bold=True)
        ws.merge_cells("A1:D1")

        ws["A3"] = "Generated At:"
        ws["B3"] = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        ws["A4"] = "Config File:"
        ws["B4"] = self.config.config_file_path or "Default"

        ws["A6"] = "Counts"
        ws["A6"].font = Font(bold=True)

        count_data = [
            ("Total Receipts:", summary.total_receipts),
            ("Total Bank Debits:", summary.total_bank_transactions),
            ("Matched:", summary.total_matches),
            ("  Exact:", summary.exact_matches),
            ("  Probable:", summary.probable_matches),
            ("  Manual:", summary.manual_matches),
            ("Receipt Only (Unmatched):", summary.receipt_only_count),
            ("Bank Only (Unmatched):", summary.bank_only_count),
            ("Reconciliation Rate:", f"{summary.reconciliation_rate:.1f}%"),
        ]

        for i, (label, value) in enumerate(count_data, start=7):
            ws[f"A{i}"] = label
            ws[f"B{i}"] = value
            ws[f"B{i}"].alignment = Alignment(horizontal="right")

        ws.column_dimensions["A"].width = 30
        ws.column_dimensions["B"].width = 30

    def _create_matched_sheet(self, wb: Workbook, matches: list[MatchDetail]) -> None:
        """Create the matched pairs sheet."""
        ws = wb.create_sheet(self.sheet_config.matched.name)

        headers = [
            "Match ID",
            "Receipt Date",
            "Merchant",
            "Receipt Amount",
            "Bank Date",
            "Bank Description",
            "Bank Amount",
            "Confidence",
            "Match Type",
            "Manual",
            "Amount Difference",
            "Date Difference (Days)",
            "Notes",
        ]
        self._write_headers(ws, headers)

        for row_num, detail in enumerate(matches, start=2):
            match = detail.match
            amount_diff = detail.amount_difference
            row_data = [
                match.id,
                detail.receipt.transaction_date,
                detail.receipt.merchant_name,
                _as_float(detail.receipt.total_amount),
                detail.bank_record.transaction_date,
                detail.bank_record.description,
                _as_float(detail.bank_record.amount),
                float(match.confidence),
                match.match_type.value,
                "Yes" if match.is_manual else "No",
                _as_float(amount_diff) if amount_diff else "",
                detail.date_difference_days or "",
                match.notes or "",
            ]

            if match.is_manual:
                fill = MANUAL_FILL
            elif match.match_type == MatchType.EXACT:
                fill = MATCH_FILL
            else:
                fill = VARIANCE_FILL
            self._write_row(ws, row_num, row_data, fill)

        self._auto_fit_columns(ws)

    def _create_receipt_only_sheet(
        self, wb: Workbook, receipts: list[ReceiptRecord]
    ) -> None:
        """Create the unmatched receipts sheet."""
        ws = wb.create_sheet(self.sheet_config.receipt_only.name)

        headers = ["Receipt ID", "Date", "Merchant", "Amount", "Source File", "Email ID"]
        self._write_headers(ws, headers)

        for row_num, receipt in enumerate(receipts, start=2):
            row_data = [
                receipt.id,
                receipt.transaction_date,
                receipt.merchant_name,
                _as_float(receipt.total_amount),
                receipt.filename or "",
                receipt.email_id or "",
            ]
            self._write_row(ws, row_num, row_data, UNMATCHED_FILL)

        self._auto_fit_columns(ws)

    def _create_bank_only_sheet(self, wb: Workbook, records: list[BankRecord]) -> None:
        """Create the unmatched bank debits sheet."""
        ws = wb.create_sheet(self.sheet_config.bank_only.name)

        headers = [
            "Bank ID",
            "Date",
            "Description",
            "Amount",
            "Reference",
            "Account",
            "Statement File",
        ]
        self._write_headers(ws, headers)

        for row_num, record in enumerate(records, start=2):
            row_data = [
                record.id,
                record.transaction_date,
                record.description,
                float(record.amount),
                record.reference or "",
                record.account_number or "",
                record.statement_file,
            ]
            self._write_row(ws, row_num, row_data, UNMATCHED_FILL)

        self._auto_fit_columns(ws)

    def _create_history_sheet(self, wb: Workbook, history: list[MatchDetail]) -> None:
        """Create the match history sheet."""
        ws = wb.create_sheet(self.sheet_config.history.name)

        headers = ["Created At", "Match ID", "Receipt ID", "Bank ID", "Type", "Confidence", "Notes"]
        self._write_headers(ws, headers)

        for row_num, detail in enumerate(history, start=2):
            match = detail.match
            row_data = [
                match.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                match.id,
                match.receipt_id,
                match.bank_transaction_id,
                match.match_type.value,
                float(match.confidence),
                match.notes or "",
            ]
            self._write_row(ws, row_num, row_data)

        self._auto_fit_columns(ws)

    def _write_headers(self, ws: Worksheet, headers: list[str]) -> None:
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER

    def _write_row(
        self,
        ws: Worksheet,
        row_num: int,
        values: list[Any],
        fill: Optional[PatternFill] = None,
    ) -> None:
        for col, value in enumerate(values, start=1):
            cell = ws.cell(row=row_num, column=col, value=value)
            cell.border = THIN_BORDER
            if fill is not None:
                cell.fill = fill

    def _auto_fit_columns(self, ws: Worksheet) -> None:
        """Auto-fit column widths based on content."""
        for column_cells in ws.columns:
            max_length = max(
                (len(str(cell.value)) for cell in column_cells if cell.value is not None),
                default=0,
            )
            column = column_cells[0].column_letter
            ws.column_dimensions[column].width = min(max_length + 2, 50)


def _as_float(value) -> Any:
    return float(value) if value is not None else ""
