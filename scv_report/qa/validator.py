"""QA validator - reads a generated workbook back and checks its structure.

Validates that a built report matches its layout contract: the sheet set
expected for the partner is present, every section header sits in the
column the layout assigns to it, and every per-user sheet has one row per
respondent in the same order as the Store Timers sheet.  Product and user
counts are inferred from the Products List and Store Timers sheets.

Usage::

    from scv_report.qa.validator import WorkbookValidator

    result = WorkbookValidator("niq_store_01").validate("report.xlsx")
    assert result.passed, result.report()
"""

import io
from dataclasses import dataclass, field
from pathlib import Path

from openpyxl import load_workbook

from ..generator.workbook import PRODUCTS, SHEET_TITLES, TIMERS, sheet_keys_for
from ..schema.config import COMMON_HEADS, ReportConfiguration
from ..schema.layout import SALES, TOTAL_SPEND, section_layouts


MAX_REPORTED_MISMATCHES = 5


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class Issue:
    """A single QA issue found during validation."""
    severity: str       # "error" or "warning"
    sheet: str          # "" for workbook-level issues
    category: str       # e.g. "sheet_missing", "header", "row_count"
    message: str

    def __str__(self) -> str:
        loc = f"sheet {self.sheet!r}" if self.sheet else "workbook"
        return f"[{self.severity.upper()}] {loc}: {self.message}"


@dataclass
class QAResult:
    """Aggregated result of QA validation."""
    issues: list[Issue] = field(default_factory=list)
    product_count: int = 0
    user_count: int = 0
    pricing_included: bool = False

    @property
    def errors(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def passed(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        """One-line summary string."""
        status = "PASS" if self.passed else "FAIL"
        return (
            f"QA {status}: {len(self.errors)} error(s), "
            f"{len(self.warnings)} warning(s) "
            f"[{self.product_count} products, {self.user_count} users]"
        )

    def report(self) -> str:
        """Multi-line report of all issues."""
        lines = [self.summary()]
        for issue in self.issues:
            lines.append(f"  {issue}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _row_values(ws, row: int, width: int) -> list:
    return [ws.cell(row=row, column=c).value for c in range(1, width + 1)]


def _data_rows(ws) -> int:
    return max(ws.max_row - 1, 0)


def _identities(ws, user_count: int) -> list[tuple]:
    width = len(COMMON_HEADS)
    return [tuple(_row_values(ws, row, width)) for row in range(2, user_count + 2)]


# ---------------------------------------------------------------------------
# WorkbookValidator
# ---------------------------------------------------------------------------

class WorkbookValidator:
    """Validates a generated report workbook for one project."""

    def __init__(self, project_id: str):
        self.config = ReportConfiguration(project_id)

    def validate(self, source) -> QAResult:
        """Validate a workbook given as a path or raw bytes."""
        if isinstance(source, (bytes, bytearray)):
            source = io.BytesIO(source)
        elif isinstance(source, str):
            source = Path(source)
        wb = load_workbook(source)
        result = QAResult()

        sheets = self._check_sheet_set(wb, result)
        if PRODUCTS not in sheets or TIMERS not in sheets:
            return result

        result.product_count = _data_rows(sheets[PRODUCTS])
        result.user_count = _data_rows(sheets[TIMERS])
        if SALES in sheets:
            sales_width = sheets[SALES].max_column
            result.pricing_included = TOTAL_SPEND in _row_values(sheets[SALES], 1, sales_width)

        layouts = section_layouts(result.product_count, self.config.partner,
                                  result.pricing_included)
        expected_ids = _identities(sheets[TIMERS], result.user_count)
        for section, layout in layouts.items():
            ws = sheets.get(section)
            if ws is None:
                continue
            self._check_headers(ws, layout, result)
            self._check_rows(ws, expected_ids, result)
        return result

    # -- checks -------------------------------------------------------------

    def _check_sheet_set(self, wb, result: QAResult) -> dict:
        expected = sheet_keys_for(self.config)
        sheets = {}
        for key in expected:
            title = SHEET_TITLES[key]
            if title in wb.sheetnames:
                sheets[key] = wb[title]
            else:
                result.issues.append(Issue("error", title, "sheet_missing",
                                           "expected sheet is missing"))
        known = {SHEET_TITLES[k] for k in expected}
        for title in wb.sheetnames:
            if title not in known:
                result.issues.append(Issue("warning", title, "sheet_unexpected",
                                           "sheet is not part of this partner's report"))
        return sheets

    def _check_headers(self, ws, layout, result: QAResult) -> None:
        expected = layout.headers()
        actual = _row_values(ws, 1, max(len(expected), ws.max_column))
        mismatches = [
            (column, want, got)
            for column, (want, got) in enumerate(zip(expected, actual), 1)
            if want != got
        ]
        for column, want, got in mismatches[:MAX_REPORTED_MISMATCHES]:
            result.issues.append(Issue(
                "error", ws.title, "header",
                f"column {column}: expected {want!r}, found {got!r}"))
        if len(mismatches) > MAX_REPORTED_MISMATCHES:
            result.issues.append(Issue(
                "error", ws.title, "header",
                f"{len(mismatches) - MAX_REPORTED_MISMATCHES} more header mismatch(es)"))

        extra = [v for v in actual[len(expected):] if v is not None]
        if extra:
            result.issues.append(Issue(
                "error", ws.title, "header",
                f"{len(extra)} header(s) beyond the last product block"))

    def _check_rows(self, ws, expected_ids, result: QAResult) -> None:
        rows = _data_rows(ws)
        if rows != len(expected_ids):
            result.issues.append(Issue(
                "error", ws.title, "row_count",
                f"{rows} data row(s), Store Timers has {len(expected_ids)}"))
            return
        if _identities(ws, rows) != expected_ids:
            result.issues.append(Issue(
                "error", ws.title, "identity",
                "respondent identity columns differ from Store Timers"))


def validate_workbook(source, project_id: str) -> QAResult:
    """Convenience wrapper around :class:`WorkbookValidator`."""
    return WorkbookValidator(project_id).validate(source)
