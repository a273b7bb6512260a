"""Sheet set builder - creates the output workbook and its named sheets.

The full set of sheets is created up front, before any header or value
writer runs.  A retry after a capacity failure builds a brand-new
:class:`SheetSet` rather than reusing a partially written one.
"""

import io
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, NamedStyle
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from ..errors import CapacityError
from ..schema.config import ReportConfiguration
from ..schema.layout import CLICKS, FUNNEL, NOT_PURCHASED, SALES, VIEWS


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PRODUCTS = "products"
TIMERS = "timers"
FINDABILITY = "findability"

SHEET_TITLES = {
    PRODUCTS: "Products List",
    SALES: "Sales",
    CLICKS: "Stopping Power (clicks)",
    VIEWS: "View-ability",
    TIMERS: "Store Timers",
    FINDABILITY: "Findability",
    FUNNEL: "Conversion Funnel",
    NOT_PURCHASED: "Products Not Purchased",
}

BASE_SHEETS = (PRODUCTS, SALES, CLICKS, VIEWS, TIMERS, FINDABILITY)
FUNNEL_SHEETS = (FUNNEL, NOT_PURCHASED)

# Excel hard limits
MAX_COLUMNS = 16_384
MAX_ROWS = 1_048_576

HEADER_STYLE_NAME = "report_header"
AUTHOR = "scv-report-builder"

CENTER = Alignment(horizontal="center")


def sheet_keys_for(config: ReportConfiguration) -> tuple[str, ...]:
    """Sheet keys that exist for the configured partner, in workbook order."""
    if config.partner.has_funnel_sheets:
        return BASE_SHEETS + FUNNEL_SHEETS
    return BASE_SHEETS


# ---------------------------------------------------------------------------
# SheetSet
# ---------------------------------------------------------------------------

@dataclass
class SheetSet:
    """The in-progress workbook and its sheets keyed by section name."""
    workbook: Workbook
    sheets: dict[str, Worksheet]
    header_style: NamedStyle

    def __getitem__(self, key: str) -> Worksheet:
        return self.sheets[key]

    def __contains__(self, key: str) -> bool:
        return key in self.sheets

    def save(self, path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.workbook.save(path)
        logger.info("Excel file written: %s", path)
        return path

    def to_bytes(self) -> bytes:
        buf = io.BytesIO()
        self.workbook.save(buf)
        return buf.getvalue()


def build_sheet_set(config: ReportConfiguration, created: datetime | None = None) -> SheetSet:
    """Create a workbook holding every sheet the report will write."""
    wb = Workbook()
    wb.remove(wb.active)
    wb.properties.creator = AUTHOR
    if created is not None:
        wb.properties.created = created
        wb.properties.modified = created

    header_style = NamedStyle(name=HEADER_STYLE_NAME)
    header_style.font = Font(name="Work Sans Medium", size=12)
    wb.add_named_style(header_style)

    sheets = {key: wb.create_sheet(SHEET_TITLES[key]) for key in sheet_keys_for(config)}
    wb.active = 0
    return SheetSet(workbook=wb, sheets=sheets, header_style=header_style)


# ---------------------------------------------------------------------------
# Sheet helpers
# ---------------------------------------------------------------------------

def check_capacity(layouts, user_count: int) -> None:
    """Raise CapacityError if any section cannot fit in a worksheet."""
    if user_count + 1 > MAX_ROWS:
        raise CapacityError(f"{user_count} users exceed the {MAX_ROWS} row limit")
    for layout in layouts:
        if layout.total_columns > MAX_COLUMNS:
            raise CapacityError(
                f"{layout.section} needs {layout.total_columns} columns, "
                f"limit is {MAX_COLUMNS}"
            )


def write_header(ws: Worksheet, column: int, text: str, style: str = HEADER_STYLE_NAME,
                 width: float | None = None) -> None:
    cell = ws.cell(row=1, column=column, value=text)
    cell.style = style
    if width is not None:
        set_width(ws, column, width)


def write_identity(ws: Worksheet, row: int, identity) -> None:
    """Write the common head (survey, master, cell ids) as strings."""
    for column, value in enumerate(identity, 1):
        ws.cell(row=row, column=column, value=str(value))


def set_width(ws: Worksheet, column: int, width: float) -> None:
    ws.column_dimensions[get_column_letter(column)].width = width


def apply_filter(ws: Worksheet, last_column: int, last_row: int | None = None) -> None:
    """Add a row-1 auto-filter spanning columns A..*last_column*."""
    last_row = max(last_row or ws.max_row, 1)
    ws.auto_filter.ref = f"A1:{get_column_letter(max(last_column, 1))}{last_row}"
