"""Header generator - row 1 of every per-user section sheet.

Writes the common head, the section's base columns, and one header per
indexed column per product.  In standard dataset mode the numeric data
region is pre-filled with zeros so every cell is typed as a number before
the sparse value writes land; large-dataset mode skips the pre-fill.
"""

import logging

from openpyxl.worksheet.worksheet import Worksheet

from ..schema.config import COMMON_HEADS, ReportConfiguration
from ..schema.layout import ColumnLayout
from .workbook import CENTER, SheetSet, apply_filter, check_capacity, write_header


logger = logging.getLogger(__name__)


def write_section_headers(ws: Worksheet, layout: ColumnLayout, style: str) -> None:
    """Write all row-1 headers of one section sheet."""
    for column, name in enumerate(COMMON_HEADS[:layout.common_head_count], 1):
        write_header(ws, column, name, style)

    start = layout.common_head_count + 1
    for offset, name in enumerate(layout.base_columns):
        write_header(ws, start + offset, name, style, width=len(name) + 5)

    for p in range(layout.product_count):
        for t in range(layout.block_width):
            text = layout.header_text(p, t)
            write_header(ws, layout.column(p, t), text, style, width=len(text) + 5)


def zero_fill(ws: Worksheet, layout: ColumnLayout, user_count: int) -> None:
    """Pre-fill rows 2..user_count+1 of the indexed region with 0."""
    first, last = layout.first_indexed_column, layout.total_columns
    if last < first:
        return
    for row in range(2, user_count + 2):
        for column in range(first, last + 1):
            cell = ws.cell(row=row, column=column, value=0)
            cell.alignment = CENTER


class HeaderGenerator:
    """Writes headers (and the optional zero pre-fill) for each section."""

    def __init__(self, config: ReportConfiguration, sheet_set: SheetSet):
        self.config = config
        self.sheet_set = sheet_set

    def generate(self, layouts: dict[str, ColumnLayout], user_count: int) -> None:
        check_capacity(layouts.values(), user_count)
        style = self.sheet_set.header_style.name
        prefill = not self.config.large_dataset
        if not prefill:
            logger.info("Large dataset mode: skipping zero pre-fill")

        for section, layout in layouts.items():
            ws = self.sheet_set[section]
            write_section_headers(ws, layout, style)
            if prefill:
                zero_fill(ws, layout, user_count)
            apply_filter(ws, layout.total_columns, user_count + 1)
            logger.debug("Headers written for %s: %d columns",
                         section, layout.total_columns)
