"""Store Timers and Findability sheet populators.

Both are single-pass, one row per record.  The Findability sheet also
carries a validator count block: one row per distinct cell id with
COUNTIFS formulas tallying TRUE and FALSE validator answers.
"""

import logging

from openpyxl.utils import get_column_letter

from ..schema.config import COMMON_HEADS
from .workbook import FINDABILITY, TIMERS, SheetSet, apply_filter, set_width, write_header, write_identity


logger = logging.getLogger(__name__)

TIMER_HEADS = ("Total time", "Time shopping")
FINDABILITY_HEADS = ("Target Product(s)", "Selected Product", "Time to Selection", "Validator")

# Validator count block: cell id, TRUE count, FALSE count
COUNT_CELL_COLUMN = 9
COUNT_TRUE_COLUMN = 10
COUNT_FALSE_COLUMN = 11


def _max_length(values, floor: int) -> int:
    return max([floor] + [len(v) for v in values])


class TimersPopulator:
    """Fills the Store Timers sheet from the session records."""

    def __init__(self, sheet_set: SheetSet):
        self.sheet_set = sheet_set

    def populate(self, users) -> None:
        ws = self.sheet_set[TIMERS]
        style = self.sheet_set.header_style.name
        common = len(COMMON_HEADS)

        for column, name in enumerate(COMMON_HEADS, 1):
            write_header(ws, column, name, style)
        for offset, name in enumerate(TIMER_HEADS, common + 1):
            write_header(ws, offset, name, style, width=len(name) + 2)

        for i, user in enumerate(users):
            row = i + 2
            write_identity(ws, row, user.identity)
            ws.cell(row=row, column=common + 1, value=user.timers.total_time)
            ws.cell(row=row, column=common + 2, value=user.timers.shopping_time)

        set_width(ws, 3, _max_length((u.id_cell for u in users), len("Cell ID")) + 2)
        apply_filter(ws, common + len(TIMER_HEADS), len(users) + 1)


class FindabilityPopulator:
    """Fills the Findability sheet and its validator count block."""

    def __init__(self, sheet_set: SheetSet):
        self.sheet_set = sheet_set

    def populate(self, records) -> None:
        ws = self.sheet_set[FINDABILITY]
        style = self.sheet_set.header_style.name
        common = len(COMMON_HEADS)
        logger.info("Populating findability sheet with %d records", len(records))

        for column, name in enumerate(COMMON_HEADS, 1):
            write_header(ws, column, name, style)
        for column, name in enumerate(FINDABILITY_HEADS, common + 1):
            write_header(ws, column, name, style)

        for i, record in enumerate(records):
            row = i + 2
            write_identity(ws, row, record.identity)
            ws.cell(row=row, column=4, value=record.targets)
            ws.cell(row=row, column=5, value=record.selected)
            ws.cell(row=row, column=6, value=record.timer_raw)
            ws.cell(row=row, column=7, value=record.validator)

        cells_width = _max_length((r.id_cell for r in records), len("Cell ID"))
        set_width(ws, 3, cells_width + 2)
        set_width(ws, 4, _max_length((r.targets for r in records), len(FINDABILITY_HEADS[0])) + 2)
        for column, name in enumerate(FINDABILITY_HEADS[1:], 5):
            set_width(ws, column, len(name) + 4)

        self._write_validator_counts(ws, records, cells_width)
        apply_filter(ws, common + len(FINDABILITY_HEADS), len(records) + 1)

    def _write_validator_counts(self, ws, records, width) -> None:
        last = len(records) + 1
        cell_letter = get_column_letter(COUNT_CELL_COLUMN)
        ws.cell(row=1, column=COUNT_CELL_COLUMN, value="cell")
        ws.cell(row=1, column=COUNT_TRUE_COLUMN, value=True)
        ws.cell(row=1, column=COUNT_FALSE_COLUMN, value=False)
        set_width(ws, COUNT_CELL_COLUMN, width)

        for row, cell_id in enumerate(sorted({r.id_cell for r in records}), 2):
            ws.cell(row=row, column=COUNT_CELL_COLUMN, value=cell_id)
            for column in (COUNT_TRUE_COLUMN, COUNT_FALSE_COLUMN):
                answer = f"{get_column_letter(column)}$1"
                ws.cell(
                    row=row, column=column,
                    value=(f"=COUNTIFS($C$2:$C${last},${cell_letter}{row},"
                           f"$G$2:$G${last},{answer})"),
                )
