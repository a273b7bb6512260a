"""Per-user value assigner - the core of the report.

For every respondent (row = position + 2) the assigner walks the sales,
clicks and views event lists and writes each value at the column given
by the section's :class:`~scv_report.schema.layout.ColumnLayout`.  Per-user
totals go into the section's base columns.  For partners with funnel
sheets a second pass fills Conversion Funnel and Products Not Purchased.

Rules worth knowing:

- Event indexes are 1-based product positions; ``-1`` means "no target"
  and is never written to an indexed column.
- A view is written only when ``timer > 0.4999``.
- Missing or non-numeric dwell times are written as ``-1`` and logged.
- Average basket metrics are written as formulas referencing the row's
  own total cells, or as a literal 0 when a referenced total is zero.
"""

import logging

from openpyxl.utils import get_column_letter

from ..schema.config import ReportConfiguration
from ..schema.layout import (
    AVG_BASKET_PRICE,
    AVG_INTERACTIONS,
    AVG_PRODUCTS,
    CLICKS,
    FIRST_SELECTION,
    FUNNEL,
    NOT_PURCHASED,
    SALES,
    TIME_FIRST_SELECTION,
    TOTAL_BASKET,
    TOTAL_CONVERSION,
    TOTAL_ITEMS,
    TOTAL_NOT_PURCHASED,
    TOTAL_SELECTED,
    TOTAL_SPEND,
    VIEWS,
    ColumnLayout,
)
from .workbook import SheetSet, write_identity


logger = logging.getLogger(__name__)

MISSING_DWELL_TIME = -1
VIEW_TIMER_THRESHOLD = 0.4999
NO_TARGET = -1


def _cell_ref(layout: ColumnLayout, name: str, row: int) -> str:
    return f"{get_column_letter(layout.base_column(name))}{row}"


def product_position(layout: ColumnLayout, index: int, user, kind: str):
    """0-based product position of a 1-based event index, or None if off the shelf."""
    if 1 <= index <= layout.product_count:
        return index - 1
    logger.warning("Ignoring %s event with out-of-range index %s: idMaster=%s",
                   kind, index, user.id_master)
    return None


def view_is_counted(view) -> bool:
    """A view lands in the sheet only with a target and more than ~half a second."""
    return view.index != NO_TARGET and view.timer > VIEW_TIMER_THRESHOLD


class ValueAssigner:
    """Writes per-user values into the section sheets."""

    def __init__(self, config: ReportConfiguration, sheet_set: SheetSet,
                 layouts: dict[str, ColumnLayout]):
        self.config = config
        self.sheet_set = sheet_set
        self.layouts = layouts
        self.partner = config.partner
        self.pricing = config.pricing_included

    # -- entry points -------------------------------------------------------

    def assign(self, users, products) -> None:
        """Fill Sales, Clicks and Views for every user."""
        prices = {}
        for product in products:
            prices.setdefault(product.id_product, product.price_value)
        sheets = [self.sheet_set[s] for s in (SALES, CLICKS, VIEWS)]
        if self.config.is_aoi:
            logger.info("AOI mode: sales section left empty")

        for i, user in enumerate(users):
            row = i + 2
            for ws in sheets:
                write_identity(ws, row, user.identity)
            if not self.config.is_aoi:
                self.assign_sales(user, row, prices)
            self.assign_clicks(user, row)
            self.assign_views(user, row)

    def assign_funnels(self, users) -> None:
        """Fill Conversion Funnel and Products Not Purchased for every user."""
        if not self.partner.has_funnel_sheets:
            return
        logger.info("Processing funnel and non-purchase data for %d users", len(users))
        sheets = [self.sheet_set[FUNNEL], self.sheet_set[NOT_PURCHASED]]
        for i, user in enumerate(users):
            row = i + 2
            if i % 100 == 0:
                logger.debug("Processing user %d/%d", i + 1, len(users))
            for ws in sheets:
                write_identity(ws, row, user.identity)
            self.assign_funnel(user, row)
            self.assign_not_purchased(user, row)

    # -- sales --------------------------------------------------------------

    def assign_sales(self, user, row, prices) -> None:
        ws = self.sheet_set[SALES]
        layout = self.layouts[SALES]
        total_items = 0
        total_spend = 0
        cart_items = 0

        for sale in user.sales:
            price = prices.get(sale.id_product, 0)
            if self.pricing:
                total_spend += sale.quantity * price
            total_items += sale.quantity
            cart_items += 1

            p = product_position(layout, sale.index, user, "sale")
            if p is None:
                continue
            ws.cell(row=row, column=layout.column(p, 0), value=1)
            ws.cell(row=row, column=layout.column(p, 1), value=sale.quantity)
            ws.cell(row=row, column=layout.column(p, 2), value=sale.sequence)

            dwell_time = sale.dwell_time
            if dwell_time is None:
                logger.warning("Missing dwell time on sale: idProduct=%s idMaster=%s",
                               sale.id_product, user.id_master)
                dwell_time = MISSING_DWELL_TIME
            ws.cell(row=row, column=layout.column(p, 3), value=dwell_time)
            if self.pricing:
                ws.cell(row=row, column=layout.column(p, 4), value=price)

        ws.cell(row=row, column=layout.base_column(TOTAL_ITEMS), value=total_items)
        ws.cell(row=row, column=layout.base_column(TOTAL_BASKET), value=cart_items)

        if self.pricing:
            ws.cell(row=row, column=layout.base_column(TOTAL_SPEND), value=total_spend)

        if self.partner.has_basket_metrics:
            avg_price, avg_products = 0, 0
            if self.pricing and total_items and cart_items and total_spend:
                items_ref = _cell_ref(layout, TOTAL_ITEMS, row)
                basket_ref = _cell_ref(layout, TOTAL_BASKET, row)
                spend_ref = _cell_ref(layout, TOTAL_SPEND, row)
                avg_price = f"={spend_ref}/{items_ref}"
                avg_products = f"={items_ref}/{basket_ref}"
            ws.cell(row=row, column=layout.base_column(AVG_BASKET_PRICE), value=avg_price)
            ws.cell(row=row, column=layout.base_column(AVG_PRODUCTS), value=avg_products)

    # -- clicks -------------------------------------------------------------

    def assign_clicks(self, user, row) -> None:
        ws = self.sheet_set[CLICKS]
        layout = self.layouts[CLICKS]
        first_selection = 0
        time_first_selection = 0
        interactions = 0

        for j, click in enumerate(user.clicks):
            interactions += click.count
            if j == 0:
                first_selection = click.index
                time_first_selection = click.time
            if click.index == NO_TARGET:
                continue

            p = product_position(layout, click.index, user, "click")
            if p is None:
                continue
            ws.cell(row=row, column=layout.column(p, 0), value=1)
            dwell_time = click.dwell_time
            if dwell_time is None:
                logger.warning("Missing dwell time on click: idProduct=%s idMaster=%s",
                               click.id_product, user.id_master)
                dwell_time = MISSING_DWELL_TIME
            ws.cell(row=row, column=layout.column(p, 1), value=dwell_time)

        ws.cell(row=row, column=layout.base_column(FIRST_SELECTION), value=first_selection)
        ws.cell(row=row, column=layout.base_column(TIME_FIRST_SELECTION),
                value=time_first_selection)
        ws.cell(row=row, column=layout.base_column(TOTAL_SELECTED), value=len(user.clicks))

        if self.partner.has_interaction_average:
            average = interactions / len(user.clicks) if user.clicks else 0
            ws.cell(row=row, column=layout.base_column(AVG_INTERACTIONS), value=average)

    # -- views --------------------------------------------------------------

    def assign_views(self, user, row) -> None:
        ws = self.sheet_set[VIEWS]
        layout = self.layouts[VIEWS]
        for view in user.views:
            if not view_is_counted(view):
                continue
            p = product_position(layout, view.index, user, "view")
            if p is None:
                continue
            ws.cell(row=row, column=layout.column(p, 0), value=1)
            ws.cell(row=row, column=layout.column(p, 1), value=view.timer)

    # -- funnel / not purchased ---------------------------------------------

    def assign_funnel(self, user, row) -> None:
        ws = self.sheet_set[FUNNEL]
        layout = self.layouts[FUNNEL]
        purchases = 0
        for funnel in user.funnels:
            if funnel.conversion == 1:
                purchases += 1
            if funnel.index == NO_TARGET:
                continue
            p = product_position(layout, funnel.index, user, "funnel")
            if p is not None:
                ws.cell(row=row, column=layout.column(p, 0), value=funnel.conversion)

        rate = purchases / len(user.funnels) if user.funnels else 0
        ws.cell(row=row, column=layout.base_column(TOTAL_CONVERSION), value=rate)

    def assign_not_purchased(self, user, row) -> None:
        ws = self.sheet_set[NOT_PURCHASED]
        layout = self.layouts[NOT_PURCHASED]
        for position, event in enumerate(user.not_purchased, 1):
            if event.index == NO_TARGET:
                continue
            p = product_position(layout, event.index, user, "not-purchased")
            if p is None:
                continue
            ws.cell(row=row, column=layout.column(p, 0), value=1)
            ws.cell(row=row, column=layout.column(p, 1), value=position)

        ws.cell(row=row, column=layout.base_column(TOTAL_NOT_PURCHASED),
                value=len(user.not_purchased))
