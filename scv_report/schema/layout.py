"""Column layouts for the per-user report sections.

Each section sheet is laid out as::

    | common head | base columns | product 1 block | product 2 block | ...

where every product block repeats the section's indexed columns.  All
column positions (1-based, as openpyxl expects) are derived from
:meth:`ColumnLayout.column`; header writers and value writers both go
through it so they cannot drift apart.
"""

from dataclasses import dataclass

from .config import COMMON_HEADS, Partner


SALES = "sales"
CLICKS = "clicks"
VIEWS = "views"
FUNNEL = "funnel"
NOT_PURCHASED = "not_purchased"


# ---------------------------------------------------------------------------
# Column names
# ---------------------------------------------------------------------------

TOTAL_ITEMS = "Total Items Purchased"
TOTAL_BASKET = "Total Basket Items"
AVG_BASKET_PRICE = "Avg Basket Price"
AVG_PRODUCTS = "Avg Products Purchased"
TOTAL_SPEND = "Total Spend"

FIRST_SELECTION = "First Selection"
TIME_FIRST_SELECTION = "Time First Selection"
TOTAL_SELECTED = "Total Products Selected"
AVG_INTERACTIONS = "Avg Interactions Per Product"

TOTAL_CONVERSION = "Total Conversion Rate"
TOTAL_NOT_PURCHASED = "Total Not Purchased"


# ---------------------------------------------------------------------------
# Layout descriptor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ColumnLayout:
    """Column map of one section sheet."""
    section: str
    product_count: int
    base_columns: tuple[str, ...]
    indexed_columns: tuple[str, ...]
    common_head_count: int = len(COMMON_HEADS)

    @property
    def total_columns(self) -> int:
        return (self.common_head_count + len(self.base_columns)
                + self.product_count * len(self.indexed_columns))

    @property
    def first_indexed_column(self) -> int:
        return self.common_head_count + len(self.base_columns) + 1

    @property
    def block_width(self) -> int:
        return len(self.indexed_columns)

    def column(self, product_index: int, template_index: int) -> int:
        """Column of indexed template *template_index* for product *product_index*.

        Both indexes are 0-based; the returned column is 1-based.
        """
        return get_column_index(product_index, self, template_index)

    def base_column(self, name: str) -> int:
        """1-based column of the base column called *name*."""
        try:
            return self.common_head_count + self.base_columns.index(name) + 1
        except ValueError:
            raise KeyError(f"{self.section} layout has no base column {name!r}") from None

    def has_base_column(self, name: str) -> bool:
        return name in self.base_columns

    def header_text(self, product_index: int, template_index: int) -> str:
        return f"{self.indexed_columns[template_index]}{product_index + 1}"

    def headers(self) -> list[str]:
        """Every row-1 header of the sheet in column order."""
        names = list(COMMON_HEADS[:self.common_head_count]) + list(self.base_columns)
        for p in range(self.product_count):
            for t in range(self.block_width):
                names.append(self.header_text(p, t))
        return names


def get_column_index(product_index: int, layout: ColumnLayout, template_index: int) -> int:
    """Offset formula shared by every header and value writer."""
    return product_index * len(layout.indexed_columns) + layout.first_indexed_column + template_index


# ---------------------------------------------------------------------------
# Section layouts
# ---------------------------------------------------------------------------

def sales_layout(product_count, partner: Partner, pricing_included,
                 common_head_count=len(COMMON_HEADS)):
    base = [TOTAL_ITEMS, TOTAL_BASKET]
    if partner.has_basket_metrics:
        base += [AVG_BASKET_PRICE, AVG_PRODUCTS]
    indexed = [
        "Purchased-Product Index:",
        "Quantity-Product Index:",
        "Sequence Index:",
        "Dwell Time Index:",
    ]
    if pricing_included:
        base.append(TOTAL_SPEND)
        indexed.append("Price-Product Index:")
    return ColumnLayout(SALES, product_count, tuple(base), tuple(indexed),
                        common_head_count)


def clicks_layout(product_count, partner: Partner,
                  common_head_count=len(COMMON_HEADS)):
    base = [FIRST_SELECTION, TIME_FIRST_SELECTION, TOTAL_SELECTED]
    if partner.has_interaction_average:
        base.append(AVG_INTERACTIONS)
    indexed = ("Selected-Product Index:", "Dwell-Time Index:")
    return ColumnLayout(CLICKS, product_count, tuple(base), indexed,
                        common_head_count)


def views_layout(product_count, common_head_count=len(COMMON_HEADS)):
    return ColumnLayout(VIEWS, product_count, (),
                        ("Viewed-Product Index:", "Time-Viewed Index:"),
                        common_head_count)


def funnel_layout(product_count, common_head_count=len(COMMON_HEADS)):
    return ColumnLayout(FUNNEL, product_count, (TOTAL_CONVERSION,),
                        ("Conversion Funnel Index:",), common_head_count)


def non_purchase_layout(product_count, common_head_count=len(COMMON_HEADS)):
    return ColumnLayout(NOT_PURCHASED, product_count, (TOTAL_NOT_PURCHASED,),
                        ("Product-Not-Purchased Index:", "Sequence Index:"),
                        common_head_count)


def section_layouts(product_count, partner: Partner, pricing_included) -> dict[str, ColumnLayout]:
    """All section layouts that exist for *partner*, keyed by section name."""
    layouts = {
        SALES: sales_layout(product_count, partner, pricing_included),
        CLICKS: clicks_layout(product_count, partner),
        VIEWS: views_layout(product_count),
    }
    if partner.has_funnel_sheets:
        layouts[FUNNEL] = funnel_layout(product_count)
        layouts[NOT_PURCHASED] = non_purchase_layout(product_count)
    return layouts
