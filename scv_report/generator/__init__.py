"""Workbook generator package - xlsx sheet builders.

Modules:
    workbook: Sheet set creation and shared cell helpers
    headers: Section headers and zero pre-fill
    products: Products List sheet and thumbnails
    values: Per-user section values
    extras: Store Timers and Findability sheets
"""

from .extras import FindabilityPopulator, TimersPopulator
from .headers import HeaderGenerator
from .products import ImageFetcher, ProductsPopulator
from .values import ValueAssigner
from .workbook import SheetSet, build_sheet_set

__all__ = [
    "FindabilityPopulator",
    "HeaderGenerator",
    "ImageFetcher",
    "ProductsPopulator",
    "SheetSet",
    "TimersPopulator",
    "ValueAssigner",
    "build_sheet_set",
]
