"""Report configuration - validated run parameters for one report run.

Holds the project identifier and run options, selects the partner variant
from the project identifier, derives the blob-storage locations of the
input documents, and owns pricing auto-detection.

Usage::

    config = ReportConfiguration.from_options("niq_store_01", {"is_final": False})
    config.partner.has_funnel_sheets        # True
    config.storage_locations().products     # report/input/niq_store_01/...
    config.resolve_pricing_mode(products)   # detected once, then cached
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime

import pandas as pd

from ..errors import ConfigurationError
from .models import DatasetSizeMode, to_number


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Static sheet configuration
# ---------------------------------------------------------------------------

COMMON_HEADS = ("Survey ID", "SF ID", "Cell ID")

# (header, Product attribute)
PRODUCT_HEADERS = (
    ("Image", "url"),
    ("Cells", "cells"),
    ("Product ID", "id_product"),
    ("Index", "index"),
    ("Name", "description"),
)

DEFAULT_LARGE_DATASET_THRESHOLD = 1_000_000
DEFAULT_PRICE_THRESHOLD = 0.5
SIGNED_URL_EXPIRY_SECONDS = 604_800

INPUT_PREFIX = "report/input"
OUTPUT_PREFIX = "report/output"


# ---------------------------------------------------------------------------
# Partner variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Partner:
    """Capabilities selected by the project's partner code."""
    code: str
    has_basket_metrics: bool = False       # Avg basket price / products purchased
    has_interaction_average: bool = False  # Avg interactions per product
    has_funnel_sheets: bool = False        # Conversion Funnel / Products Not Purchased


NIQ_CODE = "niq"


def partner_for(project_id: str) -> Partner:
    """Pick the partner variant from the first three characters of *project_id*."""
    code = project_id[:3]
    if code == NIQ_CODE:
        return Partner(code, has_basket_metrics=True,
                       has_interaction_average=True,
                       has_funnel_sheets=True)
    return Partner(code)


# ---------------------------------------------------------------------------
# Storage locations
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StorageLocations:
    products: str
    scv: str
    findability: str
    heatmaps: str

    @classmethod
    def for_project(cls, project_id: str) -> "StorageLocations":
        base = f"{INPUT_PREFIX}/{project_id}/{project_id}"
        return cls(
            products=f"{base}-products.json",
            scv=f"{base}-scv.json",
            findability=f"{base}-find.json",
            heatmaps=f"{base}-heatmapsData.json",
        )


# ---------------------------------------------------------------------------
# Price detection
# ---------------------------------------------------------------------------

def detect_has_pricing(products, threshold=DEFAULT_PRICE_THRESHOLD) -> bool:
    """Decide whether enough products carry a usable price.

    Each price goes through :func:`to_number`, the conversion the Price
    columns use, and is classified as valid (> 0), zero, or null/invalid.
    Pricing is included when ``valid / total >= threshold``.  An empty
    product list never includes pricing.
    """
    if not products:
        logger.info("Price detection: no products found, excluding pricing")
        return False

    prices = pd.Series([to_number(p.price) for p in products], dtype="float64")
    total = len(prices)
    valid = prices[prices > 0]
    zero_count = int((prices == 0).sum())
    null_count = int(prices.isna().sum())

    ratio = len(valid) / total
    has_pricing = ratio >= threshold

    logger.info(
        "Price detection: %d products, %d valid (%.1f%%), %d zero, "
        "%d null/invalid, threshold %.1f%%",
        total, len(valid), ratio * 100, zero_count, null_count, threshold * 100,
    )
    if len(valid):
        logger.info("Price range: %.2f - %.2f, average %.2f",
                    valid.min(), valid.max(), valid.mean())
    logger.info("Price detection decision: %s",
                "include pricing" if has_pricing else "exclude pricing")
    return has_pricing


# ---------------------------------------------------------------------------
# Option validation
# ---------------------------------------------------------------------------

_OPTION_ALIASES = {
    "isFinal": "is_final",
    "hasPrices": "has_prices",
    "hasFindability": "has_findability",
    "isAoi": "is_aoi",
    "largeDataSet": "large_dataset",
    "largeDatasetThreshold": "large_dataset_threshold",
    "priceThreshold": "price_threshold",
    "imagesBaseUrl": "images_base_url",
}

_BOOL_OPTIONS = {"is_final", "has_prices", "has_findability", "is_aoi", "large_dataset"}
_VALID_OPTIONS = _BOOL_OPTIONS | {
    "large_dataset_threshold", "price_threshold", "images_base_url",
}


def normalize_options(options) -> dict:
    """Validate a request-style options mapping and return snake_case keys.

    Raises:
        ConfigurationError: listing every invalid option.
    """
    if options is None:
        return {}
    if not isinstance(options, dict):
        raise ConfigurationError("options must be a mapping")

    errors = []
    normalized = {}
    for key, value in options.items():
        name = _OPTION_ALIASES.get(key, key)
        if name not in _VALID_OPTIONS:
            errors.append(f"Unknown option: {key}")
            continue
        if value is None:
            continue
        if name in _BOOL_OPTIONS and not isinstance(value, bool):
            errors.append(f"{key} must be a boolean")
        elif name == "large_dataset_threshold" and (
                isinstance(value, bool) or not isinstance(value, (int, float))):
            errors.append(f"{key} must be a number")
        elif name == "price_threshold" and (
                isinstance(value, bool) or not isinstance(value, (int, float))
                or not 0 <= value <= 1):
            errors.append(f"{key} must be a number between 0 and 1")
        elif name == "images_base_url" and not isinstance(value, str):
            errors.append(f"{key} must be a string")
        normalized[name] = value

    if errors:
        raise ConfigurationError("; ".join(errors))
    return normalized


# ---------------------------------------------------------------------------
# ReportConfiguration
# ---------------------------------------------------------------------------

@dataclass
class ReportConfiguration:
    """Run parameters for one report.

    ``has_prices`` set to ``None`` means pricing is auto-detected from the
    product list on first use and cached for the remainder of the run.
    """
    project_id: str
    is_final: bool = True
    has_prices: bool | None = None
    has_findability: bool = True
    is_aoi: bool = False
    dataset_size_mode: DatasetSizeMode = DatasetSizeMode.STANDARD
    large_dataset_threshold: int = DEFAULT_LARGE_DATASET_THRESHOLD
    price_threshold: float = DEFAULT_PRICE_THRESHOLD
    images_base_url: str | None = None
    _detected_pricing: bool | None = field(default=None, init=False, repr=False)

    def __post_init__(self):
        if not isinstance(self.project_id, str) or not self.project_id.strip():
            raise ConfigurationError("project_id is required")
        if not 0 <= self.price_threshold <= 1:
            raise ConfigurationError("price_threshold must be between 0 and 1",
                                     project_id=self.project_id)
        if isinstance(self.dataset_size_mode, str):
            self.dataset_size_mode = DatasetSizeMode(self.dataset_size_mode)

    @classmethod
    def from_options(cls, project_id, options=None) -> "ReportConfiguration":
        opts = normalize_options(options)
        large = opts.pop("large_dataset", False)
        return cls(
            project_id=project_id,
            dataset_size_mode=DatasetSizeMode.LARGE if large else DatasetSizeMode.STANDARD,
            **opts,
        )

    # -- partner ------------------------------------------------------------

    @property
    def partner_code(self) -> str:
        return self.project_id[:3]

    @property
    def partner(self) -> Partner:
        return partner_for(self.project_id)

    # -- dataset size -------------------------------------------------------

    @property
    def large_dataset(self) -> bool:
        return self.dataset_size_mode is DatasetSizeMode.LARGE

    def enter_large_dataset_mode(self) -> bool:
        """Switch to large-dataset mode.  Returns False if already there."""
        if self.large_dataset:
            return False
        logger.info("Project %s: switching to large dataset mode", self.project_id)
        self.dataset_size_mode = DatasetSizeMode.LARGE
        return True

    def exceeds_large_dataset_threshold(self, user_count, product_count) -> bool:
        """True when the zero pre-fill estimate is above the threshold."""
        estimated_cells = user_count * product_count * 5
        if estimated_cells > self.large_dataset_threshold:
            logger.info(
                "Dataset analysis: %d users x %d products -> %d estimated cells "
                "(threshold %d), large dataset mode recommended",
                user_count, product_count, estimated_cells,
                self.large_dataset_threshold,
            )
            return True
        return False

    # -- pricing ------------------------------------------------------------

    @property
    def pricing_explicit(self) -> bool:
        return self.has_prices is not None

    @property
    def pricing_included(self) -> bool:
        if self.pricing_explicit:
            return self.has_prices
        return bool(self._detected_pricing)

    def detect_has_pricing(self, products) -> bool:
        return detect_has_pricing(products, self.price_threshold)

    def resolve_pricing_mode(self, products) -> bool:
        """Return the explicit pricing flag, or detect it once and cache it."""
        if self.pricing_explicit:
            logger.info("Pricing mode: explicitly set to %s", self.has_prices)
            return self.has_prices
        if self._detected_pricing is None:
            logger.info("Pricing mode: auto-detecting from product data")
            self._detected_pricing = self.detect_has_pricing(products)
        return self._detected_pricing

    # -- naming -------------------------------------------------------------

    def storage_locations(self) -> StorageLocations:
        return StorageLocations.for_project(self.project_id)

    def report_filename(self, now: datetime) -> str:
        kind = "final_data_set" if self.is_final else "interim_data_set"
        return f"{self.project_id}-{kind}-{now:%m%d%Y-%H.%M}.xlsx"

    def output_key(self, filename: str) -> str:
        return f"{OUTPUT_PREFIX}/{self.project_id}/{filename}"

    def thumbnail_url(self, product_id) -> str | None:
        if not self.images_base_url:
            return None
        base = self.images_base_url.rstrip("/")
        return f"{base}/images/{self.project_id}/{product_id}-1_tn.jpg"
