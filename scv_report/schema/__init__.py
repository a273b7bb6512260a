"""Report schema package - run configuration, typed records, column layouts.

Provides the contract between ingestion, the sheet generators and the
orchestrator:

- models.py: Typed input records and the output manifest
- config.py: ReportConfiguration, partner variants, price detection
- layout.py: Column layouts for the per-user section sheets
- loader.py: YAML run presets
"""

from .config import (
    COMMON_HEADS,
    Partner,
    ReportConfiguration,
    StorageLocations,
    detect_has_pricing,
    normalize_options,
    partner_for,
)
from .layout import ColumnLayout, get_column_index, section_layouts
from .loader import configuration_from_preset, load_presets, save_presets
from .models import (
    ClickEvent,
    DatasetSizeMode,
    FindabilityRecord,
    FunnelEvent,
    NonPurchaseEvent,
    OutputManifest,
    Product,
    SaleEvent,
    Timers,
    UserSession,
    ViewEvent,
    to_number,
)

__all__ = [
    # Models
    "ClickEvent",
    "DatasetSizeMode",
    "FindabilityRecord",
    "FunnelEvent",
    "NonPurchaseEvent",
    "OutputManifest",
    "Product",
    "SaleEvent",
    "Timers",
    "UserSession",
    "ViewEvent",
    "to_number",
    # Configuration
    "COMMON_HEADS",
    "Partner",
    "ReportConfiguration",
    "StorageLocations",
    "detect_has_pricing",
    "normalize_options",
    "partner_for",
    # Layout
    "ColumnLayout",
    "get_column_index",
    "section_layouts",
    # Loader
    "configuration_from_preset",
    "load_presets",
    "save_presets",
]
