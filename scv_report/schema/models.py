"""Typed records - the contract between ingestion, generator, and orchestrator.

Input JSON documents are converted into these records once, at the fetch
boundary.  Optional fields resolve to documented defaults here so that
the populators never probe raw dictionaries.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import pandas as pd


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class DatasetSizeMode(Enum):
    """Layout strategy for the numeric data region."""
    STANDARD = "standard"   # Zero pre-fill of every numeric cell
    LARGE = "large"         # Sparse writes only


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------

def to_number(value: Any, default: Any = None) -> Any:
    """Coerce a loosely typed JSON value to ``int`` or ``float``.

    Integral values come back as ``int`` so that cells read back cleanly.

    Examples:
        "10" -> 10
        "2.5" -> 2.5
        "1,200" -> 1200
        None -> default
        "abc" -> default
    """
    if value is None or isinstance(value, (bool, list, dict)):
        return default
    if isinstance(value, str):
        value = value.strip().replace(",", "")
    number = pd.to_numeric(value, errors="coerce")
    if pd.isna(number) or abs(number) == float("inf"):
        return default
    number = float(number)
    if number.is_integer():
        return int(number)
    return number


def _required_index(d: dict, key: str = "index") -> int:
    index = to_number(d.get(key))
    if not isinstance(index, int):
        raise ValueError(f"'{key}' must be an integer, got {d.get(key)!r}")
    return index


def _flag(value: Any) -> bool:
    """Read a JSON boolean; the strings "true" and "false" count as booleans."""
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def _identity(value: Any) -> str:
    if value is None:
        raise ValueError("identity field is missing")
    return str(value)


def split_cells(raw: Any) -> tuple[str, ...]:
    """Split a comma-joined cell list and drop duplicates, keeping order."""
    if raw is None:
        return ()
    if isinstance(raw, (list, tuple)):
        parts = [str(c) for c in raw]
    else:
        parts = str(raw).split(",")
    return tuple(dict.fromkeys(parts))


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Product:
    """One product shown on the virtual shelf."""
    id_product: Any
    description: str = ""
    cells: tuple[str, ...] = ()
    price: Any = None          # Raw value; classified by price detection
    index: Any = None          # Shelf position metadata (``index_pd``)
    url: str | None = None

    @property
    def cells_label(self) -> str:
        return ";".join(self.cells)

    @property
    def price_value(self) -> float:
        """Numeric price, 0 when missing or unparseable."""
        return float(to_number(self.price, 0))

    @classmethod
    def from_dict(cls, d: dict) -> "Product":
        if d.get("idProduct") is None:
            raise ValueError("product is missing 'idProduct'")
        return cls(
            id_product=d["idProduct"],
            description=str(d.get("description") or ""),
            cells=split_cells(d.get("cells")),
            price=d.get("price"),
            index=d.get("index_pd", d.get("index")),
            url=d.get("url"),
        )


# ---------------------------------------------------------------------------
# Session events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SaleEvent:
    id_product: Any
    index: int                         # 1-based product position
    quantity: float = 0
    sequence: float = 0
    dwell_time: float | None = None    # None when missing or non-numeric

    @classmethod
    def from_dict(cls, d: dict) -> "SaleEvent":
        return cls(
            id_product=d.get("idProduct"),
            index=_required_index(d),
            quantity=to_number(d.get("quantity"), 0),
            sequence=to_number(d.get("sequence"), 0),
            dwell_time=to_number(d.get("dwellTime")),
        )


@dataclass(frozen=True)
class ClickEvent:
    index: int                         # 1-based, -1 = no target
    id_product: Any = None
    time: float = 0
    count: float = 0
    dwell_time: float | None = None

    @classmethod
    def from_dict(cls, d: dict) -> "ClickEvent":
        return cls(
            index=_required_index(d),
            id_product=d.get("idProduct"),
            time=to_number(d.get("time"), 0),
            count=to_number(d.get("count"), 0),
            dwell_time=to_number(d.get("dwellTime")),
        )


@dataclass(frozen=True)
class ViewEvent:
    index: int
    timer: float = 0.0                 # Seconds, fractional

    @classmethod
    def from_dict(cls, d: dict) -> "ViewEvent":
        return cls(index=_required_index(d), timer=to_number(d.get("timer"), 0))


@dataclass(frozen=True)
class FunnelEvent:
    index: int
    conversion: int = 0                # 0 or 1

    @classmethod
    def from_dict(cls, d: dict) -> "FunnelEvent":
        return cls(index=_required_index(d),
                   conversion=to_number(d.get("conversion"), 0))


@dataclass(frozen=True)
class NonPurchaseEvent:
    index: int

    @classmethod
    def from_dict(cls, d: dict) -> "NonPurchaseEvent":
        return cls(index=_required_index(d))


@dataclass(frozen=True)
class Timers:
    total_time: float = 0
    shopping_time: float = 0

    @classmethod
    def from_dict(cls, d: dict | None) -> "Timers":
        d = d or {}
        return cls(total_time=to_number(d.get("totalTime"), 0),
                   shopping_time=to_number(d.get("shoppingTime"), 0))


# ---------------------------------------------------------------------------
# Respondent records
# ---------------------------------------------------------------------------

def _events(d: dict, key: str, event_cls) -> tuple:
    raw = d.get(key)
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValueError(f"'{key}' must be a list")
    return tuple(event_cls.from_dict(item) for item in raw)


@dataclass(frozen=True)
class UserSession:
    """One survey respondent's shopping session."""
    id_survey: str
    id_master: str
    id_cell: str
    sales: tuple[SaleEvent, ...] = ()
    clicks: tuple[ClickEvent, ...] = ()
    views: tuple[ViewEvent, ...] = ()
    funnels: tuple[FunnelEvent, ...] = ()
    not_purchased: tuple[NonPurchaseEvent, ...] = ()
    timers: Timers = field(default_factory=Timers)

    @property
    def identity(self) -> tuple[str, str, str]:
        return (self.id_survey, self.id_master, self.id_cell)

    @classmethod
    def from_dict(cls, d: dict) -> "UserSession":
        return cls(
            id_survey=_identity(d.get("idSurvey")),
            id_master=_identity(d.get("idMaster")),
            id_cell=_identity(d.get("idCell")),
            sales=_events(d, "sales", SaleEvent),
            clicks=_events(d, "clicks", ClickEvent),
            views=_events(d, "views", ViewEvent),
            funnels=_events(d, "funnels", FunnelEvent),
            not_purchased=_events(d, "notPurchased", NonPurchaseEvent),
            timers=Timers.from_dict(d.get("timers")),
        )


@dataclass(frozen=True)
class FindabilityRecord:
    """One respondent's answer to the find-the-product task."""
    id_survey: str
    id_master: str
    id_cell: str
    targets: str = ""
    selected: str = ""
    timer_raw: float = 0
    validator: bool = False

    @property
    def identity(self) -> tuple[str, str, str]:
        return (self.id_survey, self.id_master, self.id_cell)

    @classmethod
    def from_dict(cls, d: dict) -> "FindabilityRecord":
        targets = d.get("targets")
        if isinstance(targets, (list, tuple)):
            targets = ",".join(str(t) for t in targets)
        return cls(
            id_survey=_identity(d.get("idSurvey")),
            id_master=_identity(d.get("idMaster")),
            id_cell=_identity(d.get("idCell")),
            targets="" if targets is None else str(targets),
            selected="" if d.get("selected") is None else str(d["selected"]),
            timer_raw=to_number(d.get("timerRaw"), 0),
            validator=_flag(d.get("validator")),
        )


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OutputManifest:
    """Result of one successful report run."""
    filename: str
    storage_key: str
    download_reference: str
    duration_seconds: float
    product_count: int
    user_count: int
    pricing_included: bool
    dataset_size_mode: DatasetSizeMode

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "storageKey": self.storage_key,
            "downloadReference": self.download_reference,
            "durationSeconds": self.duration_seconds,
            "counts": {
                "productCount": self.product_count,
                "userCount": self.user_count,
            },
            "pricingIncluded": self.pricing_included,
            "datasetSizeModeUsed": self.dataset_size_mode.value,
        }
