"""Input ingestion for the report builder.

Reads the project's JSON documents from blob storage and converts them
into typed records:

- Products (``{pid}-products.json``) - required
- Session/clickstream records (``{pid}-scv.json``) - required
- Findability answers (``{pid}-find.json``) - optional, absence disables
  the findability sheet for the run
"""

import logging

from ..errors import InputFormatError, InputNotFoundError
from ..schema.models import FindabilityRecord, Product, UserSession


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Record conversion
# ---------------------------------------------------------------------------

def _records(data, record_cls, name):
    if not isinstance(data, list):
        raise InputFormatError(f"{name}: expected a JSON array, got {type(data).__name__}")
    records = []
    for position, item in enumerate(data):
        if not isinstance(item, dict):
            raise InputFormatError(f"{name}: item {position} is not an object")
        try:
            records.append(record_cls.from_dict(item))
        except (KeyError, TypeError, ValueError) as exc:
            raise InputFormatError(f"{name}: item {position}: {exc}") from exc
    return records


def parse_products(data) -> list[Product]:
    """Convert the products document; cell lists are de-duplicated here."""
    return _records(data, Product, "products")


def parse_sessions(data) -> list[UserSession]:
    return _records(data, UserSession, "scv")


def parse_findability(data) -> list[FindabilityRecord]:
    return _records(data, FindabilityRecord, "findability")


# ---------------------------------------------------------------------------
# Fetchers
# ---------------------------------------------------------------------------

def fetch_products(store, locations) -> list[Product]:
    logger.info("Fetching products data")
    products = parse_products(store.get_json(locations.products))
    logger.info("Retrieved %d products", len(products))
    return products


def fetch_sessions(store, locations) -> list[UserSession]:
    logger.info("Fetching user session data")
    users = parse_sessions(store.get_json(locations.scv))
    logger.info("Retrieved data for %d users", len(users))
    return users


def fetch_findability(store, locations):
    """Fetch findability records, or ``None`` when the document is unusable."""
    logger.info("Fetching findability data")
    try:
        records = parse_findability(store.get_json(locations.findability))
    except (InputNotFoundError, InputFormatError) as exc:
        logger.warning("No usable findability data, skipping the sheet: %s", exc.message)
        return None
    logger.info("Retrieved %d findability records", len(records))
    return records
