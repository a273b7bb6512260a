"""Data processor module for the SCV report builder."""

from .ingestion import (
    fetch_findability,
    fetch_products,
    fetch_sessions,
    parse_findability,
    parse_products,
    parse_sessions,
)
