"""SCV report builder - shopper session analytics JSON to xlsx workbooks."""

__version__ = "1.0.0"
