"""Products sheet populator and thumbnail fetcher.

One row per product.  Column 1 holds the product thumbnail, fetched over
HTTP into a per-run temp directory and embedded with openpyxl; a failed
fetch is logged and the row is written without an image.
"""

import logging
import re
from pathlib import Path

import requests
from openpyxl.drawing.image import Image as XLImage
from openpyxl.styles import Alignment

from ..errors import ExternalAssetError
from ..schema.config import PRODUCT_HEADERS, ReportConfiguration
from .workbook import PRODUCTS, SheetSet, apply_filter, set_width, write_header


logger = logging.getLogger(__name__)

IMAGE_COLUMN_WIDTH = 18.5
IMAGE_ROW_HEIGHT = 112.5
REQUEST_TIMEOUT = 10


# ---------------------------------------------------------------------------
# Thumbnail fetching
# ---------------------------------------------------------------------------

class ImageFetcher:
    """Downloads product thumbnails into a temp directory."""

    def __init__(self, temp_dir, session: requests.Session | None = None,
                 timeout: float = REQUEST_TIMEOUT):
        self.temp_dir = Path(temp_dir)
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.timeout = timeout

    def download(self, url: str, product_id) -> Path:
        """Fetch *url* to a local file.

        Raises:
            ExternalAssetError: on any HTTP or write failure.
        """
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ExternalAssetError(f"Thumbnail fetch failed for {product_id}: {exc}") from exc

        safe_id = re.sub(r"[^\w.-]", "_", str(product_id))
        path = self.temp_dir / f"{safe_id}-1_tn.jpg"
        try:
            self.temp_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(response.content)
        except OSError as exc:
            raise ExternalAssetError(f"Could not store thumbnail for {product_id}: {exc}") from exc
        return path

    def cleanup(self) -> None:
        """Delete every downloaded thumbnail and close a session opened here."""
        if self._owns_session:
            self.session.close()
        if not self.temp_dir.exists():
            return
        for path in self.temp_dir.iterdir():
            if path.is_file():
                path.unlink()


# ---------------------------------------------------------------------------
# ProductsPopulator
# ---------------------------------------------------------------------------

def _cell_text(product, attribute) -> str:
    if attribute == "cells":
        return product.cells_label
    value = getattr(product, attribute)
    return "" if value is None else str(value)


class ProductsPopulator:
    """Fills the Products List sheet."""

    def __init__(self, config: ReportConfiguration, sheet_set: SheetSet,
                 image_fetcher: ImageFetcher | None = None):
        self.config = config
        self.sheet_set = sheet_set
        self.image_fetcher = image_fetcher

    def populate(self, products) -> None:
        ws = self.sheet_set[PRODUCTS]
        style = self.sheet_set.header_style.name
        logger.info("Populating products sheet with %d products", len(products))

        for column, (head, _) in enumerate(PRODUCT_HEADERS, 1):
            write_header(ws, column, head, style)
        set_width(ws, 1, IMAGE_COLUMN_WIDTH)

        widths = {column: len(head) for column, (head, _) in enumerate(PRODUCT_HEADERS, 1)}
        for i, product in enumerate(products):
            row = i + 2
            ws.row_dimensions[row].height = IMAGE_ROW_HEIGHT
            self._embed_thumbnail(ws, product, row, i, len(products))

            for column, (_, attribute) in enumerate(PRODUCT_HEADERS[1:], 2):
                text = _cell_text(product, attribute)
                cell = ws.cell(row=row, column=column, value=text)
                horizontal = "center" if attribute in ("id_product", "index") else None
                cell.alignment = Alignment(horizontal=horizontal, vertical="center")
                widths[column] = max(widths[column], len(text))

        for column, (_, attribute) in enumerate(PRODUCT_HEADERS[1:], 2):
            extra = 4 if attribute == "id_product" else 0
            set_width(ws, column, widths[column] + extra)

        apply_filter(ws, len(PRODUCT_HEADERS), len(products) + 1)

    def _embed_thumbnail(self, ws, product, row, position, total) -> None:
        url = self.config.thumbnail_url(product.id_product)
        if url is None or self.image_fetcher is None:
            return
        logger.debug("Processing image for product %s (%d/%d)",
                     product.id_product, position + 1, total)
        try:
            path = self.image_fetcher.download(url, product.id_product)
            image = XLImage(str(path))
        except ExternalAssetError as exc:
            logger.warning("%s; row %d written without image", exc.message, row)
            return
        except OSError as exc:
            logger.warning("Unreadable thumbnail for product %s: %s; row %d written without image",
                           product.id_product, exc, row)
            return
        ws.add_image(image, f"A{row}")
