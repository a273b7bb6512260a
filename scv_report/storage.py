"""Blob storage boundary.

The report engine reads its input documents and writes the finished
workbook through a :class:`BlobStore`.  :class:`LocalBlobStore` keeps
objects as files under a root directory, which is what the CLI and the
tests use; a cloud-backed store only needs the same three methods.
"""

import json
import logging
import time
from pathlib import Path
from urllib.parse import urlencode

from .errors import InputFormatError, InputNotFoundError, PersistenceError


logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class BlobStore:
    """Interface for keyed document storage."""

    def get_json(self, key: str):
        raise NotImplementedError

    def put_bytes(self, key: str, data: bytes, content_type: str = XLSX_CONTENT_TYPE) -> None:
        raise NotImplementedError

    def signed_url(self, key: str, expires_in: int) -> str:
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    """Blob store backed by a directory tree."""

    def __init__(self, root):
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Key escapes the store root: {key!r}")
        return path

    def get_json(self, key: str):
        path = self.path_for(key)
        logger.info("Fetching object: %s", key)
        if not path.is_file():
            raise InputNotFoundError(f"Object not found: {key}")
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise InputFormatError(f"Object is not valid JSON: {key}") from exc
        logger.info("Parsed JSON data from %s", key)
        return data

    def put_bytes(self, key: str, data: bytes, content_type: str = XLSX_CONTENT_TYPE) -> None:
        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise PersistenceError(f"Failed to store {key}: {exc}") from exc
        logger.info("Stored %s (%d bytes, %s)", key, len(data), content_type)

    def signed_url(self, key: str, expires_in: int) -> str:
        path = self.path_for(key)
        if not path.is_file():
            raise PersistenceError(f"Cannot sign missing object: {key}")
        expires = int(time.time()) + expires_in
        return f"{path.as_uri()}?{urlencode({'expires': expires})}"
