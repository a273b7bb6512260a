"""Tests for the local blob store."""

import pytest

from scv_report.errors import InputFormatError, InputNotFoundError, PersistenceError
from scv_report.storage import LocalBlobStore


class TestLocalBlobStore:
    def test_get_json(self, bucket, store):
        (bucket / "a.json").write_text('[{"x": 1}]')
        assert store.get_json("a.json") == [{"x": 1}]

    def test_missing_object(self, store):
        with pytest.raises(InputNotFoundError, match="missing.json"):
            store.get_json("missing.json")

    def test_invalid_json(self, bucket, store):
        (bucket / "bad.json").write_text("{not json")
        with pytest.raises(InputFormatError):
            store.get_json("bad.json")

    def test_put_bytes_creates_parents(self, bucket, store):
        store.put_bytes("report/output/p/f.xlsx", b"data")
        assert (bucket / "report" / "output" / "p" / "f.xlsx").read_bytes() == b"data"

    def test_signed_url(self, store):
        store.put_bytes("out/f.xlsx", b"data")
        url = store.signed_url("out/f.xlsx", 604_800)
        assert url.startswith("file://")
        assert "f.xlsx?expires=" in url

    def test_sign_missing_object(self, store):
        with pytest.raises(PersistenceError):
            store.signed_url("out/none.xlsx", 60)

    def test_key_cannot_escape_root(self, store):
        with pytest.raises(ValueError):
            store.path_for("../outside.json")

    def test_put_failure(self, bucket):
        blocker = bucket / "blocked"
        blocker.write_text("a file, not a directory")
        store = LocalBlobStore(bucket)
        with pytest.raises(PersistenceError):
            store.put_bytes("blocked/f.xlsx", b"data")
