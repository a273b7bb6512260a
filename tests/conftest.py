"""Shared fixtures: input documents and a local blob store."""

import json
from datetime import datetime

import pytest

from scv_report.storage import LocalBlobStore


FIXED_NOW = datetime(2024, 3, 5, 9, 7)


def sale(index, quantity=1, sequence=1, dwell=2.5, product=None):
    return {"idProduct": product or f"p{index}", "index": index,
            "quantity": quantity, "sequence": sequence, "dwellTime": dwell}


def click(index, time=1.5, count=1, dwell=3.0, product=None):
    return {"idProduct": product or f"p{index}", "index": index,
            "time": time, "count": count, "dwellTime": dwell}


def view(index, timer):
    return {"index": index, "timer": timer}


def user(n, sales=(), clicks=(), views=(), **extra):
    record = {
        "idSurvey": f"s{n}",
        "idMaster": f"m{n}",
        "idCell": extra.pop("cell", "c1"),
        "sales": list(sales),
        "clicks": list(clicks),
        "views": list(views),
        "timers": {"totalTime": 120 + n, "shoppingTime": 90 + n},
    }
    record.update(extra)
    return record


@pytest.fixture
def acme_products():
    """Two products, one priced."""
    return [
        {"idProduct": "p1", "description": "Milk 1L", "cells": "c1,c2,c1",
         "price": 10, "index_pd": 1},
        {"idProduct": "p2", "description": "Cheese", "cells": "c1",
         "price": 0, "index_pd": 2},
    ]


@pytest.fixture
def acme_users():
    """One respondent who bought two of product 1."""
    return [user(1, sales=[sale(1, quantity=2, sequence=1, dwell=3.5)])]


@pytest.fixture
def findability_records():
    return [
        {"idSurvey": "s1", "idMaster": "m1", "idCell": "c2",
         "targets": ["p1", "p2"], "selected": "p1", "timerRaw": 4.2, "validator": True},
        {"idSurvey": "s2", "idMaster": "m2", "idCell": "c1",
         "targets": "p2", "selected": "p1", "timerRaw": 7, "validator": False},
    ]


@pytest.fixture
def bucket(tmp_path):
    root = tmp_path / "bucket"
    root.mkdir()
    return root


@pytest.fixture
def store(bucket):
    return LocalBlobStore(bucket)


@pytest.fixture
def write_inputs(bucket):
    """Write a project's input documents into the bucket."""
    def _write(project_id, products, users, findability=None):
        base = bucket / "report" / "input" / project_id
        base.mkdir(parents=True, exist_ok=True)
        (base / f"{project_id}-products.json").write_text(json.dumps(products))
        (base / f"{project_id}-scv.json").write_text(json.dumps(users))
        if findability is not None:
            (base / f"{project_id}-find.json").write_text(json.dumps(findability))
        return base
    return _write


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW
