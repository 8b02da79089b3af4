"""Pytest fixtures: in-memory Firestore and canned Qikink HTTP responses."""

import itertools
import re

import pytest
import requests
from firebase_admin import firestore
from google.api_core.exceptions import AlreadyExists
from fastapi.testclient import TestClient

import services
from main import app
from routers import get_db

_RESERVED_ID = re.compile(r"^__.*__$")


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, db, collection, doc_id):
        self._db = db
        self._store = db.collections[collection]
        self._collection = collection
        self.id = doc_id

    def _record(self, op, data, merge=False):
        self._db.writes.append((self._collection, self.id, op, data, merge))
        # each write gets its own server time
        now = next(self._db.clock)
        return {k: (now if v is firestore.SERVER_TIMESTAMP else v) for k, v in data.items()}

    def create(self, data):
        if self.id in self._store:
            raise AlreadyExists(f"Document {self.id!r} already exists")
        self._store[self.id] = self._record("create", data)

    def set(self, data, merge=False):
        data = self._record("set", data, merge)
        if merge and self.id in self._store:
            self._store[self.id].update(data)
        else:
            self._store[self.id] = data

    def get(self):
        return FakeSnapshot(self.id, self._store.get(self.id))


class FakeCollection:
    def __init__(self, db, name):
        self._db = db
        self._name = name

    def document(self, doc_id):
        return FakeDocument(self._db, self._name, doc_id)


class FakeFirestore:
    """Dict-backed stand-in for a Firestore client."""

    def __init__(self):
        self.collections = {}
        self.writes = []
        self.clock = itertools.count(1)

    def collection(self, name):
        # Firestore rejects ids shaped like __name__
        if _RESERVED_ID.match(name):
            raise ValueError(f"Collection id {name!r} is reserved")
        self.collections.setdefault(name, {})
        return FakeCollection(self, name)


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def qikink(monkeypatch):
    """Route requests.post/get to canned payloads; records each call."""

    state = {
        "token": FakeResponse({"access_token": "tok-123"}),
        "products": FakeResponse([]),
        "calls": [],
    }

    def fake_post(url, **kwargs):
        state["calls"].append(("POST", url, kwargs))
        return state["token"]

    def fake_get(url, **kwargs):
        state["calls"].append(("GET", url, kwargs))
        return state["products"]

    monkeypatch.setattr(services.requests, "post", fake_post)
    monkeypatch.setattr(services.requests, "get", fake_get)
    monkeypatch.setattr(services, "QIK_CLIENT_ID", "client-1")
    monkeypatch.setattr(services, "QIK_CLIENT_SECRET", "secret-1")
    return state


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()
