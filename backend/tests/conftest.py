"""
Shared fixtures: an in-memory stand-in for the Firestore client and an API client factory.

Only the client surface used by the application is covered: collections, documents,
subcollections, equality / array_contains queries, set(merge), update with ArrayUnion and
SERVER_TIMESTAMP, last-update-time preconditions, batches and snapshot listeners.
"""
import copy
import itertools
import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from google.api_core.exceptions import FailedPrecondition, NotFound
from google.cloud.firestore_v1 import SERVER_TIMESTAMP, ArrayUnion

from profiti.config import get_db
from profiti.core.security import get_current_user
from profiti.main import app


class FakeWriteOption:
    def __init__(self, last_update_time):
        self.last_update_time = last_update_time


class FakeWatch:
    def __init__(self, target, callback):
        self.target = target
        self.callback = callback
        self.unsubscribed = False

    def unsubscribe(self):
        self.unsubscribed = True


class FakeSnapshot:
    def __init__(self, ref, data, update_time):
        self.reference = ref
        self.id = ref.id
        self._data = data
        self.update_time = update_time

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, db, path):
        self._db = db
        self.path = path
        self.id = path.rsplit("/", 1)[-1]

    def collection(self, name):
        return FakeCollection(self._db, f"{self.path}/{name}")

    def get(self, **_kwargs):
        return FakeSnapshot(self, self._db.docs.get(self.path), self._db.times.get(self.path))

    def set(self, data, merge=False):
        self._db._write(self.path, data, merge=merge)

    def update(self, data, option=None):
        self._db._check(self.path, option, must_exist=True)
        self._db._write(self.path, data, merge=True)

    def delete(self):
        self._db.docs.pop(self.path, None)
        self._db.times.pop(self.path, None)

    def on_snapshot(self, callback):
        return self._db._watch(self, callback)


class FakeQuery:
    def __init__(self, db, path, filters=(), limit=None):
        self._db = db
        self._path = path
        self._filters = list(filters)
        self._limit = limit

    def where(self, field_path=None, op_string=None, value=None, filter=None):
        if filter is not None:
            field_path, op_string, value = filter.field_path, filter.op_string, filter.value
        return FakeQuery(self._db, self._path, self._filters + [(field_path, op_string, value)], self._limit)

    def limit(self, count):
        return FakeQuery(self._db, self._path, self._filters, count)

    def _matches(self, data):
        for field, op, value in self._filters:
            current = data.get(field)
            if op == "==" and current != value:
                return False
            if op == "array_contains" and value not in (current or []):
                return False
            if op == "in" and current not in value:
                return False
        return True

    def stream(self):
        prefix = self._path + "/"
        out = []
        for path in sorted(self._db.docs):
            if not path.startswith(prefix) or "/" in path[len(prefix):]:
                continue
            data = self._db.docs[path]
            if self._matches(data):
                ref = FakeDocumentRef(self._db, path)
                out.append(FakeSnapshot(ref, copy.deepcopy(data), self._db.times[path]))
        return iter(out[: self._limit] if self._limit else out)

    def on_snapshot(self, callback):
        return self._db._watch(self, callback)


class FakeCollection(FakeQuery):
    def __init__(self, db, path):
        super().__init__(db, path)

    def document(self, doc_id=None):
        return FakeDocumentRef(self._db, f"{self._path}/{doc_id or uuid.uuid4().hex[:20]}")


class FakeBatch:
    def __init__(self, db):
        self._db = db
        self._ops = []

    def set(self, ref, data, merge=False):
        self._ops.append((ref.path, data, merge, None, False))

    def update(self, ref, data, option=None):
        self._ops.append((ref.path, data, True, option, True))

    def commit(self):
        for path, _data, _merge, option, must_exist in self._ops:
            self._db._check(path, option, must_exist=must_exist)
        for path, data, merge, _option, _must_exist in self._ops:
            self._db._write(path, data, merge=merge)


class FakeFirestore:
    def __init__(self):
        self.docs = {}
        self.times = {}
        self.watches = []
        self._clock = itertools.count(1)
        self._interleaved = []

    # client surface
    def collection(self, name):
        return FakeCollection(self, name)

    def batch(self):
        return FakeBatch(self)

    @staticmethod
    def write_option(last_update_time=None, **_kwargs):
        return FakeWriteOption(last_update_time)

    # test helpers
    def seed(self, path, data):
        self._write(path, data)
        return FakeDocumentRef(self, path)

    def data(self, path):
        return copy.deepcopy(self.docs.get(path))

    def messages(self, uid):
        col = self.collection("users").document(uid).collection("notifications")
        return [snap.to_dict()["message"] for snap in col.stream()]

    def interleave(self, fn):
        """Run `fn` once, right before the next conditional write is checked."""
        self._interleaved.append(fn)

    # internals
    def _check(self, path, option, must_exist):
        if option is not None and self._interleaved:
            self._interleaved.pop(0)()
        if must_exist and path not in self.docs:
            raise NotFound(f"No document to update: {path}")
        if option is not None and self.times.get(path) != option.last_update_time:
            raise FailedPrecondition("the stored version does not match the required base version")

    def _resolve(self, value, current):
        if value is SERVER_TIMESTAMP:
            return datetime.now(timezone.utc)
        if isinstance(value, ArrayUnion):
            merged = list(current or [])
            for v in value.values:
                if v not in merged:
                    merged.append(v)
            return merged
        return copy.deepcopy(value)

    def _write(self, path, data, merge=False):
        current = self.docs.get(path) if merge else None
        doc = dict(current or {})
        for key, value in data.items():
            doc[key] = self._resolve(value, doc.get(key))
        self.docs[path] = doc
        self.times[path] = next(self._clock)

    def _watch(self, target, callback):
        watch = FakeWatch(target, callback)
        self.watches.append(watch)
        return watch


BUYER = {"id": "buyer-1", "role": "acheteur", "nom": "Ben Ali", "prenom": "Sami", "phone": "20123456"}
SELLER_A = {"id": "shop-a", "role": "vendeur", "nom": "Boulangerie A",
            "location": {"latitude": 36.80, "longitude": 10.18}, "livraisonFree": False}
SELLER_B = {"id": "shop-b", "role": "vendeur", "nom": "Epicerie B",
            "location": {"latitude": 36.85, "longitude": 10.25}, "livraisonFree": True}
COURIER = {"id": "courier-1", "role": "livreur", "nom": "Livreur 1"}
OTHER_COURIER = {"id": "courier-2", "role": "livreur", "nom": "Livreur 2"}


def product(owner, nom, prix, stock, promo=None):
    """A product document as the seller's app writes it: no shop name or location."""
    return {
        "nom": nom,
        "ownerId": owner,
        "prixNormal": prix,
        "prixPromotionnel": promo if promo is not None else prix,
        "quantite": stock,
        "categorie": "Boulangerie",
    }


def shop(nom, lat, lng):
    return {"nom": nom, "location": {"latitude": lat, "longitude": lng}}


def cart_line(pid, data, qty=1, seller=None):
    """A cart line; `seller` adds the shop snapshot taken when the product was added."""
    line = {**data, "id": pid, "quantiteAchat": qty}
    if seller is not None:
        line.update({
            "boutique": seller["nom"],
            "boutiqueLatitude": seller["location"]["latitude"],
            "boutiqueLongitude": seller["location"]["longitude"],
        })
    return line


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def seeded_db(db):
    for user in (BUYER, SELLER_A, SELLER_B, COURIER, OTHER_COURIER):
        db.seed(f"users/{user['id']}", {k: v for k, v in user.items() if k != "id"})
    db.seed("produits/p1", product("shop-a", "Croissants", 4.0, 10, promo=2.5))
    db.seed("produits/p2", product("shop-a", "Baguette", 1.0, 3))
    db.seed("produits/p3", product("shop-b", "Yaourts", 6.0, 5, promo=4.0))
    return db


@pytest.fixture
def as_user(seeded_db):
    """Switch the authenticated profile and return the shared TestClient."""
    client = TestClient(app)
    app.dependency_overrides[get_db] = lambda: seeded_db

    def _login(user):
        app.dependency_overrides[get_current_user] = lambda: dict(user)
        return client

    yield _login
    app.dependency_overrides.clear()
