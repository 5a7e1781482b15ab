import copy

import base58
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519
from fastapi.testclient import TestClient

from calix.api import create_app
from calix.config import Settings
from calix.logic.errors import MintFailed
from calix.logic.store import UserStore


class InMemoryCollection:
    """Stand-in for a pymongo collection supporting the update operators the store uses."""

    def __init__(self):
        self.docs = {}
        self.updates = []

    def find_one(self, query):
        doc = self.docs.get(query["_id"])
        return copy.deepcopy(doc) if doc is not None else None

    def update_one(self, query, update, upsert=False):
        self.updates.append((query, update))
        doc = self.docs.get(query["_id"])
        if doc is None:
            if not upsert:
                return
            doc = self.docs[query["_id"]] = {"_id": query["_id"]}
        for key, value in update.get("$set", {}).items():
            doc[key] = copy.deepcopy(value)
        for key in update.get("$unset", {}):
            doc.pop(key, None)
        for key, value in update.get("$addToSet", {}).items():
            values = doc.setdefault(key, [])
            if value not in values:
                values.append(value)
        for key, values in update.get("$pullAll", {}).items():
            doc[key] = [v for v in doc.get(key, []) if v not in values]


class FakeMintClient:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def mint(self, wallet_address, achievement):
        self.calls.append((wallet_address, achievement))
        if self.fail:
            raise MintFailed("Minting backend request failed.")
        return f"tx-{len(self.calls)}"


class Wallet:
    def __init__(self):
        self.private_key = ed25519.Ed25519PrivateKey.generate()
        raw = self.private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self.address = base58.b58encode(raw).decode()

    def sign(self, message: str) -> bytes:
        return self.private_key.sign(message.encode("utf-8"))

    def sign_b58(self, message: str) -> str:
        return base58.b58encode(self.sign(message)).decode()


def food(calories=0, protein=0, name="meal"):
    return {"name": name, "calories": calories, "protein": protein}


def session(duration=30, type="run", intensity="moderate"):
    return {"type": type, "duration": duration, "intensity": intensity}


def days(start_day, count, month="2024-01"):
    return [f"{month}-{d:02d}" for d in range(start_day, start_day + count)]


@pytest.fixture
def collection():
    return InMemoryCollection()


@pytest.fixture
def store(collection):
    return UserStore.from_collection(collection)


@pytest.fixture
def mint_client():
    return FakeMintClient()


@pytest.fixture
def wallet():
    return Wallet()


@pytest.fixture
def app(store, mint_client):
    return create_app(Settings(), store=store, mint_client=mint_client)


@pytest.fixture
def client(app):
    return TestClient(app)
