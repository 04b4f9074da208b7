"""Shared fixtures for router-ddns tests."""

from __future__ import annotations

import bcrypt
import pytest

from router_ddns.credentials import hash_password
from router_ddns.models import CredentialRecord
from router_ddns.providers.memory import InMemoryZoneDirectory
from router_ddns.stores.memory import InMemoryCredentialStore

PASSWORD = "router-secret"

_real_gensalt = bcrypt.gensalt


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Use the cheapest bcrypt cost so tests stay fast."""
    monkeypatch.setattr(bcrypt, "gensalt", lambda: _real_gensalt(rounds=4))


@pytest.fixture
def record():
    """Account authorized for a.example.com only."""
    return CredentialRecord(
        username="home1",
        password_hash=hash_password(PASSWORD),
        domains=frozenset({"a.example.com"}),
    )


@pytest.fixture
def store(record):
    """Credential store holding ``record``."""
    return InMemoryCredentialStore([record])


@pytest.fixture
def zones():
    """Zone directory hosting example.com."""
    return InMemoryZoneDirectory(["example.com"])
