import sys
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional

import pytest

# Add the src directory to sys.path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sessionstate import Manager, MemoryStore, SessionScope, StoreError


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


class FailingStore:
    """Memory-backed store whose operations can be told to fail."""

    def __init__(self):
        self.inner = MemoryStore()
        self.fail_on = set()
        self.deleted = []

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise StoreError(f"{operation} failed")

    async def find(self, token: str) -> Optional[bytes]:
        self._check("find")
        return await self.inner.find(token)

    async def commit(self, token: str, data: bytes, expiry: datetime) -> None:
        self._check("commit")
        await self.inner.commit(token, data, expiry)

    async def delete(self, token: str) -> None:
        self._check("delete")
        self.deleted.append(token)
        await self.inner.delete(token)


class IterableFailingStore(FailingStore):
    async def all(self) -> Dict[str, bytes]:
        self._check("all")
        return await self.inner.all()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def manager(store):
    return Manager(store=store)


@pytest.fixture
def scope():
    return SessionScope()


@pytest.fixture
def failing_store():
    return IterableFailingStore()
