from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from fake_backend import FakeBackend  # noqa: E402

from gestion_commandes.core.models import User  # noqa: E402


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def admin() -> User:
    return User(id=1, username="alice", role="admin")


@pytest.fixture
def commercial() -> User:
    return User(id=2, username="bruno", role="commercial")


@pytest.fixture
def infograph() -> User:
    return User(id=3, username="chloe", role="infograph")


@pytest.fixture
def atelier() -> User:
    return User(id=4, username="damien", role="atelier")


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)
