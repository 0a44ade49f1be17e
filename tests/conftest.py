import os
import shutil
import tempfile
from pathlib import Path

import pytest

# Settings are read at import time, so the environment must be ready first.
TEST_ROOT = Path(tempfile.mkdtemp(prefix="messageboard-tests-"))
APP_DB = TEST_ROOT / "app.db"
IMAGES_DIR = TEST_ROOT / "images"
IMAGES_DIR.mkdir()

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{APP_DB}"
os.environ["IMAGES_BASE_PATH"] = str(IMAGES_DIR)
os.environ["PAGINATION_PAGE_SIZE"] = "3"
os.environ["CREATE_SCHEMA_ON_STARTUP"] = "true"

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from messageboard.core.database import build_engine, init_models  # noqa: E402
from messageboard.main import app  # noqa: E402
from messageboard.services.message_store import MessageStore  # noqa: E402


def make_uuid(n: int) -> str:
    return f"{n:08d}-0000-0000-0000-000000000000"


def make_message(n: int, **overrides) -> dict:
    message = {
        "uuid": make_uuid(n),
        "author": f"author-{n}",
        "message": f"message {n}",
        "likes": n,
        "has_image": False,
    }
    message.update(overrides)
    return message


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine):
    return MessageStore(sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))


@pytest.fixture
def client():
    if APP_DB.exists():
        APP_DB.unlink()
    for entry in IMAGES_DIR.iterdir():
        entry.unlink()
    with TestClient(app) as client:
        yield client


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(TEST_ROOT, ignore_errors=True)
