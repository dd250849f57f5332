"""
Pytest configuration và shared fixtures

Every test gets its own SQLite file, storage root and preset images under
tmp_path. The TestClient is created without entering the lifespan, so no
background workers run: tests drain the task queue themselves.
"""
import asyncio
import io
from pathlib import Path
from typing import Callable, List, Optional

import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient
from PIL import Image, ImageDraw

from colorgen.config import Settings
from colorgen.core.container import Container
from colorgen.core.domain.account import LedgerReason
from colorgen.core.domain.task import TransitionResult
from colorgen.core.producers.mock_producer import PRESET_NAMES
from colorgen.core.security import create_access_token
from colorgen.database import init_db, session_scope
from colorgen.main import create_app
from colorgen.models import Account as AccountModel
from colorgen.models import LedgerEntry as LedgerEntryModel

JWT_SECRET = "test-secret"


def write_presets(presets_dir: Path):
    presets_dir.mkdir(parents=True, exist_ok=True)
    for name in PRESET_NAMES:
        color = Image.new("RGB", (64, 80), (230, 80, 60))
        draw = ImageDraw.Draw(color)
        draw.rectangle((8, 8, 56, 72), outline="black", width=3)
        color.save(presets_dir / f"{name}-color.png")
        color.convert("L").save(presets_dir / f"{name}-default.png")


def png_bytes(size=(40, 30), color=(40, 120, 200)) -> bytes:
    image = Image.new("RGB", size, color)
    ImageDraw.Draw(image).ellipse((5, 5, size[0] - 5, size[1] - 5), fill=(250, 250, 250))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings isolated under tmp_path"""
    presets_dir = tmp_path / "presets"
    write_presets(presets_dir)
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        storage_dir=tmp_path / "uploads",
        presets_dir=presets_dir,
        simulated_delay_seconds=0,
        producer_timeout_seconds=10,
        jwt_secret=JWT_SECRET,
        dev_mode=True,
        log_file=None,
        text_to_image_cost=20,
        image_to_image_cost=20,
    )


@pytest.fixture
def container(test_settings) -> Container:
    """Tạo test DI container"""
    container = Container()
    container.settings.override(providers.Object(test_settings))
    init_db(container.engine())
    container.storage().ensure_dirs()
    yield container
    container.engine().dispose()
    container.settings.reset_override()


@pytest.fixture
def session_factory(container):
    return container.session_factory()


@pytest.fixture
def storage(container):
    return container.storage()


@pytest.fixture
def task_queue(container):
    return container.task_queue()


@pytest.fixture
def generation_service(container):
    return container.generation_service()


@pytest.fixture
def status_service(container):
    return container.status_service()


@pytest.fixture
def account_service(container):
    return container.account_service()


@pytest.fixture
def make_account(session_factory) -> Callable[..., int]:
    """Insert an account with an opening journal entry, return its id"""
    counter = {"n": 0}

    def factory(credits: int = 20, email: Optional[str] = None, is_active: bool = True) -> int:
        counter["n"] += 1
        with session_scope(session_factory) as session:
            account = AccountModel(
                email=email or f"user{counter['n']}@example.com",
                credits=credits,
                is_active=is_active
            )
            session.add(account)
            session.flush()
            if credits:
                session.add(LedgerEntryModel(
                    account_id=account.id,
                    delta=credits,
                    balance_after=credits,
                    reason=LedgerReason.OPENING.value
                ))
            session.commit()
            return account.id

    return factory


@pytest.fixture
def balance_of(session_factory) -> Callable[[int], int]:
    def read(account_id: int) -> int:
        with session_scope(session_factory) as session:
            return session.query(AccountModel.credits).filter_by(id=account_id).scalar()
    return read


@pytest.fixture
def make_png() -> Callable[..., bytes]:
    return png_bytes


@pytest.fixture
def drain(container):
    """Async: run every queued task to a terminal state, in order"""
    async def run() -> List[TransitionResult]:
        queue = container.task_queue().queue
        service = container.generation_service()
        results = []
        while not queue.empty():
            ctx = queue.get_nowait()
            results.append(await service.execute_task(ctx))
        return results
    return run


@pytest.fixture
def run_queued(drain) -> Callable[[], List[TransitionResult]]:
    """Sync wrapper around drain for TestClient tests"""
    def run():
        return asyncio.run(drain())
    return run


@pytest.fixture
def client(container) -> TestClient:
    """FastAPI TestClient over the real container (no lifespan)"""
    app = create_app(container)
    return TestClient(app)


@pytest.fixture
def auth_headers() -> Callable[[int], dict]:
    def headers(account_id: int) -> dict:
        token = create_access_token(account_id, JWT_SECRET)
        return {"Authorization": f"Bearer {token}"}
    return headers
