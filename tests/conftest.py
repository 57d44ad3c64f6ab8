import os
import warnings
from types import SimpleNamespace

# Set environment variables BEFORE importing giftpool modules
os.environ["POSTGRES_DSN"] = "sqlite+aiosqlite:///file:giftpool_tests?mode=memory&cache=shared&uri=true"
os.environ["DEBT_RECOMPUTE_MODE"] = "reconcile"
os.environ["RECOMPUTE_DEBTS_ON_WITHDRAWAL"] = "false"

warnings.filterwarnings("ignore", category=DeprecationWarning)

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from giftpool.core.config import settings
from giftpool.db import session as session_module
from giftpool.db.session import Base, enable_sqlite_foreign_keys
from giftpool.models import models as models_module
from giftpool.models.models import Event, GiftList, Item, User


def pytest_configure(config):
    warnings.filterwarnings("ignore", category=DeprecationWarning)


@pytest.fixture(autouse=True)
def restore_settings():
    """Tests may flip debt settings; put them back afterwards."""
    original = (settings.debt_recompute_mode, settings.recompute_debts_on_withdrawal)
    yield
    settings.debt_recompute_mode, settings.recompute_debts_on_withdrawal = original


@pytest.fixture
async def session_factory(tmp_path, monkeypatch):
    _ = models_module
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    enable_sqlite_foreign_keys(engine)
    factory = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    monkeypatch.setattr(session_module, "async_session_factory", factory)
    monkeypatch.setattr(session_module, "_schema_ready", True)
    yield factory
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def world(session_factory):
    """Four users, two events, a list per event and a few items.

    Seeded in a session of its own, so a rollback in the `db` session never
    expires these objects.
    """
    alice = User(email="alice@example.com", name="Alice")
    bob = User(email="bob@example.com", name="Bob")
    carol = User(email="carol@example.com", name="Carol")
    dave = User(email="dave@example.com", name="Dave")
    christmas = Event(title="Christmas")
    birthday = Event(title="Birthday")
    christmas_list = GiftList(title="Dave's Christmas list", owner=dave, event=christmas)
    birthday_list = GiftList(title="Dave's birthday list", owner=dave, event=birthday)
    item = Item(title="Espresso machine", gift_list=christmas_list)
    second_item = Item(title="Headphones", gift_list=christmas_list)
    birthday_item = Item(title="Board game", gift_list=birthday_list)

    async with session_factory() as session:
        session.add_all([
            alice, bob, carol, dave,
            christmas, birthday,
            christmas_list, birthday_list,
            item, second_item, birthday_item,
        ])
        await session.commit()

    return SimpleNamespace(
        alice=alice,
        bob=bob,
        carol=carol,
        dave=dave,
        christmas=christmas,
        birthday=birthday,
        item=item,
        second_item=second_item,
        birthday_item=birthday_item,
    )
