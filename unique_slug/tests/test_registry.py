"""
Tests for the configuration surface and the flush hook.
"""

import pytest
import pytest_asyncio
from sqlalchemy import event, select
from sqlalchemy.orm import Session

from unique_slug.database import db
from unique_slug.errors import SlugConfigurationError
from unique_slug.models.schemas import FieldScope, NoScope
from unique_slug.services import registry
from unique_slug.tests.models import Car, NotMapped, Standard, Truck, Unconfigured, Vehicle


@pytest.fixture
def unconfigured():
    """Yield the Unconfigured model and drop any configuration a test registers."""
    try:
        yield Unconfigured
    finally:
        registry.unregister(Unconfigured)


@pytest_asyncio.fixture
async def hook_removed():
    """Temporarily remove the flush hook installed by unique_slug.database.db."""
    registry.uninstall()
    try:
        yield
    finally:
        registry.install()


# ============================================================================
# configure()
# ============================================================================


def test_configure_defaults(unconfigured):
    config = registry.configure(unconfigured)

    assert config.record_type is Unconfigured
    assert config.root_type is Unconfigured
    assert config.slug_field == "slug"
    assert config.subject == "title"
    assert isinstance(config.scope, NoScope)
    assert config.slug_column is Unconfigured.__table__.c.slug
    assert config.primary_key == (Unconfigured.__table__.c.id,)
    assert registry.get_config(Unconfigured) is config


def test_configure_field_scope(unconfigured):
    config = registry.configure(unconfigured, scope="category")

    assert config.scope == FieldScope(names=("category",))
    assert config.scope_columns == (Unconfigured.__table__.c.category,)


def test_configure_rejects_unmapped_class():
    with pytest.raises(SlugConfigurationError):
        registry.configure(NotMapped)


def test_configure_rejects_unknown_slug_column(unconfigured):
    with pytest.raises(SlugConfigurationError):
        registry.configure(unconfigured, slug_field="permalink")


def test_configure_rejects_unknown_scope_column(unconfigured):
    with pytest.raises(SlugConfigurationError):
        registry.configure(unconfigured, scope="league_id")


def test_configure_rejects_unknown_subject(unconfigured):
    with pytest.raises(SlugConfigurationError):
        registry.configure(unconfigured, subject="headline")


def test_configure_rejects_non_callable_subject(unconfigured):
    with pytest.raises(SlugConfigurationError):
        registry.configure(unconfigured, subject=42)
    assert registry.get_config(Unconfigured) is None


def test_configuration_errors_are_value_errors(unconfigured):
    with pytest.raises(ValueError):
        registry.configure(unconfigured, scope=42)


# ============================================================================
# get_config()
# ============================================================================


def test_subclasses_inherit_root_configuration():
    vehicle_config = registry.get_config(Vehicle)

    assert registry.get_config(Car) is vehicle_config
    assert registry.get_config(Truck(title="Dump")) is vehicle_config
    assert vehicle_config.root_type is Vehicle


def test_get_config_for_unconfigured_type():
    assert registry.get_config(Unconfigured) is None
    assert registry.get_config(NotMapped()) is None


# ============================================================================
# Hook
# ============================================================================


def test_install_is_idempotent():
    registry.install()
    registry.install()
    assert event.contains(Session, "before_flush", registry._before_flush)


@pytest.mark.asyncio
async def test_before_save_ignores_unconfigured_records(db_session):
    record = Unconfigured(title="Sample Record")
    assert await db_session.run_sync(lambda sync: registry.before_save(sync, record)) is None
    assert record.slug is None


@pytest.mark.asyncio
async def test_before_save_resolves_against_session(db_session):
    db_session.add(Standard(title="Sample Record"))
    await db_session.commit()

    record = Standard(title="Sample Record")
    slug = await db_session.run_sync(lambda sync: registry.before_save(sync, record))

    assert slug == "sample-record-2"
    assert record.slug == "sample-record-2"


@pytest.mark.asyncio
async def test_flush_without_hook_leaves_slug_empty(db_session, hook_removed):
    record = Standard(title="Sample Record")
    db_session.add(record)
    await db_session.commit()

    assert record.slug is None


@pytest.mark.asyncio
async def test_unconfigured_records_flush_untouched(db_session):
    record = Unconfigured(title="Sample Record")
    db_session.add(record)
    await db_session.commit()

    assert record.slug is None


# ============================================================================
# Session factory
# ============================================================================


@pytest.mark.asyncio
async def test_get_db_session_commits(test_engine, db_session):
    async for session in db.get_db_session():
        session.add(Standard(title="Committed Through Factory"))

    result = await db_session.execute(select(Standard.slug))
    assert result.scalars().all() == ["committed-through-factory"]


@pytest.mark.asyncio
async def test_init_database_is_idempotent(test_engine, monkeypatch):
    monkeypatch.setattr(db, "engine", test_engine)
    await db.init_database()
    await db.init_database()


def test_engine_options():
    assert "pool_size" not in db.engine_options("sqlite+aiosqlite:///:memory:")
    assert db.engine_options("postgresql+asyncpg://u:p@localhost/app_test")["pool_size"] == 10
