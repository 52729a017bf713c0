import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker

import propdesk.main as main_module
from propdesk.config import settings
from propdesk.models.models import ENHANCED_ONLY_TABLES
from propdesk.services.tenant_backend import SchemaMode, TenantBackendService


@pytest.fixture
def legacy_engine(tmp_path):
    """A database that has never been migrated to the enhanced tenant schema."""
    eng = create_engine(
        f"sqlite:///{tmp_path / 'legacy.db'}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    yield eng
    eng.dispose()


def _table_names(engine):
    return set(inspect(engine).get_table_names())


def test_core_tables_skip_enhanced_ones(legacy_engine):
    main_module.create_core_tables(legacy_engine)
    names = _table_names(legacy_engine)
    assert {"tenants", "invoices", "activity_log", "user_roles"} <= names
    assert not names & set(ENHANCED_ONLY_TABLES)


def test_legacy_database_stays_legacy_across_restarts(legacy_engine, monkeypatch):
    monkeypatch.setattr(main_module, "engine", legacy_engine)
    monkeypatch.setattr(settings, "auto_create_db", True)

    # Two boots of the app, each running the startup hook
    for _ in range(2):
        with TestClient(main_module.app):
            pass

    names = _table_names(legacy_engine)
    assert "tenants" in names
    assert not names & set(ENHANCED_ONLY_TABLES)
    service = TenantBackendService(sessionmaker(bind=legacy_engine, future=True))
    assert service.mode is SchemaMode.LEGACY
    assert service.get_migration_status().data.isEnhanced is False
