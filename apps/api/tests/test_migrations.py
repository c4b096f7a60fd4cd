"""Tests for database migrations."""

import importlib.util
import sys
from pathlib import Path

import pytest

from transit_lens.models import Base

MIGRATION_PATH = Path(__file__).parent.parent / "alembic/versions/001_initial_schema.py"


class TestMigrationScript:
    """Tests for migration script structure."""

    @pytest.fixture
    def migration_module(self) -> object:
        """Load the initial migration module."""
        spec = importlib.util.spec_from_file_location("migration_001", MIGRATION_PATH)
        assert spec is not None
        assert spec.loader is not None
        module = importlib.util.module_from_spec(spec)
        sys.modules["migration_001"] = module
        spec.loader.exec_module(module)
        return module

    def test_migration_has_revision_id(self, migration_module: object) -> None:
        """Verify migration has a revision identifier."""
        assert migration_module.revision == "001"  # type: ignore[attr-defined]

    def test_migration_is_root(self, migration_module: object) -> None:
        """Verify the initial migration has no parent."""
        assert migration_module.down_revision is None  # type: ignore[attr-defined]

    def test_migration_has_upgrade_and_downgrade(self, migration_module: object) -> None:
        assert callable(migration_module.upgrade)  # type: ignore[attr-defined]
        assert callable(migration_module.downgrade)  # type: ignore[attr-defined]

    def test_only_one_revision(self) -> None:
        """A single root revision keeps `alembic upgrade head` unambiguous."""
        versions = sorted(p.name for p in MIGRATION_PATH.parent.glob("*.py"))
        assert versions == ["001_initial_schema.py"]


class TestMigrationUpgradeOperations:
    """Tests for verifying the upgrade creates correct structures."""

    @pytest.fixture
    def migration_source(self) -> str:
        """Load migration source code for inspection."""
        return MIGRATION_PATH.read_text()

    @pytest.mark.parametrize("table_name", sorted(Base.metadata.tables))
    def test_creates_every_model_table(self, migration_source: str, table_name: str) -> None:
        assert f'op.create_table(\n        "{table_name}"' in migration_source

    @pytest.mark.parametrize("table_name", sorted(Base.metadata.tables))
    def test_downgrade_drops_every_model_table(
        self, migration_source: str, table_name: str
    ) -> None:
        assert f'op.drop_table("{table_name}")' in migration_source

    def test_feed_versions_created_first(self, migration_source: str) -> None:
        """Version-scoped tables reference feed_versions."""
        first = migration_source.index("op.create_table(")
        assert migration_source.index('"feed_versions"', first) < migration_source.index(
            '"agencies"', first
        )

    def test_creates_unique_constraints(self, migration_source: str) -> None:
        for table in Base.metadata.sorted_tables:
            for constraint in table.constraints:
                if constraint.name and constraint.name.startswith("uq_"):
                    assert constraint.name in migration_source

    def test_creates_indexes(self, migration_source: str) -> None:
        for table in Base.metadata.sorted_tables:
            for index in table.indexes:
                assert f'"{index.name}"' in migration_source

    def test_cascading_version_fk(self, migration_source: str) -> None:
        assert 'ondelete="CASCADE"' in migration_source
