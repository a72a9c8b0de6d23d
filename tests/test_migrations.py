"""
Tests that the initial migration describes the same schema as the models.
"""

from __future__ import annotations

import importlib.util
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import sqlalchemy as sa
from sqlmodel import SQLModel

import app.models  # noqa: F401

MIGRATION = Path(__file__).resolve().parents[1] / "alembic" / "versions" / "0001_initial_schema.py"


@pytest.fixture
def recorded_op(monkeypatch):
    spec = importlib.util.spec_from_file_location("initial_schema", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    op = MagicMock()
    monkeypatch.setattr(module, "op", op)
    module.upgrade()
    return op


def _migration_columns(op):
    for call in op.create_table.call_args_list:
        table_name, *items = call.args
        for item in items:
            if isinstance(item, sa.Column):
                yield table_name, item


class TestInitialSchema:
    def test_creates_every_table(self, recorded_op):
        created = {call.args[0] for call in recorded_op.create_table.call_args_list}
        assert created == set(SQLModel.metadata.tables)

    def test_indexes_match_models(self, recorded_op):
        created = {
            (call.args[1], tuple(call.args[2]), bool(call.kwargs.get("unique", False)))
            for call in recorded_op.create_index.call_args_list
        }
        declared = {
            (table.name, tuple(column.name for column in index.columns), bool(index.unique))
            for table in SQLModel.metadata.tables.values()
            for index in table.indexes
        }
        assert created == declared

    def test_foreign_keys_match_models(self, recorded_op):
        created = {
            (table_name, column.name, fk.target_fullname, fk.ondelete)
            for table_name, column in _migration_columns(recorded_op)
            for fk in column.foreign_keys
        }
        declared = {
            (table.name, fk.parent.name, fk.target_fullname, fk.ondelete)
            for table in SQLModel.metadata.tables.values()
            for fk in table.foreign_keys
        }
        assert created == declared
