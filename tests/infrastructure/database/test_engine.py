"""Tests for database engine setup."""

from pathlib import Path

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from dotoring.infrastructure.database.engine import DB_FILENAME, init_database


class TestInitDatabase:
    def test_creates_file_and_table(self, tmp_path: Path) -> None:
        engine = init_database(tmp_path / "nested" / "data")
        try:
            assert (tmp_path / "nested" / "data" / DB_FILENAME).is_file()
            assert "kv_pairs" in inspect(engine).get_table_names()
        finally:
            engine.dispose()

    def test_wal_mode(self, db_engine: Engine) -> None:
        with db_engine.connect() as conn:
            mode = conn.execute(text("PRAGMA journal_mode")).scalar()
        assert mode == "wal"

    def test_idempotent(self, tmp_path: Path) -> None:
        init_database(tmp_path).dispose()
        engine = init_database(tmp_path)
        try:
            assert "kv_pairs" in inspect(engine).get_table_names()
        finally:
            engine.dispose()
