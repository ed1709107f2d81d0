from sqlalchemy import text

from database import build_engine, is_sqlite


def test_is_sqlite():
    assert is_sqlite("sqlite:///data/fianzas.db")
    assert not is_sqlite("postgresql+psycopg://localhost/fianzas")


def test_sqlite_engine_enforces_foreign_keys():
    eng = build_engine("sqlite://")
    with eng.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar_one() == 1
    eng.dispose()
