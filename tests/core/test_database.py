"""Coverage for engine construction and the session dependency."""
from sqlalchemy import text
from sqlalchemy.pool import StaticPool

from pushdelivery.core import database


def test_sqlite_engine_kwargs():
    kwargs = database._engine_kwargs("sqlite:///./push_delivery.db")
    assert kwargs["connect_args"] == {"check_same_thread": False}
    assert "poolclass" not in kwargs


def test_in_memory_sqlite_uses_static_pool():
    kwargs = database._engine_kwargs("sqlite://")
    assert kwargs["poolclass"] is StaticPool


def test_postgres_engine_kwargs_are_pooled():
    kwargs = database._engine_kwargs("postgresql://user:pw@localhost/push_test")
    assert kwargs["pool_size"] == 20
    assert kwargs["pool_pre_ping"] is True


def test_build_engine_and_get_db():
    engine = database.build_engine("sqlite://")
    with engine.connect() as connection:
        assert connection.execute(text("SELECT 1")).scalar() == 1

    gen = database.get_db()
    session = next(gen)
    assert session.bind is database.engine
    gen.close()
