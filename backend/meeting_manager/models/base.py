from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

# Register tables on SQLModel.metadata
from meeting_manager.models.meeting import Meeting  # noqa: F401
from meeting_manager.models.member import MeetingMember  # noqa: F401
from meeting_manager.models.point import MeetingPoint  # noqa: F401
from meeting_manager.models.point_forward import PointForwardDecision  # noqa: F401
from meeting_manager.models.history import MeetingHistory  # noqa: F401


def build_engine(url: str) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    in_memory = url in ("sqlite://", "sqlite:///:memory:")
    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if in_memory:
        kwargs["poolclass"] = StaticPool
    eng = create_engine(url, **kwargs)

    # pysqlite defers BEGIN on its own, which breaks SAVEPOINTs; let SQLAlchemy emit it
    @event.listens_for(eng, "connect")
    def _on_connect(dbapi_conn, _record) -> None:  # type: ignore[no-untyped-def]
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON;")
        if not in_memory:
            # SQLite with WAL enabled
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
        cursor.close()

    @event.listens_for(eng, "begin")
    def _on_begin(conn) -> None:  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN")

    return eng


def init_db(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)
