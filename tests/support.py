from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from smartshelf.models import Base
from smartshelf.services.audit_service import Actor
from smartshelf.services.locks import KeyedLock
from smartshelf.services.notification_service import NotificationPublisher

ACTOR = Actor(email='clerk@example.com', source_address='10.0.0.7', client_agent='unittest')


def make_session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )

    # pysqlite needs explicit BEGIN handling for SAVEPOINT to work.
    @event.listens_for(engine, 'connect')
    def _on_connect(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, 'begin')
    def _on_begin(conn):
        conn.exec_driver_sql('BEGIN')

    Base.metadata.create_all(engine)
    return engine, sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class RecordingPublisher(NotificationPublisher):
    def __init__(self) -> None:
        super().__init__()
        self.events: list[tuple[str, object]] = []
        self.subscribe(lambda event, data: self.events.append((event, data)))

    def names(self) -> list[str]:
        return [event for event, _ in self.events]


class StoreTestCase:
    """Mixin giving each test a fresh in-memory database and session."""

    def setUp(self) -> None:
        self.engine, self.session_factory = make_session_factory()
        self.db = self.session_factory()
        self.publisher = RecordingPublisher()
        self.locks = KeyedLock()

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()
