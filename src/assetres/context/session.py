from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy import event
from sqlalchemy import text
from sqlalchemy.pool import QueuePool
from sqlalchemy.orm import scoped_session, sessionmaker

from assetres.context.core import StoppableService


from typing import Any
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from sqlalchemy.engine import Connection, Engine


SERIALIZABLE = 'SERIALIZABLE'


class SessionProvider(StoppableService):
    """Global session utility. It provides a SERIALIZABLE session to assetres.
    If you want to override this provider, be sure to set the isolation_level
    to SERIALIZABLE as well.

    Availability checks and the bookings they allow are only safe against
    concurrent requests for the same asset if the transaction they run in
    is serializable.

    PostgreSQL is the supported production database. SQLite works as well
    (it is used by the tests), as it serializes all writers anyway.

    """

    def __init__(
        self,
        dsn: str,
        engine_config: dict[str, Any] | None = None,
        session_config: dict[str, Any] | None = None
    ):
        if self.is_postgres(dsn):
            self.assert_valid_postgres_version(dsn)

        self.dsn = dsn

        self.engine = create_engine(
            dsn, poolclass=QueuePool, pool_size=5, max_overflow=5,
            isolation_level=SERIALIZABLE,
            **(engine_config or {})
        )

        if self.is_sqlite(dsn):
            self.enable_sqlite_savepoints(self.engine)

        self.session = scoped_session(sessionmaker(
            bind=self.engine, **(session_config or {})
        ))

    def stop_service(self) -> None:
        """ Called by the assetres context when the session provider is being
        discarded (only in testing).

        This makes sure that replacing the session provider on the context
        doesn't leave behind any idle connections.

        """

        self.session.remove()
        self.engine.dispose()

    @staticmethod
    def is_postgres(dsn: str) -> bool:
        return dsn.startswith('postgres')

    @staticmethod
    def is_sqlite(dsn: str) -> bool:
        return dsn.startswith('sqlite')

    @staticmethod
    def enable_sqlite_savepoints(engine: Engine) -> None:
        """ The sqlite3 module manages transactions on its own, which breaks
        savepoints. This leaves the transactions to SQLAlchemy and turns on
        the foreign key checks, which are off by default in SQLite.

        """

        @event.listens_for(engine, 'connect')
        def on_connect(dbapi_connection: Any, connection_record: Any) -> None:
            dbapi_connection.isolation_level = None

            cursor = dbapi_connection.cursor()
            cursor.execute('PRAGMA foreign_keys=ON')
            cursor.close()

        @event.listens_for(engine, 'begin')
        def on_begin(connection: Connection) -> None:
            connection.exec_driver_sql('BEGIN')

    def get_postgres_version(self, dsn: str) -> tuple[str, int]:
        """ Returns the postgres version as a tuple (string, integer).

        Uses it's own connection to be independent from any session.

        """
        assert self.is_postgres(dsn), 'Not a postgres database'

        query = text("""
            SELECT current_setting('server_version'),
                   current_setting('server_version_num')
        """)

        engine = create_engine(dsn)

        try:
            with engine.connect() as connection:
                result = connection.execute(query).first()
            assert result is not None
            version, number = result
            return version, int(number)
        finally:
            engine.dispose()

    def assert_valid_postgres_version(self, dsn: str) -> str:
        v, n = self.get_postgres_version(dsn)

        if n < 120000:
            raise RuntimeError(f'PostgreSQL 12+ is required, got {v}')

        return dsn
