import logging
import sqlite3
from contextlib import contextmanager

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event, inspect
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from twtxt_registry.exceptions import OperationCancelled, RegistryException, StoreError

# Retrieve main logger
logger = logging.getLogger("main")

db = SQLAlchemy()

# SQLite VM instructions between deadline checks while a statement runs
PROGRESS_HANDLER_STEPS = 1000


def database_uri(database_path):
    """SQLAlchemy URI for a database file path, ``:memory:`` or blank for an ephemeral database"""
    if not database_path or database_path.strip() == ":memory:":
        return "sqlite://"
    return "sqlite:///" + database_path.strip()


def init_db(app):
    with app.app_context():
        # Ensure foreign keys, WAL mode, and timeout are set when connection is opened
        @event.listens_for(db.engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            if not isinstance(dbapi_connection, sqlite3.Connection):
                return

            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA busy_timeout=30000;")
            cursor.close()

        from twtxt_registry.models import Account, Entry  # noqa: F401
        from twtxt_registry.models.search import install_search_index

        inspector = inspect(db.engine)
        if not inspector.has_table("accounts"):
            logger.info("Initializing database tables...")
        db.create_all()

        # Databases created before the search index existed get it here
        with db.engine.begin() as connection:
            install_search_index(connection)
        logger.info(f"Database ready at {db.engine.url}")


@contextmanager
def _cancellable(session, deadline):
    """Abort the running SQLite statement as soon as the deadline expires"""
    if deadline is None:
        yield
        return

    raw_connection = session.connection().connection.dbapi_connection
    set_handler = getattr(raw_connection, "set_progress_handler", None)
    if set_handler is None:
        yield
        return

    set_handler(lambda: 1 if deadline.expired else 0, PROGRESS_HANDLER_STEPS)
    try:
        yield
    finally:
        set_handler(None, PROGRESS_HANDLER_STEPS)


@contextmanager
def transaction(operation, deadline=None, commit=True):
    """
    Run a unit of work against the session.

    Commits when the block finishes (unless ``commit`` is False, for reads),
    rolls back on any exception, and re-raises driver failures as
    ``StoreError`` naming the operation that was being attempted.
    """
    if deadline is not None:
        deadline.check(operation)

    session = db.session
    try:
        with _cancellable(session, deadline):
            yield session
            if deadline is not None:
                deadline.check(operation)
        if commit:
            session.commit()
    except RegistryException:
        session.rollback()
        raise
    except OperationalError as e:
        session.rollback()
        if deadline is not None and deadline.expired:
            raise OperationCancelled(operation) from e
        raise StoreError(operation, f"while {operation}: {e.orig}") from e
    except SQLAlchemyError as e:
        session.rollback()
        raise StoreError(operation, f"while {operation}: {e}") from e
    except BaseException:
        session.rollback()
        raise
