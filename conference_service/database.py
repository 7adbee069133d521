from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from .settings import DATABASE_URL

_connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    # sessions are handed across FastAPI's worker threads
    _connect_args["check_same_thread"] = False

engine = create_engine(DATABASE_URL, connect_args=_connect_args)

if engine.dialect.name == "sqlite":

    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    Yield a SQLAlchemy database session for the conference service.

    This function is used as a FastAPI dependency, creating a scoped
    session per HTTP request and ensuring it is closed afterwards.

    Yields
    ------
    Session
        Active SQLAlchemy session bound to the service engine.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
