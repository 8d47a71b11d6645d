from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from quiz_engine.core.config import DATABASE_URL

def _engine_options(url: str) -> dict:
    # SQLite connections are handed across worker threads by the request pool.
    if make_url(url).get_backend_name() == "sqlite":
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}

engine = create_engine(DATABASE_URL, future=True, **_engine_options(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)

def get_db():
    """Request-scoped session for FastAPI dependencies."""
    with session_scope() as db:
        yield db

@contextmanager
def session_scope(factory=None):
    """Session for code outside a request (rq jobs, scripts); closed on exit, never committed here."""
    db = (factory or SessionLocal)()
    try:
        yield db
    finally:
        db.close()

def init_db():
    """Create tables if they don't exist. Production deployments migrate instead."""
    from quiz_engine.models.orm import Base
    Base.metadata.create_all(bind=engine)
