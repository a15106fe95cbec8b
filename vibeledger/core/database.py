from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from vibeledger.core.config import settings

Base = declarative_base()

def create_db_engine(database_url: str, timeout_seconds: float = None):
    """Build an engine whose statements give up after the storage timeout."""
    timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.STORAGE_TIMEOUT_SECONDS

    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": timeout_seconds},
        )

    connect_args = {}
    if database_url.startswith("postgresql"):
        connect_args["options"] = f"-c statement_timeout={int(timeout_seconds * 1000)}"
    return create_engine(
        database_url,
        connect_args=connect_args,
        pool_pre_ping=True,
        pool_timeout=timeout_seconds,
    )

engine = create_db_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db(bind=None):
    # registers every model on Base.metadata
    from vibeledger.models import campaign, subscription, transaction, user, wallet  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
