from sqlmodel import SQLModel, create_engine, Session
from permitted.config.settings import DATABASE_URL, DB_ECHO, DB_MAX_OVERFLOW, DB_POOL_SIZE


def build_engine(url: str = DATABASE_URL):
    """Engine for the role store. SQLite gets no pool tuning."""
    if url.startswith("sqlite"):
        return create_engine(url, echo=DB_ECHO, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        echo=DB_ECHO,
        pool_size=DB_POOL_SIZE,
        max_overflow=DB_MAX_OVERFLOW,
        pool_recycle=300,     # seconds
        pool_pre_ping=True,
        pool_timeout=60,
    )


engine = build_engine()


def create_db_and_tables(bind=None):
    """
    Create roles, permissions, modules, sub_modules, users and the pivot tables.
    Schema changes beyond that are the embedding application's migrations.
    """
    # Importing the models registers their tables on the metadata
    import permitted.database.models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def get_session():
    """
    FastAPI dependency yielding one session per request:

        def list_roles(session: Session = Depends(get_session)): ...
    """
    with Session(engine) as session:
        yield session


def get_db_session() -> Session:
    """Session for scripts and tooling; the caller closes it."""
    return Session(engine)
