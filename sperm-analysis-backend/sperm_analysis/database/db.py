# sperm_analysis/database/db.py
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sperm_analysis.core.config import Config

# SQLAlchemy engine
engine = create_engine(
    Config.database_url(),
    pool_pre_ping=True,
    future=True,
)

# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
)

# Base for ORM models
Base = declarative_base()


def init_db():
    # import so the table is registered on Base.metadata
    from sperm_analysis.models import analysis_result  # noqa: F401

    Base.metadata.create_all(bind=engine)
