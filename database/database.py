from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv
import os

load_dotenv()

# Database location, overridable through the environment
SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./smartwallet.db")


def _engine_options(url: str) -> dict:
    """SQLite needs cross-thread access, and an in-memory database must be shared"""
    if not url.startswith("sqlite"):
        return {}
    options = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return options


engine = create_engine(SQLALCHEMY_DATABASE_URL, **_engine_options(SQLALCHEMY_DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def init_db():
    """Create every table"""
    from database.models import (
        UserModel, CategoryModel, TransactionModel, BudgetModel, RecurringTransactionModel
    )
    Base.metadata.create_all(bind=engine)

def get_db():
    """Dependency yielding a database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
