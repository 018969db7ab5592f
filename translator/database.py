"""Database engine and session management."""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from translator.config import settings

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)

# Jobs are handed between the store and the worker after commit
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

Base = declarative_base()
