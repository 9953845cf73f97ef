"""
SQLAlchemy 2.x session management for the parsed-document store.
"""

import logging
import os

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from models import Base

load_dotenv()

logger = logging.getLogger(__name__)

# Database URL from environment, or a SQLite file under instance/
_base_dir = os.path.abspath(os.path.dirname(__file__))
_instance_dir = os.path.join(_base_dir, 'instance')
os.makedirs(_instance_dir, exist_ok=True)
_default_db = f"sqlite:///{os.path.join(_instance_dir, 'pairings.db')}"
DATABASE_URL = os.getenv("DATABASE_URL", _default_db)

engine = create_engine(DATABASE_URL, echo=False)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    """Create all tables."""
    Base.metadata.create_all(bind=engine)
    logger.info("Parsed-document store initialized at %s", engine.url.render_as_string(hide_password=True))
