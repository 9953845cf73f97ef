"""
Test fixtures for the crew pairing parser.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import routes
from app import create_app
from cache import PairingCache
from models import Base


SAMPLE_LINES = [
    "CREW PAIRINGS - APRIL",
    "",
    "BASE YYZ  FLEET A320",
    "PAGE 1",
    "OPERATES/OPER- T5001   15APR - 25APR",
    "1 A320 100 YYZ 0815 BGI 1315 500",
    "=====",
    "OPERATES/OPER- T5002   01APR - 30APR",
    "67 A320 101 YYZ 0715 YUL 0830 115 230 2519",
    "          Le Centre Sheraton Montreal Ho          ",
    "67 A320 102 YUL 1015 YYZ 1130 115 200",
    "BLOCK/H-VOL  230  CREDIT  0",
    "TOTAL ALLOWANCE -$  84.50",
    "TAFB/PTEB  2615",
    "TOTAL -  230",
    "=====",
    "OPERATES/OPER- T5003   02APR - 09APR",
    "1 A320 200 YYZ 0900 LAX 1200 600",
]


@pytest.fixture
def sample_lines():
    return list(SAMPLE_LINES)


@pytest.fixture
def sample_text():
    return "\n".join(SAMPLE_LINES)


@pytest.fixture(scope="function")
def session_factory():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def data_folder(tmp_path, monkeypatch):
    folder = tmp_path / "data"
    folder.mkdir()
    monkeypatch.setattr(routes, "DATA_FOLDER", str(folder))
    return folder


@pytest.fixture
def app():
    app = create_app(cache=PairingCache())
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
