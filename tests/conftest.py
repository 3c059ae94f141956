"""
Shared fixtures: in-memory SQLite, a fake media gateway and an API client.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Make the top-level modules importable when running from a checkout
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Must be set before the application modules build their engine
os.environ["DATABASE_URL"] = "sqlite://"

from config import Settings, get_settings
from database import get_db
from main import app, get_account_service
from models import Base
from services.accounts import AccountService
from services.media import MediaAsset, UploadResult


class FakeMediaGateway:
    """Stands in for the media host; paths listed in ``failing`` fail."""

    def __init__(self):
        self.failing = set()
        self.fail_all = False
        self.uploaded = []

    def upload(self, local_file_path):
        if not local_file_path:
            return UploadResult.skipped()
        if self.fail_all or local_file_path in self.failing or os.path.basename(local_file_path) in self.failing:
            return UploadResult.failed("media host unavailable")

        name = os.path.basename(local_file_path)
        self.uploaded.append(local_file_path)
        return UploadResult.uploaded(MediaAsset(
            url=f"http://media.test/media/{name}",
            bucket="media",
            object_name=name,
            content_type="image/png",
            size=3
        ))


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL="sqlite://",
        ACCESS_TOKEN_SECRET="test-access-secret",
        REFRESH_TOKEN_SECRET="test-refresh-secret",
        ACCESS_TOKEN_EXPIRE_MINUTES=15,
        REFRESH_TOKEN_EXPIRE_DAYS=1,
        UPLOAD_TMP_DIR=str(tmp_path / "temp"),
    )


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def media():
    return FakeMediaGateway()


@pytest.fixture()
def accounts(settings, media) -> AccountService:
    return AccountService(settings, media)


@pytest.fixture()
def register(accounts, db):
    """Register a user with sensible defaults; keyword arguments override them."""
    def _register(**overrides):
        data = {
            "fullname": "Jane Doe",
            "username": "janed",
            "email": "jane@x.com",
            "password": "pw123",
            "avatar_path": "/tmp/avatar.png",
            "cover_image_path": None,
        }
        data.update(overrides)
        return accounts.register(db, **data)
    return _register


@pytest.fixture()
def client(db, accounts, settings):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_account_service] = lambda: accounts
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        yield TestClient(app, base_url="https://testserver")
    finally:
        app.dependency_overrides.clear()
