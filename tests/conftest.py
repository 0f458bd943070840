"""
Shared fixtures: an app on in-memory SQLite and its test client.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GEMINI_API_KEY"] = ""

import pytest

from app import create_app
from config import Config
from models import db


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    GEMINI_API_KEY = ""


@pytest.fixture
def app(tmp_path):
    TestingConfig.STORAGE_ROOT = str(tmp_path / "storage")
    app = create_app(TestingConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def target(client):
    """Sets the review target to Jordan Rivera."""
    response = client.put("/api/host/target", json={"target": "Jordan Rivera"})
    assert response.status_code == 200
    return "Jordan Rivera"
