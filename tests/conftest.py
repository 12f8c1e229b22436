import os

# Settings are read when agenda.config is imported
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from agenda.main import create_app


def _register_and_login(client, email="a@b.com", password="secret1", name="A"):
    response = client.post("/api/register", json={"email": email, "password": password, "name": name})
    assert response.status_code == 201
    response = client.post("/api/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return response


@pytest.fixture
def app():
    return create_app("sqlite://")


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def other_client(app):
    return TestClient(app)


@pytest.fixture
def register_and_login():
    return _register_and_login


@pytest.fixture
def user_client(client):
    _register_and_login(client)
    return client


@pytest.fixture
def other_user_client(other_client):
    _register_and_login(other_client, email="b@c.com", password="secret2", name="B")
    return other_client


@pytest.fixture
def contact_data():
    return {"nombre": "X", "apellido": "Y", "telefono": "123"}
