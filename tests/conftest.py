"""Shared fixtures: an in-memory MongoDB and an app wired to it."""

from unittest.mock import MagicMock

import mongomock
import pytest
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from config import get_settings
from database import Gateway
from main import create_app


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    yield
    get_settings.cache_clear()


@pytest.fixture
def database():
    return mongomock.MongoClient()["consultations_test"]


@pytest.fixture
def gateway(database):
    gw = Gateway.from_database(database)
    gw.ensure_indexes()
    return gw


@pytest.fixture
def client(database):
    app = create_app(database)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def failing_database():
    """A database whose every read and write fails like an unreachable server."""
    db = MagicMock()
    collection = db.__getitem__.return_value
    error = ServerSelectionTimeoutError("localhost:27017: connection refused")
    collection.find_one.side_effect = error
    collection.insert_one.side_effect = error
    collection.find_one_and_update.side_effect = error
    collection.create_index.side_effect = error
    collection.database.list_collection_names.side_effect = error
    return db


@pytest.fixture
def failing_client(failing_database):
    app = create_app(failing_database)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def profile():
    return {
        "auth0Id": "u1",
        "firstName": "Asha",
        "lastName": "Rao",
        "username": "asha",
        "email": "asha@example.com",
        "phone": "9876543210",
        "addressLine1": "12 MG Road",
        "addressLine2": "Indiranagar",
        "city": "Bengaluru",
        "state": "Karnataka",
        "pincode": "560038",
    }


@pytest.fixture
def booking():
    return {
        "firstName": "Ravi",
        "lastName": "Kumar",
        "phone": "9123456780",
        "date": "2026-11-02",
        "timeSlot": "10:00-10:30",
    }


@pytest.fixture
def contact():
    return {
        "firstName": "Meera",
        "lastName": "Iyer",
        "email": "meera@example.com",
        "message": "I'd like to know more about consultations.",
    }
