"""Tests for the MongoDB gateway."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest
from pymongo.errors import AutoReconnect

from database import Gateway
from errors import PreconditionError, StorageError, ValidationError
from validation import BOOKINGS, CONTACTS, USERS


class TestConstruction:
    def test_requires_all_collections(self, database):
        with pytest.raises(ValueError, match="contacts"):
            Gateway({USERS: database[USERS], BOOKINGS: database[BOOKINGS]})

    def test_unknown_collection(self, gateway):
        with pytest.raises(ValueError):
            gateway.find_one("orders", {})


class TestInsert:
    def test_stamps_created_at_and_returns_id(self, gateway, database, contact):
        contact["createdAt"] = "1999-01-01"
        saved = gateway.insert(CONTACTS, contact)
        assert isinstance(saved["_id"], str)

        stored = database[CONTACTS].find_one({})
        assert isinstance(stored["createdAt"], datetime)
        assert stored["createdAt"].year > 1999
        assert stored["firstName"] == "Meera"

    def test_drops_unknown_fields(self, gateway, database, booking):
        booking["status"] = "confirmed"
        gateway.insert(BOOKINGS, booking)
        assert "status" not in database[BOOKINGS].find_one({})

    def test_invalid_record_is_not_written(self, gateway, database, booking):
        booking["phone"] = "98765"
        with pytest.raises(ValidationError) as exc:
            gateway.insert(BOOKINGS, booking)
        assert exc.value.fields == ["phone"]
        assert database[BOOKINGS].count_documents({}) == 0


class TestUpsert:
    def test_inserts_then_updates_same_document(self, gateway, database, profile):
        first = gateway.upsert(USERS, {"auth0Id": "u1"}, profile)
        profile["city"] = "Mysuru"
        second = gateway.upsert(USERS, {"auth0Id": "u1"}, profile)

        assert first["_id"] == second["_id"]
        assert second["city"] == "Mysuru"
        assert database[USERS].count_documents({"auth0Id": "u1"}) == 1

    def test_trims_before_writing(self, gateway, profile):
        profile["username"] = "  asha  "
        saved = gateway.upsert(USERS, {"auth0Id": "u1"}, profile)
        assert saved["username"] == "asha"

    def test_duplicate_username_is_a_conflict(self, gateway, profile):
        gateway.upsert(USERS, {"auth0Id": "u1"}, profile)
        with pytest.raises(PreconditionError, match="Username is already taken"):
            gateway.upsert(USERS, {"auth0Id": "u2"}, {**profile, "auth0Id": "u2"})

    def test_find_one(self, gateway, profile):
        assert gateway.find_one(USERS, {"auth0Id": "u1"}) is None
        gateway.upsert(USERS, {"auth0Id": "u1"}, profile)
        found = gateway.find_one(USERS, {"auth0Id": "u1"})
        assert found["username"] == "asha"
        assert isinstance(found["_id"], str)


class TestDriverFailures:
    @pytest.fixture
    def broken(self):
        collection = MagicMock()
        collection.find_one.side_effect = AutoReconnect("connection reset")
        collection.insert_one.side_effect = AutoReconnect("connection reset")
        collection.find_one_and_update.side_effect = AutoReconnect("connection reset")
        return Gateway({USERS: collection, BOOKINGS: collection, CONTACTS: collection})

    def test_find_one_wraps_driver_error(self, broken):
        with pytest.raises(StorageError, match="connection reset"):
            broken.find_one(USERS, {"auth0Id": "u1"})

    def test_insert_wraps_driver_error(self, broken, contact):
        with pytest.raises(StorageError):
            broken.insert(CONTACTS, contact)

    def test_upsert_wraps_driver_error(self, broken, profile):
        with pytest.raises(StorageError):
            broken.upsert(USERS, {"auth0Id": "u1"}, profile)

    def test_validation_runs_before_the_driver(self, broken, contact):
        del contact["email"]
        with pytest.raises(ValidationError):
            broken.insert(CONTACTS, contact)
