"""
Tests for the dashboard's edit form payloads.
"""

from datetime import date

import pytest

from access_control.utils.encoding_utils import validate_face_encoding

from streamlit_dashboard import build_update_payload, demo_encoding, stored_expiry_date


@pytest.fixture
def stored_user():
    return {
        "id": "id-VIS001",
        "cardId": "VIS001",
        "name": "Guest Visitor",
        "email": None,
        "userType": "TEMPORARY",
        "expiresAt": "2030-01-01T23:59:59.999999Z",
    }


def unchanged_form(user):
    return {
        "cardId": user["cardId"],
        "name": user["name"],
        "email": user["email"] or "",
        "userType": user["userType"],
    }


class TestBuildUpdatePayload:
    """Test cases for the PUT body built by the edit form."""

    def test_unchanged_form_sends_nothing(self, stored_user):
        payload = build_update_payload(stored_user, unchanged_form(stored_user), date(2030, 1, 1))
        assert payload == {}

    def test_only_changed_fields_are_sent(self, stored_user):
        form = unchanged_form(stored_user)
        form["name"] = "  Guest Speaker "
        form["userType"] = "PERMANENT"

        payload = build_update_payload(stored_user, form, date(2030, 1, 1))

        assert payload == {"name": "Guest Speaker", "userType": "PERMANENT"}

    def test_clearing_expiry_sends_null(self, stored_user):
        payload = build_update_payload(stored_user, unchanged_form(stored_user), None)
        assert payload == {"expiresAt": None}

    def test_new_expiry_is_end_of_day_utc(self, stored_user):
        payload = build_update_payload(stored_user, unchanged_form(stored_user), date(2030, 2, 1))
        assert payload == {"expiresAt": "2030-02-01T23:59:59.999999+00:00"}

    def test_new_seed_replaces_encoding(self, stored_user):
        payload = build_update_payload(stored_user, unchanged_form(stored_user), date(2030, 1, 1), seed="guest")

        assert set(payload) == {"faceEncoding"}
        assert payload["faceEncoding"] == demo_encoding("guest")
        assert validate_face_encoding(payload["faceEncoding"])

    def test_stored_expiry_date_parses_utc_suffix(self, stored_user):
        assert stored_expiry_date(stored_user) == date(2030, 1, 1)
        assert stored_expiry_date({"expiresAt": None}) is None
