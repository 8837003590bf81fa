"""Tests for incident and draft models."""
import pytest
from pydantic import ValidationError

from app.models.draft import DraftReport, parse_coordinate
from app.models.incident import Category, Incident, IncidentCreate, Status


class TestIncident:
    def test_enumerations_enforced(self, make_incident):
        with pytest.raises(ValidationError):
            make_incident(category="arson")
        with pytest.raises(ValidationError):
            make_incident(status="closed")

    def test_coordinates_must_be_paired(self, make_incident):
        with pytest.raises(ValidationError):
            make_incident(latitude=40.7)
        with pytest.raises(ValidationError):
            make_incident(longitude=-74.0)
        assert make_incident(latitude=40.7, longitude=-74.0).has_location
        assert not make_incident().has_location

    def test_id_and_owner_are_immutable(self, make_incident):
        inc = make_incident()
        with pytest.raises(ValidationError):
            inc.id = "other"
        with pytest.raises(ValidationError):
            inc.user_id = "someone-else"

    def test_status_change_via_copy_keeps_identity(self, make_incident):
        inc = make_incident(status="resolved")
        reopened = inc.model_copy(update={"status": Status.NEW})
        assert reopened.id == inc.id and reopened.user_id == inc.user_id
        assert reopened.status is Status.NEW

    def test_null_description_becomes_empty(self, make_incident):
        assert make_incident(description=None).description == ""

    def test_display_info(self, make_incident):
        inc = make_incident(category="suspicious", status="investigating")
        assert inc.category_info.label == "Suspicious Activity"
        assert inc.status_info.css_class == "status-investigating"

    def test_insert_payload_defaults_to_new(self):
        payload = IncidentCreate(title="t", category="theft", location="x", user_id="u")
        assert payload.status is Status.NEW


class TestDraftReport:
    def test_starts_empty(self):
        draft = DraftReport()
        assert draft.title == "" and draft.category == "" and draft.image is None
        assert draft.selected_category is None

    def test_selected_category(self):
        assert DraftReport(category="theft").selected_category is Category.THEFT
        assert DraftReport(category="nonsense").selected_category is None

    def test_to_incident_create_forces_new_and_owner(self):
        draft = DraftReport(title="  Bike theft ", category="theft", location="456 Pine Ave ")
        payload = draft.to_incident_create("user9", image_url="http://img")
        assert payload.title == "Bike theft"
        assert payload.location == "456 Pine Ave"
        assert payload.status is Status.NEW
        assert payload.user_id == "user9"
        assert payload.image_url == "http://img"

    def test_lone_coordinate_is_dropped(self):
        draft = DraftReport(title="t", category="other", location="x", latitude=40.7)
        payload = draft.to_incident_create("u")
        assert payload.latitude is None and payload.longitude is None

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("40.7128", 40.7128),
            (" -74.006 ", -74.006),
            ("", None),
            ("abc", None),
            ("0", None),
            (None, None),
            ("nan", None),
            ("inf", None),
            ("-Infinity", None),
        ],
    )
    def test_parse_coordinate(self, raw, expected):
        assert parse_coordinate(raw) == expected
