import os
import sys

import pytest
from fastapi.testclient import TestClient

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Keep test runs from writing log files or reading a developer's overrides
os.environ["LOG_FILE"] = ""
os.environ["SEGMENTS_JSON"] = ""

from config import Settings
from tools.calendly import CalendlyClient
from tools.teleforce import TeleForceClient

CRO_SEGMENT_ID = "SEG07ootjebf6hm231767941287541"
PERFORMANCE_SEGMENT_ID = "SEGtgewk86jmjb31767941272012"
DEFAULT_SEGMENT_ID = "SEGplj45zsru74b1767770566946"

TELEFORCE_URL = "https://teleforce.test/api/leads"
SIGNING_KEY = "whsec_test"


def make_settings(**overrides) -> Settings:
    values = {
        "teleforce_api_url": TELEFORCE_URL,
        "teleforce_account_id": "ACC123",
        "calendly_token": "cal-token",
        "signing_key": SIGNING_KEY,
        "log_file": "",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def flat_envelope():
    """invitee.created in the current Calendly layout (invitee flattened under payload)."""
    return {
        "event": "invitee.created",
        "payload": {
            "name": "Jane Doe",
            "email": "jane@x.com",
            "timezone": "America/Chicago",
            "uri": "https://api.calendly.com/scheduled_events/EV1/invitees/INV1",
            "questions_and_answers": [
                {"question": "City", "answer": "Austin"},
                {"question": "Company Name", "answer": "Acme"},
            ],
            "scheduled_event": {
                "name": "Website CRO Meet",
                "start_time": "2024-01-01T10:00:00Z",
                "end_time": "2024-01-01T10:30:00Z",
                "uri": "https://api.calendly.com/scheduled_events/EV1",
            },
        },
    }


@pytest.fixture
def nested_envelope():
    """invitee.created in the legacy layout (invitee/event under data)."""
    return {
        "event": "invitee.created",
        "data": {
            "invitee": {
                "first_name": "John",
                "last_name": "Smith",
                "email": "john@y.com",
                "text_reminder_number": "+1 555 0100",
            },
            "event": {
                "name": "Performance Audit",
                "start_time": "2024-02-02T09:00:00Z",
            },
            "payload": {
                "questions_and_answers": [
                    {"question": "city", "answer": "Denver"},
                    {"question": "Monthly Budget", "answer": "5000"},
                ]
            },
        },
    }


@pytest.fixture
def client(settings, monkeypatch):
    """TestClient wired to a workflow built from the test settings."""
    import app as app_module

    calendly = CalendlyClient(settings)
    teleforce = TeleForceClient(settings)
    monkeypatch.setattr(app_module, "settings", settings)
    monkeypatch.setattr(app_module, "calendly", calendly)
    monkeypatch.setattr(app_module, "teleforce", teleforce)
    monkeypatch.setattr(app_module, "app_graph", app_module.build_workflow(settings, calendly, teleforce))

    with TestClient(app_module.app) as test_client:
        yield test_client
