"""Shared fixtures for the proposal engine tests."""

from datetime import date

import pytest

from proposal_engine.core.config import Settings
from proposal_engine.strategies.template_engine.models import Estimate


@pytest.fixture
def settings():
    """Default settings, isolated from any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def today():
    """A fixed render date."""
    return date(2024, 3, 15)


@pytest.fixture
def estimate_data():
    """A raw estimate record as stored by the application."""
    return {
        "_id": "est-1",
        "estimate": "EST-1042",
        "versionNumber": 2,
        "date": "2024-03-01T10:30:00",
        "customer": "Acme Legacy",
        "customerName": "Acme Co",
        "projectTitle": "Main Street Bore",
        "jobAddress": "12 Main St",
        "contactName": "Dana Reyes",
        "contactPhone": "555-0100",
        "contactEmail": "dana@acme.test",
        "subTotal": 9000,
        "grandTotal": 10000,
        "crewSize": 4,
        "labor": [
            {"_id": "l1", "labor": "Foreman", "classification": "Supervision", "total": 1200.5},
            {"_id": "l2", "description": "Laborer", "classification": "General", "total": 800},
        ],
        "equipment": [
            {"_id": "e1", "equipmentMachine": "Excavator", "total": "$2,500.00"},
        ],
        "material": [],
        "miscellaneous": [{"_id": "m1"}],
        "customVariables": {"customText_0": "Net 30", "lineItem_0": "Foreman"},
    }


@pytest.fixture
def estimate(estimate_data):
    """The estimate record parsed into the model."""
    return Estimate.model_validate(estimate_data)
