"""
Tests for Activity API Endpoints
"""

import pytest

from tests.conftest import TENANT_ID

BASE = f"/api/v1/tenants/{TENANT_ID}/activity"


class TestActivityEndpoints:

    @pytest.mark.api
    def test_list_newest_first(self, client, delivered):
        data = client.get(f"{BASE}/").json()

        assert data["entries"][0]["type"] == "reminder_sent"
        assert data["entries"][0]["metadata"]["reminder_key"] == delivered

    @pytest.mark.api
    def test_filter_by_type(self, client, delivered):
        data = client.get(f"{BASE}/", params={"types": ["tracker_added"]}).json()

        assert data["total"] == 1
        assert data["entries"][0]["metadata"]["tracker_id"] == "user-tracker"

    @pytest.mark.api
    def test_filter_by_day(self, client, delivered):
        assert client.get(f"{BASE}/", params={"day": "2025-01-15"}).json()["total"] > 0
        assert client.get(f"{BASE}/", params={"day": "2025-01-14"}).json()["total"] == 0

    @pytest.mark.api
    def test_summary(self, client, delivered, target_headers):
        client.post(
            f"/api/v1/tenants/{TENANT_ID}/reminders/{delivered}/respond",
            json={"action": "taken"},
            headers=target_headers,
        )

        data = client.get(f"{BASE}/summary").json()

        assert data == {"date": "2025-01-15", "taken": 1, "missed": 0, "compliance": 100}
