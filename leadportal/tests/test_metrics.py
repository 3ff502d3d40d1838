"""
Dashboard metrics, affiliate summaries and monitoring endpoint tests
"""

import pytest
from datetime import datetime, timedelta, timezone

from leadportal.core.enums import LeadStatus


def by_status(data):
    return {item["status"]: item["count"] for item in data["leads_by_status"]}


class TestLeadMetrics:

    @pytest.mark.asyncio
    async def test_counts_and_approval_rate(self, test_client, lead_factory, admin_headers):
        await lead_factory("A", status=LeadStatus.APPROVED)
        await lead_factory("B", status=LeadStatus.APPROVED)
        await lead_factory("C", status=LeadStatus.REJECTED)
        await lead_factory("D")

        response = await test_client.get("/leads/metrics", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total_leads"] == 4
        assert by_status(data) == {"new": 1, "in_review": 0, "approved": 2, "rejected": 1}
        assert data["approval_rate"] == 0.5
        assert data["leads_trend"] is None

    @pytest.mark.asyncio
    async def test_empty_store(self, test_client, admin_headers):
        response = await test_client.get("/leads/metrics", headers=admin_headers)

        data = response.json()
        assert data["total_leads"] == 0
        assert data["approval_rate"] == 0.0
        assert data["lead_trends"] == []

    @pytest.mark.asyncio
    async def test_trend_against_previous_window(self, test_client, lead_factory, admin_headers, days_ago):
        today = datetime.now(timezone.utc).date()
        # window is the last 7 days; the previous window is the 7 days before it
        await lead_factory("Prev 1", created_at=days_ago(10))
        await lead_factory("Prev 2", created_at=days_ago(12))
        for i in range(3):
            await lead_factory(f"Now {i}", created_at=days_ago(2))

        start = (today - timedelta(days=6)).isoformat()
        response = await test_client.get(
            f"/leads/metrics?startDate={start}&endDate={today.isoformat()}",
            headers=admin_headers
        )

        data = response.json()
        assert data["total_leads"] == 3
        assert data["leads_trend"] == 50.0
        assert len(data["lead_trends"]) == 1
        assert data["lead_trends"][0]["new"] == 3

    @pytest.mark.asyncio
    async def test_metrics_scoped_to_affiliate(self, test_client, lead_factory, acme, globex, affiliate_headers):
        await lead_factory("Acme Lead", affiliate_id=acme.id)
        await lead_factory("Globex Lead", affiliate_id=globex.id)

        response = await test_client.get("/leads/metrics", headers=affiliate_headers)
        assert response.json()["total_leads"] == 1


class TestAffiliates:

    @pytest.mark.asyncio
    async def test_list_affiliates_with_counts(self, test_client, lead_factory, acme, globex, admin_headers):
        await lead_factory("Acme 1", affiliate_id=acme.id, status=LeadStatus.APPROVED)
        await lead_factory("Acme 2", affiliate_id=acme.id)

        response = await test_client.get("/affiliates", headers=admin_headers)

        assert response.status_code == 200
        summary = {item["name"]: item for item in response.json()}
        assert summary["Acme Lending"]["lead_count"] == 2
        assert summary["Acme Lending"]["approved_count"] == 1
        assert summary["Globex Finance"]["lead_count"] == 0
        assert summary["Globex Finance"]["approved_count"] == 0

    @pytest.mark.asyncio
    async def test_affiliate_views_own_summary(self, test_client, acme, affiliate_headers):
        response = await test_client.get(f"/affiliates/{acme.id}", headers=affiliate_headers)

        assert response.status_code == 200
        assert response.json()["name"] == "Acme Lending"

    @pytest.mark.asyncio
    async def test_affiliate_cannot_view_other_summary(self, test_client, globex, affiliate_headers):
        response = await test_client.get(f"/affiliates/{globex.id}", headers=affiliate_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_missing_affiliate(self, test_client, admin_headers):
        response = await test_client.get("/affiliates/999", headers=admin_headers)
        assert response.status_code == 404


class TestMonitoring:

    @pytest.mark.asyncio
    async def test_prometheus_metrics_exposed(self, test_client, admin_headers):
        await test_client.get("/leads", headers=admin_headers)

        response = await test_client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text
        assert "lead_status_transitions_total" in response.text

    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["dependencies"]["database"] == "connected"

    @pytest.mark.asyncio
    async def test_readiness(self, test_client):
        response = await test_client.get("/readiness")

        assert response.status_code == 200
        assert response.json()["ready"] is True
