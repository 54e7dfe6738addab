"""API endpoint tests.

Tests the FastAPI endpoints against an in-memory database.
"""

from decimal import Decimal
from uuid import uuid4

from httpx import AsyncClient


def employee(base_salary: str, status: str = "active", **allowances: str) -> dict:
    return {"employee_id": str(uuid4()), "base_salary": base_salary, "status": status, **allowances}


def run_payload(*employees: dict) -> dict:
    return {
        "name": "January 2024",
        "period_start": "2024-01-01",
        "period_end": "2024-01-31",
        "payment_date": "2024-01-31",
        "employees": list(employees),
    }


def runs_url(organization_id) -> str:
    return f"/api/v1/organizations/{organization_id}/payroll-runs"


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        """Health endpoint should return 200."""
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert data["engine_version"] == "test"

    async def test_readiness_check(self, client: AsyncClient):
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    async def test_liveness_check(self, client: AsyncClient):
        response = await client.get("/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"


class TestTaxCalculation:
    """POST /api/v1/tax/calculate."""

    async def test_breakdown(self, client: AsyncClient):
        response = await client.post("/api/v1/tax/calculate", json={"gross_pay": "50000"})
        assert response.status_code == 200

        data = response.json()
        assert Decimal(data["income_tax"]) == Decimal("7383")
        assert Decimal(data["health_contribution"]) == Decimal("1200")
        assert Decimal(data["pension_contribution"]) == Decimal("2160")
        assert Decimal(data["net_pay"]) == Decimal("39257")
        assert data["tables_version"] == "KE-2024-01"

    async def test_negative_net_pay(self, client: AsyncClient):
        response = await client.post("/api/v1/tax/calculate", json={"gross_pay": "100"})

        assert response.status_code == 422
        assert response.json()["code"] == "NEGATIVE_NET_PAY"

    async def test_disabled_jurisdiction(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/tax/calculate", json={"gross_pay": "50000", "jurisdiction": "UG"}
        )

        assert response.status_code == 422
        assert response.json()["code"] == "UNSUPPORTED_JURISDICTION"

    async def test_oversized_gross_rejected(self, client: AsyncClient):
        response = await client.post("/api/v1/tax/calculate", json={"gross_pay": "1e29"})

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_INPUT"

    async def test_negative_gross_rejected_by_schema(self, client: AsyncClient):
        response = await client.post("/api/v1/tax/calculate", json={"gross_pay": "-5"})
        assert response.status_code == 422


class TestPayrollRuns:
    """Payroll run endpoints."""

    async def test_create_and_get(self, client: AsyncClient):
        organization_id = uuid4()
        response = await client.post(
            runs_url(organization_id),
            json=run_payload(
                employee("50000"),
                employee("20000"),
                employee("80000", status="inactive"),
            ),
        )
        assert response.status_code == 201

        data = response.json()
        assert data["run_number"] == "PR-0001"
        assert data["status"] == "draft"
        assert data["employee_count"] == 2
        assert Decimal(data["total_net"]) == Decimal("57307")
        assert len(data["items"]) == 2

        response = await client.get(f"{runs_url(organization_id)}/{data['payroll_run_id']}")
        assert response.status_code == 200
        assert response.json()["calculation_fingerprint"] == data["calculation_fingerprint"]

    async def test_list_newest_first(self, client: AsyncClient):
        organization_id = uuid4()
        for _ in range(2):
            response = await client.post(runs_url(organization_id), json=run_payload(employee("30000")))
            assert response.status_code == 201

        response = await client.get(runs_url(organization_id))
        assert response.status_code == 200

        data = response.json()
        assert data["total"] == 2
        assert [r["run_number"] for r in data["items"]] == ["PR-0002", "PR-0001"]

    async def test_flagged_employees(self, client: AsyncClient):
        organization_id = uuid4()
        response = await client.post(
            runs_url(organization_id),
            json=run_payload(employee("50000"), employee("100")),
        )

        assert response.status_code == 422
        assert response.json()["code"] == "EMPLOYEES_FLAGGED"

        response = await client.get(runs_url(organization_id))
        assert response.json()["total"] == 0

    async def test_no_eligible_employees(self, client: AsyncClient):
        response = await client.post(
            runs_url(uuid4()),
            json=run_payload(employee("50000", status="terminated")),
        )

        assert response.status_code == 422
        assert response.json()["code"] == "NO_ELIGIBLE_EMPLOYEES"

    async def test_invalid_period(self, client: AsyncClient):
        payload = run_payload(employee("50000"))
        payload["period_end"] = "2023-12-01"

        response = await client.post(runs_url(uuid4()), json=payload)

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_INPUT"

    async def test_get_missing(self, client: AsyncClient):
        response = await client.get(f"{runs_url(uuid4())}/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["code"] == "RUN_NOT_FOUND"

    async def test_transition_and_delete(self, client: AsyncClient):
        organization_id = uuid4()
        created = await client.post(runs_url(organization_id), json=run_payload(employee("50000")))
        run_url = f"{runs_url(organization_id)}/{created.json()['payroll_run_id']}"

        response = await client.post(f"{run_url}/transition", json={"to_status": "processing"})
        assert response.status_code == 200
        assert response.json()["status"] == "processing"
        assert response.json()["processed_at"] is not None

        # Processing runs cannot be deleted
        response = await client.delete(run_url)
        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"

        response = await client.post(f"{run_url}/transition", json={"to_status": "cancelled"})
        assert response.status_code == 200

        response = await client.delete(run_url)
        assert response.status_code == 204

        response = await client.get(run_url)
        assert response.status_code == 404

    async def test_invalid_transition(self, client: AsyncClient):
        organization_id = uuid4()
        created = await client.post(runs_url(organization_id), json=run_payload(employee("50000")))
        run_url = f"{runs_url(organization_id)}/{created.json()['payroll_run_id']}"

        response = await client.post(f"{run_url}/transition", json={"to_status": "completed"})

        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"

    async def test_unknown_status_rejected_by_schema(self, client: AsyncClient):
        organization_id = uuid4()
        created = await client.post(runs_url(organization_id), json=run_payload(employee("50000")))
        run_url = f"{runs_url(organization_id)}/{created.json()['payroll_run_id']}"

        response = await client.post(f"{run_url}/transition", json={"to_status": "paid"})
        assert response.status_code == 422
