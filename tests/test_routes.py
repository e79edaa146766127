"""
Tests for API routes — health, manual passes, contract inspection, re-arming, audit trail.
"""

from partner_recovery.schemas import PartnerRole


class TestHealthEndpoint:
    async def test_health(self, client):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert "version" in data
        assert "timestamp" in data


class TestRootEndpoint:
    async def test_root(self, client):
        resp = await client.get("/")
        assert resp.status_code == 200
        data = resp.json()
        assert data["service"] == "Partner Recovery API"
        assert data["docs"] == "/docs"


class TestRunPass:
    async def test_run_recovers_due_contracts(self, client, seed):
        await seed.profile(PartnerRole.HQ)
        manager = await seed.profile(PartnerRole.BRANCH_MANAGER)
        await seed.leads(2, manager=manager)
        contract = await seed.contract(manager)
        await seed.commit()

        resp = await client.post("/api/v1/recovery/run")
        assert resp.status_code == 200
        assert resp.json() == {"contracts_processed": 1, "contracts_failed": 0}

        data = (await client.get(f"/api/v1/recovery/contracts/{contract.id}")).json()
        assert data["recovered"] is True
        assert data["recovery_summary"]["total_leads"] == 2
        assert data["recovery_summary"]["recovery_type"] == "BRANCH_MANAGER_TO_HQ"

    async def test_run_with_nothing_due(self, client):
        resp = await client.post("/api/v1/recovery/run")
        assert resp.status_code == 200
        assert resp.json()["contracts_processed"] == 0


class TestContractRecovery:
    async def test_get_contract(self, client, seed, clock):
        agent = await seed.profile(PartnerRole.SALES_AGENT)
        contract = await seed.contract(
            agent,
            attempt_count=1,
            last_attempt_at=clock(),
            attempt_errors=[{"attempt": 1, "error": "lock timeout", "timestamp": clock().isoformat()}],
        )
        await seed.commit()

        resp = await client.get(f"/api/v1/recovery/contracts/{contract.id}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["partner_role"] == "SALES_AGENT"
        assert data["status"] == "terminated"
        assert data["recovered"] is False
        assert data["attempt_count"] == 1
        assert data["attempt_errors"][0]["error"] == "lock timeout"
        assert data["exhausted"] is False

    async def test_get_contract_not_found(self, client):
        resp = await client.get("/api/v1/recovery/contracts/9999")
        assert resp.status_code == 404

    async def test_exhausted_flag(self, client, seed, clock):
        manager = await seed.profile(PartnerRole.BRANCH_MANAGER)
        contract = await seed.contract(manager, attempt_count=3, last_attempt_at=clock())
        await seed.commit()

        data = (await client.get(f"/api/v1/recovery/contracts/{contract.id}")).json()
        assert data["exhausted"] is True


class TestRetryContract:
    async def test_retry_resets_exhausted_contract(self, client, seed, clock):
        manager = await seed.profile(PartnerRole.BRANCH_MANAGER)
        errors = [
            {"attempt": n, "error": "deadlock", "timestamp": clock().isoformat()}
            for n in (1, 2, 3)
        ]
        contract = await seed.contract(manager, attempt_count=3, last_attempt_at=clock(),
                                       attempt_errors=errors)
        await seed.commit()

        resp = await client.post(f"/api/v1/recovery/contracts/{contract.id}/retry")
        assert resp.status_code == 200
        data = resp.json()
        assert data["attempt_count"] == 0
        assert data["attempt_errors"] == []
        assert data["last_attempt_at"] is None
        assert data["exhausted"] is False

        audit = (await client.get(f"/api/v1/recovery/audit?contract_id={contract.id}")).json()
        assert audit["total"] == 1
        entry = audit["entries"][0]
        assert entry["action"] == "RETRY"
        assert entry["performed_by_system"] is False
        assert entry["details"]["previous_attempt_count"] == 3
        assert len(entry["details"]["previous_errors"]) == 3

    async def test_retry_recovered_contract_conflicts(self, client, seed, clock):
        manager = await seed.profile(PartnerRole.BRANCH_MANAGER)
        contract = await seed.contract(manager, recovered=True, recovered_at=clock())
        await seed.commit()

        resp = await client.post(f"/api/v1/recovery/contracts/{contract.id}/retry")
        assert resp.status_code == 409

    async def test_retry_not_found(self, client):
        resp = await client.post("/api/v1/recovery/contracts/9999/retry")
        assert resp.status_code == 404


class TestAuditList:
    async def test_empty(self, client):
        resp = await client.get("/api/v1/recovery/audit")
        assert resp.status_code == 200
        assert resp.json() == {"entries": [], "total": 0}

    async def test_filter_and_limit(self, client, seed):
        await seed.profile(PartnerRole.HQ)
        m1 = await seed.profile(PartnerRole.BRANCH_MANAGER)
        m2 = await seed.profile(PartnerRole.BRANCH_MANAGER)
        c1 = await seed.contract(m1)
        await seed.contract(m2)
        await seed.commit()

        await client.post("/api/v1/recovery/run")

        everything = (await client.get("/api/v1/recovery/audit")).json()
        assert everything["total"] == 2

        limited = (await client.get("/api/v1/recovery/audit?limit=1")).json()
        assert len(limited["entries"]) == 1
        assert limited["total"] == 2

        one = (await client.get(f"/api/v1/recovery/audit?contract_id={c1.id}")).json()
        assert one["total"] == 1
        assert one["entries"][0]["action"] == "RECOVERED"
        assert one["entries"][0]["category"] == "DB_RECOVERY"

    async def test_limit_validation(self, client):
        resp = await client.get("/api/v1/recovery/audit?limit=0")
        assert resp.status_code == 422
