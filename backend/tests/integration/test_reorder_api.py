from decimal import Decimal

import pytest

BASE = "/api/v1/reorder"


def run_analysis(client, job_service, wait_for_job, headers=None, **payload):
    resp = client.post(f"{BASE}/analyze", json=payload, headers=headers or {})
    assert resp.status_code == 202
    job_id = resp.json()["jobId"]
    wait_for_job(job_service, job_id)
    return job_id


@pytest.fixture
def suggestion_id(client, job_service, product, wait_for_job):
    run_analysis(client, job_service, wait_for_job)
    suggestions = client.get(f"{BASE}/suggestions").json()["suggestions"]
    assert len(suggestions) == 1
    return suggestions[0]["id"]


class TestHealth:

    def test_health_and_ready(self, client):
        assert client.get("/health").json()["status"] == "healthy"
        ready = client.get("/ready")
        assert ready.status_code == 200
        assert ready.json()["checks"]["database"]["ok"] is True
        assert "X-Request-ID" in ready.headers


class TestSettingsApi:

    def test_get_defaults(self, client):
        body = client.get(f"{BASE}/settings").json()
        assert body["auto_reorder_enabled"] is False
        assert body["default_confidence_threshold"] == 70.0

    def test_update_records_user(self, client, admin_headers):
        resp = client.put(
            f"{BASE}/settings",
            json={"auto_reorder_enabled": True, "max_auto_approve_amount": 250},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["auto_reorder_enabled"] is True
        assert Decimal(body["max_auto_approve_amount"]) == Decimal("250")
        assert body["updated_by"] == "planner-1"
        assert client.get(f"{BASE}/settings").json()["auto_reorder_enabled"] is True

    def test_out_of_range_threshold_is_rejected(self, client):
        resp = client.put(f"{BASE}/settings", json={"default_confidence_threshold": 101})
        assert resp.status_code == 422
        assert client.get(f"{BASE}/settings").json()["default_confidence_threshold"] == 70.0

    @pytest.mark.parametrize("field", [
        "auto_reorder_enabled",
        "analysis_frequency_hours",
        "default_confidence_threshold",
        "max_auto_approve_amount",
    ])
    def test_null_for_required_setting_is_rejected(self, client, field):
        resp = client.put(f"{BASE}/settings", json={field: None})

        assert resp.status_code == 422
        body = client.get(f"{BASE}/settings").json()
        assert body["auto_reorder_enabled"] is False
        assert body["analysis_frequency_hours"] == 24

    def test_null_clears_notification_email(self, client):
        client.put(f"{BASE}/settings", json={"notification_email": "ops@example.com"})

        resp = client.put(f"{BASE}/settings", json={"notification_email": None})

        assert resp.status_code == 200
        assert resp.json()["notification_email"] is None


class TestAnalysisApi:

    def test_analyze_and_poll(self, client, job_service, product, wait_for_job, admin_headers):
        job_id = run_analysis(client, job_service, wait_for_job, headers=admin_headers)

        job = client.get(f"{BASE}/job/{job_id}").json()
        assert job["status"] == "completed"
        assert job["suggestions_count"] == 1
        assert job["requested_by"] == "planner-1"

        listed = client.get(f"{BASE}/jobs").json()
        assert [j["job_id"] for j in listed] == [job_id]
        metrics = client.get(f"{BASE}/jobs/metrics").json()
        assert metrics["by_status"]["completed"] == 1

    def test_scoped_analysis_requires_target(self, client):
        resp = client.post(f"{BASE}/analyze", json={"scope": "category"})
        assert resp.status_code == 422

    def test_unknown_job(self, client):
        resp = client.get(f"{BASE}/job/not-a-job")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND"

    def test_cleanup_without_body(self, client):
        resp = client.post(f"{BASE}/jobs/cleanup")
        assert resp.status_code == 200
        assert resp.json()["deleted_jobs"] == 0


class TestSuggestionsApi:

    def test_list_with_summary(self, client, suggestion_id):
        body = client.get(f"{BASE}/suggestions").json()
        suggestion = body["suggestions"][0]

        assert suggestion["suggested_quantity"] == 50
        assert Decimal(suggestion["estimated_cost"]) == Decimal("400")
        assert suggestion["urgency"] == "critical"
        assert body["summary"]["total"] == 1
        assert body["summary"]["critical_count"] == 1

        assert client.get(f"{BASE}/suggestions", params={"urgency": "low"}).json()["suggestions"] == []
        assert client.get(f"{BASE}/suggestions", params={"urgency": "urgent"}).status_code == 422

    def test_get_single(self, client, suggestion_id):
        assert client.get(f"{BASE}/suggestions/{suggestion_id}").json()["id"] == suggestion_id
        assert client.get(f"{BASE}/suggestions/9999").status_code == 404

    def test_approve_then_conflict(self, client, suggestion_id, admin_headers):
        resp = client.post(
            f"{BASE}/suggestions/{suggestion_id}/action",
            json={"action": "approve"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "approved"

        again = client.post(f"{BASE}/suggestions/{suggestion_id}/action", json={"action": "approve"})
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "INVALID_STATE_TRANSITION"

        history = client.get(f"{BASE}/history", params={"suggestion_id": suggestion_id}).json()
        assert [(h["action_taken"], h["user_id"]) for h in history] == [("approved", "planner-1")]

    def test_reject_without_reason_is_unprocessable(self, client, suggestion_id):
        resp = client.post(f"{BASE}/suggestions/{suggestion_id}/action", json={"action": "reject"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "BUSINESS_RULE_VIOLATION"

    def test_modify_requires_modifications(self, client, suggestion_id):
        resp = client.post(f"{BASE}/suggestions/{suggestion_id}/action", json={"action": "modify"})
        assert resp.status_code == 422

        resp = client.post(
            f"{BASE}/suggestions/{suggestion_id}/action",
            json={"action": "modify", "modifications": {"suggested_quantity": 20}},
        )
        assert resp.status_code == 200
        assert Decimal(resp.json()["estimated_cost"]) == Decimal("160")

    def test_action_on_missing_suggestion(self, client, global_policy):
        resp = client.post(f"{BASE}/suggestions/404/action", json={"action": "approve"})
        assert resp.status_code == 404

    def test_bulk_actions(self, client, suggestion_id):
        resp = client.post(f"{BASE}/suggestions/bulk-approve", json={"ids": [suggestion_id, 31337]})
        body = resp.json()
        assert body["successful"] == 1
        assert body["failed"] == 1
        assert body["errors"][0]["id"] == 31337

        missing_reason = client.post(f"{BASE}/suggestions/bulk-reject", json={"ids": [suggestion_id]})
        assert missing_reason.status_code == 422

    def test_convert_to_order(self, client, suggestion_id, admin_headers):
        pending = client.post(f"{BASE}/suggestions/{suggestion_id}/order")
        assert pending.status_code == 409

        client.post(f"{BASE}/suggestions/{suggestion_id}/action", json={"action": "approve"})
        resp = client.post(f"{BASE}/suggestions/{suggestion_id}/order", headers=admin_headers)

        assert resp.status_code == 201
        order = resp.json()
        assert order["quantity"] == 50
        assert order["auto_generated"] is True
        assert order["created_by"] == "planner-1"
        orders = client.get(f"{BASE}/auto-orders").json()
        assert [o["order_number"] for o in orders] == [order["order_number"]]
        assert client.get(f"{BASE}/suggestions/{suggestion_id}").json()["status"] == "ordered"

    def test_record_outcome(self, client, suggestion_id):
        client.post(f"{BASE}/suggestions/{suggestion_id}/action", json={"action": "approve"})
        history_id = client.get(f"{BASE}/history").json()[0]["id"]

        resp = client.post(f"{BASE}/history/{history_id}/outcome", json={"overstock_occurred": True})
        assert resp.status_code == 200
        assert resp.json()["overstock_occurred"] is True
        assert resp.json()["outcome_recorded_at"] is not None

    def test_export_csv_and_excel(self, client, suggestion_id):
        csv_resp = client.get(f"{BASE}/suggestions/export", params={"format": "csv"})
        assert csv_resp.status_code == 200
        assert csv_resp.headers["content-type"].startswith("text/csv")
        lines = csv_resp.text.strip().splitlines()
        assert lines[0].startswith("id,product_id,supplier_id,suggested_quantity")
        assert len(lines) == 2

        xlsx_resp = client.get(f"{BASE}/suggestions/export", params={"format": "excel"})
        assert xlsx_resp.status_code == 200
        assert xlsx_resp.content[:2] == b"PK"
        assert ".xlsx" in xlsx_resp.headers["content-disposition"]

        assert client.get(f"{BASE}/suggestions/export", params={"format": "pdf"}).status_code == 422


class TestPoliciesApi:

    def test_create_list_and_deactivate(self, client, global_policy, category, admin_headers):
        resp = client.post(
            f"{BASE}/policies",
            json={"scope_type": "category", "scope_id": category.id, "safety_stock_days": 10},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        policy = resp.json()
        assert policy["created_by"] == "planner-1"

        scopes = [p["scope_type"] for p in client.get(f"{BASE}/policies").json()]
        assert scopes == ["category", "global"]

        updated = client.put(f"{BASE}/policies/{policy['id']}", json={"max_order_quantity": 200})
        assert updated.json()["max_order_quantity"] == 200

        deactivated = client.post(f"{BASE}/policies/{policy['id']}/deactivate")
        assert deactivated.json()["is_active"] is False
        assert [p["scope_type"] for p in client.get(f"{BASE}/policies").json()] == ["global"]

    def test_invalid_scope_payload(self, client, global_policy):
        resp = client.post(f"{BASE}/policies", json={"scope_type": "global", "scope_id": 4})
        assert resp.status_code == 422

    def test_preferred_over_max_on_update(self, client, global_policy):
        client.put(f"{BASE}/policies/{global_policy.id}", json={"max_order_quantity": 10})
        resp = client.put(f"{BASE}/policies/{global_policy.id}", json={"preferred_order_quantity": 20})
        assert resp.status_code == 422


class TestForecastApi:

    def test_forecast_product(self, client, product):
        resp = client.get(
            f"{BASE}/forecast/{product.id}",
            params={"horizon": 14, "include_confidence_intervals": True},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["horizon_days"] == 14
        assert len(body["forecasted_demand"]) == 14
        assert body["avg_daily_demand"] == pytest.approx(10.0)
        assert body["days_until_stockout"] == 5
        assert body["current_stock"] == 50
        assert body["reorder_point"] == pytest.approx(100.0)
        assert len(body["confidence_intervals"]["lower"]) == 14

    def test_unknown_product(self, client, global_policy):
        assert client.get(f"{BASE}/forecast/8080").status_code == 404

    def test_demand_patterns(self, client, product):
        refreshed = client.post(f"{BASE}/forecast/{product.id}/patterns", params={"months": 6})
        assert refreshed.status_code == 200
        periods = refreshed.json()
        assert periods
        assert all(Decimal(p["avg_daily_demand"]) <= Decimal("10") for p in periods)

        listed = client.get(f"{BASE}/forecast/{product.id}/patterns").json()
        assert len(listed) == len(periods)
