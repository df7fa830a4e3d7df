"""
tests/test_api_home_schedule.py — HTTP surface of the scheduling blueprint.

Covers:
    1.  Forecast view and recompute
    2.  Cycle on recompute → 422 with ERR_DEPENDENCY_CYCLE
    3.  Unknown home / cross-tenant home → 404
    4.  Batch block reasons keyed by task id
    5.  Single block reason + gate check
    6.  Scheduling a blocked task → 409 with ERR_SCHEDULING_BLOCKED
    7.  Bad date → 400; invalid transition → 422
    8.  Adding a task → 201 and refreshed forecast
    9.  Template dependency edit: success, cycle → 422
    10. Health endpoints

Marker: integration (full HTTP round-trip through Flask test client).
"""

from datetime import date

from app.models import db as _db
from app.models.tenant import Tenant

BASE = "/api/v1"


def _chain(seed):
    a = seed.template("Dig footings", duration=2, sort_order=1)
    b = seed.template("Pour slab", duration=3, sort_order=2)
    seed.dependency(b, a)
    home = seed.home(start_date=date(2024, 1, 1), target=date(2024, 2, 1))
    ta, tb = seed.task(home, a), seed.task(home, b)
    _db.session.commit()
    return home, ta, tb


# ═════════════════════════════════════════════════════════════════════════════
# Forecast
# ═════════════════════════════════════════════════════════════════════════════


class TestForecastEndpoints:
    def test_recompute_then_view(self, client, seed):
        home, _ta, tb = _chain(seed)

        rv = client.post(f"{BASE}/homes/{home.id}/forecast/recompute")
        assert rv.status_code == 200
        assert rv.get_json()["forecast_total_working_days"] == 5
        assert rv.get_json()["forecast_completion_date"] == "2024-01-08"

        rv = client.get(f"{BASE}/homes/{home.id}/forecast")
        assert rv.status_code == 200
        body = rv.get_json()
        assert body["home"]["schedule_status"] == "on_track"
        by_id = {t["id"]: t for t in body["tasks"]}
        assert by_id[tb.id]["forecast_start_date"] == "2024-01-03"
        assert by_id[tb.id]["is_critical_path"] is True

    def test_recompute_cycle_is_422(self, client, seed):
        a, b = seed.template("A"), seed.template("B")
        seed.dependency(a, b)
        seed.dependency(b, a)
        home = seed.home()
        seed.task(home, a)
        seed.task(home, b)
        _db.session.commit()

        rv = client.post(f"{BASE}/homes/{home.id}/forecast/recompute")

        assert rv.status_code == 422
        body = rv.get_json()
        assert body["code"] == "ERR_DEPENDENCY_CYCLE"
        assert sorted(body["details"]["task_names"]) == ["A", "B"]

    def test_unknown_home_is_404(self, client):
        rv = client.get(f"{BASE}/homes/9999/forecast")
        assert rv.status_code == 404
        assert rv.get_json()["code"] == "ERR_NOT_FOUND"

    def test_cross_tenant_home_is_404(self, client, seed):
        other = Tenant(name="Other Builder", slug="other-builder")
        _db.session.add(other)
        home, _ta, _tb = _chain(seed)

        rv = client.get(f"{BASE}/homes/{home.id}/forecast?tenant_id={other.id}")
        assert rv.status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# Gates & block reasons
# ═════════════════════════════════════════════════════════════════════════════


class TestBlockEndpoints:
    def test_batch_block_reasons(self, client, seed):
        home, ta, tb = _chain(seed)

        rv = client.get(f"{BASE}/homes/{home.id}/block-reasons")

        assert rv.status_code == 200
        reasons = rv.get_json()["block_reasons"]
        assert reasons[str(ta.id)] is None
        assert reasons[str(tb.id)] == "Task blocked until prerequisites are completed: Dig footings"

    def test_single_block_reason_with_gate(self, client, seed):
        home = seed.home()
        gate = seed.task(home, seed.template("Drywall", sort_order=1, is_critical_gate=True))
        late = seed.task(home, seed.template("Paint", sort_order=2))
        seed.punch(gate)
        _db.session.commit()

        rv = client.get(f"{BASE}/tasks/{late.id}/block-reason")

        assert rv.status_code == 200
        body = rv.get_json()
        assert body["is_blocked"] is True
        assert body["gate"]["blocking_task_id"] == gate.id
        assert body["gate"]["open_punch_count"] == 1

    def test_gates(self, client, seed):
        home = seed.home()
        seed.task(home, seed.template("Drywall", is_critical_gate=True, gate_name="Drywall Gate"))
        _db.session.commit()

        rv = client.get(f"{BASE}/homes/{home.id}/gates")

        assert rv.status_code == 200
        gates = rv.get_json()["gates"]
        assert [g["gate_name"] for g in gates] == ["Drywall Gate"]
        assert gates[0]["is_blocked"] is False


# ═════════════════════════════════════════════════════════════════════════════
# Task actions
# ═════════════════════════════════════════════════════════════════════════════


class TestTaskEndpoints:
    def test_schedule_blocked_is_409(self, client, seed):
        _home, _ta, tb = _chain(seed)

        rv = client.patch(f"{BASE}/tasks/{tb.id}/schedule", json={"scheduled_date": "2024-01-10"})

        assert rv.status_code == 409
        body = rv.get_json()
        assert body["code"] == "ERR_SCHEDULING_BLOCKED"
        assert body["details"] == {"task_id": tb.id}
        assert "Dig footings" in body["error"]

    def test_schedule_ok(self, client, seed):
        _home, ta, _tb = _chain(seed)

        rv = client.patch(f"{BASE}/tasks/{ta.id}/schedule", json={"scheduled_date": "2024-01-02"})

        assert rv.status_code == 200
        assert rv.get_json()["scheduled_date"] == "2024-01-02"
        assert rv.get_json()["status"] == "Scheduled"

    def test_schedule_bad_date_is_400(self, client, seed):
        _home, ta, _tb = _chain(seed)

        rv = client.patch(f"{BASE}/tasks/{ta.id}/schedule", json={"scheduled_date": "next week"})

        assert rv.status_code == 400
        assert rv.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_schedule_missing_field_is_400(self, client, seed):
        _home, ta, _tb = _chain(seed)

        rv = client.patch(f"{BASE}/tasks/{ta.id}/schedule", json={})

        assert rv.status_code == 400

    def test_invalid_transition_is_422(self, client, seed):
        _home, ta, _tb = _chain(seed)

        rv = client.post(f"{BASE}/tasks/{ta.id}/transition", json={"status": "Completed"})

        assert rv.status_code == 422
        assert rv.get_json()["code"] == "ERR_VALIDATION_CONSTRAINT"

    def test_completing_prerequisite_unblocks(self, client, seed):
        _home, ta, tb = _chain(seed)

        for status in ("Scheduled", "Completed"):
            rv = client.post(f"{BASE}/tasks/{ta.id}/transition", json={"status": status})
            assert rv.status_code == 200, rv.get_json()

        rv = client.get(f"{BASE}/tasks/{tb.id}/block-reason")
        assert rv.get_json()["block_reason"] is None

    def test_add_task(self, client, seed):
        home, _ta, _tb = _chain(seed)
        extra = seed.template("Frame walls", duration=4, sort_order=3)
        _db.session.commit()

        rv = client.post(f"{BASE}/homes/{home.id}/tasks", json={"template_item_id": extra.id})

        assert rv.status_code == 201
        assert rv.get_json()["task"]["name_snapshot"] == "Frame walls"
        rv = client.get(f"{BASE}/homes/{home.id}/forecast")
        assert rv.get_json()["home"]["forecast_total_working_days"] == 5

    def test_add_task_requires_template_item(self, client, seed):
        home, _ta, _tb = _chain(seed)

        rv = client.post(f"{BASE}/homes/{home.id}/tasks", json={})

        assert rv.status_code == 400

    def test_update_duration(self, client, seed):
        home, ta, _tb = _chain(seed)

        rv = client.patch(f"{BASE}/tasks/{ta.id}/duration", json={"duration_days": 4})

        assert rv.status_code == 200
        rv = client.get(f"{BASE}/homes/{home.id}/forecast")
        assert rv.get_json()["home"]["forecast_total_working_days"] == 7


# ═════════════════════════════════════════════════════════════════════════════
# Template dependencies
# ═════════════════════════════════════════════════════════════════════════════


class TestTemplateDependencyEndpoints:
    def test_put_and_get(self, client, seed, default_tenant):
        a, b = seed.template("Excavate"), seed.template("Footings")
        _db.session.commit()

        rv = client.put(
            f"{BASE}/template-items/{b.id}/dependencies",
            json={"depends_on_item_ids": [a.id], "tenant_id": default_tenant.id},
        )
        assert rv.status_code == 200

        rv = client.get(f"{BASE}/template-items/{b.id}/dependencies?tenant_id={default_tenant.id}")
        assert [d["depends_on_item_id"] for d in rv.get_json()["dependencies"]] == [a.id]

    def test_cycle_is_422(self, client, seed, default_tenant):
        a, b = seed.template("Excavate"), seed.template("Footings")
        seed.dependency(b, a)
        _db.session.commit()

        rv = client.put(
            f"{BASE}/template-items/{a.id}/dependencies",
            json={"depends_on_item_ids": [b.id], "tenant_id": default_tenant.id},
        )

        assert rv.status_code == 422
        assert rv.get_json()["code"] == "ERR_DEPENDENCY_CYCLE"

    def test_body_must_be_list(self, client, seed, default_tenant):
        a = seed.template("Excavate")
        _db.session.commit()

        rv = client.put(
            f"{BASE}/template-items/{a.id}/dependencies",
            json={"depends_on_item_ids": "1,2", "tenant_id": default_tenant.id},
        )

        assert rv.status_code == 400


# ═════════════════════════════════════════════════════════════════════════════
# Health
# ═════════════════════════════════════════════════════════════════════════════


class TestHealth:
    def test_ready(self, client):
        assert client.get(f"{BASE}/health/ready").status_code == 200

    def test_live(self, client):
        rv = client.get(f"{BASE}/health/live")
        assert rv.status_code == 200
        assert rv.get_json()["checks"]["database"]["status"] == "ok"

    def test_db_diag(self, client):
        rv = client.get(f"{BASE}/health/db-diag")
        assert rv.status_code == 200
        assert rv.get_json()["homes"]["status"] == "ok"

    def test_unknown_route_is_json_404(self, client):
        rv = client.get(f"{BASE}/nope")
        assert rv.status_code == 404
        assert rv.get_json()["error"] == "Not found"
