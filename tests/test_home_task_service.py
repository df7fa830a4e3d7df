"""
Tests: Home task actions — scheduling, transitions, creation, duration edits.

All test data created via the `seed` fixture; services commit for real and
the `session` autouse fixture recreates tables after every test.
"""

from datetime import date

import pytest

import app.services.home_task_service as svc
from app.core.exceptions import NotFoundError, SchedulingBlockedError, ValidationError
from app.models import db as _db
from app.models.construction import TASK_TRANSITIONS, HomeTask, validate_task_transition
from app.models.tenant import Tenant


class TestTransitionTable:
    def test_every_target_is_a_known_status(self):
        for old, targets in TASK_TRANSITIONS.items():
            for new in targets:
                assert new in TASK_TRANSITIONS, (old, new)

    @pytest.mark.parametrize("old,new,ok", [
        ("Unscheduled", "Scheduled", True),
        ("Unscheduled", "Completed", False),
        ("Canceled", "Unscheduled", True),
        ("Canceled", "Scheduled", False),
        ("Completed", "InProgress", True),
        ("InProgress", "Unscheduled", False),
    ])
    def test_validate(self, old, new, ok):
        assert validate_task_transition(old, new) is ok


class TestScheduleTask:
    def test_schedules_unblocked_task(self, seed):
        home = seed.home()
        task = seed.task(home, seed.template("Survey"))

        result = svc.schedule_task(task.id, date(2024, 1, 3))

        assert result.scheduled_date == date(2024, 1, 3)
        assert result.status == "Scheduled"

    def test_blocked_task_raises_and_stays_unscheduled(self, seed):
        home = seed.home()
        seed.task(home, seed.template("Permit", sort_order=1, is_dependency=True))
        later = seed.task(home, seed.template("Clear lot", sort_order=2))
        _db.session.commit()

        with pytest.raises(SchedulingBlockedError) as exc:
            svc.schedule_task(later.id, date(2024, 1, 3))

        assert exc.value.task_id == later.id
        assert "Permit" in exc.value.reason
        _db.session.expire_all()
        assert later.scheduled_date is None
        assert later.status == "Unscheduled"

    def test_clearing_date_unschedules(self, seed):
        home = seed.home()
        task = seed.task(home, seed.template("Survey"))
        svc.schedule_task(task.id, date(2024, 1, 3))

        result = svc.schedule_task(task.id, None)

        assert result.scheduled_date is None
        assert result.status == "Unscheduled"

    def test_clearing_date_keeps_status_when_transition_invalid(self, seed):
        home = seed.home()
        task = seed.task(home, seed.template("Survey"), status="InProgress")

        result = svc.schedule_task(task.id, None)

        assert result.status == "InProgress"

    def test_rescheduling_keeps_confirmed_status(self, seed):
        home = seed.home()
        task = seed.task(home, seed.template("Survey"), status="Confirmed")

        result = svc.schedule_task(task.id, date(2024, 2, 1))

        assert result.status == "Confirmed"

    def test_cross_tenant_is_not_found(self, seed):
        other = Tenant(name="Other Builder", slug="other-builder")
        _db.session.add(other)
        _db.session.flush()
        home = seed.home()
        task = seed.task(home, seed.template("Survey"))

        with pytest.raises(NotFoundError):
            svc.schedule_task(task.id, date(2024, 1, 3), tenant_id=other.id)


class TestTransitionTask:
    def test_completed_stamps_and_clears_completed_at(self, seed):
        home = seed.home()
        task = seed.task(home, seed.template("Survey"), status="InProgress")

        svc.transition_task(task.id, "Completed")
        assert task.completed_at is not None

        svc.transition_task(task.id, "InProgress")
        assert task.completed_at is None

    def test_invalid_transition(self, seed):
        home = seed.home()
        task = seed.task(home, seed.template("Survey"))

        with pytest.raises(ValidationError) as exc:
            svc.transition_task(task.id, "Completed")
        assert exc.value.details == {"from": "Unscheduled", "to": "Completed"}

    def test_unknown_status(self, seed):
        home = seed.home()
        task = seed.task(home, seed.template("Survey"))

        with pytest.raises(ValidationError):
            svc.transition_task(task.id, "Done")

    def test_unscheduled_clears_date(self, seed):
        home = seed.home()
        task = seed.task(home, seed.template("Survey"))
        svc.schedule_task(task.id, date(2024, 1, 3))

        svc.transition_task(task.id, "Unscheduled")

        assert task.scheduled_date is None

    def test_unknown_task(self):
        with pytest.raises(NotFoundError):
            svc.transition_task(987654, "Scheduled")


class TestAddHomeTask:
    def test_snapshots_template_and_recomputes(self, seed):
        item = seed.template("Pour slab", duration=4, sort_order=20)
        home = seed.home(start_date=date(2024, 1, 1))

        result = svc.add_home_task(home.id, item.id)

        assert result["forecast_error"] is None
        task = result["task"]
        assert task["name_snapshot"] == "Pour slab"
        assert task["duration_days_snapshot"] == 4
        assert task["sort_order_snapshot"] == 20
        assert task["status"] == "Unscheduled"
        assert home.forecast_total_working_days == 4
        assert home.forecast_completion_date == date(2024, 1, 5)

    def test_template_edits_do_not_touch_snapshot(self, seed):
        item = seed.template("Pour slab", duration=4, sort_order=20)
        home = seed.home()
        task_id = svc.add_home_task(home.id, item.id)["task"]["id"]

        item.default_duration_days = 9
        item.name = "Pour garage slab"
        _db.session.commit()

        task = _db.session.get(HomeTask, task_id)
        assert task.duration_days_snapshot == 4
        assert task.name_snapshot == "Pour slab"

    def test_recompute_disabled(self, app, seed):
        item = seed.template("Pour slab", duration=4)
        home = seed.home()
        app.config["FORECAST_RECOMPUTE_ON_CHANGE"] = False
        try:
            svc.add_home_task(home.id, item.id)
        finally:
            app.config["FORECAST_RECOMPUTE_ON_CHANGE"] = True

        assert home.forecast_computed_at is None

    def test_cycle_reported_not_raised(self, seed):
        a = seed.template("A", duration=1)
        b = seed.template("B", duration=1)
        seed.dependency(a, b)
        seed.dependency(b, a)
        home = seed.home()
        seed.task(home, a)

        result = svc.add_home_task(home.id, b.id)

        assert result["forecast_error"].startswith("Dependency cycle detected")
        assert HomeTask.query.filter_by(home_id=home.id).count() == 2

    def test_other_tenant_template_not_found(self, seed):
        other = Tenant(name="Other Builder", slug="other-builder")
        _db.session.add(other)
        _db.session.flush()
        item = seed.template("Private item", tenant_id=other.id)
        home = seed.home()

        with pytest.raises(NotFoundError):
            svc.add_home_task(home.id, item.id)

    def test_global_template_allowed(self, seed):
        item = seed.template("Global item", tenant_id=None)
        home = seed.home()

        assert svc.add_home_task(home.id, item.id)["task"]["template_item_id"] == item.id


class TestUpdateDuration:
    def test_updates_and_recomputes(self, seed):
        home = seed.home(start_date=date(2024, 1, 1))
        task = seed.task(home, seed.template("Frame", duration=2))

        result = svc.update_task_duration(task.id, 5)

        assert result["task"]["duration_days_snapshot"] == 5
        assert home.forecast_total_working_days == 5

    def test_negative_duration_clamped_in_forecast(self, seed):
        home = seed.home(start_date=date(2024, 1, 1))
        task = seed.task(home, seed.template("Frame", duration=2))

        svc.update_task_duration(task.id, -3)

        assert home.forecast_total_working_days == 0
        assert home.forecast_completion_date == date(2024, 1, 1)

    def test_rejects_non_integer(self, seed):
        home = seed.home()
        task = seed.task(home, seed.template("Frame"))

        with pytest.raises(ValidationError):
            svc.update_task_duration(task.id, "5")
