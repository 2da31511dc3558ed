"""
Event router tests - end-to-end edit handling against a temporary tracker database.
"""

import sqlite3
import pytest
from unittest.mock import patch

from phasegate.core.dao import RecordStore
from phasegate.core.gates import GLOBAL_BLOCK_REASON, PAYMENT_REQUIRED_NOTE
from phasegate.core.router import EventRouter
from phasegate.core.schema import EditEvent, IssueCategory, Status

from conftest import ADMIN


class TestStatusEdits:

    def test_accepted_transition(self, projects, make_project, apply_edit):
        row_id = make_project(status="Scheduled", last_valid_status="Scheduled",
                              ready_global=1, ready_permitting=1)

        outcome = apply_edit("projects", row_id, "status", "Permitting")

        row = projects.read_row(row_id)
        assert outcome.action == "accepted"
        assert row["status"] == "Permitting"
        assert row["last_valid_status"] == "Permitting"
        assert row["blocked_since"] is None
        assert row["last_validated_at"] == "2024-03-01T09:00:00"

    def test_global_failure_scenario(self, projects, make_project, apply_edit, audit, clock):
        row_id = make_project(status="Scheduled", last_valid_status="Scheduled", ready_global=0)

        outcome = apply_edit("projects", row_id, "status", "Permitting")

        row = projects.read_row(row_id)
        assert outcome.action == "blocked"
        assert row["status"] == "Scheduled"
        assert GLOBAL_BLOCK_REASON in projects.read_notes(row_id)["status"]
        assert row["blocked_since"] == "2024-03-01T09:00:00"
        assert len(audit.list_issues(IssueCategory.DATA_MISSING)) == 1

        clock.advance(hours=5)
        apply_edit("projects", row_id, "status", "Permitting")

        row = projects.read_row(row_id)
        assert row["status"] == "Scheduled"
        assert row["blocked_since"] == "2024-03-01T09:00:00"
        assert len(audit.list_issues(IssueCategory.DATA_MISSING)) == 2

    def test_first_status_blocked_goes_back_to_blank(self, projects, make_project, apply_edit, audit):
        row_id = make_project(status=None, last_valid_status=None, ready_global=0)

        outcome = apply_edit("projects", row_id, "status", "Permitting")

        assert outcome.action == "blocked"
        assert projects.read_row(row_id)["status"] is None
        assert GLOBAL_BLOCK_REASON in projects.read_notes(row_id)["status"]
        assert len(audit.list_issues(IssueCategory.DATA_MISSING)) == 1

    def test_first_status_unknown_goes_back_to_blank(self, projects, make_project, apply_edit, audit):
        row_id = make_project(status=None, last_valid_status=None, ready_global=1)

        outcome = apply_edit("projects", row_id, "status", "Bogus")

        assert outcome.action == "blocked"
        assert projects.read_row(row_id)["status"] is None
        assert "Invalid status value" in projects.read_notes(row_id)["status"]
        assert len(audit.list_issues(IssueCategory.DATA_MISSING)) == 1

    def test_block_clears_when_ready(self, projects, make_project, apply_edit):
        row_id = make_project(status="Scheduled", last_valid_status="Scheduled", ready_global=0)
        apply_edit("projects", row_id, "status", "Permitting")

        projects.write_values(row_id, {"ready_global": 1, "ready_permitting": 1})
        apply_edit("projects", row_id, "status", "Permitting")

        row = projects.read_row(row_id)
        assert row["status"] == "Permitting"
        assert row["blocked_since"] is None
        assert projects.read_notes(row_id) == {}

    def test_milestone_idempotent_across_edits(self, projects, make_project, apply_edit, clock):
        row_id = make_project(status="Permitting", ready_global=1, ready_scheduled=1, ready_permitting=1)

        apply_edit("projects", row_id, "status", "Scheduled")
        first = projects.read_row(row_id)["scheduled_at"]

        clock.advance(days=2)
        apply_edit("projects", row_id, "status", "Permitting")
        apply_edit("projects", row_id, "status", "Scheduled")

        assert projects.read_row(row_id)["scheduled_at"] == first == "2024-03-01T09:00:00"

    def test_payment_guard_precedence(self, projects, make_project, apply_edit):
        row_id = make_project(status="Inspections", last_valid_status="Inspections",
                              ready_global=1, ready_permitting=1, ready_scheduled=1,
                              ready_inspections=1, ready_done=1)
        apply_edit("projects", row_id, "override_requested", 1, actor=ADMIN)

        outcome = apply_edit("projects", row_id, "status", "Done")

        row = projects.read_row(row_id)
        assert outcome.action == "blocked"
        assert row["status"] == "Inspections"
        assert projects.read_notes(row_id)["status"] == PAYMENT_REQUIRED_NOTE


class TestOverrideFlow:

    def test_non_admin_override_reverted(self, projects, make_project, apply_edit):
        row_id = make_project()

        outcome = apply_edit("projects", row_id, "override_requested", 1, actor="intern@example.com")

        assert outcome.action == "override_denied"
        assert projects.read_row(row_id)["override_requested"] == 0
        assert ADMIN in projects.read_notes(row_id)["override_requested"]

    def test_admin_override_then_transition_consumes_it(self, projects, make_project, apply_edit):
        row_id = make_project(status="Scheduled", last_valid_status="Scheduled", ready_global=0)

        outcome = apply_edit("projects", row_id, "override_requested", 1, actor=ADMIN)
        assert outcome.action == "override_granted"
        assert projects.read_row(row_id)["override_expires_at"] == "2024-03-02T09:00:00"

        outcome = apply_edit("projects", row_id, "status", "Permitting")

        row = projects.read_row(row_id)
        assert outcome.action == "accepted"
        assert row["status"] == "Permitting"
        assert row["last_valid_status"] == "Permitting"
        assert row["override_requested"] == 0
        assert row["override_expires_at"] is None

        # Spent: the next gated move is judged on readiness again
        outcome = apply_edit("projects", row_id, "status", "Inspections")
        assert outcome.action == "blocked"

    def test_expired_override_does_not_bypass(self, projects, make_project, apply_edit, clock):
        row_id = make_project(status="Scheduled", last_valid_status="Scheduled", ready_global=0)
        apply_edit("projects", row_id, "override_requested", 1, actor=ADMIN)

        clock.advance(hours=25)
        outcome = apply_edit("projects", row_id, "status", "Permitting")

        assert outcome.action == "blocked"
        # Expiry is lazy: the flag is still set, just no longer honoured
        assert projects.read_row(row_id)["override_requested"] == 1


class TestCommitMinimality:

    def test_unrouted_field_touches_nothing(self, router, projects, make_project):
        row_id = make_project()
        with patch.object(RecordStore, 'write_values') as write_values, \
                patch.object(RecordStore, 'write_notes') as write_notes, \
                patch.object(RecordStore, 'read_row') as read_row:
            outcome = router.handle_edit(EditEvent("projects", row_id, "project_name", "Old"))

        assert outcome.action == "ignored"
        assert outcome.writes == 0
        write_values.assert_not_called()
        write_notes.assert_not_called()
        read_row.assert_not_called()

    def test_unchanged_pass_writes_nothing(self, router, make_project):
        row_id = make_project(sfid="SF-77", is_duplicate=0)
        with patch.object(RecordStore, 'write_values') as write_values, \
                patch.object(RecordStore, 'write_notes') as write_notes:
            outcome = router.handle_edit(EditEvent("projects", row_id, "sfid", "SF-77"))

        assert outcome.action == "unique"
        assert outcome.writes == 0
        write_values.assert_not_called()
        write_notes.assert_not_called()

    def test_blocked_pass_is_two_writes(self, make_project, apply_edit):
        row_id = make_project(status="Scheduled", ready_global=0)
        outcome = apply_edit("projects", row_id, "status", "Permitting")
        assert outcome.writes == 2

    def test_other_collections_ignored(self, router):
        outcome = router.handle_edit(EditEvent("Dashboard", 2, "status", None))
        assert outcome.action == "ignored"
        assert not outcome.handled


class TestTaskEdits:

    def test_done_task_stamped_once(self, tasks, apply_edit, clock):
        row_id = tasks.append_row({"project_sfid": "SF-1", "task_name": "Site survey", "status": "open"})

        outcome = apply_edit("tasks", row_id, "status", "Done")
        assert outcome.action == "task_completed"
        assert tasks.read_row(row_id)["completed_at"] == "2024-03-01T09:00:00"

        clock.advance(days=1)
        apply_edit("tasks", row_id, "status", "open")
        outcome = apply_edit("tasks", row_id, "status", "done")

        assert outcome.action == "task_unchanged"
        assert outcome.writes == 0
        assert tasks.read_row(row_id)["completed_at"] == "2024-03-01T09:00:00"

    def test_task_name_edit_ignored(self, tasks, apply_edit):
        row_id = tasks.append_row({"project_sfid": "SF-1", "task_name": "Survey", "status": "open"})
        assert apply_edit("tasks", row_id, "task_name", "Roof survey").action == "ignored"


class TestFailureIsolation:

    def test_missing_header_aborts_with_script_error(self, db_path, router, audit):
        with sqlite3.connect(db_path) as conn:
            conn.execute("ALTER TABLE projects RENAME COLUMN blocked_since TO block_start")
        row_id = RecordStore("projects", db_path).append_row({"sfid": "SF-1", "status": "Permitting"})

        outcome = router.handle_edit(EditEvent("projects", row_id, "status", "Scheduled"))

        assert outcome.action == "config_error"
        assert "blocked_since" in outcome.detail
        issues = audit.list_issues(IssueCategory.SCRIPT_ERROR)
        assert len(issues) == 1
        assert issues[0].label == "configuration"

    def test_extra_and_reordered_columns_tolerated(self, db_path, router):
        with sqlite3.connect(db_path) as conn:
            conn.execute("ALTER TABLE projects ADD COLUMN crm_owner TEXT")
        store = RecordStore("projects", db_path)
        row_id = store.append_row({"crm_owner": "dana", "sfid": "SF-2", "status": "Stuck",
                                   "ready_global": 1, "ready_scheduled": 1})

        outcome = router.handle_edit(EditEvent("projects", row_id, "status", "Scheduled"))

        assert outcome.action == "accepted"
        assert store.read_row(row_id)["crm_owner"] == "dana"

    def test_missing_row_is_audited_not_raised(self, router, audit):
        outcome = router.handle_edit(EditEvent("projects", 999, "status", "Scheduled"))

        assert outcome.action == "error"
        assert len(audit.list_issues(IssueCategory.SCRIPT_ERROR)) == 1

    def test_unexpected_exception_is_contained(self, router, make_project, audit):
        row_id = make_project()
        with patch.object(router.validator, 'validate', side_effect=ZeroDivisionError("bad cell")):
            outcome = router.handle_edit(EditEvent("projects", row_id, "status", "Scheduled"))

        assert outcome.action == "error"
        details = audit.list_issues(IssueCategory.SCRIPT_ERROR)[0].details
        assert "ZeroDivisionError" in details
        assert "bad cell" in details

    def test_failure_in_audit_sink_still_contained(self, router, make_project):
        row_id = make_project()
        with patch.object(router.validator, 'validate', side_effect=RuntimeError("boom")), \
                patch('phasegate.core.audit.insert_issue', side_effect=RuntimeError("log sheet gone")):
            outcome = router.handle_edit(EditEvent("projects", row_id, "status", "Scheduled"))

        assert outcome.action == "error"

    def test_one_bad_row_does_not_block_others(self, router, projects, make_project):
        good = make_project(status="Canceled", ready_global=1)
        router.handle_edit(EditEvent("projects", 12345, "status", "Scheduled"))
        outcome = router.handle_edit(EditEvent("projects", good, "status", "Scheduled"))

        assert outcome.action == "accepted"
        assert projects.read_row(good)["last_valid_status"] == Status.CANCELED.value


def test_router_builds_default_collaborators(db_path):
    router = EventRouter(db_path=db_path)
    assert router.registry.db_path == db_path
    assert router.audit.db_path == db_path
