"""
Tests for approval delegations and workflow administration.

Covers:
- Delegation validation and the newest-wins overlap rule
- Delegate resolution at a point in time
- Workflow creation, validation, toggling and seeding from configuration
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from procurement_engines.routing import StageDef, WorkflowDef
from procurement_kernel.domain.capabilities import Role
from procurement_kernel.exceptions import ForbiddenError, ValidationError


@pytest.fixture
def approver(make_user):
    return make_user(Role.DEPARTMENT_HEAD, department="IT")


@pytest.fixture
def deputy(make_user):
    return make_user(Role.EMPLOYEE, department="IT")


class TestCreateDelegation:
    def test_delegate_resolves_inside_window(self, delegation_service, approver, deputy, now):
        delegation = delegation_service.create_delegation(
            approver.to_actor(),
            delegate_id=deputy.id,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=1),
            reason="Conference",
        )

        assert delegation.is_active
        assert delegation.delegator_id == approver.id
        assert delegation_service.resolve_delegate(approver.id) == deputy.id
        assert delegation_service.active_delegator_ids(deputy.id) == [approver.id]
        assert delegation_service.can_act_for(deputy.id, approver.id)

    def test_no_delegate_outside_window(self, delegation_service, approver, deputy, now):
        delegation_service.create_delegation(
            approver.to_actor(),
            delegate_id=deputy.id,
            start_date=now + timedelta(days=2),
            end_date=now + timedelta(days=4),
        )
        assert delegation_service.resolve_delegate(approver.id) is None
        assert delegation_service.resolve_delegate(approver.id, at=now + timedelta(days=3)) == deputy.id

    def test_window_bounds_are_inclusive(self, delegation_service, approver, deputy, now):
        end = now + timedelta(days=1)
        delegation_service.create_delegation(
            approver.to_actor(), delegate_id=deputy.id, start_date=now, end_date=end
        )
        assert delegation_service.resolve_delegate(approver.id, at=now) == deputy.id
        assert delegation_service.resolve_delegate(approver.id, at=end) == deputy.id
        assert delegation_service.resolve_delegate(approver.id, at=end + timedelta(seconds=1)) is None

    def test_self_delegation_rejected(self, delegation_service, approver, now):
        with pytest.raises(ValidationError):
            delegation_service.create_delegation(
                approver.to_actor(),
                delegate_id=approver.id,
                start_date=now,
                end_date=now + timedelta(days=1),
            )

    def test_start_must_precede_end(self, delegation_service, approver, deputy, now):
        with pytest.raises(ValidationError):
            delegation_service.create_delegation(
                approver.to_actor(), delegate_id=deputy.id, start_date=now, end_date=now
            )

    def test_on_behalf_of_requires_manage_approvals(
        self, delegation_service, approver, deputy, employee_actor, admin_actor, now
    ):
        window = dict(start_date=now, end_date=now + timedelta(days=1))
        with pytest.raises(ForbiddenError):
            delegation_service.create_delegation(
                employee_actor, delegate_id=deputy.id, delegator_id=approver.id, **window
            )

        delegation = delegation_service.create_delegation(
            admin_actor, delegate_id=deputy.id, delegator_id=approver.id, **window
        )
        assert delegation.delegator_id == approver.id
        assert delegation.created_by_id == admin_actor.user_id


class TestOverlap:
    def test_newer_overlapping_delegation_wins(
        self, delegation_service, approver, deputy, make_user, now
    ):
        second_deputy = make_user(Role.EMPLOYEE, department="IT")
        first = delegation_service.create_delegation(
            approver.to_actor(),
            delegate_id=deputy.id,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=5),
        )
        second = delegation_service.create_delegation(
            approver.to_actor(),
            delegate_id=second_deputy.id,
            start_date=now + timedelta(days=3),
            end_date=now + timedelta(days=10),
        )

        assert not first.is_active
        assert second.is_active
        # the superseded delegation no longer covers today either
        assert delegation_service.resolve_delegate(approver.id) is None
        assert delegation_service.resolve_delegate(approver.id, at=now + timedelta(days=4)) == second_deputy.id

    def test_disjoint_windows_both_stay_active(self, delegation_service, approver, deputy, now):
        first = delegation_service.create_delegation(
            approver.to_actor(),
            delegate_id=deputy.id,
            start_date=now,
            end_date=now + timedelta(days=1),
        )
        second = delegation_service.create_delegation(
            approver.to_actor(),
            delegate_id=deputy.id,
            start_date=now + timedelta(days=5),
            end_date=now + timedelta(days=6),
        )
        assert first.is_active and second.is_active

    def test_touching_windows_overlap(self, delegation_service, approver, deputy, now):
        seam = now + timedelta(days=2)
        first = delegation_service.create_delegation(
            approver.to_actor(), delegate_id=deputy.id, start_date=now, end_date=seam
        )
        delegation_service.create_delegation(
            approver.to_actor(), delegate_id=deputy.id, start_date=seam, end_date=seam + timedelta(days=2)
        )
        assert not first.is_active

    def test_other_delegators_untouched(self, delegation_service, approver, deputy, make_user, now):
        other_approver = make_user(Role.CFO)
        window = dict(start_date=now, end_date=now + timedelta(days=1))
        theirs = delegation_service.create_delegation(
            other_approver.to_actor(), delegate_id=deputy.id, **window
        )
        delegation_service.create_delegation(approver.to_actor(), delegate_id=deputy.id, **window)
        assert theirs.is_active
        assert sorted(delegation_service.active_delegator_ids(deputy.id)) == sorted(
            [approver.id, other_approver.id]
        )


class TestCancelDelegation:
    def test_delegator_can_cancel(self, delegation_service, approver, deputy, now):
        delegation = delegation_service.create_delegation(
            approver.to_actor(),
            delegate_id=deputy.id,
            start_date=now,
            end_date=now + timedelta(days=1),
        )
        delegation_service.cancel_delegation(approver.to_actor(), delegation.id)
        assert delegation_service.resolve_delegate(approver.id) is None

    def test_delegate_cannot_cancel(self, delegation_service, approver, deputy, now):
        delegation = delegation_service.create_delegation(
            approver.to_actor(),
            delegate_id=deputy.id,
            start_date=now,
            end_date=now + timedelta(days=1),
        )
        with pytest.raises(ForbiddenError):
            delegation_service.cancel_delegation(deputy.to_actor(), delegation.id)

    def test_list_for_user_includes_both_sides(self, delegation_service, approver, deputy, now):
        delegation_service.create_delegation(
            approver.to_actor(),
            delegate_id=deputy.id,
            start_date=now,
            end_date=now + timedelta(days=1),
        )
        assert len(delegation_service.list_for_user(approver.to_actor())) == 1
        assert len(delegation_service.list_for_user(deputy.to_actor())) == 1
        with pytest.raises(ForbiddenError):
            delegation_service.list_for_user(deputy.to_actor(), user_id=approver.id)


class TestWorkflowAdministration:
    def _definition(self, name="Capex", stages=None, **kwargs) -> WorkflowDef:
        return WorkflowDef(
            workflow_id=None,
            name=name,
            stages=stages
            if stages is not None
            else (
                StageDef(1, "Head", approver_role=Role.DEPARTMENT_HEAD),
                StageDef(2, "CFO", approver_role=Role.CFO),
            ),
            **kwargs,
        )

    def test_create_and_list(self, workflow_service, admin_actor):
        created = workflow_service.create_workflow(
            admin_actor, self._definition(min_amount=Decimal("100"), max_amount=Decimal("900"))
        )
        assert [s.stage_number for s in created.stages] == [1, 2]
        assert [w.name for w in workflow_service.list_workflows()] == ["Capex"]

        definition = created.to_def()
        assert definition.workflow_id == created.id
        assert definition.stage(2).approver_role is Role.CFO

    def test_requires_manage_approvals(self, workflow_service, officer_actor):
        with pytest.raises(ForbiddenError):
            workflow_service.create_workflow(officer_actor, self._definition())

    @pytest.mark.parametrize(
        "stages, kwargs",
        [
            ((), {}),
            ((StageDef(1, "A", approver_role=Role.CFO), StageDef(3, "B", approver_role=Role.CEO)), {}),
            ((StageDef(1, "Nobody"),), {}),
            (None, {"min_amount": Decimal("10"), "max_amount": Decimal("5")}),
        ],
        ids=["no-stages", "gap-in-numbering", "stage-without-approver", "min-above-max"],
    )
    def test_invalid_definitions(self, workflow_service, admin_actor, stages, kwargs):
        with pytest.raises(ValidationError):
            workflow_service.create_workflow(admin_actor, self._definition(stages=stages, **kwargs))

    def test_deactivated_workflow_not_listed_as_active(self, workflow_service, admin_actor):
        created = workflow_service.create_workflow(admin_actor, self._definition())
        workflow_service.set_active(admin_actor, created.id, False)
        assert workflow_service.list_workflows(active_only=True) == []

    def test_seeding_is_idempotent(self, workflow_service, shipped_config, admin):
        assert workflow_service.seed_default_workflows(shipped_config, admin.id) == 4
        assert workflow_service.seed_default_workflows(shipped_config, admin.id) == 0
        assert len(workflow_service.list_workflows()) == 4

    def test_seeding_logs_count_at_info(self, workflow_service, shipped_config, admin, captured_logs):
        workflow_service.seed_default_workflows(shipped_config, admin.id)

        seeded = [r for r in captured_logs() if r["message"] == "approval_workflows_seeded"]
        assert [(r["level"], r["workflows_created"]) for r in seeded] == [("INFO", 4)]
