"""
Approval Module Services (``procurement_modules.approval.service``).

Responsibility
--------------
* ``ApprovalRouter`` -- resolves who approves a requisition stage: the
  stage-one route (department head, operations manager, procurement officer,
  CFO, CEO) or the stage definition of the applicable approval workflow.
* ``DelegationService`` -- creates, cancels and resolves approver
  delegations.  Creating a delegation deactivates every active delegation of
  the same delegator whose window overlaps the new one, so exactly one
  delegation wins at any instant.
* ``ApprovalWorkflowService`` -- administers tiered approval workflows and
  seeds the configured defaults.

Architecture position
---------------------
**Modules layer**.  Pure selection is delegated to
``procurement_engines.routing``; this module only loads rows and persists
results.  ``ApprovalRouter`` never commits -- it runs inside the requisition
service's transaction.

Failure modes
-------------
* ``NoApproverFoundError`` -- routing exhausted every candidate.
* ``ValidationError`` -- delegator == delegate, or start >= end.
* ``ForbiddenError`` -- delegating on behalf of someone else without
  ManageApprovals.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from procurement_config.schema import ProcurementConfig
from procurement_engines.routing import (
    ROUTING_ROLES,
    ApproverCandidate,
    WorkflowDef,
    pick_role_approver,
    pick_stage_one_approver,
    select_workflow,
)
from procurement_kernel.domain.capabilities import (
    Actor,
    Capability,
    Role,
    require_capability,
)
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.exceptions import (
    ForbiddenError,
    NoApproverFoundError,
    ValidationError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.repositories.users import UserRepository
from procurement_modules.approval.orm import (
    ApprovalDelegationModel,
    ApprovalWorkflowModel,
    ApprovalWorkflowStageModel,
)
from procurement_modules.approval.repository import (
    ApprovalDelegationRepository,
    ApprovalWorkflowRepository,
)

logger = get_logger("modules.approval.service")


# =============================================================================
# Routing
# =============================================================================


class ApprovalRouter:
    """Picks approvers for requisition stages.  Never commits."""

    def __init__(self, session: Session):
        self._users = UserRepository(session)
        self._workflows = ApprovalWorkflowRepository(session)

    def _candidates(self, roles: Sequence[Role]) -> list[ApproverCandidate]:
        return [
            ApproverCandidate(
                user_id=u.id,
                role=Role(u.role),
                department=u.department,
                is_active=u.is_active,
            )
            for u in self._users.active_with_roles(roles)
        ]

    def pick_stage_one_approver(self, department: str | None) -> UUID | None:
        chosen = pick_stage_one_approver(self._candidates(ROUTING_ROLES), department)
        return chosen.user_id if chosen else None

    def find_workflow(self, requisition_type: str, amount: Decimal) -> WorkflowDef | None:
        workflows = [w.to_def() for w in self._workflows.active()]
        return select_workflow(workflows, requisition_type, amount)

    def get_workflow(self, workflow_id: UUID) -> WorkflowDef:
        return self._workflows.get_or_raise(workflow_id).to_def()

    def resolve_stage_approver(
        self,
        workflow: WorkflowDef | None,
        stage_number: int,
        department: str | None,
    ) -> UUID:
        """
        Approver for ``stage_number``.  Without a workflow only stage 1
        exists and it follows the stage-one route.

        Raises:
            NoApproverFoundError: nobody eligible is active.
        """
        if workflow is None:
            approver_id = self.pick_stage_one_approver(department) if stage_number == 1 else None
        else:
            stage = workflow.stage(stage_number)
            if stage is None:
                raise NoApproverFoundError(department, stage=stage_number)
            if stage.approver_id is not None:
                approver_id = (
                    stage.approver_id if self._users.is_active_user(stage.approver_id) else None
                )
            elif stage.approver_role is not None:
                roles = ROUTING_ROLES if stage.approver_role is Role.DEPARTMENT_HEAD else (stage.approver_role,)
                chosen = pick_role_approver(self._candidates(roles), stage.approver_role, department)
                approver_id = chosen.user_id if chosen else None
            else:
                approver_id = None

        if approver_id is None:
            logger.warning(
                "approval_no_approver_found",
                extra={"department": department, "stage": stage_number},
            )
            raise NoApproverFoundError(department, stage=stage_number)
        return approver_id


# =============================================================================
# Delegations
# =============================================================================


class DelegationService:
    """Approver delegations: one active delegation per delegator per instant."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._delegations = ApprovalDelegationRepository(session)

    def create_delegation(
        self,
        actor: Actor,
        delegate_id: UUID,
        start_date: datetime,
        end_date: datetime,
        reason: str | None = None,
        delegator_id: UUID | None = None,
    ) -> ApprovalDelegationModel:
        """
        Delegate ``delegator_id``'s approvals (the actor by default) to
        ``delegate_id`` for [start_date, end_date].
        """
        delegator_id = delegator_id or actor.user_id
        if delegator_id != actor.user_id:
            require_capability(actor, Capability.MANAGE_APPROVALS)
        if delegator_id == delegate_id:
            raise ValidationError("delegatorId and delegateId must differ", field="delegate_id")
        if start_date >= end_date:
            raise ValidationError("startDate must be before endDate", field="start_date")

        try:
            logger.info("delegation_create_started", extra={
                "delegator_id": str(delegator_id),
                "delegate_id": str(delegate_id),
                "start_date": start_date,
                "end_date": end_date,
            })

            superseded = self._delegations.active_overlapping(delegator_id, start_date, end_date)
            for existing in superseded:
                existing.is_active = False
                existing.updated_by_id = actor.user_id

            delegation = self._delegations.add(
                ApprovalDelegationModel(
                    delegator_id=delegator_id,
                    delegate_id=delegate_id,
                    start_date=start_date,
                    end_date=end_date,
                    is_active=True,
                    reason=reason,
                    created_by_id=actor.user_id,
                )
            )
            self._session.commit()

            logger.info("delegation_create_committed", extra={
                "delegation_id": str(delegation.id),
                "superseded_count": len(superseded),
            })
            return delegation
        except Exception:
            self._session.rollback()
            raise

    def cancel_delegation(self, actor: Actor, delegation_id: UUID) -> ApprovalDelegationModel:
        delegation = self._delegations.get_or_raise(delegation_id)
        if delegation.delegator_id != actor.user_id and not actor.can(Capability.MANAGE_APPROVALS):
            raise ForbiddenError()
        try:
            delegation.is_active = False
            delegation.updated_by_id = actor.user_id
            self._session.commit()
            logger.info("delegation_cancelled", extra={"delegation_id": str(delegation_id)})
            return delegation
        except Exception:
            self._session.rollback()
            raise

    def list_for_user(self, actor: Actor, user_id: UUID | None = None) -> Sequence[ApprovalDelegationModel]:
        user_id = user_id or actor.user_id
        if user_id != actor.user_id:
            require_capability(actor, Capability.MANAGE_APPROVALS)
        return self._delegations.for_user(user_id)

    def resolve_delegate(self, approver_id: UUID, at: datetime | None = None) -> UUID | None:
        """The delegate acting for ``approver_id`` at ``at`` (default: now), if any."""
        at = at or self._clock.now()
        delegation = self._delegations.active_for_delegator_at(approver_id, at)
        return delegation.delegate_id if delegation else None

    def active_delegator_ids(self, delegate_id: UUID, at: datetime | None = None) -> list[UUID]:
        at = at or self._clock.now()
        return [d.delegator_id for d in self._delegations.active_for_delegate_at(delegate_id, at)]

    def can_act_for(self, user_id: UUID, approver_id: UUID, at: datetime | None = None) -> bool:
        if user_id == approver_id:
            return True
        return self.resolve_delegate(approver_id, at) == user_id


# =============================================================================
# Workflow administration
# =============================================================================


class ApprovalWorkflowService:
    """Create, list, toggle and seed tiered approval workflows."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._workflows = ApprovalWorkflowRepository(session)

    def _build(self, definition: WorkflowDef, actor_id: UUID) -> ApprovalWorkflowModel:
        if not definition.stages:
            raise ValidationError("Workflow must have at least one stage", field="stages")
        if (
            definition.min_amount is not None
            and definition.max_amount is not None
            and definition.min_amount > definition.max_amount
        ):
            raise ValidationError("minAmount cannot be greater than maxAmount", field="min_amount")
        numbers = [s.stage_number for s in definition.stages]
        if sorted(numbers) != list(range(1, len(numbers) + 1)):
            raise ValidationError("Stages must be numbered 1..n", field="stages")
        for stage in definition.stages:
            if stage.approver_role is None and stage.approver_id is None:
                raise ValidationError(
                    f"Stage {stage.stage_number} needs an approver role or approver",
                    field="stages",
                )
        return ApprovalWorkflowModel(
            name=definition.name,
            requisition_type=definition.requisition_type,
            min_amount=definition.min_amount,
            max_amount=definition.max_amount,
            is_active=definition.is_active,
            created_by_id=actor_id,
            stages=[
                ApprovalWorkflowStageModel(
                    stage_number=s.stage_number,
                    name=s.name,
                    approver_role=s.approver_role.value if s.approver_role else None,
                    approver_id=s.approver_id,
                    escalate_to_id=s.escalate_to_id,
                )
                for s in definition.stages
            ],
        )

    def create_workflow(self, actor: Actor, definition: WorkflowDef) -> ApprovalWorkflowModel:
        require_capability(actor, Capability.MANAGE_APPROVALS)
        try:
            workflow = self._workflows.add(self._build(definition, actor.user_id))
            self._session.commit()
            logger.info("approval_workflow_created", extra={
                "workflow_id": str(workflow.id),
                "workflow_name": workflow.name,
                "stage_count": len(workflow.stages),
            })
            return workflow
        except Exception:
            self._session.rollback()
            raise

    def set_active(self, actor: Actor, workflow_id: UUID, is_active: bool) -> ApprovalWorkflowModel:
        require_capability(actor, Capability.MANAGE_APPROVALS)
        workflow = self._workflows.get_or_raise(workflow_id)
        try:
            workflow.is_active = is_active
            workflow.updated_by_id = actor.user_id
            self._session.commit()
            return workflow
        except Exception:
            self._session.rollback()
            raise

    def list_workflows(self, active_only: bool = False) -> Sequence[ApprovalWorkflowModel]:
        if active_only:
            return self._workflows.active()
        return self._workflows.list_where(order_by=ApprovalWorkflowModel.name)

    def seed_default_workflows(self, config: ProcurementConfig, actor_id: UUID) -> int:
        """
        Install ``config.approval_workflows`` whose names are not present yet.
        Returns the number created.
        """
        try:
            created = 0
            for definition in config.approval_workflows:
                if self._workflows.by_name(definition.name) is not None:
                    continue
                self._workflows.add(self._build(definition, actor_id))
                created += 1
            self._session.commit()
            logger.info("approval_workflows_seeded", extra={"workflows_created": created})
            return created
        except Exception:
            self._session.rollback()
            raise

