"""
Requisition Module Service (``procurement_modules.requisition.service``).

Responsibility
--------------
Owns the requisition aggregate: creation with items, DRAFT-only editing with
atomic ``total_estimate`` recomputation, submission through approval routing,
stage-by-stage approval (including delegates), rejection, escalation,
information requests and cancellation.

Architecture position
---------------------
**Modules layer**.  Routing decisions come from ``ApprovalRouter`` and
``DelegationService`` (approval module); arithmetic from
``procurement_engines.reconciliation``; legal status moves from
``REQUISITION_WORKFLOW``.

Invariants enforced
-------------------
* Each public method owns the transaction boundary (``commit`` on success,
  ``rollback`` and re-raise on any exception).
* ``total_estimate == sum(item.total_price)`` after every item change.
* One approval row per (requisition, stage), written as replace-or-insert.
* A failed submission (e.g. ``NoApproverFoundError``) leaves the
  requisition in DRAFT.

Failure modes
-------------
* ``ForbiddenError`` -- caller is not the requester, the stage approver (or
  their delegate) or a ManageRequisitions role.
* ``InvalidStateError`` / ``AlreadyClosedError`` -- illegal status move.
* ``ValidationError`` -- submission without items, malformed numbers.
* ``NoApproverFoundError`` -- routing exhausted.

Audit relevance
---------------
Every approval decision records who acted (``acted_by_id``), when, and for
which routed approver, so delegated approvals stay traceable.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from procurement_engines.reconciliation import line_total, sum_line_totals
from procurement_engines.routing import WorkflowDef
from procurement_kernel.domain.capabilities import Actor, Capability
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.decimals import to_non_negative_decimal, to_positive_decimal
from procurement_kernel.exceptions import (
    AlreadyClosedError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.services.notifications import (
    LoggingNotifier,
    NotificationType,
    Notifier,
    dispatch_notification,
)
from procurement_kernel.services.numbering import DocumentNumberService, DocumentPrefix
from procurement_modules.approval.models import ApprovalStatus
from procurement_modules.approval.service import ApprovalRouter, DelegationService
from procurement_modules.requisition.models import (
    RequisitionInput,
    RequisitionItemInput,
    RequisitionItemUpdate,
    RequisitionStatus,
    RequisitionUpdate,
)
from procurement_modules.requisition.orm import (
    RequisitionApprovalModel,
    RequisitionItemModel,
    RequisitionModel,
)
from procurement_modules.requisition.repository import RequisitionRepository
from procurement_modules.requisition.workflows import CLOSED_STATES, REQUISITION_WORKFLOW

logger = get_logger("modules.requisition.service")


class RequisitionService:
    """
    Requisition lifecycle operations.

    Usage::

        service = RequisitionService(session, clock=clock)
        req = service.create_requisition(actor, RequisitionInput(
            title="Laptops", department="IT",
            items=(RequisitionItemInput("Laptop", "2", "1200.00"),),
        ))
        service.submit_requisition(actor, req.id)
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._notifier = notifier or LoggingNotifier()
        self._requisitions = RequisitionRepository(session)
        self._numbers = DocumentNumberService(session, self._clock)
        self._router = ApprovalRouter(session)
        self._delegations = DelegationService(session, self._clock)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _is_owner(actor: Actor, requisition: RequisitionModel) -> bool:
        return requisition.requested_by_id == actor.user_id

    def _assert_can_modify(self, actor: Actor, requisition: RequisitionModel) -> None:
        if not self._is_owner(actor, requisition) and not actor.can(Capability.MANAGE_REQUISITIONS):
            raise ForbiddenError()

    def _assert_can_decide(self, actor: Actor, approval: RequisitionApprovalModel) -> None:
        if actor.is_super_admin:
            return
        if not self._delegations.can_act_for(actor.user_id, approval.approver_id):
            raise ForbiddenError()

    @staticmethod
    def _build_item(line_number: int, item: RequisitionItemInput) -> RequisitionItemModel:
        quantity = to_positive_decimal(item.quantity, field="quantity")
        price = to_non_negative_decimal(item.estimated_price, field="estimated_price")
        return RequisitionItemModel(
            line_number=line_number,
            item_name=item.item_name.strip(),
            description=item.description,
            quantity=quantity,
            unit=item.unit,
            estimated_price=price,
            total_price=line_total(quantity, price),
        )

    @staticmethod
    def _recompute_total(requisition: RequisitionModel) -> Decimal:
        requisition.total_estimate = sum_line_totals(i.total_price for i in requisition.items)
        return requisition.total_estimate

    def _current_approval(self, requisition: RequisitionModel) -> RequisitionApprovalModel:
        approval = requisition.approval_for_stage(requisition.current_stage)
        if approval is None or approval.status != ApprovalStatus.PENDING.value:
            raise InvalidStateError(
                f"No pending approval at stage {requisition.current_stage}",
                entity="requisition",
                current_status=requisition.status,
            )
        return approval

    def _upsert_approval(
        self, requisition: RequisitionModel, stage: int, approver_id: UUID
    ) -> RequisitionApprovalModel:
        """Replace-or-insert the single approval row for (requisition, stage)."""
        approval = requisition.approval_for_stage(stage)
        if approval is None:
            approval = RequisitionApprovalModel(stage=stage, approver_id=approver_id)
            requisition.approvals.append(approval)
        approval.approver_id = approver_id
        approval.status = ApprovalStatus.PENDING.value
        approval.acted_by_id = None
        approval.acted_at = None
        approval.comments = None
        approval.escalated_from_id = None
        return approval

    def _workflow_for(self, requisition: RequisitionModel) -> WorkflowDef | None:
        if requisition.workflow_id is None:
            return None
        return self._router.get_workflow(requisition.workflow_id)

    def _notify(self, user_id, type: NotificationType, title: str, message: str, ref: UUID) -> None:
        dispatch_notification(self._notifier, user_id, type, title, message, reference_id=ref)

    def _notify_approver(self, approver_id, type: NotificationType, title: str, message: str, ref: UUID) -> None:
        """Approval requests go to whoever holds the approver's authority right now."""
        if approver_id is not None:
            approver_id = self._delegations.resolve_delegate(approver_id) or approver_id
        self._notify(approver_id, type, title, message, ref)

    # -------------------------------------------------------------------------
    # Create / read
    # -------------------------------------------------------------------------

    def create_requisition(self, actor: Actor, payload: RequisitionInput) -> RequisitionModel:
        """Create a DRAFT requisition and its items in one transaction."""
        try:
            logger.info("requisition_create_started", extra={
                "actor_id": str(actor.user_id),
                "item_count": len(payload.items),
            })
            number = self._numbers.next_number(
                DocumentPrefix.REQUISITION, RequisitionModel.requisition_number
            )
            requisition = RequisitionModel(
                requisition_number=number,
                title=payload.title.strip(),
                description=payload.description,
                department=payload.department,
                requested_by_id=actor.user_id,
                priority=payload.priority.value,
                requisition_type=payload.requisition_type.value,
                needed_by=payload.needed_by,
                status=REQUISITION_WORKFLOW.initial_state,
                current_stage=0,
                total_stages=0,
                created_by_id=actor.user_id,
                items=[self._build_item(n, item) for n, item in enumerate(payload.items, start=1)],
            )
            self._recompute_total(requisition)
            self._requisitions.add(requisition)
            self._session.commit()

            logger.info("requisition_create_committed", extra={
                "requisition_id": str(requisition.id),
                "requisition_number": number,
                "total_estimate": str(requisition.total_estimate),
            })
            return requisition
        except Exception:
            self._session.rollback()
            logger.warning("requisition_create_rolled_back", exc_info=True)
            raise

    def get_requisition(self, actor: Actor, requisition_id: UUID) -> RequisitionModel:
        requisition = self._requisitions.get_or_raise(requisition_id)
        if (
            self._is_owner(actor, requisition)
            or actor.can(Capability.MANAGE_REQUISITIONS)
            or any(a.approver_id == actor.user_id for a in requisition.approvals)
        ):
            return requisition
        raise ForbiddenError()

    def list_requisitions(
        self, actor: Actor, status: RequisitionStatus | None = None
    ) -> Sequence[RequisitionModel]:
        """All requisitions for ManageRequisitions roles, otherwise the caller's own."""
        requested_by = None if actor.can(Capability.MANAGE_REQUISITIONS) else actor.user_id
        return self._requisitions.list_filtered(status=status, requested_by_id=requested_by)

    def pending_approvals(self, actor: Actor) -> Sequence[RequisitionModel]:
        """Requisitions awaiting the caller, directly or through a delegation."""
        approver_ids = [actor.user_id, *self._delegations.active_delegator_ids(actor.user_id)]
        return self._requisitions.pending_for_approvers(approver_ids)

    # -------------------------------------------------------------------------
    # DRAFT editing
    # -------------------------------------------------------------------------

    def update_requisition(
        self, actor: Actor, requisition_id: UUID, update: RequisitionUpdate
    ) -> RequisitionModel:
        requisition = self._requisitions.get_or_raise(requisition_id)
        self._assert_can_modify(actor, requisition)
        REQUISITION_WORKFLOW.transition(requisition.status, "edit")
        try:
            if update.title is not None:
                if not update.title.strip():
                    raise ValidationError("title is required", field="title")
                requisition.title = update.title.strip()
            if update.department is not None:
                requisition.department = update.department
            if update.description is not None:
                requisition.description = update.description
            if update.priority is not None:
                requisition.priority = update.priority.value
            if update.requisition_type is not None:
                requisition.requisition_type = update.requisition_type.value
            if update.needed_by is not None:
                requisition.needed_by = update.needed_by
            requisition.updated_by_id = actor.user_id
            self._session.commit()
            return requisition
        except Exception:
            self._session.rollback()
            raise

    def delete_requisition(self, actor: Actor, requisition_id: UUID) -> None:
        requisition = self._requisitions.get_or_raise(requisition_id)
        self._assert_can_modify(actor, requisition)
        REQUISITION_WORKFLOW.transition(requisition.status, "edit")
        try:
            self._requisitions.delete(requisition)
            self._session.commit()
            logger.info("requisition_deleted", extra={"requisition_id": str(requisition_id)})
        except Exception:
            self._session.rollback()
            raise

    def add_item(
        self, actor: Actor, requisition_id: UUID, item: RequisitionItemInput
    ) -> RequisitionModel:
        requisition = self._requisitions.get_or_raise(requisition_id)
        self._assert_can_modify(actor, requisition)
        REQUISITION_WORKFLOW.transition(requisition.status, "edit")
        try:
            next_line = max((i.line_number for i in requisition.items), default=0) + 1
            requisition.items.append(self._build_item(next_line, item))
            self._recompute_total(requisition)
            requisition.updated_by_id = actor.user_id
            self._session.commit()
            return requisition
        except Exception:
            self._session.rollback()
            raise

    def update_item(
        self,
        actor: Actor,
        requisition_id: UUID,
        item_id: UUID,
        update: RequisitionItemUpdate,
    ) -> RequisitionModel:
        requisition = self._requisitions.get_or_raise(requisition_id)
        self._assert_can_modify(actor, requisition)
        REQUISITION_WORKFLOW.transition(requisition.status, "edit")
        item = next((i for i in requisition.items if i.id == item_id), None)
        if item is None:
            raise NotFoundError("RequisitionItem", item_id)
        try:
            if update.item_name is not None:
                item.item_name = update.item_name.strip()
            if update.description is not None:
                item.description = update.description
            if update.unit is not None:
                item.unit = update.unit
            if update.quantity is not None:
                item.quantity = to_positive_decimal(update.quantity, field="quantity")
            if update.estimated_price is not None:
                item.estimated_price = to_non_negative_decimal(
                    update.estimated_price, field="estimated_price"
                )
            item.total_price = line_total(item.quantity, item.estimated_price)
            self._recompute_total(requisition)
            requisition.updated_by_id = actor.user_id
            self._session.commit()
            return requisition
        except Exception:
            self._session.rollback()
            raise

    def delete_item(self, actor: Actor, requisition_id: UUID, item_id: UUID) -> RequisitionModel:
        requisition = self._requisitions.get_or_raise(requisition_id)
        self._assert_can_modify(actor, requisition)
        REQUISITION_WORKFLOW.transition(requisition.status, "edit")
        item = next((i for i in requisition.items if i.id == item_id), None)
        if item is None:
            raise NotFoundError("RequisitionItem", item_id)
        try:
            requisition.items.remove(item)
            self._recompute_total(requisition)
            requisition.updated_by_id = actor.user_id
            self._session.commit()
            return requisition
        except Exception:
            self._session.rollback()
            raise

    # -------------------------------------------------------------------------
    # Approval flow
    # -------------------------------------------------------------------------

    def submit_requisition(self, actor: Actor, requisition_id: UUID) -> RequisitionModel:
        """
        DRAFT -> PENDING_APPROVAL.  Picks the applicable approval workflow
        (if any) and routes stage 1.  On ``NoApproverFoundError`` the
        transaction rolls back and the requisition stays DRAFT.
        """
        requisition = self._requisitions.get_or_raise(requisition_id)
        self._assert_can_modify(actor, requisition)
        new_status = REQUISITION_WORKFLOW.transition(requisition.status, "submit")
        if not requisition.items:
            raise ValidationError("Add at least one item before submitting", field="items")

        try:
            logger.info("requisition_submit_started", extra={
                "requisition_id": str(requisition_id),
                "total_estimate": str(requisition.total_estimate),
                "department": requisition.department,
            })
            workflow = self._router.find_workflow(
                requisition.requisition_type, requisition.total_estimate
            )
            approver_id = self._router.resolve_stage_approver(workflow, 1, requisition.department)

            for stale in [a for a in requisition.approvals if a.stage != 1]:
                requisition.approvals.remove(stale)
            self._upsert_approval(requisition, 1, approver_id)

            requisition.workflow_id = workflow.workflow_id if workflow else None
            requisition.total_stages = len(workflow.stages) if workflow else 1
            requisition.current_stage = 1
            requisition.status = new_status
            requisition.submitted_at = self._clock.now()
            requisition.updated_by_id = actor.user_id
            self._session.commit()

            logger.info("requisition_submit_committed", extra={
                "requisition_id": str(requisition_id),
                "workflow": workflow.name if workflow else None,
                "total_stages": requisition.total_stages,
                "approver_id": str(approver_id),
            })
        except Exception:
            self._session.rollback()
            logger.warning("requisition_submit_rolled_back", exc_info=True)
            raise

        self._notify_approver(
            approver_id,
            NotificationType.APPROVAL_REQUESTED,
            "Approval required",
            f"Requisition {requisition.requisition_number} awaits your approval",
            requisition.id,
        )
        return requisition

    def approve_requisition(
        self, actor: Actor, requisition_id: UUID, comments: str | None = None
    ) -> RequisitionModel:
        """Approve the current stage; advance to the next stage or to APPROVED."""
        requisition = self._requisitions.get_or_raise(requisition_id)
        approval = self._current_approval(requisition)
        self._assert_can_decide(actor, approval)

        final = requisition.current_stage >= requisition.total_stages
        new_status = REQUISITION_WORKFLOW.transition(
            requisition.status, "approve_final" if final else "approve_stage"
        )
        now = self._clock.now()
        next_approver_id = None

        with LogContext.for_document("requisition", requisition_id, actor):
            try:
                approval.status = ApprovalStatus.APPROVED.value
                approval.acted_by_id = actor.user_id
                approval.acted_at = now
                approval.comments = comments

                if final:
                    requisition.approved_at = now
                else:
                    next_stage = requisition.current_stage + 1
                    next_approver_id = self._router.resolve_stage_approver(
                        self._workflow_for(requisition), next_stage, requisition.department
                    )
                    self._upsert_approval(requisition, next_stage, next_approver_id)
                    requisition.current_stage = next_stage

                requisition.status = new_status
                requisition.updated_by_id = actor.user_id
                self._session.commit()

                logger.info("requisition_stage_approved", extra={
                    "requisition_id": str(requisition_id),
                    "stage": approval.stage,
                    "approver_id": str(approval.approver_id),
                    "acted_by_id": str(actor.user_id),
                    "final": final,
                })
            except Exception:
                self._session.rollback()
                raise

        if final:
            self._notify(
                requisition.requested_by_id,
                NotificationType.REQUISITION_APPROVED,
                "Requisition approved",
                f"Requisition {requisition.requisition_number} has been approved",
                requisition.id,
            )
        else:
            self._notify_approver(
                next_approver_id,
                NotificationType.APPROVAL_REQUESTED,
                "Approval required",
                f"Requisition {requisition.requisition_number} awaits your approval",
                requisition.id,
            )
        return requisition

    def reject_requisition(
        self, actor: Actor, requisition_id: UUID, comments: str | None = None
    ) -> RequisitionModel:
        requisition = self._requisitions.get_or_raise(requisition_id)
        approval = self._current_approval(requisition)
        self._assert_can_decide(actor, approval)
        new_status = REQUISITION_WORKFLOW.transition(requisition.status, "reject")

        try:
            now = self._clock.now()
            approval.acted_by_id = actor.user_id
            approval.acted_at = now
            approval.comments = comments
            for row in requisition.approvals:
                if row.status == ApprovalStatus.PENDING.value:
                    row.status = ApprovalStatus.REJECTED.value
            requisition.status = new_status
            requisition.updated_by_id = actor.user_id
            self._session.commit()

            logger.info("requisition_rejected", extra={
                "requisition_id": str(requisition_id),
                "stage": approval.stage,
                "acted_by_id": str(actor.user_id),
            })
        except Exception:
            self._session.rollback()
            raise

        self._notify(
            requisition.requested_by_id,
            NotificationType.REQUISITION_REJECTED,
            "Requisition rejected",
            f"Requisition {requisition.requisition_number} was rejected"
            + (f": {comments}" if comments else ""),
            requisition.id,
        )
        return requisition

    def request_info(
        self, actor: Actor, requisition_id: UUID, message: str
    ) -> RequisitionModel:
        """Ask the requester for more information.  No status change."""
        requisition = self._requisitions.get_or_raise(requisition_id)
        approval = self._current_approval(requisition)
        self._assert_can_decide(actor, approval)
        REQUISITION_WORKFLOW.transition(requisition.status, "request_info")
        logger.info("requisition_info_requested", extra={
            "requisition_id": str(requisition_id),
            "stage": approval.stage,
            "actor_id": str(actor.user_id),
        })
        self._notify(
            requisition.requested_by_id,
            NotificationType.INFO_REQUESTED,
            "Information requested",
            message,
            requisition.id,
        )
        return requisition

    def escalate_requisition(
        self, actor: Actor, requisition_id: UUID, reason: str | None = None
    ) -> RequisitionModel:
        """Hand the current stage to the stage's configured escalation approver."""
        requisition = self._requisitions.get_or_raise(requisition_id)
        approval = self._current_approval(requisition)
        if not actor.can(Capability.MANAGE_REQUISITIONS):
            self._assert_can_decide(actor, approval)
        REQUISITION_WORKFLOW.transition(requisition.status, "escalate")

        workflow = self._workflow_for(requisition)
        stage = workflow.stage(requisition.current_stage) if workflow else None
        if stage is None or stage.escalate_to_id is None:
            raise InvalidStateError(
                f"Stage {requisition.current_stage} has no escalation approver",
                entity="requisition",
                current_status=requisition.status,
                action="escalate",
            )

        try:
            previous = approval.approver_id
            approval.escalated_from_id = previous
            approval.approver_id = stage.escalate_to_id
            approval.comments = reason
            requisition.updated_by_id = actor.user_id
            self._session.commit()
            logger.info("requisition_escalated", extra={
                "requisition_id": str(requisition_id),
                "stage": approval.stage,
                "from_approver_id": str(previous),
                "to_approver_id": str(stage.escalate_to_id),
            })
        except Exception:
            self._session.rollback()
            raise

        self._notify_approver(
            stage.escalate_to_id,
            NotificationType.APPROVAL_ESCALATED,
            "Approval escalated to you",
            f"Requisition {requisition.requisition_number} was escalated for your approval",
            requisition.id,
        )
        return requisition

    def cancel_requisition(
        self, actor: Actor, requisition_id: UUID, reason: str | None = None
    ) -> RequisitionModel:
        requisition = self._requisitions.get_or_raise(requisition_id)
        self._assert_can_modify(actor, requisition)
        if requisition.status in CLOSED_STATES:
            raise AlreadyClosedError("Requisition", requisition_id, requisition.status)
        new_status = REQUISITION_WORKFLOW.transition(requisition.status, "cancel")
        try:
            for row in requisition.approvals:
                if row.status == ApprovalStatus.PENDING.value:
                    row.status = ApprovalStatus.CANCELLED.value
            requisition.status = new_status
            requisition.cancelled_at = self._clock.now()
            requisition.cancellation_reason = reason
            requisition.updated_by_id = actor.user_id
            self._session.commit()
            logger.info("requisition_cancelled", extra={"requisition_id": str(requisition_id)})
            return requisition
        except Exception:
            self._session.rollback()
            raise

    def mark_completed(self, requisition: RequisitionModel, actor_id: UUID) -> None:
        """
        APPROVED -> COMPLETED once a purchase order is raised from it.
        Runs inside the caller's transaction; does not commit.
        """
        requisition.status = REQUISITION_WORKFLOW.transition(requisition.status, "complete")
        requisition.updated_by_id = actor_id
