"""
RFQ Module Service (``procurement_modules.rfq.service``).

Responsibility
--------------
Requests for quotation from DRAFT to award: item editing, publication,
vendor invitations, one response per invited vendor (with an explicit update
path), evaluation scores, and the award that selects one response and
rejects the rest.

Invariants enforced
-------------------
* Responses are accepted only while the RFQ is PUBLISHED, not after its
  ``response_deadline``, and only from invited vendors.
* A second ``submit_response`` by the same vendor raises
  ``ResponseExistsError``; changes go through ``update_response``.
* A response total is sum(RFQ item quantity x quoted unit price).
* Award leaves exactly one SELECTED response per RFQ.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from procurement_config.schema import ProcurementConfig
from procurement_engines.reconciliation import line_total, sum_line_totals
from procurement_kernel.domain.capabilities import Actor, Capability, Role, require_capability
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.decimals import (
    to_decimal_or_null,
    to_non_negative_decimal,
    to_positive_decimal,
)
from procurement_kernel.exceptions import (
    AlreadyClosedError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ResponseExistsError,
    ValidationError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.repositories.users import UserRepository
from procurement_kernel.services.notifications import (
    LoggingNotifier,
    NotificationType,
    Notifier,
    dispatch_notification,
)
from procurement_kernel.services.numbering import DocumentNumberService, DocumentPrefix
from procurement_modules.requisition.repository import RequisitionRepository
from procurement_modules.rfq.models import (
    InvitationStatus,
    ResponseEvaluation,
    ResponseLineInput,
    RFQInput,
    RFQItemInput,
    RFQResponseInput,
    RFQResponseStatus,
    RFQStatus,
    RFQUpdate,
)
from procurement_modules.rfq.orm import (
    RFQInvitationModel,
    RFQItemModel,
    RFQModel,
    RFQResponseItemModel,
    RFQResponseModel,
)
from procurement_modules.rfq.repository import RFQRepository, RFQResponseRepository
from procurement_modules.rfq.workflows import RFQ_RESPONSE_WORKFLOW, RFQ_WORKFLOW
from procurement_modules.vendor.repository import VendorRepository

logger = get_logger("modules.rfq.service")

_VENDOR_VISIBLE = (RFQStatus.PUBLISHED, RFQStatus.EVALUATING, RFQStatus.AWARDED, RFQStatus.CLOSED)

_EVALUATION_ACTIONS = {
    RFQResponseStatus.UNDER_REVIEW: "review",
    RFQResponseStatus.SHORTLISTED: "shortlist",
}


class RFQService:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
        config: ProcurementConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._notifier = notifier or LoggingNotifier()
        self._config = config or ProcurementConfig.with_defaults()
        self._rfqs = RFQRepository(session)
        self._responses = RFQResponseRepository(session)
        self._vendors = VendorRepository(session)
        self._users = UserRepository(session)
        self._requisitions = RequisitionRepository(session)
        self._numbers = DocumentNumberService(session, self._clock)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _vendor_id_of(actor: Actor) -> UUID:
        if actor.role is not Role.VENDOR or actor.vendor_id is None:
            raise ForbiddenError()
        return actor.vendor_id

    @staticmethod
    def _build_items(items: Sequence[RFQItemInput]) -> list[RFQItemModel]:
        return [
            RFQItemModel(
                line_number=n,
                item_name=item.item_name.strip(),
                description=item.description,
                quantity=to_positive_decimal(item.quantity, field="quantity"),
                unit=item.unit,
            )
            for n, item in enumerate(items, start=1)
        ]

    @staticmethod
    def _price_lines(
        rfq: RFQModel, lines: Sequence[ResponseLineInput]
    ) -> list[RFQResponseItemModel]:
        if not lines:
            raise ValidationError("Response must include at least one item", field="items")
        by_id = {item.id: item for item in rfq.items}
        priced = []
        for line in lines:
            rfq_item = by_id.get(line.rfq_item_id)
            if rfq_item is None:
                raise ValidationError(f"Invalid rfq_item_id: {line.rfq_item_id}", field="rfq_item_id")
            unit_price = to_non_negative_decimal(line.unit_price, field="unit_price")
            priced.append(
                RFQResponseItemModel(
                    rfq_item_id=rfq_item.id,
                    rfq_item=rfq_item,
                    unit_price=unit_price,
                    total_price=line_total(rfq_item.quantity, unit_price),
                    lead_time_days=line.lead_time_days,
                    notes=line.notes,
                )
            )
        return priced

    def _assert_open_for_responses(self, rfq: RFQModel) -> None:
        RFQ_WORKFLOW.transition(rfq.status, "respond")
        if self._clock.now() > rfq.response_deadline:
            raise InvalidStateError(
                "RFQ response deadline has passed",
                entity="rfq",
                current_status=rfq.status,
                action="respond",
            )

    def _notify_vendor(self, vendor_id: UUID, type: NotificationType, title: str, message: str, ref: UUID) -> None:
        for user in self._users.for_vendor(vendor_id):
            dispatch_notification(self._notifier, user.id, type, title, message, reference_id=ref)

    # -------------------------------------------------------------------------
    # Buyer side
    # -------------------------------------------------------------------------

    def create_rfq(self, actor: Actor, payload: RFQInput) -> RFQModel:
        require_capability(actor, Capability.MANAGE_RFQS)
        if not payload.items:
            raise ValidationError("RFQ must have at least one item", field="items")
        try:
            if payload.requisition_id is not None and self._requisitions.get(payload.requisition_id) is None:
                raise ValidationError("Invalid requisition_id", field="requisition_id")
            rfq = self._rfqs.add(
                RFQModel(
                    rfq_number=self._numbers.next_number(DocumentPrefix.RFQ, RFQModel.rfq_number),
                    title=payload.title.strip(),
                    description=payload.description,
                    requisition_id=payload.requisition_id,
                    status=RFQ_WORKFLOW.initial_state,
                    response_deadline=payload.response_deadline,
                    validity_days=payload.validity_days or self._config.rfq_default_validity_days,
                    delivery_terms=payload.delivery_terms,
                    delivery_location=payload.delivery_location,
                    created_by_id=actor.user_id,
                    items=self._build_items(payload.items),
                )
            )
            self._session.commit()
            logger.info("rfq_create_committed", extra={
                "rfq_id": str(rfq.id),
                "rfq_number": rfq.rfq_number,
                "item_count": len(rfq.items),
            })
            return rfq
        except Exception:
            self._session.rollback()
            raise

    def get_rfq(self, actor: Actor, rfq_id: UUID) -> RFQModel:
        rfq = self._rfqs.get_or_raise(rfq_id)
        if actor.role is Role.VENDOR:
            if rfq.invitation_for(self._vendor_id_of(actor)) is None:
                raise ForbiddenError()
            return rfq
        require_capability(actor, Capability.MANAGE_RFQS)
        return rfq

    def list_rfqs(self, actor: Actor, status: RFQStatus | None = None) -> Sequence[RFQModel]:
        require_capability(actor, Capability.MANAGE_RFQS)
        return self._rfqs.list_by_status(status)

    def update_rfq(self, actor: Actor, rfq_id: UUID, update: RFQUpdate) -> RFQModel:
        require_capability(actor, Capability.MANAGE_RFQS)
        rfq = self._rfqs.get_or_raise(rfq_id)
        RFQ_WORKFLOW.transition(rfq.status, "edit")
        if update.items is not None and not update.items:
            raise ValidationError("RFQ must have at least one item", field="items")
        try:
            if update.title is not None:
                rfq.title = update.title.strip()
            if update.description is not None:
                rfq.description = update.description
            if update.response_deadline is not None:
                rfq.response_deadline = update.response_deadline
            if update.validity_days is not None:
                rfq.validity_days = update.validity_days
            if update.delivery_terms is not None:
                rfq.delivery_terms = update.delivery_terms
            if update.delivery_location is not None:
                rfq.delivery_location = update.delivery_location
            if update.items is not None:
                rfq.items.clear()
                self._session.flush()
                rfq.items.extend(self._build_items(update.items))
            rfq.updated_by_id = actor.user_id
            self._session.commit()
            return rfq
        except Exception:
            self._session.rollback()
            raise

    def publish_rfq(self, actor: Actor, rfq_id: UUID) -> RFQModel:
        require_capability(actor, Capability.MANAGE_RFQS)
        rfq = self._rfqs.get_or_raise(rfq_id)
        new_status = RFQ_WORKFLOW.transition(rfq.status, "publish")
        now = self._clock.now()
        if rfq.response_deadline <= now:
            raise ValidationError("response_deadline must be in the future", field="response_deadline")
        try:
            rfq.status = new_status
            rfq.published_at = now
            rfq.updated_by_id = actor.user_id
            self._session.commit()
            logger.info("rfq_published", extra={
                "rfq_id": str(rfq_id),
                "response_deadline": rfq.response_deadline,
            })
            return rfq
        except Exception:
            self._session.rollback()
            raise

    def close_rfq(self, actor: Actor, rfq_id: UUID) -> RFQModel:
        require_capability(actor, Capability.MANAGE_RFQS)
        rfq = self._rfqs.get_or_raise(rfq_id)
        new_status = RFQ_WORKFLOW.transition(rfq.status, "close")
        try:
            rfq.status = new_status
            rfq.closed_at = self._clock.now()
            rfq.updated_by_id = actor.user_id
            self._session.commit()
            logger.info("rfq_closed", extra={"rfq_id": str(rfq_id)})
            return rfq
        except Exception:
            self._session.rollback()
            raise

    def cancel_rfq(self, actor: Actor, rfq_id: UUID) -> RFQModel:
        require_capability(actor, Capability.MANAGE_RFQS)
        rfq = self._rfqs.get_or_raise(rfq_id)
        if rfq.status in (RFQStatus.CANCELLED.value, RFQStatus.CLOSED.value):
            raise AlreadyClosedError("RFQ", rfq_id, rfq.status)
        new_status = RFQ_WORKFLOW.transition(rfq.status, "cancel")
        try:
            rfq.status = new_status
            rfq.closed_at = self._clock.now()
            rfq.updated_by_id = actor.user_id
            self._session.commit()
            logger.info("rfq_cancelled", extra={"rfq_id": str(rfq_id)})
            return rfq
        except Exception:
            self._session.rollback()
            raise

    def invite_vendors(self, actor: Actor, rfq_id: UUID, vendor_ids: Sequence[UUID]) -> RFQModel:
        """Invite vendors; vendors already invited are skipped."""
        require_capability(actor, Capability.MANAGE_RFQS)
        rfq = self._rfqs.get_or_raise(rfq_id)
        RFQ_WORKFLOW.transition(rfq.status, "invite")
        if not vendor_ids:
            raise ValidationError("vendor_ids must be non-empty", field="vendor_ids")

        invited: list[UUID] = []
        try:
            now = self._clock.now()
            for vendor_id in dict.fromkeys(vendor_ids):
                self._vendors.get_or_raise(vendor_id)
                if rfq.invitation_for(vendor_id) is not None:
                    continue
                rfq.invitations.append(
                    RFQInvitationModel(
                        vendor_id=vendor_id,
                        status=InvitationStatus.INVITED.value,
                        invited_at=now,
                    )
                )
                invited.append(vendor_id)
            rfq.updated_by_id = actor.user_id
            self._session.commit()
            logger.info("rfq_vendors_invited", extra={
                "rfq_id": str(rfq_id),
                "invited_count": len(invited),
            })
        except Exception:
            self._session.rollback()
            raise

        for vendor_id in invited:
            self._notify_vendor(
                vendor_id,
                NotificationType.RFQ_INVITATION,
                "Request for quotation",
                f"You have been invited to quote on {rfq.rfq_number}: {rfq.title}",
                rfq.id,
            )
        return rfq

    def evaluate_responses(
        self, actor: Actor, rfq_id: UUID, evaluations: Sequence[ResponseEvaluation]
    ) -> RFQModel:
        """Move the RFQ to EVALUATING and record scores on its responses."""
        require_capability(actor, Capability.MANAGE_RFQS)
        rfq = self._rfqs.get_or_raise(rfq_id)
        new_status = RFQ_WORKFLOW.transition(rfq.status, "evaluate")
        responses = {r.id: r for r in rfq.responses}
        try:
            now = self._clock.now()
            rfq.status = new_status
            for evaluation in evaluations:
                response = responses.get(evaluation.response_id)
                if response is None:
                    raise ValidationError(
                        f"Invalid response_id: {evaluation.response_id}", field="response_id"
                    )
                response.status = RFQ_RESPONSE_WORKFLOW.transition(
                    response.status, _EVALUATION_ACTIONS[evaluation.status]
                )
                response.technical_score = to_decimal_or_null(evaluation.technical_score, field="technical_score")
                response.commercial_score = to_decimal_or_null(evaluation.commercial_score, field="commercial_score")
                response.overall_score = to_decimal_or_null(evaluation.overall_score, field="overall_score")
                response.evaluation_notes = evaluation.notes
                response.evaluated_at = now
            rfq.updated_by_id = actor.user_id
            self._session.commit()
            logger.info("rfq_evaluated", extra={
                "rfq_id": str(rfq_id),
                "evaluation_count": len(evaluations),
            })
            return rfq
        except Exception:
            self._session.rollback()
            raise

    def award_rfq(self, actor: Actor, rfq_id: UUID, response_id: UUID) -> RFQModel:
        require_capability(actor, Capability.MANAGE_RFQS)
        rfq = self._rfqs.get_or_raise(rfq_id)
        winner = next((r for r in rfq.responses if r.id == response_id), None)
        if winner is None:
            raise ValidationError(f"Invalid response_id: {response_id}", field="response_id")
        new_status = RFQ_WORKFLOW.transition(rfq.status, "award")

        try:
            for response in rfq.responses:
                action = "select" if response.id == response_id else "reject"
                response.status = RFQ_RESPONSE_WORKFLOW.transition(response.status, action)
            rfq.status = new_status
            rfq.selected_response_id = response_id
            rfq.closed_at = self._clock.now()
            rfq.updated_by_id = actor.user_id
            self._session.commit()
            logger.info("rfq_awarded", extra={
                "rfq_id": str(rfq_id),
                "response_id": str(response_id),
                "vendor_id": str(winner.vendor_id),
                "total_amount": str(winner.total_amount),
            })
        except Exception:
            self._session.rollback()
            raise

        self._notify_vendor(
            winner.vendor_id,
            NotificationType.RFQ_AWARDED,
            "Quotation selected",
            f"Your quotation for {rfq.rfq_number} has been selected",
            rfq.id,
        )
        return rfq

    # -------------------------------------------------------------------------
    # Vendor side
    # -------------------------------------------------------------------------

    def list_invited(self, actor: Actor) -> Sequence[RFQModel]:
        return self._rfqs.invited_for_vendor(self._vendor_id_of(actor), _VENDOR_VISIBLE)

    def submit_response(self, actor: Actor, rfq_id: UUID, payload: RFQResponseInput) -> RFQResponseModel:
        vendor_id = self._vendor_id_of(actor)
        rfq = self._rfqs.get_or_raise(rfq_id)
        self._assert_open_for_responses(rfq)
        invitation = rfq.invitation_for(vendor_id)
        if invitation is None:
            raise ForbiddenError()
        if self._responses.for_vendor(rfq_id, vendor_id) is not None:
            raise ResponseExistsError(rfq_id, vendor_id)

        try:
            now = self._clock.now()
            lines = self._price_lines(rfq, payload.items)
            response = RFQResponseModel(
                vendor_id=vendor_id,
                submitted_by_id=actor.user_id,
                status=RFQ_RESPONSE_WORKFLOW.initial_state,
                total_amount=sum_line_totals(line.total_price for line in lines),
                delivery_days=payload.delivery_days,
                validity_days=payload.validity_days,
                notes=payload.notes,
                submitted_at=now,
                items=lines,
            )
            rfq.responses.append(response)
            invitation.status = InvitationStatus.RESPONDED.value
            invitation.responded_at = now
            self._session.commit()
            logger.info("rfq_response_submitted", extra={
                "rfq_id": str(rfq_id),
                "vendor_id": str(vendor_id),
                "total_amount": str(response.total_amount),
            })
            return response
        except Exception:
            self._session.rollback()
            raise

    def update_response(self, actor: Actor, rfq_id: UUID, payload: RFQResponseInput) -> RFQResponseModel:
        vendor_id = self._vendor_id_of(actor)
        rfq = self._rfqs.get_or_raise(rfq_id)
        response = self._responses.for_vendor(rfq_id, vendor_id)
        if response is None:
            raise NotFoundError("RFQResponse", f"{rfq_id}/{vendor_id}")
        RFQ_RESPONSE_WORKFLOW.transition(response.status, "edit")
        self._assert_open_for_responses(rfq)

        try:
            lines = self._price_lines(rfq, payload.items)
            response.items.clear()
            self._session.flush()
            response.items.extend(lines)
            response.total_amount = sum_line_totals(line.total_price for line in lines)
            response.delivery_days = payload.delivery_days
            response.validity_days = payload.validity_days
            response.notes = payload.notes
            response.submitted_at = self._clock.now()
            self._session.commit()
            logger.info("rfq_response_updated", extra={
                "rfq_id": str(rfq_id),
                "vendor_id": str(vendor_id),
                "total_amount": str(response.total_amount),
            })
            return response
        except Exception:
            self._session.rollback()
            raise
