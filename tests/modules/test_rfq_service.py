"""
Tests for RFQService.

Covers:
- Creation, publication and the future-deadline rule
- Invitations (idempotent) and vendor visibility
- One response per vendor, the update path and the deadline cutoff
- Evaluation, award (one SELECTED, siblings REJECTED) and cancellation
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from procurement_kernel.domain.capabilities import Role
from procurement_kernel.exceptions import (
    AlreadyClosedError,
    ForbiddenError,
    InvalidStateError,
    ResponseExistsError,
    ValidationError,
)
from procurement_kernel.services.notifications import NotificationType
from procurement_modules.rfq import (
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
from procurement_modules.vendor import VendorInput


@pytest.fixture
def second_vendor(vendor_service, admin_actor):
    created = vendor_service.create_vendor(admin_actor, VendorInput(name="Globex"))
    return vendor_service.approve_vendor(admin_actor, created.id)


@pytest.fixture
def vendor_user(make_user, vendor):
    return make_user(Role.VENDOR, vendor_id=vendor.id)


@pytest.fixture
def second_vendor_actor(make_user, second_vendor):
    return make_user(Role.VENDOR, vendor_id=second_vendor.id).to_actor()


@pytest.fixture
def draft_rfq(rfq_service, officer_actor, now):
    return rfq_service.create_rfq(
        officer_actor,
        RFQInput(
            title="Office chairs",
            response_deadline=now + timedelta(days=7),
            items=(RFQItemInput("Chair", "10"), RFQItemInput("Desk", "2")),
        ),
    )


@pytest.fixture
def open_rfq(rfq_service, officer_actor, draft_rfq, vendor, second_vendor):
    rfq_service.publish_rfq(officer_actor, draft_rfq.id)
    return rfq_service.invite_vendors(officer_actor, draft_rfq.id, [vendor.id, second_vendor.id])


def quote(rfq, chair_price, desk_price) -> RFQResponseInput:
    by_name = {item.item_name: item for item in rfq.items}
    return RFQResponseInput(
        items=(
            ResponseLineInput(by_name["Chair"].id, chair_price),
            ResponseLineInput(by_name["Desk"].id, desk_price),
        ),
        delivery_days=14,
    )


class TestCreateAndPublish:
    def test_create_defaults(self, draft_rfq, config):
        assert draft_rfq.rfq_number == "RFQ-2024-0001"
        assert draft_rfq.status == RFQStatus.DRAFT.value
        assert draft_rfq.validity_days == config.rfq_default_validity_days
        assert [i.line_number for i in draft_rfq.items] == [1, 2]

    def test_requires_items(self, rfq_service, officer_actor, now):
        with pytest.raises(ValidationError):
            rfq_service.create_rfq(
                officer_actor, RFQInput(title="Empty", response_deadline=now + timedelta(days=1))
            )

    def test_employee_cannot_create(self, rfq_service, employee_actor, now):
        with pytest.raises(ForbiddenError):
            rfq_service.create_rfq(
                employee_actor,
                RFQInput(
                    title="Chairs",
                    response_deadline=now + timedelta(days=1),
                    items=(RFQItemInput("Chair", "1"),),
                ),
            )

    def test_draft_items_can_be_replaced(self, rfq_service, officer_actor, draft_rfq):
        updated = rfq_service.update_rfq(
            officer_actor, draft_rfq.id, RFQUpdate(items=(RFQItemInput("Stool", "5"),))
        )
        assert [(i.item_name, i.quantity) for i in updated.items] == [("Stool", Decimal("5"))]

    def test_publish_requires_future_deadline(self, rfq_service, officer_actor, draft_rfq, deterministic_clock):
        deterministic_clock.advance_days(8)
        with pytest.raises(ValidationError):
            rfq_service.publish_rfq(officer_actor, draft_rfq.id)

    def test_publish(self, rfq_service, officer_actor, draft_rfq, now):
        published = rfq_service.publish_rfq(officer_actor, draft_rfq.id)
        assert published.status == RFQStatus.PUBLISHED.value
        assert published.published_at == now
        with pytest.raises(InvalidStateError):
            rfq_service.update_rfq(officer_actor, draft_rfq.id, RFQUpdate(title="Too late"))


class TestInvitations:
    def test_invite_notifies_vendor_users_once(
        self, rfq_service, officer_actor, draft_rfq, vendor, vendor_user, notifier
    ):
        rfq_service.invite_vendors(officer_actor, draft_rfq.id, [vendor.id, vendor.id])
        rfq = rfq_service.invite_vendors(officer_actor, draft_rfq.id, [vendor.id])

        assert len(rfq.invitations) == 1
        assert rfq.invitations[0].status == InvitationStatus.INVITED.value
        assert [n.type for n in notifier.for_user(vendor_user.id)] == [NotificationType.RFQ_INVITATION]

    def test_vendor_sees_only_invited_published_rfqs(
        self, rfq_service, officer_actor, draft_rfq, vendor, vendor_user, second_vendor_actor
    ):
        rfq_service.invite_vendors(officer_actor, draft_rfq.id, [vendor.id])
        assert rfq_service.list_invited(vendor_user.to_actor()) == []

        rfq_service.publish_rfq(officer_actor, draft_rfq.id)
        assert [r.id for r in rfq_service.list_invited(vendor_user.to_actor())] == [draft_rfq.id]
        assert rfq_service.list_invited(second_vendor_actor) == []
        with pytest.raises(ForbiddenError):
            rfq_service.get_rfq(second_vendor_actor, draft_rfq.id)

    def test_non_vendor_cannot_list_invited(self, rfq_service, officer_actor):
        with pytest.raises(ForbiddenError):
            rfq_service.list_invited(officer_actor)


class TestResponses:
    def test_submit_computes_total_and_marks_invitation(self, rfq_service, open_rfq, vendor, vendor_user):
        response = rfq_service.submit_response(vendor_user.to_actor(), open_rfq.id, quote(open_rfq, "45.00", "210"))

        assert response.status == RFQResponseStatus.SUBMITTED.value
        assert response.total_amount == Decimal("870.00")
        assert open_rfq.invitation_for(vendor.id).status == InvitationStatus.RESPONDED.value

    def test_second_submit_raises_response_exists(self, rfq_service, open_rfq, vendor_user):
        actor = vendor_user.to_actor()
        rfq_service.submit_response(actor, open_rfq.id, quote(open_rfq, "45", "210"))
        with pytest.raises(ResponseExistsError) as exc_info:
            rfq_service.submit_response(actor, open_rfq.id, quote(open_rfq, "40", "200"))
        assert exc_info.value.code == "RESPONSE_EXISTS"

    def test_update_path_replaces_lines(self, rfq_service, open_rfq, vendor_user):
        actor = vendor_user.to_actor()
        rfq_service.submit_response(actor, open_rfq.id, quote(open_rfq, "45", "210"))
        updated = rfq_service.update_response(actor, open_rfq.id, quote(open_rfq, "40", "200"))
        assert updated.total_amount == Decimal("800")
        assert len(updated.items) == 2

    def test_uninvited_vendor_forbidden(self, rfq_service, officer_actor, draft_rfq, vendor, second_vendor_actor):
        rfq_service.invite_vendors(officer_actor, draft_rfq.id, [vendor.id])
        rfq_service.publish_rfq(officer_actor, draft_rfq.id)
        with pytest.raises(ForbiddenError):
            rfq_service.submit_response(second_vendor_actor, draft_rfq.id, quote(draft_rfq, "1", "1"))

    def test_deadline_passed(self, rfq_service, open_rfq, vendor_user, deterministic_clock):
        deterministic_clock.advance_days(7)
        deterministic_clock.advance(1)
        with pytest.raises(InvalidStateError):
            rfq_service.submit_response(vendor_user.to_actor(), open_rfq.id, quote(open_rfq, "45", "210"))

    def test_unknown_rfq_item_rejected(self, rfq_service, open_rfq, vendor_user):
        other = ResponseLineInput(rfq_item_id=vendor_user.id, unit_price="1")
        with pytest.raises(ValidationError):
            rfq_service.submit_response(vendor_user.to_actor(), open_rfq.id, RFQResponseInput(items=(other,)))


class TestEvaluateAndAward:
    @pytest.fixture
    def responses(self, rfq_service, open_rfq, vendor_user, second_vendor_actor):
        first = rfq_service.submit_response(vendor_user.to_actor(), open_rfq.id, quote(open_rfq, "45", "210"))
        second = rfq_service.submit_response(second_vendor_actor, open_rfq.id, quote(open_rfq, "50", "190"))
        return first, second

    def test_evaluate_records_scores(self, rfq_service, officer_actor, open_rfq, responses, now):
        first, second = responses
        rfq = rfq_service.evaluate_responses(
            officer_actor,
            open_rfq.id,
            [
                ResponseEvaluation(first.id, overall_score="82.5", status=RFQResponseStatus.SHORTLISTED),
                ResponseEvaluation(second.id, overall_score="70"),
            ],
        )
        assert rfq.status == RFQStatus.EVALUATING.value
        assert first.status == RFQResponseStatus.SHORTLISTED.value
        assert first.overall_score == Decimal("82.5")
        assert second.status == RFQResponseStatus.UNDER_REVIEW.value
        assert second.evaluated_at == now

    def test_evaluation_cannot_select(self, responses):
        with pytest.raises(ValidationError):
            ResponseEvaluation(responses[0].id, status=RFQResponseStatus.SELECTED)

    def test_award_selects_one_and_rejects_rest(
        self, rfq_service, officer_actor, open_rfq, responses, vendor_user, notifier
    ):
        first, second = responses
        rfq_service.evaluate_responses(officer_actor, open_rfq.id, [])
        rfq = rfq_service.award_rfq(officer_actor, open_rfq.id, first.id)

        assert rfq.status == RFQStatus.AWARDED.value
        assert rfq.selected_response_id == first.id
        assert first.status == RFQResponseStatus.SELECTED.value
        assert second.status == RFQResponseStatus.REJECTED.value
        assert NotificationType.RFQ_AWARDED in [n.type for n in notifier.for_user(vendor_user.id)]

    def test_award_requires_evaluation(self, rfq_service, officer_actor, open_rfq, responses):
        with pytest.raises(InvalidStateError):
            rfq_service.award_rfq(officer_actor, open_rfq.id, responses[0].id)

    def test_award_unknown_response(self, rfq_service, officer_actor, open_rfq, responses, vendor):
        rfq_service.evaluate_responses(officer_actor, open_rfq.id, [])
        with pytest.raises(ValidationError):
            rfq_service.award_rfq(officer_actor, open_rfq.id, vendor.id)


class TestCloseAndCancel:
    def test_cancel_then_cancel_again(self, rfq_service, officer_actor, draft_rfq):
        assert rfq_service.cancel_rfq(officer_actor, draft_rfq.id).status == RFQStatus.CANCELLED.value
        with pytest.raises(AlreadyClosedError):
            rfq_service.cancel_rfq(officer_actor, draft_rfq.id)

    def test_closed_rfq_cannot_be_cancelled(self, rfq_service, officer_actor, draft_rfq):
        rfq_service.close_rfq(officer_actor, draft_rfq.id)
        with pytest.raises(AlreadyClosedError):
            rfq_service.cancel_rfq(officer_actor, draft_rfq.id)

    def test_evaluating_rfq_cannot_be_cancelled(self, rfq_service, officer_actor, open_rfq):
        rfq_service.evaluate_responses(officer_actor, open_rfq.id, [])
        with pytest.raises(InvalidStateError):
            rfq_service.cancel_rfq(officer_actor, open_rfq.id)
        assert rfq_service.close_rfq(officer_actor, open_rfq.id).status == RFQStatus.CLOSED.value
