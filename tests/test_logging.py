"""Tests for procurement_kernel.logging_config: JSON lines, context, setup."""

import json
import logging
from decimal import Decimal
from enum import Enum
from io import StringIO
from uuid import uuid4

import pytest

from procurement_kernel.domain.capabilities import Actor, Role
from procurement_kernel.exceptions import ExceedsRemainingQuantityError
from procurement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _isolated_logging():
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    # hand the suite back its session-wide configuration
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())


def _json_handler() -> tuple[logging.Handler, StringIO]:
    buffer = StringIO()
    handler = logging.StreamHandler(buffer)
    handler.setFormatter(StructuredFormatter())
    return handler, buffer


@pytest.fixture
def emitted():
    """Configure the procurement root with a buffer; return a line reader."""
    handler, buffer = _json_handler()
    configure_logging(handler=handler)
    return lambda: [json.loads(line) for line in buffer.getvalue().splitlines() if line]


class TestJsonLines:
    def test_envelope(self, emitted):
        get_logger("modules.vendor.service").info("vendor_approved")

        (line,) = emitted()
        assert line["message"] == "vendor_approved"
        assert line["level"] == "INFO"
        assert line["logger"] == "procurement.modules.vendor.service"
        assert line["ts"].endswith("+00:00")

    def test_extra_becomes_top_level_keys(self, emitted):
        get_logger("grn").info("grn_accepted", extra={"line_count": 3, "status": "ACCEPTED"})

        (line,) = emitted()
        assert (line["line_count"], line["status"]) == (3, "ACCEPTED")

    def test_domain_values_are_strings(self, emitted):
        class Outcome(Enum):
            MATCHED = "MATCHED"

        po_id = uuid4()
        get_logger("invoice").info(
            "invoice_matched",
            extra={"po_id": po_id, "total": Decimal("147.10"), "outcome": Outcome.MATCHED},
        )

        (line,) = emitted()
        assert line["po_id"] == str(po_id)
        assert line["total"] == "147.10"
        assert line["outcome"] == "MATCHED"

    def test_plain_exception(self, emitted):
        try:
            {}["missing"]
        except KeyError:
            get_logger("rfq").error("rfq_lookup_failed", exc_info=True)

        (line,) = emitted()
        assert line["exc_type"] == "KeyError"
        assert "exc_code" not in line
        assert "Traceback" in line["traceback"]

    def test_procurement_exception_attributes(self, emitted):
        po_item_id = uuid4()
        try:
            raise ExceedsRemainingQuantityError(po_item_id, Decimal("41"), Decimal("40"))
        except ExceedsRemainingQuantityError:
            get_logger("grn").error("grn_create_failed", exc_info=True)

        (line,) = emitted()
        assert line["exc_code"] == "EXCEEDS_REMAINING_QUANTITY"
        assert line["exc_po_item_id"] == str(po_item_id)
        assert line["exc_remaining_qty"] == "40"

    def test_level_filters_debug(self, emitted):
        log = get_logger("po")
        log.debug("hidden")
        log.warning("po_receipt_status_unchanged")

        assert [line["message"] for line in emitted()] == ["po_receipt_status_unchanged"]


class TestContextFields:
    def test_absent_until_set(self, emitted):
        get_logger("req").info("requisition_listed")
        (line,) = emitted()
        assert not set(LogContext.FIELDS) & line.keys()

    def test_set_fields_reach_every_line(self, emitted):
        LogContext.set(correlation_id="req-7f", actor_id="u-1")
        get_logger("req").info("requisition_submit_started")
        get_logger("req").info("requisition_submit_committed")

        assert {(line["correlation_id"], line["actor_id"]) for line in emitted()} == {("req-7f", "u-1")}

    def test_set_keeps_unmentioned_fields(self):
        LogContext.set(correlation_id="c-1")
        LogContext.set(actor_id="u-1")
        assert LogContext.get_all() == {"correlation_id": "c-1", "actor_id": "u-1"}

    def test_every_field_is_settable(self):
        LogContext.set(
            correlation_id="c", actor_id="a", actor_role="ADMIN", document_type="rfq", document_id="d"
        )
        assert set(LogContext.get_all()) == set(LogContext.FIELDS)

    def test_clear_empties(self):
        LogContext.set(document_id="po-1")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_overrides_then_restores(self):
        LogContext.set(document_id="po-1")
        with LogContext.bind(document_id="po-2", document_type="purchase_order"):
            assert LogContext.get_all() == {"document_id": "po-2", "document_type": "purchase_order"}
        assert LogContext.get_all() == {"document_id": "po-1"}

    def test_bind_restores_after_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(document_id="grn-1"):
                raise RuntimeError
        assert LogContext.get_all() == {}

    def test_bind_drops_unknown_names(self):
        with LogContext.bind(warehouse="B2", document_type="invoice"):
            assert LogContext.get_all() == {"document_type": "invoice"}

    def test_for_document_with_actor(self):
        actor = Actor(user_id=uuid4(), role=Role.PROCUREMENT_OFFICER)
        po_id = uuid4()
        with LogContext.for_document("purchase_order", po_id, actor):
            assert LogContext.get_all() == {
                "document_type": "purchase_order",
                "document_id": str(po_id),
                "actor_id": str(actor.user_id),
                "actor_role": "PROCUREMENT_OFFICER",
            }
        assert LogContext.get_all() == {}

    def test_for_document_without_actor(self, emitted):
        with LogContext.for_document("invoice", "inv-1"):
            get_logger("invoice").info("invoice_matched")

        (line,) = emitted()
        assert (line["document_type"], line["document_id"]) == ("invoice", "inv-1")
        assert "actor_id" not in line


class TestSetup:
    def test_second_configure_is_ignored(self):
        first, _ = _json_handler()
        second, _ = _json_handler()
        configure_logging(handler=first)
        configure_logging(handler=second)
        assert logging.getLogger("procurement").handlers == [first]

    def test_configured_root_does_not_propagate(self, emitted):
        assert logging.getLogger("procurement").propagate is False
        reset_logging()
        assert logging.getLogger("procurement").propagate is True

    def test_nested_loggers_share_root_handler(self):
        handler, buffer = _json_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("engines.matching").debug("variance_computed")

        line = json.loads(buffer.getvalue().splitlines()[0])
        assert line["logger"] == "procurement.engines.matching"
