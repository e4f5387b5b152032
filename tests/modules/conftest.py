"""
Module-level fixtures: one fixture per service plus document builders.

Builders return committed documents in the state most tests start from
(an APPROVED vendor, an APPROVED purchase order, a finalized receipt).
"""

import pytest

from procurement_config import get_default_config
from procurement_modules.approval import ApprovalWorkflowService, DelegationService
from procurement_modules.goods_receipt import (
    AcceptanceLineInput,
    GoodsReceiptInput,
    GoodsReceiptService,
    ReceiptLineInput,
)
from procurement_modules.invoice import InvoiceService, PaymentService
from procurement_modules.purchase_order import (
    PurchaseOrderInput,
    PurchaseOrderItemInput,
    PurchaseOrderService,
)
from procurement_modules.requisition import RequisitionService
from procurement_modules.rfq import RFQService
from procurement_modules.vendor import VendorInput, VendorService

# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def vendor_service(session, deterministic_clock):
    return VendorService(session, clock=deterministic_clock)


@pytest.fixture
def requisition_service(session, deterministic_clock, notifier):
    return RequisitionService(session, clock=deterministic_clock, notifier=notifier)


@pytest.fixture
def delegation_service(session, deterministic_clock):
    return DelegationService(session, clock=deterministic_clock)


@pytest.fixture
def workflow_service(session, deterministic_clock):
    return ApprovalWorkflowService(session, clock=deterministic_clock)


@pytest.fixture
def rfq_service(session, deterministic_clock, notifier, config):
    return RFQService(session, clock=deterministic_clock, notifier=notifier, config=config)


@pytest.fixture
def po_service(session, deterministic_clock, notifier):
    return PurchaseOrderService(session, clock=deterministic_clock, notifier=notifier)


@pytest.fixture
def grn_service(session, deterministic_clock, config):
    return GoodsReceiptService(session, clock=deterministic_clock, config=config)


@pytest.fixture
def invoice_service(session, deterministic_clock, notifier, config):
    return InvoiceService(session, clock=deterministic_clock, notifier=notifier, config=config)


@pytest.fixture
def payment_service(session, deterministic_clock, config):
    return PaymentService(session, clock=deterministic_clock, config=config)


@pytest.fixture
def shipped_config():
    """The packaged defaults, including the tiered and emergency workflows."""
    return get_default_config()


# =============================================================================
# Builders
# =============================================================================


@pytest.fixture
def vendor(vendor_service, admin_actor):
    """An APPROVED vendor."""
    created = vendor_service.create_vendor(
        admin_actor, VendorInput(name="Acme Supplies", email="sales@acme.example")
    )
    return vendor_service.approve_vendor(admin_actor, created.id)


@pytest.fixture
def make_order(po_service, admin_actor, vendor):
    """
    Factory for APPROVED purchase orders.

    Usage::

        order = make_order(("Widget", "100", "5.10"))
    """

    def _make(*lines, vendor_id=None, **kwargs):
        lines = lines or (("Widget", "100", "5.00"),)
        order = po_service.create_purchase_order(
            admin_actor,
            PurchaseOrderInput(
                vendor_id=vendor_id or vendor.id,
                items=tuple(
                    PurchaseOrderItemInput(item_name=name, quantity=qty, unit_price=price)
                    for name, qty, price in lines
                ),
                **kwargs,
            ),
        )
        return po_service.approve_purchase_order(admin_actor, order.id)

    return _make


@pytest.fixture
def receive(grn_service, admin_actor):
    """
    Receive and finalize goods against PO lines.

    Usage::

        receive(order, {po_item.id: ("60", "60", "0")})

    Each value is (received, accepted, rejected); ``accepted=None`` leaves the
    receipt open in PENDING_INSPECTION.
    """

    def _receive(order, quantities):
        receipt = grn_service.create_receipt(
            admin_actor,
            GoodsReceiptInput(
                purchase_order_id=order.id,
                items=tuple(
                    ReceiptLineInput(po_item_id=po_item_id, received_qty=qtys[0])
                    for po_item_id, qtys in quantities.items()
                ),
            ),
        )
        if any(q[1] is None for q in quantities.values()):
            return receipt
        by_po_item = {item.po_item_id: item for item in receipt.items}
        return grn_service.accept_receipt(
            admin_actor,
            receipt.id,
            [
                AcceptanceLineInput(
                    goods_receipt_item_id=by_po_item[po_item_id].id,
                    accepted_qty=qtys[1],
                    rejected_qty=qtys[2],
                )
                for po_item_id, qtys in quantities.items()
            ],
        )

    return _receive