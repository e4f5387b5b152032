"""
Procurement Modules.

One package per document aggregate, each layered over the kernel and the
engines:

- requisition: purchase requests, submission and staged approval
- approval: approver routing, tiered workflows, delegations
- vendor: vendor master data and lifecycle
- rfq: requests for quotation, invitations, vendor responses, award
- purchase_order: orders, approval, dispatch, receipt status
- goods_receipt: deliveries, inspection, acceptance
- invoice: vendor invoices, three-way match, payments

Each package contains ``models.py`` (enums and input payloads),
``workflows.py`` (state machines), ``orm.py`` (tables), ``repository.py``
and ``service.py`` (transaction-owning operations).
"""
