"""
Module ORM Registry (``procurement_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model is imported so that ``Base.metadata``
contains its table definition before tables are created.
``procurement_kernel.db.engine.create_tables`` calls
``import_all_orm_models`` first.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``procurement_modules``
packages and from ``procurement_kernel``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``procurement_modules.*.orm`` module.

    Kernel tables (users) are registered first; module tables carry foreign
    keys to them.  Idempotent.
    """
    import procurement_kernel.models  # noqa: F401
    # fmt: off
    import procurement_modules.vendor.orm  # noqa: F401
    import procurement_modules.requisition.orm  # noqa: F401
    import procurement_modules.approval.orm  # noqa: F401
    import procurement_modules.rfq.orm  # noqa: F401
    import procurement_modules.purchase_order.orm  # noqa: F401
    import procurement_modules.goods_receipt.orm  # noqa: F401
    import procurement_modules.invoice.orm  # noqa: F401
    # fmt: on

