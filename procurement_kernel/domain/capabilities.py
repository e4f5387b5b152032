"""
Capabilities -- table-driven permission predicate.

Responsibility:
    Map each user role to the set of procurement capabilities it holds, and
    provide the single predicate every service calls before a privileged
    operation.  Ownership rules (a requester editing their own requisition,
    an approver acting on their own stage) are layered on top by the owning
    service; this table covers only role-level authority.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Failure modes:
    - ``require_capability`` raises ``ForbiddenError`` ("Not allowed"); the
      message never reveals which capability was missing.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from uuid import UUID

from procurement_kernel.exceptions import ForbiddenError
from procurement_kernel.logging_config import get_logger

logger = get_logger("domain.capabilities")


class Role(Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    CEO = "CEO"
    CFO = "CFO"
    OPERATIONS_MANAGER = "OPERATIONS_MANAGER"
    PROCUREMENT_OFFICER = "PROCUREMENT_OFFICER"
    DEPARTMENT_HEAD = "DEPARTMENT_HEAD"
    ACCOUNTANT = "ACCOUNTANT"
    WAREHOUSE_MANAGER = "WAREHOUSE_MANAGER"
    SAFETY_OFFICER = "SAFETY_OFFICER"
    EMPLOYEE = "EMPLOYEE"
    VENDOR = "VENDOR"


class Capability(Enum):
    MANAGE_REQUISITIONS = "ManageRequisitions"
    MANAGE_VENDORS = "ManageVendors"
    MANAGE_RFQS = "ManageRFQs"
    MANAGE_POS = "ManagePOs"
    MANAGE_RECEIVING = "ManageReceiving"
    MANAGE_INVOICES = "ManageInvoices"
    PROCESS_PAYMENTS = "ProcessPayments"
    MANAGE_APPROVALS = "ManageApprovals"


_EXECUTIVES = frozenset({Role.SUPER_ADMIN, Role.CEO, Role.CFO})

_CAPABILITY_ROLES: dict[Capability, frozenset[Role]] = {
    Capability.MANAGE_REQUISITIONS: _EXECUTIVES
    | {Role.PROCUREMENT_OFFICER, Role.OPERATIONS_MANAGER},
    Capability.MANAGE_VENDORS: _EXECUTIVES | {Role.PROCUREMENT_OFFICER},
    Capability.MANAGE_RFQS: _EXECUTIVES
    | {Role.PROCUREMENT_OFFICER, Role.OPERATIONS_MANAGER},
    Capability.MANAGE_POS: _EXECUTIVES
    | {Role.PROCUREMENT_OFFICER, Role.OPERATIONS_MANAGER, Role.WAREHOUSE_MANAGER},
    Capability.MANAGE_RECEIVING: _EXECUTIVES
    | {
        Role.PROCUREMENT_OFFICER,
        Role.OPERATIONS_MANAGER,
        Role.WAREHOUSE_MANAGER,
        Role.SAFETY_OFFICER,
    },
    Capability.MANAGE_INVOICES: _EXECUTIVES
    | {Role.ACCOUNTANT, Role.PROCUREMENT_OFFICER},
    Capability.PROCESS_PAYMENTS: _EXECUTIVES | {Role.ACCOUNTANT},
    Capability.MANAGE_APPROVALS: _EXECUTIVES,
}

ROLE_CAPABILITIES: MappingProxyType[Role, frozenset[Capability]] = MappingProxyType(
    {
        role: frozenset(cap for cap, roles in _CAPABILITY_ROLES.items() if role in roles)
        for role in Role
    }
)


@dataclass(frozen=True)
class Actor:
    """Caller identity supplied by the (external) authentication layer."""

    user_id: UUID
    role: Role
    vendor_id: UUID | None = None

    def can(self, capability: Capability) -> bool:
        return capability in ROLE_CAPABILITIES[self.role]

    @property
    def is_super_admin(self) -> bool:
        return self.role is Role.SUPER_ADMIN


def capabilities_for(role: Role) -> frozenset[Capability]:
    return ROLE_CAPABILITIES[role]


def require_capability(actor: Actor, capability: Capability) -> None:
    """Raise ``ForbiddenError`` unless ``actor``'s role grants ``capability``."""
    if not actor.can(capability):
        logger.warning(
            "capability_denied",
            extra={
                "actor_id": str(actor.user_id),
                "role": actor.role.value,
                "capability": capability.value,
            },
        )
        raise ForbiddenError()
