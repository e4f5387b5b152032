"""
procurement_engines.routing -- approval routing decisions.

Responsibility:
    Pure selection logic behind requisition approval:

    * ``pick_stage_one_approver`` -- walk the stage-one route (department
      head of the requisition's department, then operations manager,
      procurement officer, CFO, CEO) and return the first active candidate.
    * ``pick_role_approver`` -- resolve a workflow stage that names a role.
    * ``select_workflow`` -- choose the approval workflow for a requisition
      by type and amount.

Architecture position:
    Engines -- pure, zero I/O.  The approval module loads candidates and
    workflows from the database and calls in here.

Invariants enforced:
    - Inactive users are never selected.
    - Candidate order is the caller's order, so the choice is deterministic.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from procurement_kernel.domain.capabilities import Role


@dataclass(frozen=True)
class RouteStep:
    role: Role
    same_department: bool = False


STAGE_ONE_ROUTE: tuple[RouteStep, ...] = (
    RouteStep(Role.DEPARTMENT_HEAD, same_department=True),
    RouteStep(Role.OPERATIONS_MANAGER),
    RouteStep(Role.PROCUREMENT_OFFICER),
    RouteStep(Role.CFO),
    RouteStep(Role.CEO),
)

ROUTING_ROLES: tuple[Role, ...] = tuple(step.role for step in STAGE_ONE_ROUTE)


@dataclass(frozen=True)
class ApproverCandidate:
    user_id: UUID
    role: Role
    department: str | None
    is_active: bool = True


def _matches(step: RouteStep, candidate: ApproverCandidate, department: str | None) -> bool:
    if not candidate.is_active or candidate.role is not step.role:
        return False
    if step.same_department:
        return department is not None and candidate.department == department
    return True


def pick_stage_one_approver(
    candidates: Sequence[ApproverCandidate],
    department: str | None,
) -> ApproverCandidate | None:
    for step in STAGE_ONE_ROUTE:
        for candidate in candidates:
            if _matches(step, candidate, department):
                return candidate
    return None


def pick_role_approver(
    candidates: Sequence[ApproverCandidate],
    role: Role,
    department: str | None,
) -> ApproverCandidate | None:
    """
    Resolve a workflow stage expressed as a role.

    A DEPARTMENT_HEAD stage follows the full stage-one route so that a
    department without a head still reaches an approver.
    """
    if role is Role.DEPARTMENT_HEAD:
        return pick_stage_one_approver(candidates, department)
    for candidate in candidates:
        if candidate.is_active and candidate.role is role:
            return candidate
    return None


# ---------------------------------------------------------------------------
# Workflow selection
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StageDef:
    stage_number: int
    name: str
    approver_role: Role | None = None
    approver_id: UUID | None = None
    escalate_to_id: UUID | None = None


@dataclass(frozen=True)
class WorkflowDef:
    workflow_id: UUID | None
    name: str
    stages: tuple[StageDef, ...]
    requisition_type: str | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    is_active: bool = True

    def applies_to(self, requisition_type: str, amount: Decimal) -> bool:
        if not self.is_active:
            return False
        if self.requisition_type is not None and self.requisition_type != requisition_type:
            return False
        if self.min_amount is not None and self.min_amount > amount:
            return False
        if self.max_amount is not None and self.max_amount < amount:
            return False
        return True

    def stage(self, stage_number: int) -> StageDef | None:
        for stage in self.stages:
            if stage.stage_number == stage_number:
                return stage
        return None


def select_workflow(
    workflows: Sequence[WorkflowDef],
    requisition_type: str,
    amount: Decimal,
) -> WorkflowDef | None:
    """
    Type-specific workflows beat type-less ones; among equals the highest
    ``min_amount`` wins, so a boundary amount (exactly 5000) lands in the
    upper tier.
    """
    matches = [w for w in workflows if w.applies_to(requisition_type, amount)]
    if not matches:
        return None
    matches.sort(
        key=lambda w: (
            w.requisition_type is not None,
            w.min_amount if w.min_amount is not None else Decimal("-Infinity"),
        ),
        reverse=True,
    )
    return matches[0]

