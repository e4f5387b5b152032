"""
Configuration Loader (``procurement_config.loader``).

Responsibility
--------------
Load a YAML procurement configuration file and parse it into a typed
``ProcurementConfig``.  Approval workflows are parsed into the routing
engine's ``WorkflowDef`` value objects.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required workflow/stage keys  -> ``KeyError`` propagates.
* Unknown role name  -> ``ValueError`` from ``Role(...)``.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any
from uuid import UUID

import yaml

from procurement_config.schema import ProcurementConfig
from procurement_engines.routing import StageDef, WorkflowDef
from procurement_kernel.domain.capabilities import Role
from procurement_kernel.logging_config import get_logger

logger = get_logger("config.loader")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "procurement.yaml"


def _optional_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


def parse_stage(data: dict[str, Any]) -> StageDef:
    role = data.get("approver_role")
    approver_id = data.get("approver_id")
    escalate_to_id = data.get("escalate_to_id")
    return StageDef(
        stage_number=int(data["stage"]),
        name=data.get("name", f"Stage {data['stage']}"),
        approver_role=Role(role) if role else None,
        approver_id=UUID(str(approver_id)) if approver_id else None,
        escalate_to_id=UUID(str(escalate_to_id)) if escalate_to_id else None,
    )


def parse_workflow(data: dict[str, Any]) -> WorkflowDef:
    stages = tuple(
        sorted((parse_stage(s) for s in data["stages"]), key=lambda s: s.stage_number)
    )
    if not stages:
        raise ValueError(f"Workflow {data['name']} has no stages")
    min_amount = _optional_decimal(data.get("min_amount"))
    max_amount = _optional_decimal(data.get("max_amount"))
    if min_amount is not None and max_amount is not None and min_amount > max_amount:
        raise ValueError(f"Workflow {data['name']}: min_amount cannot exceed max_amount")
    return WorkflowDef(
        workflow_id=None,
        name=data["name"],
        stages=stages,
        requisition_type=data.get("requisition_type"),
        min_amount=min_amount,
        max_amount=max_amount,
        is_active=bool(data.get("is_active", True)),
    )


def parse_config(data: dict[str, Any]) -> ProcurementConfig:
    data = dict(data or {})
    workflows = data.pop("approval_workflows", None) or []
    data["approval_workflows"] = tuple(parse_workflow(w) for w in workflows)
    return ProcurementConfig.from_dict(data)


def load_config(path: str | Path) -> ProcurementConfig:
    """Read and parse a YAML configuration file."""
    path = Path(path)
    with path.open(encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    logger.info("procurement_config_file_loaded", extra={"path": str(path)})
    return parse_config(data)


def get_default_config() -> ProcurementConfig:
    """Configuration shipped with the package."""
    return load_config(DEFAULT_CONFIG_PATH)
