"""
Procurement Configuration Schema.

Defines the structure and defaults of procurement settings.  Values are
loaded from YAML (``procurement_config.loader``) at startup.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Self

from procurement_engines.routing import WorkflowDef
from procurement_kernel.logging_config import get_logger

logger = get_logger("config.schema")


@dataclass
class ProcurementConfig:
    """
    Configuration schema for the procurement engine.

        config = ProcurementConfig(match_tolerance_percent=Decimal("1.5"))
    """

    # Three-way match
    match_tolerance_percent: Decimal = Decimal("2")
    grn_match_window: int = 25

    # Payments
    default_due_window_days: int = 30
    due_payment_window_days_max: int = 365

    # RFQs
    rfq_default_validity_days: int = 30

    # Approval routing
    approval_workflows: tuple[WorkflowDef, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.match_tolerance_percent < 0:
            logger.warning(
                "procurement_config_invalid_tolerance",
                extra={"match_tolerance_percent": str(self.match_tolerance_percent)},
            )
            raise ValueError("match_tolerance_percent cannot be negative")
        if self.grn_match_window < 1:
            raise ValueError("grn_match_window must be at least 1")
        if not 1 <= self.default_due_window_days <= self.due_payment_window_days_max:
            raise ValueError("default_due_window_days must be within the allowed window")
        logger.info(
            "procurement_config_initialized",
            extra={
                "match_tolerance_percent": str(self.match_tolerance_percent),
                "grn_match_window": self.grn_match_window,
                "approval_workflows_count": len(self.approval_workflows),
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with built-in defaults and no approval workflows."""
        logger.info("procurement_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from an already-parsed mapping."""
        logger.info(
            "procurement_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)
        if "match_tolerance_percent" in data:
            data["match_tolerance_percent"] = Decimal(str(data["match_tolerance_percent"]))
        if "approval_workflows" in data:
            data["approval_workflows"] = tuple(data["approval_workflows"])
        return cls(**data)
