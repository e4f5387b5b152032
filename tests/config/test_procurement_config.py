"""
Tests for procurement configuration: schema defaults and validation, YAML
loading, and parsing of approval workflows.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
import yaml

from procurement_config import ProcurementConfig, get_default_config, load_config, parse_config
from procurement_engines.routing import select_workflow
from procurement_kernel.domain.capabilities import Role


class TestSchema:
    def test_defaults(self):
        config = ProcurementConfig.with_defaults()
        assert config.match_tolerance_percent == Decimal("2")
        assert config.grn_match_window == 25
        assert config.default_due_window_days == 30
        assert config.due_payment_window_days_max == 365
        assert config.approval_workflows == ()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"match_tolerance_percent": Decimal("-1")},
            {"grn_match_window": 0},
            {"default_due_window_days": 0},
            {"default_due_window_days": 400},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValueError):
            ProcurementConfig(**overrides)

    def test_from_dict_coerces_tolerance(self):
        config = ProcurementConfig.from_dict({"match_tolerance_percent": 1.5})
        assert config.match_tolerance_percent == Decimal("1.5")

    def test_unknown_key_rejected(self):
        with pytest.raises(TypeError):
            ProcurementConfig.from_dict({"match_tolerence": 3})


class TestDefaultFile:
    @pytest.fixture(scope="class")
    def default_config(self):
        return get_default_config()

    def test_scalars(self, default_config):
        assert default_config.match_tolerance_percent == Decimal("2")
        assert default_config.rfq_default_validity_days == 30

    def test_seed_workflows(self, default_config):
        names = [w.name for w in default_config.approval_workflows]
        assert len(names) == 4
        emergency = next(w for w in default_config.approval_workflows if w.requisition_type)
        assert emergency.requisition_type == "EMERGENCY"
        assert [s.approver_role for s in emergency.stages] == [Role.OPERATIONS_MANAGER]

    @pytest.mark.parametrize(
        "amount, stage_count",
        [("100", 2), ("4999.99", 2), ("5000", 3), ("50000", 4), ("1000000", 4)],
    )
    def test_tiers_select_by_amount(self, default_config, amount, stage_count):
        chosen = select_workflow(default_config.approval_workflows, "STANDARD", Decimal(amount))
        assert len(chosen.stages) == stage_count


class TestLoader:
    def test_load_from_file(self, tmp_path):
        approver = uuid4()
        path = tmp_path / "procurement.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "match_tolerance_percent": "0.5",
                    "approval_workflows": [
                        {
                            "name": "Small",
                            "max_amount": 100,
                            "stages": [
                                {"stage": 2, "approver_role": "CFO"},
                                {"stage": 1, "approver_id": str(approver)},
                            ],
                        }
                    ],
                }
            ),
            encoding="utf-8",
        )

        config = load_config(path)

        assert config.match_tolerance_percent == Decimal("0.5")
        (workflow,) = config.approval_workflows
        assert workflow.max_amount == Decimal("100")
        assert [s.stage_number for s in workflow.stages] == [1, 2]
        assert workflow.stage(1).approver_id == approver
        assert workflow.stage(2).name == "Stage 2"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_empty_document_gives_defaults(self):
        assert parse_config(None) == ProcurementConfig()

    def test_unknown_role(self):
        with pytest.raises(ValueError):
            parse_config(
                {"approval_workflows": [{"name": "X", "stages": [{"stage": 1, "approver_role": "JANITOR"}]}]}
            )

    def test_workflow_without_stages(self):
        with pytest.raises(ValueError):
            parse_config({"approval_workflows": [{"name": "X", "stages": []}]})

    def test_inverted_amount_range(self):
        with pytest.raises(ValueError):
            parse_config(
                {
                    "approval_workflows": [
                        {
                            "name": "X",
                            "min_amount": 10,
                            "max_amount": 5,
                            "stages": [{"stage": 1, "approver_role": "CFO"}],
                        }
                    ]
                }
            )
