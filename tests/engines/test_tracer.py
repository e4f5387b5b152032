"""Tests for engine invocation tracing."""

from decimal import Decimal
from uuid import UUID

import pytest

from procurement_engines.reconciliation import InspectedLine, acceptance_outcome, compute_document_totals
from procurement_engines.tracer import compute_input_fingerprint
from procurement_kernel.exceptions import QuantityInvariantViolation


class TestFingerprint:
    def test_deterministic(self):
        kwargs = {"line_totals": [Decimal("1.50"), Decimal("2")]}
        assert compute_input_fingerprint(("line_totals",), kwargs) == compute_input_fingerprint(
            ("line_totals",), dict(kwargs)
        )
        assert len(compute_input_fingerprint(("line_totals",), kwargs)) == 16

    def test_dict_key_order_irrelevant(self):
        a = UUID(int=1)
        b = UUID(int=2)
        first = compute_input_fingerprint(("m",), {"m": {a: Decimal("1"), b: Decimal("2")}})
        second = compute_input_fingerprint(("m",), {"m": {b: Decimal("2"), a: Decimal("1")}})
        assert first == second

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(("x",), {"x": None})

    def test_sequence_order_matters(self):
        assert compute_input_fingerprint(("s",), {"s": [1, 2]}) != compute_input_fingerprint(
            ("s",), {"s": [2, 1]}
        )


class TestTracedEngine:
    def test_trace_record_emitted(self, captured_logs):
        compute_document_totals(line_totals=[Decimal("10")])
        traces = [r for r in captured_logs() if r["message"] == "PROCUREMENT_ENGINE_TRACE"]
        assert traces
        assert traces[-1]["engine_name"] == "reconciliation.totals"
        assert traces[-1]["engine_version"] == "1.0"
        assert len(traces[-1]["input_fingerprint"]) == 16

    def test_enum_result_recorded_as_outcome(self, captured_logs):
        acceptance_outcome(lines=[InspectedLine(Decimal("5"), Decimal("5"), Decimal("0"))])
        trace = [r for r in captured_logs() if r["message"] == "PROCUREMENT_ENGINE_TRACE"][-1]
        assert trace["engine_name"] == "reconciliation.acceptance"
        assert trace["outcome"] == "ACCEPTED"
        assert "duration_ms" in trace

    def test_refused_input_traced_with_error_code(self, captured_logs):
        with pytest.raises(QuantityInvariantViolation):
            acceptance_outcome(lines=[InspectedLine(Decimal("5"), Decimal("3"), Decimal("1"))])
        trace = [r for r in captured_logs() if r["message"] == "PROCUREMENT_ENGINE_TRACE"][-1]
        assert trace["outcome"] == "error"
        assert trace["error_code"] == "QUANTITY_INVARIANT_VIOLATION"

    def test_decimal_scale_changes_fingerprint(self):
        assert compute_input_fingerprint(("q",), {"q": Decimal("1.5")}) != compute_input_fingerprint(
            ("q",), {"q": Decimal("1.50")}
        )
