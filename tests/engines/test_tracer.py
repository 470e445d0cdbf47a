"""Tests for the engine invocation tracer."""

from decimal import Decimal

from assessment_engines.costing import cost
from assessment_engines.tracer import compute_input_fingerprint, traced_engine
from assessment_kernel.domain.line_items import Quantities


class TestInputFingerprint:

    def test_fingerprint_is_deterministic(self):
        args = {"a": Decimal("1.5"), "b": {"y": 2, "x": 1}}
        assert compute_input_fingerprint(("a", "b"), args) == compute_input_fingerprint(("a", "b"), args)

    def test_dict_key_order_does_not_matter(self):
        first = compute_input_fingerprint(("b",), {"b": {"x": 1, "y": 2}})
        second = compute_input_fingerprint(("b",), {"b": {"y": 2, "x": 1}})
        assert first == second

    def test_missing_field_recorded_as_null(self):
        assert compute_input_fingerprint(("missing",), {}) == compute_input_fingerprint(
            ("missing",), {"missing": None}
        )

    def test_different_rates_change_fingerprint(self, rate_set):
        quantities = Quantities(labour_hours=Decimal("1"))
        first = compute_input_fingerprint(("quantities", "rate_set"), {"quantities": quantities, "rate_set": rate_set})
        second = compute_input_fingerprint(("quantities", "rate_set"), {"quantities": quantities, "rate_set": None})
        assert first != second


class TestTracedEngine:

    def test_decorated_function_result_unchanged(self):
        @traced_engine("probe", "0.1", fingerprint_fields=("x",))
        def double(x):
            return x * 2

        assert double(21) == 42
        assert double.__name__ == "double"

    def test_trace_emitted_for_costing(self, captured_logs, rate_set):
        cost("A", Quantities(labour_hours=Decimal("1")), None, rate_set)

        traces = [
            r for r in captured_logs()
            if r["message"] == "ASSESSMENT_ENGINE_TRACE" and r["engine_name"] == "costing"
        ]
        assert len(traces) == 1
        assert traces[0]["engine_version"] == "1.0"
        assert traces[0]["trace_type"] == "ASSESSMENT_ENGINE_TRACE"
        assert "duration_ms" in traces[0]

    def test_same_inputs_same_trace_fingerprint(self, captured_logs, rate_set):
        quantities = Quantities(labour_hours=Decimal("1"))
        cost("A", quantities, None, rate_set)
        cost("A", quantities, None, rate_set)

        fingerprints = {
            r["input_fingerprint"] for r in captured_logs()
            if r["message"] == "ASSESSMENT_ENGINE_TRACE"
        }
        assert len(fingerprints) == 1
