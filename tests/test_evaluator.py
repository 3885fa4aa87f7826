# =============================================================================
# Unit Tests — Branch Evaluator
# =============================================================================

from __future__ import annotations

import pytest

from bizplan.branching.evaluator import (
    And,
    Compare,
    Membership,
    evaluate,
    parse_condition,
    referenced_fields,
)
from bizplan.errors import ConditionEvaluationError


class TestEquality:
    def test_equal_string(self):
        assert evaluate("business_path == 'existing'", {"business_path": "existing"})

    def test_not_equal(self):
        assert evaluate("business_path != 'existing'", {"business_path": "new"})

    def test_strict_operators_behave_like_loose(self):
        answers = {"business_path": "new"}
        assert evaluate("business_path === 'new'", answers)
        assert not evaluate("business_path !== 'new'", answers)

    def test_context_prefix_is_ignored(self):
        assert evaluate("context.business_path == 'new'", {"business_path": "new"})

    def test_missing_answer_is_not_equal(self):
        assert not evaluate("business_path == 'new'", {})
        assert evaluate("business_path != 'existing'", {})

    def test_null_literal(self):
        assert evaluate("licenses_needed != null", {"licenses_needed": "GST"})
        assert evaluate("licenses_needed == null", {})

    def test_numeric_string_answer(self):
        assert evaluate("years_experience == 0", {"years_experience": "0"})
        assert evaluate("years_experience != '0'", {"years_experience": 5})


class TestMembership:
    def test_in_list(self):
        cond = "customer_type in ['b2b', 'b2b2c', 'b2g']"
        assert evaluate(cond, {"customer_type": "b2b"})
        assert not evaluate(cond, {"customer_type": "b2c"})

    def test_not_in_list(self):
        assert evaluate("customer_type not in ['b2c']", {"customer_type": "b2b"})

    def test_multiselect_answer_matches_any(self):
        cond = "target_regions in ['europe', 'usa']"
        assert evaluate(cond, {"target_regions": ["asia", "usa"]})
        assert not evaluate(cond, {"target_regions": ["asia"]})


class TestBooleanOperators:
    def test_and_or_precedence(self):
        cond = "a == 1 or b == 2 and c == 3"
        assert evaluate(cond, {"a": 1})
        assert not evaluate(cond, {"b": 2, "c": 4})

    def test_symbolic_operators(self):
        assert evaluate("a == 'x' && !(b == 'y')", {"a": "x", "b": "z"})
        assert evaluate("a == 'q' || b == 'y'", {"b": "y"})

    def test_parentheses(self):
        assert not evaluate("(a == 1 or b == 2) and c == 3", {"a": 1})

    def test_parse_builds_ast(self):
        node = parse_condition("a == 'x' and b in [1, 2]")
        assert node == And((Compare("a", False, "x"), Membership("b", False, (1, 2))))


class TestFailurePolicy:
    def test_empty_condition_always_applies(self):
        assert evaluate(None, {})
        assert evaluate("   ", {})

    def test_unparsable_condition_fails_open(self):
        assert evaluate("business_path ==", {}) is True

    def test_on_error_false_for_selection_rules(self):
        assert evaluate("customer_type >< 'b2b'", {}, on_error=False) is False

    def test_host_code_is_never_executed(self):
        assert evaluate("__import__('os').system('true')", {}, on_error=False) is False

    def test_parse_condition_raises(self):
        with pytest.raises(ConditionEvaluationError):
            parse_condition("a in 'x'")


class TestReferencedFields:
    def test_collects_top_level_ids(self):
        fields = referenced_fields(
            "context.customer_type in ['b2b'] and not (answers.expansion_plan == 'no')"
        )
        assert fields == {"customer_type", "expansion_plan"}

    def test_raises_on_bad_syntax(self):
        with pytest.raises(ConditionEvaluationError):
            referenced_fields("== 'x'")
