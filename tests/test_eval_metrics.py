"""Tests for eval/metrics.py - compute_metrics, EvalMetrics, format_metrics_summary."""

import skill_evals.eval.metrics as eval_metrics
import skill_evals.eval.runner as eval_runner


def _make_result(
    case_id: str,
    success: bool = False,
    error: str = None,
    failures: list = None,
    input_tokens: int = 100,
    output_tokens: int = 50,
    execution_time_ms: int = 1000,
    total_cost_usd: float = 0.0,
    duration_s: float = 1.0,
    skills_used: list = None,
    regression_status: str = "ok",
    metadata: dict = None,
) -> eval_runner.CaseResult:
    """Helper to create CaseResult objects for testing."""
    return eval_runner.CaseResult(
        case_id=case_id,
        run_id=f"run_{case_id}",
        success=success,
        error=error,
        failures=failures or [],
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        execution_time_ms=execution_time_ms,
        total_cost_usd=total_cost_usd,
        duration_s=duration_s,
        skills_used=skills_used or [],
        regression_status=regression_status,
        metadata=metadata or {},
    )


def test_compute_metrics_empty():
    m = eval_metrics.compute_metrics([])
    assert m.total_cases == 0
    assert m.success_rate == 0.0
    assert m.by_category == {}


def test_compute_metrics_counts():
    results = [
        _make_result("a", success=True, skills_used=["rwx:rwx"]),
        _make_result("b", failures=["has_task_lint: missing"], skills_used=["rwx:rwx"]),
        _make_result("c", error="agent timed out", regression_status=""),
        _make_result("d", failures=["input_tokens regressed"], regression_status="regressed"),
    ]
    m = eval_metrics.compute_metrics(results)
    assert m.total_cases == 4
    assert m.passed == 1
    assert m.failed == 2
    assert m.errored == 1
    assert m.regressed == 1
    # errored cases are excluded from the rate
    assert abs(m.success_rate - 1 / 3) < 1e-9
    assert m.skill_usage == {"rwx:rwx": 2}


def test_compute_metrics_averages():
    results = [
        _make_result("a", success=True, input_tokens=100, output_tokens=10, execution_time_ms=1000,
                     total_cost_usd=0.25, duration_s=2.0),
        _make_result("b", success=True, input_tokens=300, output_tokens=30, execution_time_ms=3000,
                     total_cost_usd=0.75, duration_s=4.0),
    ]
    m = eval_metrics.compute_metrics(results)
    assert m.total_input_tokens == 400
    assert m.avg_input_tokens == 200
    assert m.avg_output_tokens == 20
    assert m.avg_execution_time_ms == 2000
    assert m.total_cost_usd == 1.0
    assert m.total_duration_s == 6.0


def test_compute_metrics_by_category():
    results = [
        _make_result("a", success=True, metadata={"category": "create"}),
        _make_result("b", failures=["x"], metadata={"category": "create"}),
        _make_result("c", success=True, metadata={"category": "migrate"}),
    ]
    m = eval_metrics.compute_metrics(results)
    assert set(m.by_category) == {"create", "migrate"}
    assert m.by_category["create"].passed == 1
    assert m.by_category["create"].failed == 1
    assert m.by_category["migrate"].success_rate == 1.0


def test_single_category_has_no_breakdown():
    results = [_make_result("a", success=True), _make_result("b", success=True)]
    assert eval_metrics.compute_metrics(results).by_category == {}


def test_metrics_dict_round_trip():
    results = [
        _make_result("a", success=True, metadata={"category": "create"}),
        _make_result("b", success=True, metadata={"category": "migrate"}),
    ]
    m = eval_metrics.compute_metrics(results)
    d = m.to_dict()
    assert d["by_category"]["create"]["passed"] == 1
    assert eval_metrics.EvalMetrics.from_dict(d) == m


def test_format_metrics_summary():
    results = [
        _make_result("a", success=True, skills_used=["rwx:rwx"], metadata={"category": "create"}),
        _make_result("b", failures=["x"], metadata={"category": "migrate"}),
    ]
    text = eval_metrics.format_metrics_summary(eval_metrics.compute_metrics(results))
    assert "EVALUATION SUMMARY" in text
    assert "Total cases:     2" in text
    assert "Success rate:    50.0%" in text
    assert "rwx:rwx: 1/2" in text
    assert "create: 1/1 (100%)" in text
    assert "migrate: 0/1 (0%)" in text
