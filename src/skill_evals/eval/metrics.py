"""Metrics computation for eval results."""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List

from .runner import CaseResult


@dataclass
class EvalMetrics:
  """Aggregate metrics from an eval run.

    Attributes:
        total_cases: Total number of cases evaluated.
        passed: Cases where the run completed and every check passed.
        failed: Cases with at least one failed check.
        errored: Cases that could not be evaluated (launch, decode, timeout, incomplete run).
        regressed: Cases whose baseline check reported a regression.
        success_rate: passed / (passed + failed).
        avg_input_tokens: Average uncached input tokens per case.
        avg_output_tokens: Average output tokens per case.
        total_input_tokens: Sum of input tokens.
        total_output_tokens: Sum of output tokens.
        total_cost_usd: Sum of reported spend.
        avg_execution_time_ms: Average agent-reported duration.
        total_duration_s: Total wall-clock time for all cases.
        skill_usage: How many cases invoked each skill.
        by_category: Metrics broken down by category (if metadata includes 'category').
    """

  total_cases: int = 0
  passed: int = 0
  failed: int = 0
  errored: int = 0
  regressed: int = 0
  success_rate: float = 0.0
  avg_input_tokens: float = 0.0
  avg_output_tokens: float = 0.0
  total_input_tokens: int = 0
  total_output_tokens: int = 0
  total_cost_usd: float = 0.0
  avg_execution_time_ms: float = 0.0
  total_duration_s: float = 0.0
  skill_usage: Dict[str, int] = field(default_factory=dict)
  by_category: Dict[str, "EvalMetrics"] = field(default_factory=dict)

  def to_dict(self) -> Dict[str, Any]:
    d = asdict(self)
    d["by_category"] = {k: v.to_dict() for k, v in self.by_category.items()}
    return d

  @classmethod
  def from_dict(cls, d: Dict[str, Any]) -> "EvalMetrics":
    d = dict(d)
    by_category = {k: cls.from_dict(v) for k, v in d.pop("by_category", {}).items()}
    return cls(**d, by_category=by_category)


def _flat_metrics(results: List[CaseResult]) -> EvalMetrics:
  if not results:
    return EvalMetrics()

  metrics = EvalMetrics(total_cases=len(results))
  total_exec_ms = 0

  for r in results:
    if r.error:
      metrics.errored += 1
    elif r.success:
      metrics.passed += 1
    else:
      metrics.failed += 1
    if r.regression_status == "regressed":
      metrics.regressed += 1

    metrics.total_input_tokens += r.input_tokens
    metrics.total_output_tokens += r.output_tokens
    metrics.total_cost_usd += r.total_cost_usd
    metrics.total_duration_s += r.duration_s
    total_exec_ms += r.execution_time_ms
    for skill in r.skills_used:
      metrics.skill_usage[skill] = metrics.skill_usage.get(skill, 0) + 1

  n = len(results)
  metrics.avg_input_tokens = metrics.total_input_tokens / n
  metrics.avg_output_tokens = metrics.total_output_tokens / n
  metrics.avg_execution_time_ms = total_exec_ms / n

  tested = metrics.passed + metrics.failed
  if tested > 0:
    metrics.success_rate = metrics.passed / tested
  return metrics


def compute_metrics(results: List[CaseResult]) -> EvalMetrics:
  """Compute aggregate metrics from a list of case results.

    Args:
        results: List of CaseResult objects from an eval run.

    Returns:
        EvalMetrics with aggregate statistics, broken down by category.
    """
  metrics = _flat_metrics(results)

  by_category: Dict[str, List[CaseResult]] = {}
  for r in results:
    by_category.setdefault(r.metadata.get("category", "uncategorized"), []).append(r)
  if len(by_category) > 1:
    metrics.by_category = {cat: _flat_metrics(rs) for cat, rs in by_category.items()}
  return metrics


def format_metrics_summary(metrics: EvalMetrics) -> str:
  """Format metrics as a human-readable summary string."""
  lines = [
      "=" * 60,
      "EVALUATION SUMMARY",
      "=" * 60,
      f"Total cases:     {metrics.total_cases}",
      f"Passed:          {metrics.passed}",
      f"Failed:          {metrics.failed}",
      f"Errored:         {metrics.errored}",
      f"Regressed:       {metrics.regressed}",
      f"Success rate:    {metrics.success_rate:.1%}",
      "-" * 40,
      f"Avg input tok:   {metrics.avg_input_tokens:.0f}",
      f"Avg output tok:  {metrics.avg_output_tokens:.0f}",
      f"Avg agent time:  {metrics.avg_execution_time_ms / 1000:.1f}s",
      f"Total cost:      ${metrics.total_cost_usd:.4f}",
      f"Total duration:  {metrics.total_duration_s:.1f}s",
  ]

  if metrics.skill_usage:
    lines.append("-" * 40)
    lines.append("SKILLS USED:")
    for skill, count in sorted(metrics.skill_usage.items()):
      lines.append(f"  {skill}: {count}/{metrics.total_cases}")

  if metrics.by_category:
    lines.append("-" * 40)
    lines.append("BY CATEGORY:")
    for cat, cat_metrics in sorted(metrics.by_category.items()):
      lines.append(f"  {cat}: {cat_metrics.passed}/{cat_metrics.total_cases} ({cat_metrics.success_rate:.0%})")

  lines.append("=" * 60)
  return "\n".join(lines)
