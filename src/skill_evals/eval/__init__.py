"""Eval suites for agent skills.

This module runs eval cases against fixture projects, collects per-case
results and metrics, and writes suite reports.
"""

from .cases import EvalCase, EvalSuite, build_assertion, load_suite
from .runner import EvalRunner, CaseResult
from .metrics import compute_metrics, EvalMetrics, format_metrics_summary
from .report import generate_report, write_report

__all__ = [
    "EvalCase",
    "EvalSuite",
    "build_assertion",
    "load_suite",
    "EvalRunner",
    "CaseResult",
    "compute_metrics",
    "EvalMetrics",
    "format_metrics_summary",
    "generate_report",
    "write_report",
]
