"""Evaluation harness for agent skills that generate pipeline configs."""

from .assertions import (
    ConfigAssertion,
    ProbeReporter,
    StrictReporter,
    assert_config,
    check_config,
    clones_repo,
    either,
    has_conditional,
    has_env_var,
    has_package,
    has_run_containing,
    has_secret_ref,
    has_service,
    has_task,
    installs_go,
    installs_node,
    installs_python,
    installs_rust,
    min_task_count,
    task_depends_on,
)
from .baseline import Baseline, BaselineStore, assert_no_regression, check_regression
from .claude import find_repo_root, run_claude
from .pipeline import PipelineConfig, Task, load_configs, merge_configs, parse_config
from .settings import EvalSettings
from .trace import ExecutionResult, parse_trace

__all__ = [
    "ConfigAssertion",
    "ProbeReporter",
    "StrictReporter",
    "assert_config",
    "check_config",
    "clones_repo",
    "either",
    "has_conditional",
    "has_env_var",
    "has_package",
    "has_run_containing",
    "has_secret_ref",
    "has_service",
    "has_task",
    "installs_go",
    "installs_node",
    "installs_python",
    "installs_rust",
    "min_task_count",
    "task_depends_on",
    "Baseline",
    "BaselineStore",
    "assert_no_regression",
    "check_regression",
    "find_repo_root",
    "run_claude",
    "PipelineConfig",
    "Task",
    "load_configs",
    "merge_configs",
    "parse_config",
    "EvalSettings",
    "ExecutionResult",
    "parse_trace",
]
