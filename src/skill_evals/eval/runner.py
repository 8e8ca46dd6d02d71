"""Evaluation runner that drives the agent over eval cases and collects results."""

from __future__ import annotations

import time
import uuid
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from .cases import EvalCase, EvalSuite
from . import artifacts

from skill_evals.assertions import assert_skill_used, check_config
from skill_evals.baseline import Baseline, BaselineStore, check_regression
from skill_evals.claude import run_claude
from skill_evals.errors import ConfigParseError, EvalError, IncompleteRunError
from skill_evals.pipeline import CONFIG_DIR, CONFIG_GLOB, config_paths, load_configs, merge_configs
from skill_evals.sandbox import Sandbox, cleanup_sandbox, materialize_project, materialize_workflow
from skill_evals.settings import EvalSettings
from skill_evals.trace import ExecutionResult
from skill_evals.validate import ValidationFailure, validate_configs

RunAgent = Callable[[str, Path, EvalSettings], ExecutionResult]
Validate = Callable[[Path, Sequence[str]], List[ValidationFailure]]


@dataclass
class CaseResult:
  """Result of running a single eval case.

    Attributes:
        case_id: ID of the case that was run.
        run_id: Unique run identifier.
        success: True when the run completed and every check passed.
        error: Set when the run could not be evaluated at all (launch failure,
            timeout, undecodable output, incomplete run).
        failures: Every failed check, one line each.
        tools_used: Distinct tools the agent used.
        skills_used: Distinct skills the agent invoked.
        input_tokens: Uncached input tokens.
        cache_creation_input_tokens: Tokens written to the prompt cache.
        cache_read_input_tokens: Tokens read from the prompt cache.
        output_tokens: Output tokens.
        execution_time_ms: Duration reported by the agent.
        total_cost_usd: Spend reported by the agent.
        duration_s: Wall-clock time of the whole case, including checks.
        regression_status: Baseline check outcome ("recorded", "no_baseline",
            "ok", "regressed"), empty when the check did not run.
        metadata: Any additional metadata from the case.
    """

  case_id: str
  run_id: str
  success: bool = False
  error: Optional[str] = None
  failures: List[str] = field(default_factory=list)
  tools_used: List[str] = field(default_factory=list)
  skills_used: List[str] = field(default_factory=list)
  input_tokens: int = 0
  cache_creation_input_tokens: int = 0
  cache_read_input_tokens: int = 0
  output_tokens: int = 0
  execution_time_ms: int = 0
  total_cost_usd: float = 0.0
  duration_s: float = 0.0
  regression_status: str = ""
  metadata: Dict[str, Any] = field(default_factory=dict)

  def to_dict(self) -> Dict[str, Any]:
    return asdict(self)

  def apply_snapshot(self, b: Baseline) -> None:
    self.tools_used = list(b.tools_used)
    self.skills_used = list(b.skills_used)
    self.input_tokens = b.input_tokens
    self.cache_creation_input_tokens = b.cache_creation_input_tokens
    self.cache_read_input_tokens = b.cache_read_input_tokens
    self.output_tokens = b.output_tokens
    self.execution_time_ms = b.execution_time_ms


class EvalRunner:
  """Runs eval cases and collects results.

  Cases share no mutable state: each gets its own work directory and its
  own agent process, so `run_suite` can fan them out over threads.
  """

  def __init__(
      self,
      fixtures_root: Path,
      settings: Optional[EvalSettings] = None,
      run_agent: Optional[RunAgent] = None,
      validate: Optional[Validate] = None,
      keep_sandbox: bool = False,
      print_mode: str = "standard",
  ):
    """Initialize the runner.

        Args:
            fixtures_root: Directory holding `projects/<name>/` trees and workflow files.
            settings: Harness settings; read from the environment when omitted.
            run_agent: Agent invocation; defaults to the headless CLI.
            validate: Config validator; defaults to running settings.validator.
            keep_sandbox: Keep work directories after the run for inspection.
            print_mode: "quiet", "standard" or "verbose".
        """
    self.fixtures_root = Path(fixtures_root)
    self.settings = settings or EvalSettings.from_env()
    self.run_agent = run_agent or self._default_run_agent
    self.validate = validate or self._default_validate
    self.keep_sandbox = keep_sandbox
    self.print_mode = print_mode
    self.store = BaselineStore(self.settings.baselines_dir)
    self.results: List[CaseResult] = []
    self._results_lock = threading.Lock()

  def _default_run_agent(self, prompt: str, work_dir: Path, settings: EvalSettings) -> ExecutionResult:
    return run_claude(prompt, work_dir, settings=settings, verbose=(self.print_mode == "verbose"))

  def _default_validate(self, work_dir: Path, command: Sequence[str]) -> List[ValidationFailure]:
    return validate_configs(work_dir, command, timeout_s=self.settings.timeout_s)

  def _materialize(self, case: EvalCase) -> Sandbox:
    if case.kind == "workflow":
      return materialize_workflow(self.fixtures_root, case.fixture)
    return materialize_project(self.fixtures_root, case.fixture)

  def run_case(self, case: EvalCase) -> CaseResult:
    """Run one case end to end; every check runs even after an earlier one fails."""
    run_id = uuid.uuid4().hex[:10]
    start_time = time.time()
    case_result = CaseResult(case_id=case.case_id, run_id=run_id, metadata=dict(case.metadata))
    sandbox: Optional[Sandbox] = None

    try:
      sandbox = self._materialize(case)
      result = self.run_agent(case.render_prompt(), sandbox.root, self.settings)
      evt = result.result_event()
      if evt is not None:
        case_result.total_cost_usd = evt.total_cost_usd

      self._save_artifacts(case, result)
      case_result.failures.extend(self._check_run(case, result, sandbox.root))

      try:
        report = check_regression(case.case_id, result, self.store, update=self.settings.update_baselines)
      except IncompleteRunError as e:
        case_result.apply_snapshot(e.partial)
        raise
      case_result.apply_snapshot(report.current)
      case_result.regression_status = report.status
      case_result.failures.extend(r.describe() for r in report.regressions)

    except (EvalError, OSError, ValueError) as e:
      case_result.error = str(e)

    finally:
      if sandbox and not self.keep_sandbox:
        cleanup_sandbox(sandbox)
      case_result.duration_s = time.time() - start_time

    case_result.success = case_result.error is None and not case_result.failures
    with self._results_lock:
      self.results.append(case_result)
    return case_result

  def _save_artifacts(self, case: EvalCase, result: ExecutionResult) -> None:
    artifacts.save_raw_output(result, case.case_id, self.settings.output_dir)
    if self.settings.info_dir is not None:
      artifacts.write_info_files(result, case.case_id, self.settings.info_dir, self.settings.report_cost)

  def _check_run(self, case: EvalCase, result: ExecutionResult, work_dir: Path) -> List[str]:
    failures: List[str] = []

    if case.skill:
      try:
        assert_skill_used(result, case.skill)
      except AssertionError as e:
        failures.append(str(e))

    if not config_paths(work_dir):
      failures.append(f"expected {CONFIG_DIR}/{CONFIG_GLOB} to exist, but no files found")
      return failures

    for failure in self.validate(work_dir, self.settings.validator):
      failures.append(f"validation failed: {failure.describe()}")

    try:
      merged = merge_configs(load_configs(work_dir))
    except ConfigParseError as e:
      failures.append(f"loading configs: {e}")
      return failures

    for outcome in check_config(merged, case.build_assertions()):
      failures.extend(f"{outcome.name}: {msg}" for msg in outcome.messages)
    return failures

  def _print_result(self, r: CaseResult, prefix: str = "") -> None:
    if self.print_mode == "quiet":
      return
    status = "PASS" if r.success else ("ERROR" if r.error else "FAIL")
    print(f"[eval] {prefix}{r.case_id}: {status} (tokens in={r.input_tokens} out={r.output_tokens}, "
          f"{r.duration_s:.1f}s)")
    if self.print_mode == "verbose":
      if r.error:
        print(f"[eval] Error: {r.error}")
      for f in r.failures:
        print(f"[eval]   - {f}")

  def run_suite(self, suite: EvalSuite, max_workers: int = 1) -> List[CaseResult]:
    """Run every case in a suite, in parallel when max_workers > 1.

    Results come back in suite order regardless of completion order.
    """
    self.results = []
    if max_workers <= 1:
      ordered = []
      for i, case in enumerate(suite.cases, start=1):
        if self.print_mode == "verbose":
          print(f"\n[eval] [{i}/{len(suite.cases)}] Running case: {case.case_id}")
        r = self.run_case(case)
        self._print_result(r)
        ordered.append(r)
      self.results = ordered
      return self.results

    if self.print_mode == "verbose":
      print(f"[eval] Running {len(suite.cases)} cases with {max_workers} workers")

    results_by_idx: Dict[int, CaseResult] = {}
    completed = 0
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
      futures = {executor.submit(self.run_case, case): idx for idx, case in enumerate(suite.cases)}
      for future in as_completed(futures):
        idx = futures[future]
        result = future.result()
        results_by_idx[idx] = result
        completed += 1
        self._print_result(result, prefix=f"[{completed}/{len(suite.cases)}] ")

    self.results = [results_by_idx[i] for i in range(len(suite.cases))]
    return self.results
