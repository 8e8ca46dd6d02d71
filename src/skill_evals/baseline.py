"""Per-test performance baselines and regression checks."""

from __future__ import annotations

import json
import re
import warnings
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from .errors import BaselineError, RegressionError

if TYPE_CHECKING:
  from .trace import ExecutionResult


@dataclass
class Baseline:
  """Performance snapshot of one run of one named test.

    Attributes:
        input_tokens: Uncached input tokens reported by the result event.
        cache_creation_input_tokens: Tokens written to the prompt cache.
        cache_read_input_tokens: Tokens served from the prompt cache.
        output_tokens: Output tokens.
        execution_time_ms: Wall-clock duration reported by the agent.
        tools_used: Distinct tool names, in order of first use.
        skills_used: Distinct skill names, in order of first use.
    """

  input_tokens: int = 0
  cache_creation_input_tokens: int = 0
  cache_read_input_tokens: int = 0
  output_tokens: int = 0
  execution_time_ms: int = 0
  tools_used: List[str] = field(default_factory=list)
  skills_used: List[str] = field(default_factory=list)

  def to_dict(self) -> Dict[str, Any]:
    return asdict(self)

  @classmethod
  def from_dict(cls, d: Dict[str, Any]) -> "Baseline":
    return cls(
        input_tokens=int(d.get("input_tokens", 0)),
        cache_creation_input_tokens=int(d.get("cache_creation_input_tokens", 0)),
        cache_read_input_tokens=int(d.get("cache_read_input_tokens", 0)),
        output_tokens=int(d.get("output_tokens", 0)),
        execution_time_ms=int(d.get("execution_time_ms", 0)),
        tools_used=list(d.get("tools_used") or []),
        skills_used=list(d.get("skills_used") or []),
    )

  def metric(self, name: str) -> int:
    return int(getattr(self, name))


def safe_test_name(test_name: str) -> str:
  """Make a test name usable as a single file name."""
  return re.sub(r"[\\/:\s]+", "_", test_name).strip("_") or "unnamed"


class BaselineStore:
  """One JSON file per test name under `root`."""

  def __init__(self, root: Path):
    self.root = Path(root)

  def path(self, test_name: str) -> Path:
    return self.root / f"{safe_test_name(test_name)}.json"

  def load(self, test_name: str) -> Optional[Baseline]:
    """Return the stored baseline, or None when none was recorded."""
    path = self.path(test_name)
    try:
      text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
      return None
    except OSError as e:
      raise BaselineError(f"reading baseline {path}: {e}") from e
    try:
      data = json.loads(text)
    except json.JSONDecodeError as e:
      raise BaselineError(f"parsing baseline {path}: {e}") from e
    if not isinstance(data, dict):
      raise BaselineError(f"parsing baseline {path}: expected a JSON object")
    try:
      return Baseline.from_dict(data)
    except (TypeError, ValueError) as e:
      raise BaselineError(f"parsing baseline {path}: {e}") from e

  def save(self, test_name: str, baseline: Baseline) -> Path:
    path = self.path(test_name)
    try:
      path.parent.mkdir(parents=True, exist_ok=True)
      with path.open("w", encoding="utf-8") as f:
        json.dump(baseline.to_dict(), f, indent=2, sort_keys=True)
        f.write("\n")
    except OSError as e:
      raise BaselineError(f"writing baseline {path}: {e}") from e
    return path


@dataclass(frozen=True)
class Threshold:
  metric: str
  max_increase: float


DEFAULT_THRESHOLDS = (
    Threshold("input_tokens", 0.20),
    Threshold("output_tokens", 0.30),
    Threshold("execution_time_ms", 0.50),
)


@dataclass
class Regression:
  metric: str
  baseline: int
  current: int
  increase: float
  max_increase: float

  def describe(self) -> str:
    return (f"{self.metric} regressed: baseline={self.baseline}, current={self.current} "
            f"({self.increase * 100:.0f}% increase, max allowed {self.max_increase * 100:.0f}%)")


def compare_baselines(
    previous: Baseline,
    current: Baseline,
    thresholds: Sequence[Threshold] = DEFAULT_THRESHOLDS,
) -> List[Regression]:
  """Return every metric whose relative increase exceeds its threshold.

  A zero baseline value has no meaningful relative change and is skipped.
  """
  regressions = []
  for th in thresholds:
    base = previous.metric(th.metric)
    cur = current.metric(th.metric)
    if base == 0:
      continue
    increase = (cur - base) / base
    if increase > th.max_increase:
      regressions.append(Regression(th.metric, base, cur, increase, th.max_increase))
  return regressions


@dataclass
class RegressionReport:
  """Outcome of a regression check.

    Attributes:
        test_name: Name the baseline is keyed by.
        status: "recorded", "no_baseline", "ok" or "regressed".
        current: Snapshot of the run being checked.
        previous: Stored snapshot, when one existed.
        regressions: Metrics that exceeded their threshold.
    """

  test_name: str
  status: str
  current: Baseline
  previous: Optional[Baseline] = None
  regressions: List[Regression] = field(default_factory=list)

  @property
  def passed(self) -> bool:
    return self.status != "regressed"


def check_regression(
    test_name: str,
    result: "ExecutionResult",
    store: BaselineStore,
    update: bool = False,
    thresholds: Sequence[Threshold] = DEFAULT_THRESHOLDS,
) -> RegressionReport:
  """Compare a run against its stored baseline, or record it in update mode.

  Raises IncompleteRunError when the run has no terminal result event.
  """
  current = result.summary()

  if update:
    store.save(test_name, current)
    print(f"[baseline] updated baseline for {test_name}")
    return RegressionReport(test_name=test_name, status="recorded", current=current)

  previous = store.load(test_name)
  if previous is None:
    warnings.warn(
        f"no baseline found for {test_name}; skipping regression check (record one in update mode)",
        UserWarning,
    )
    return RegressionReport(test_name=test_name, status="no_baseline", current=current)

  regressions = compare_baselines(previous, current, thresholds)
  return RegressionReport(
      test_name=test_name,
      status="regressed" if regressions else "ok",
      current=current,
      previous=previous,
      regressions=regressions,
  )


def assert_no_regression(
    test_name: str,
    result: "ExecutionResult",
    store: BaselineStore,
    update: bool = False,
    thresholds: Sequence[Threshold] = DEFAULT_THRESHOLDS,
) -> RegressionReport:
  report = check_regression(test_name, result, store, update=update, thresholds=thresholds)
  if not report.passed:
    raise RegressionError(test_name, report.regressions)
  return report
