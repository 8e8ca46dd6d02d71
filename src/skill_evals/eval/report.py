"""Report generation for eval suite runs."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .runner import CaseResult
from .metrics import EvalMetrics, compute_metrics


@dataclass
class EvalReport:
  """Complete report of one suite run.

    Attributes:
        suite_name: Name of the suite.
        timestamp: ISO timestamp when the report was generated.
        metrics: Aggregate metrics.
        results: Per-case results.
        config: Settings used for the run.
    """

  suite_name: str
  timestamp: str
  metrics: EvalMetrics
  results: List[CaseResult]
  config: Dict[str, Any]

  def to_dict(self) -> Dict[str, Any]:
    return {
        "suite_name": self.suite_name,
        "timestamp": self.timestamp,
        "metrics": self.metrics.to_dict(),
        "results": [r.to_dict() for r in self.results],
        "config": self.config,
    }


def generate_report(
    suite_name: str,
    results: List[CaseResult],
    config: Optional[Dict[str, Any]] = None,
) -> EvalReport:
  return EvalReport(
      suite_name=suite_name,
      timestamp=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
      metrics=compute_metrics(results),
      results=results,
      config=config or {},
  )


def write_report(report: EvalReport, path: Path, pretty: bool = True) -> None:
  path = Path(path).expanduser().resolve()
  path.parent.mkdir(parents=True, exist_ok=True)

  with path.open("w", encoding="utf-8") as f:
    if pretty:
      json.dump(report.to_dict(), f, indent=2, ensure_ascii=False)
    else:
      json.dump(report.to_dict(), f, ensure_ascii=False)
    f.write("\n")


def load_report(path: Path) -> EvalReport:
  path = Path(path).expanduser().resolve()
  with path.open("r", encoding="utf-8") as f:
    data = json.load(f)

  return EvalReport(
      suite_name=data.get("suite_name", "unknown"),
      timestamp=data.get("timestamp", ""),
      metrics=EvalMetrics.from_dict(data.get("metrics", {})),
      results=[CaseResult(**r) for r in data.get("results", [])],
      config=data.get("config", {}),
  )
