"""Per-run artifacts for CI: raw agent output and one info file per metric."""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import List, Optional, Tuple

from skill_evals.baseline import safe_test_name
from skill_evals.trace import ExecutionResult, TokenUsage


def save_raw_output(result: ExecutionResult, test_name: str, output_dir: Path) -> Optional[Path]:
  """Write the agent's raw JSON output to `<output_dir>/claude-output-<test>.json`.

  Failures are reported as warnings; a missing artifact never fails a case.
  """
  path = Path(output_dir) / f"claude-output-{safe_test_name(test_name)}.json"
  try:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(result.raw_output)
  except OSError as e:
    warnings.warn(f"could not save agent output to {path}: {e}", UserWarning)
    return None
  return path


def info_entries(result: ExecutionResult, report_cost: bool) -> Optional[List[Tuple[str, str]]]:
  evt = result.result_event()
  if evt is None:
    return None
  usage = evt.usage or TokenUsage()
  entries = [
      ("input_tokens", str(usage.input_tokens)),
      ("cache_creation_input_tokens", str(usage.cache_creation_input_tokens)),
      ("cache_read_input_tokens", str(usage.cache_read_input_tokens)),
      ("output_tokens", str(usage.output_tokens)),
  ]
  # OAuth sessions do not report cost; only meaningful with an API key
  if report_cost:
    entries.append(("total_cost_usd", f"${evt.total_cost_usd:.4f}"))
  return entries


def write_info_files(result: ExecutionResult, test_name: str, info_dir: Path, report_cost: bool = False) -> List[Path]:
  """Write each usage metric to its own file so CI can render them separately."""
  entries = info_entries(result, report_cost)
  if entries is None:
    warnings.warn(f"no result event found for {test_name}, skipping info files", UserWarning)
    return []

  written = []
  prefix = safe_test_name(test_name) + "-"
  for key, value in entries:
    path = Path(info_dir) / (prefix + key)
    try:
      path.write_text(f"{key}: {value}", encoding="utf-8")
    except OSError as e:
      warnings.warn(f"could not write info file {key}: {e}", UserWarning)
      continue
    written.append(path)
  return written
