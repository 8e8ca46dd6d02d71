from __future__ import annotations
import argparse
from pathlib import Path

from .baseline import Baseline, BaselineStore, compare_baselines
from .errors import BaselineError, IncompleteRunError, TraceDecodeError
from .trace import ExecutionResult, load_execution_result


def format_summary(b: Baseline) -> str:
  return "\n".join([
      f"Tools:           {', '.join(b.tools_used) or '-'}",
      f"Skills:          {', '.join(b.skills_used) or '-'}",
      f"Input tokens:    {b.input_tokens}",
      f"Cache creation:  {b.cache_creation_input_tokens}",
      f"Cache read:      {b.cache_read_input_tokens}",
      f"Output tokens:   {b.output_tokens}",
      f"Execution time:  {b.execution_time_ms}ms",
  ])


def print_text_output(result: ExecutionResult, max_chars: int = 0) -> None:
  text = result.text_output()
  if max_chars and len(text) > max_chars:
    text = text[:max_chars] + "..."
  print("TEXT OUTPUT:")
  for line in text.splitlines():
    print(f"  {line}")


def main(argv=None) -> int:
  ap = argparse.ArgumentParser(description="Summarize a saved agent output file")
  ap.add_argument("--output", type=str, required=True, help="Path to a saved claude-output-*.json file")
  ap.add_argument("--prompt", type=str, default="", help="Prompt the run was started with (enables slash-command skill detection)")
  ap.add_argument("--baseline-dir", type=str, default=None, help="If set with --test, compare against the stored baseline")
  ap.add_argument("--test", type=str, default=None, help="Test name the baseline is stored under")
  ap.add_argument("--text", action="store_true", help="Also print the assistant's text output")
  ap.add_argument("--max", type=int, default=0, help="If >0, truncate text output to this many characters")
  args = ap.parse_args(argv)

  path = Path(args.output)
  if not path.exists():
    print(f"Output file not found: {path}")
    return 2

  try:
    result = load_execution_result(path, prompt=args.prompt)
  except TraceDecodeError as e:
    print(f"Could not decode {path}: {e}")
    return 2

  print(f"Output file: {path}\nEvents: {len(result.events)}\n")

  exit_code = 0
  try:
    summary = result.summary()
  except IncompleteRunError as e:
    print(f"WARNING: {e}")
    summary = e.partial
    exit_code = 1
  print(format_summary(summary))

  evt = result.result_event()
  if evt is not None and evt.total_cost_usd:
    print(f"Cost:            ${evt.total_cost_usd:.4f}")

  if args.text:
    print()
    print_text_output(result, args.max)

  if args.baseline_dir and args.test and exit_code == 0:
    try:
      prev = BaselineStore(Path(args.baseline_dir)).load(args.test)
    except BaselineError as e:
      print(f"\n{e}")
      return 2
    print()
    if prev is None:
      print(f"No baseline recorded for {args.test}")
    else:
      regressions = compare_baselines(prev, summary)
      for r in regressions:
        print(r.describe())
      if regressions:
        exit_code = 1
      else:
        print(f"No regressions against baseline for {args.test}")

  return exit_code


if __name__ == "__main__":
  raise SystemExit(main())
