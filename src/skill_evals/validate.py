"""Run the external config validator over generated configs."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .errors import ValidationError
from .pipeline import CONFIG_DIR, CONFIG_GLOB, config_paths

DEFAULT_VALIDATOR = ("rwx", "lint")


@dataclass
class ValidationFailure:
  path: Path
  returncode: Optional[int]
  output: str
  timed_out: bool = False

  def describe(self) -> str:
    if self.timed_out:
      status = "timed out"
    elif self.returncode is None:
      status = "could not start"
    else:
      status = f"exit {self.returncode}"
    return f"{self.path.name}: {status}\n{self.output}".rstrip()


def validate_config(
    path: Path,
    work_dir: Path,
    command: Sequence[str] = DEFAULT_VALIDATOR,
    timeout_s: Optional[float] = None,
) -> Optional[ValidationFailure]:
  """Validate one file; None when the validator exits zero."""
  cmd = [*command, str(path)]
  try:
    proc = subprocess.run(
        cmd,
        cwd=str(work_dir),
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        timeout=timeout_s,
    )
  except subprocess.TimeoutExpired as e:
    out = e.output.decode("utf-8", errors="replace") if isinstance(e.output, bytes) else (e.output or "")
    return ValidationFailure(path, None, f"{' '.join(cmd)} timed out after {timeout_s}s\n{out}", timed_out=True)
  except OSError as e:
    return ValidationFailure(path, None, f"could not run {cmd[0]!r}: {e}")
  if proc.returncode != 0:
    return ValidationFailure(path, proc.returncode, proc.stdout or "")
  return None


def validate_configs(
    work_dir: Path,
    command: Sequence[str] = DEFAULT_VALIDATOR,
    timeout_s: Optional[float] = None,
) -> List[ValidationFailure]:
  """Validate every discovered config file; returns one entry per failing file."""
  paths = config_paths(work_dir)
  if not paths:
    raise ValidationError(f"no {CONFIG_DIR}/{CONFIG_GLOB} files found to validate in {work_dir}")
  failures = []
  for path in paths:
    failure = validate_config(path, work_dir, command, timeout_s)
    if failure is not None:
      failures.append(failure)
  return failures


def assert_configs_valid(
    work_dir: Path,
    command: Sequence[str] = DEFAULT_VALIDATOR,
    timeout_s: Optional[float] = None,
) -> None:
  failures = validate_configs(work_dir, command, timeout_s)
  if failures:
    lines = [f"{len(failures)} config file(s) failed validation:"]
    lines.extend(f.describe() for f in failures)
    raise ValidationError("\n".join(lines), failures=failures)
