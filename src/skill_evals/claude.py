"""Headless invocation of the agent CLI."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional

from .errors import AgentLaunchError, AgentTimeoutError, RepoRootError, TraceDecodeError
from .settings import EvalSettings
from .trace import ExecutionResult

# Both present at the root of the plugin repository under test.
WORKSPACE_MARKERS = ("skills", "evals")


def looks_like_repo_root(d: Path) -> bool:
  if all((d / m).is_dir() for m in WORKSPACE_MARKERS):
    return True
  # fallback for layouts where only VCS metadata is available
  return (d / ".git").is_dir()


def find_repo_root(start: Optional[Path] = None, override: Optional[Path] = None) -> Path:
  """Locate the plugin repository root.

  An explicit override wins but must itself look like a root. Otherwise walk
  up from `start` (default: cwd) until a directory with the workspace markers
  or a .git directory is found.
  """
  if override is not None:
    override = Path(override).expanduser()
    if looks_like_repo_root(override):
      return override.resolve()
    raise RepoRootError(f"SKILLS_REPO_ROOT={str(override)!r} does not look like the skills repository root")

  d = Path(start or Path.cwd()).expanduser().resolve()
  for candidate in (d, *d.parents):
    if looks_like_repo_root(candidate):
      return candidate
  raise RepoRootError(
      f"could not find repository root from {d} (looked for workspace markers: "
      f"{'/ and '.join(WORKSPACE_MARKERS)}/)")


def build_command(settings: EvalSettings, plugin_dir: Path) -> List[str]:
  cmd = [
      settings.claude_bin,
      "--print",
      "--output-format", "json",
      "--no-session-persistence",
      "--verbose",
      "--model", settings.model,
      "--plugin-dir", str(plugin_dir),
      "--max-budget-usd", settings.max_budget_usd,
  ]
  if settings.skip_permissions:
    cmd.append("--dangerously-skip-permissions")
  return cmd


def _text(b: Optional[bytes]) -> str:
  if not b:
    return ""
  return b.decode("utf-8", errors="replace")


def run_claude(
    prompt: str,
    work_dir: Path,
    settings: Optional[EvalSettings] = None,
    timeout_s: Optional[float] = None,
    verbose: bool = False,
) -> ExecutionResult:
  """Run the agent once and parse its output.

  The prompt goes in on stdin. The call blocks until the agent exits or the
  deadline passes; there are no retries.
  """
  settings = settings or EvalSettings.from_env()
  timeout_s = timeout_s if timeout_s is not None else settings.timeout_s

  try:
    root = find_repo_root(override=settings.repo_root_override)
  except RepoRootError as e:
    raise RepoRootError(f"finding repo root: {e}") from e

  cmd = build_command(settings, root)
  if verbose:
    print(f"[claude] model={settings.model} budget=${settings.max_budget_usd} cwd={work_dir}")

  try:
    proc = subprocess.run(
        cmd,
        cwd=str(work_dir),
        input=prompt.encode("utf-8"),
        capture_output=True,
        timeout=timeout_s,
    )
  except subprocess.TimeoutExpired as e:
    raise AgentTimeoutError(
        f"agent timed out after {timeout_s}s\nstderr: {_text(e.stderr)}\nstdout: {_text(e.stdout)}",
        timeout_s=timeout_s,
        stdout=_text(e.stdout),
        stderr=_text(e.stderr),
    ) from e
  except OSError as e:
    raise AgentLaunchError(f"could not start {cmd[0]!r}: {e}") from e

  stdout = _text(proc.stdout)
  stderr = _text(proc.stderr)
  if proc.returncode != 0:
    raise AgentLaunchError(
        f"agent exited with status {proc.returncode}\nstderr: {stderr}\nstdout: {stdout}",
        returncode=proc.returncode,
        stdout=stdout,
        stderr=stderr,
    )

  raw = bytes(proc.stdout or b"")
  try:
    return ExecutionResult.from_output(raw, prompt=prompt)
  except TraceDecodeError as e:
    raise TraceDecodeError(f"parsing agent output: {e}\nraw output: {stdout}", pos=e.pos, raw_output=raw) from e
