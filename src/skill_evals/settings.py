"""Environment-driven settings, read once per run."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from .errors import SettingsError

DEFAULT_MAX_BUDGET_USD = "5.00"
DEFAULT_TIMEOUT_S = 15 * 60

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class EvalSettings:
  """Everything the harness takes from the environment.

    Attributes:
        ci: Running under CI (`CI` is set).
        skip_permissions_opt_in: `EVALS_SKIP_PERMISSIONS` is set.
        repo_root_override: Explicit plugin repository root (`SKILLS_REPO_ROOT`).
        max_budget_usd: Spend cap per agent invocation (`EVALS_MAX_BUDGET_USD`).
        model: Model alias passed to the agent (`EVALS_MODEL`).
        claude_bin: Agent executable (`EVALS_CLAUDE_BIN`).
        timeout_s: Deadline for one agent invocation (`EVALS_TIMEOUT_S`).
        update_baselines: Record baselines instead of comparing (`EVALS_UPDATE_BASELINES`).
        baselines_dir: Where baseline snapshots live (`EVALS_BASELINES_DIR`).
        output_dir: Where raw agent output is saved (`EVALS_OUTPUT_DIR`).
        info_dir: Per-metric info files for CI reporting (`RWX_INFO`).
        report_cost: Cost is only meaningful with an API key (`ANTHROPIC_API_KEY`).
        validator: Config validator command (`EVALS_VALIDATOR`).
    """

  ci: bool = False
  skip_permissions_opt_in: bool = False
  repo_root_override: Optional[Path] = None
  max_budget_usd: str = DEFAULT_MAX_BUDGET_USD
  model: str = "sonnet"
  claude_bin: str = "claude"
  timeout_s: float = DEFAULT_TIMEOUT_S
  update_baselines: bool = False
  baselines_dir: Path = field(default_factory=lambda: Path("testdata/baselines"))
  output_dir: Path = field(default_factory=lambda: Path("tmp"))
  info_dir: Optional[Path] = None
  report_cost: bool = False
  validator: List[str] = field(default_factory=lambda: ["rwx", "lint"])

  @property
  def skip_permissions(self) -> bool:
    """Unrestricted execution only in CI or on explicit opt-in."""
    return self.ci or self.skip_permissions_opt_in

  @classmethod
  def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EvalSettings":
    if environ is None:
      load_dotenv()
      environ = os.environ

    def get(name: str) -> str:
      return (environ.get(name) or "").strip()

    budget = get("EVALS_MAX_BUDGET_USD") or DEFAULT_MAX_BUDGET_USD
    try:
      if Decimal(budget) <= 0:
        raise SettingsError(f"EVALS_MAX_BUDGET_USD must be positive, got {budget!r}")
    except InvalidOperation as e:
      raise SettingsError(f"EVALS_MAX_BUDGET_USD is not a number: {budget!r}") from e

    timeout_s: float = DEFAULT_TIMEOUT_S
    if get("EVALS_TIMEOUT_S"):
      try:
        timeout_s = float(get("EVALS_TIMEOUT_S"))
      except ValueError as e:
        raise SettingsError(f"EVALS_TIMEOUT_S is not a number: {get('EVALS_TIMEOUT_S')!r}") from e
      if timeout_s <= 0:
        raise SettingsError(f"EVALS_TIMEOUT_S must be positive, got {timeout_s}")

    validator = shlex.split(get("EVALS_VALIDATOR")) if get("EVALS_VALIDATOR") else ["rwx", "lint"]

    return cls(
        ci=bool(get("CI")),
        skip_permissions_opt_in=bool(get("EVALS_SKIP_PERMISSIONS")),
        repo_root_override=Path(get("SKILLS_REPO_ROOT")) if get("SKILLS_REPO_ROOT") else None,
        max_budget_usd=budget,
        model=get("EVALS_MODEL") or "sonnet",
        claude_bin=get("EVALS_CLAUDE_BIN") or "claude",
        timeout_s=timeout_s,
        update_baselines=get("EVALS_UPDATE_BASELINES").lower() in _TRUTHY,
        baselines_dir=Path(get("EVALS_BASELINES_DIR") or "testdata/baselines"),
        output_dir=Path(get("EVALS_OUTPUT_DIR") or "tmp"),
        info_dir=Path(get("RWX_INFO")) if get("RWX_INFO") else None,
        report_cost=bool(get("ANTHROPIC_API_KEY")),
        validator=validator,
    )
