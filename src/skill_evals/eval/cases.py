"""Eval case specification and suite loading."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Callable, Dict, List

from skill_evals import assertions as A
from skill_evals.assertions import ConfigAssertion

CASE_KINDS = ("project", "workflow")

# Constructors that can be named from a suite file.
CHECKS: Dict[str, Callable[..., ConfigAssertion]] = {
    "has_task": A.has_task,
    "has_package": A.has_package,
    "has_run_containing": A.has_run_containing,
    "task_depends_on": A.task_depends_on,
    "has_service": A.has_service,
    "has_env_var": A.has_env_var,
    "has_secret_ref": A.has_secret_ref,
    "has_conditional": A.has_conditional,
    "min_task_count": A.min_task_count,
    "clones_repo": A.clones_repo,
    "installs_go": A.installs_go,
    "installs_node": A.installs_node,
    "installs_rust": A.installs_rust,
    "installs_python": A.installs_python,
}


class CaseSpecError(ValueError):
  pass


def build_assertion(spec: Any) -> ConfigAssertion:
  """Build a ConfigAssertion from its data form.

    Either a single check:
        {"check": "has_package", "args": ["git/clone"]}
    or a set of alternatives:
        {"either": "clones_repo", "of": [<spec>, <spec>, ...]}
    """
  if not isinstance(spec, dict):
    raise CaseSpecError(f"assertion spec must be an object, got {spec!r}")

  if "either" in spec:
    alternatives = spec.get("of")
    if not isinstance(alternatives, list) or not alternatives:
      raise CaseSpecError(f"either {spec['either']!r} requires a non-empty 'of' list")
    return A.either(str(spec["either"]), *[build_assertion(s) for s in alternatives])

  name = spec.get("check")
  ctor = CHECKS.get(name)
  if ctor is None:
    raise CaseSpecError(f"unknown check {name!r}; expected one of {sorted(CHECKS)}")
  args = spec.get("args", [])
  if not isinstance(args, list):
    args = [args]
  try:
    return ctor(*args)
  except TypeError as e:
    raise CaseSpecError(f"bad arguments for {name}: {e}") from e


@dataclass
class EvalCase:
  """One agent evaluation.

    Attributes:
        case_id: Unique identifier; also keys the stored baseline.
        prompt: Instruction sent to the agent. "{fixture}" is replaced by the
            fixture's file name.
        fixture: Project name (kind "project") or workflow file path relative to
            the fixtures root (kind "workflow").
        kind: "project" copies a whole project tree; "workflow" copies one
            workflow file into .github/workflows/.
        skill: Skill the agent is expected to invoke ("" to skip the check).
        assertions: Config assertions in data form (see build_assertion).
        metadata: Free-form extra data (e.g. category).
    """

  case_id: str
  prompt: str
  fixture: str
  kind: str = "project"
  skill: str = ""
  assertions: List[Dict[str, Any]] = field(default_factory=list)
  metadata: Dict[str, Any] = field(default_factory=dict)

  def __post_init__(self) -> None:
    if self.kind not in CASE_KINDS:
      raise CaseSpecError(f"case {self.case_id}: kind must be one of {CASE_KINDS}, got {self.kind!r}")

  def render_prompt(self) -> str:
    return self.prompt.replace("{fixture}", Path(self.fixture).name)

  def build_assertions(self) -> List[ConfigAssertion]:
    return [build_assertion(s) for s in self.assertions]

  def to_dict(self) -> Dict[str, Any]:
    return asdict(self)

  @classmethod
  def from_dict(cls, d: Dict[str, Any]) -> "EvalCase":
    return cls(
        case_id=d["case_id"],
        prompt=d["prompt"],
        fixture=d["fixture"],
        kind=d.get("kind", "project"),
        skill=d.get("skill", ""),
        assertions=list(d.get("assertions", [])),
        metadata=dict(d.get("metadata") or {}),
    )


@dataclass
class EvalSuite:
  """A collection of eval cases.

    Attributes:
        name: Name of the suite.
        cases: List of EvalCase objects.
        description: Optional description.
        defaults: Values applied to every case unless the case overrides them.
    """

  name: str
  cases: List[EvalCase]
  description: str = ""
  defaults: Dict[str, Any] = field(default_factory=dict)

  def to_dict(self) -> Dict[str, Any]:
    return {
        "name": self.name,
        "description": self.description,
        "defaults": self.defaults,
        "cases": [c.to_dict() for c in self.cases],
    }

  @classmethod
  def from_dict(cls, d: Dict[str, Any]) -> "EvalSuite":
    defaults = d.get("defaults", {})
    cases = [EvalCase.from_dict({**defaults, **c}) for c in d.get("cases", [])]
    return cls(
        name=d.get("name", "unnamed"),
        description=d.get("description", ""),
        defaults=defaults,
        cases=cases,
    )


def load_suite(path: Path) -> EvalSuite:
  """Load an eval suite from a JSON file.

    The JSON format:
    {
        "name": "create_rwx",
        "defaults": {"kind": "project", "skill": "rwx:rwx", "prompt": "/rwx:rwx"},
        "cases": [
            {
                "case_id": "go_postgres",
                "fixture": "go-postgres",
                "assertions": [
                    {"either": "clones_repo", "of": [
                        {"check": "has_package", "args": ["git/clone"]},
                        {"check": "has_run_containing", "args": ["git clone"]}
                    ]},
                    {"check": "has_env_var", "args": ["DATABASE_URL"]}
                ]
            }
        ]
    }
    """
  path = Path(path).expanduser().resolve()
  with path.open("r", encoding="utf-8") as f:
    data = json.load(f)
  return EvalSuite.from_dict(data)


def save_suite(suite: EvalSuite, path: Path) -> None:
  path = Path(path).expanduser().resolve()
  path.parent.mkdir(parents=True, exist_ok=True)
  with path.open("w", encoding="utf-8") as f:
    json.dump(suite.to_dict(), f, indent=2)
