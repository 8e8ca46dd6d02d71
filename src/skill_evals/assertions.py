"""Named, composable checks over a PipelineConfig and over an agent run.

A check never raises on its own; it reports through a `Reporter`, which only
knows how to record a failure. That lets the same check run as a hard
assertion (`assert_config`) or as a silent probe inside `either`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Protocol, Sequence

from .errors import ConfigAssertionError
from .pipeline import PipelineConfig, load_configs, merge_configs
from .trace import ExecutionResult


class Reporter(Protocol):

  def fail(self, message: str) -> None:
    ...


@dataclass
class ConfigAssertion:
  name: str
  check: Callable[[Reporter, PipelineConfig], None]


class ProbeReporter:
  """Records that a check failed without propagating anything."""

  def __init__(self):
    self.failed = False
    self.messages: List[str] = []

  def fail(self, message: str) -> None:
    self.failed = True
    self.messages.append(message)


class StrictReporter:
  """Fails fast: the first reported failure raises ConfigAssertionError."""

  def __init__(self, name: str = ""):
    self.name = name

  def fail(self, message: str) -> None:
    raise ConfigAssertionError([(self.name, [message])])


@dataclass
class AssertionOutcome:
  name: str
  messages: List[str] = field(default_factory=list)

  @property
  def passed(self) -> bool:
    return not self.messages


def sanitize_name(s: str) -> str:
  for old, new in (("/", "_"), (" ", "_"), (".", "_"), ("-", "_"), ("$", ""), ("{", ""), ("}", "")):
    s = s.replace(old, new)
  return s


def _first_line(s: str) -> str:
  return s.split("\n", 1)[0]


def has_task(key: str) -> ConfigAssertion:

  def check(r: Reporter, cfg: PipelineConfig) -> None:
    if cfg.task(key) is None:
      r.fail(f"expected task {key!r} to exist, got tasks: {cfg.task_keys()}")

  return ConfigAssertion("has_task_" + key, check)


def has_package(call_prefix: str) -> ConfigAssertion:
  """Some task calls the package, at any version."""

  def check(r: Reporter, cfg: PipelineConfig) -> None:
    if not cfg.has_task_with_call(call_prefix):
      calls = [t.call for t in cfg.tasks if t.call]
      r.fail(f"expected a task calling {call_prefix!r}, got calls: {calls}")

  return ConfigAssertion("has_package_" + sanitize_name(call_prefix), check)


def has_run_containing(substr: str) -> ConfigAssertion:

  def check(r: Reporter, cfg: PipelineConfig) -> None:
    if not cfg.tasks_with_run(substr):
      runs = [f"{t.key}: {_first_line(t.run)}" for t in cfg.tasks if t.run]
      r.fail(f"expected a task with run containing {substr!r}, got: {runs}")

  return ConfigAssertion("has_run_" + sanitize_name(substr), check)


def task_depends_on(task_key: str, dep: str) -> ConfigAssertion:

  def check(r: Reporter, cfg: PipelineConfig) -> None:
    task = cfg.task(task_key)
    if task is None:
      r.fail(f"task {task_key!r} does not exist")
      return
    if not cfg.depends_on(task_key, dep):
      r.fail(f"expected task {task_key!r} to depend on {dep!r}, got use: {task.use}")

  return ConfigAssertion(f"task_{task_key}_depends_on_{dep}", check)


def has_service(substr: str) -> ConfigAssertion:
  """Some task starts a background process whose key or command matches."""

  def check(r: Reporter, cfg: PipelineConfig) -> None:
    if not cfg.has_background_process(substr):
      found = [f"{t.key}/{bp.key}" for t in cfg.tasks for bp in t.background_processes]
      r.fail(f"expected a background process matching {substr!r}, got: {found}")

  return ConfigAssertion("has_service_" + sanitize_name(substr), check)


def has_env_var(env_key: str) -> ConfigAssertion:
  """Some task sets the variable, in an env block or as `KEY=` in its script."""

  def check(r: Reporter, cfg: PipelineConfig) -> None:
    for task in cfg.tasks:
      if env_key in task.env or f"{env_key}=" in task.run:
        return
    r.fail(f"expected some task to have env var {env_key!r}, found none")

  return ConfigAssertion("has_env_" + sanitize_name(env_key), check)


def has_secret_ref(secret_name: str) -> ConfigAssertion:
  """Some task references the secret.

  Matches both `${{ secrets.NAME }}` and vault-style
  `${{ vaults.<vault>.secrets.NAME }}` in env, with and run.
  """
  needle = "secrets." + secret_name

  def check(r: Reporter, cfg: PipelineConfig) -> None:
    for task in cfg.tasks:
      if needle in task.run:
        return
      if any(needle in v for v in task.env.values()):
        return
      if any(isinstance(v, str) and needle in v for v in task.with_.values()):
        return
    r.fail(f"expected some task to reference secret {secret_name!r}, found none")

  return ConfigAssertion("has_secret_" + sanitize_name(secret_name), check)


def has_conditional(task_key: str) -> ConfigAssertion:

  def check(r: Reporter, cfg: PipelineConfig) -> None:
    task = cfg.task(task_key)
    if task is None:
      r.fail(f"task {task_key!r} does not exist")
      return
    if not task.if_:
      r.fail(f"expected task {task_key!r} to have a conditional (if field), but it was empty")

  return ConfigAssertion(f"task_{task_key}_has_conditional", check)


def min_task_count(n: int) -> ConfigAssertion:

  def check(r: Reporter, cfg: PipelineConfig) -> None:
    if len(cfg.tasks) < n:
      r.fail(f"expected at least {n} tasks, got {len(cfg.tasks)}: {cfg.task_keys()}")

  return ConfigAssertion(f"min_task_count_{n}", check)


def either(name: str, *candidates: ConfigAssertion) -> ConfigAssertion:
  """Passes if any candidate passes.

  Each candidate runs against its own ProbeReporter, so a failing
  alternative never leaks into the outer reporter.
  """

  def check(r: Reporter, cfg: PipelineConfig) -> None:
    tried = []
    for a in candidates:
      probe = ProbeReporter()
      a.check(probe, cfg)
      if not probe.failed:
        return
      tried.append(a.name)
    r.fail(f"none of the alternatives passed: {tried}")

  return ConfigAssertion(name, check)


# Alternatives shared by the create and migrate suites.


def clones_repo() -> ConfigAssertion:
  return either("clones_repo", has_package("git/clone"), has_run_containing("git clone"))


def installs_go() -> ConfigAssertion:
  return either(
      "installs_go",
      has_package("golang/install"),
      has_package("go/install"),
      has_package("rwx/tool-versions"),
  )


def installs_node() -> ConfigAssertion:
  return either("installs_node", has_package("nodejs/install"), has_package("node/install"))


def installs_rust() -> ConfigAssertion:
  return either("installs_rust", has_package("rust/install"), has_run_containing("rustup"))


def installs_python() -> ConfigAssertion:
  return either("installs_python", has_package("python/install"), has_run_containing("python"))


def run_assertion(assertion: ConfigAssertion, cfg: PipelineConfig) -> AssertionOutcome:
  probe = ProbeReporter()
  assertion.check(probe, cfg)
  return AssertionOutcome(name=assertion.name, messages=probe.messages)


def check_config(cfg: PipelineConfig, assertions: Sequence[ConfigAssertion]) -> List[AssertionOutcome]:
  """Evaluate every assertion; one failure never stops the others."""
  return [run_assertion(a, cfg) for a in assertions]


def raise_for_outcomes(outcomes: Sequence[AssertionOutcome]) -> None:
  failures = [(o.name, o.messages) for o in outcomes if not o.passed]
  if failures:
    raise ConfigAssertionError(failures)


def assert_config(work_dir: Path, assertions: Sequence[ConfigAssertion]) -> List[AssertionOutcome]:
  """Load and merge every config in work_dir, then check all assertions.

  Raises ConfigParseError if the configs cannot be loaded, and
  ConfigAssertionError listing every failed assertion otherwise.
  """
  merged = merge_configs(load_configs(work_dir))
  outcomes = check_config(merged, assertions)
  raise_for_outcomes(outcomes)
  return outcomes


# --- checks over the agent run itself ---


def assert_skill_used(result: ExecutionResult, skill_name: str) -> None:
  skills = result.skill_uses()
  if skill_name not in skills:
    raise AssertionError(f"expected skill {skill_name!r} to be used, got skills: {skills}")


def assert_tool_used(result: ExecutionResult, tool_name: str) -> None:
  tools = result.tool_names()
  if tool_name not in tools:
    raise AssertionError(f"expected tool {tool_name!r} to be used, got tools: {tools}")


def assert_output_mentions(result: ExecutionResult, substr: str) -> None:
  if substr.lower() not in result.text_output().lower():
    raise AssertionError(f"expected agent output to mention {substr!r}, but it did not")
