"""Typed model of generated `.rwx/*.yml` pipeline configs.

Dependency references are not resolved here; a config with dangling `use`
keys still loads and is left to `skill_evals.assertions`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from .errors import ConfigParseError

CONFIG_DIR = ".rwx"
CONFIG_GLOB = "*.yml"


@dataclass
class BackgroundProcess:
  key: str
  run: str = ""
  ready_check: str = ""


@dataclass
class Task:
  """One task of a pipeline config.

    Attributes:
        key: Identity of the task within one config.
        call: Package reference, e.g. "git/clone 2.0.2".
        run: Inline script body.
        use: Keys of tasks this task depends on, in declared order.
        with_: Package parameters (`with` in the document).
        env: Environment variables.
        if_: Conditional execution expression (`if` in the document).
        filter: File filter patterns.
        parallel: Opaque pass-through.
        background_processes: Long-running services started for the task.
        outputs: Opaque pass-through.
    """

  key: str
  call: str = ""
  run: str = ""
  use: List[str] = field(default_factory=list)
  with_: Dict[str, Any] = field(default_factory=dict)
  env: Dict[str, str] = field(default_factory=dict)
  if_: str = ""
  filter: List[str] = field(default_factory=list)
  parallel: Any = None
  background_processes: List[BackgroundProcess] = field(default_factory=list)
  outputs: Any = None


@dataclass
class PipelineConfig:
  tasks: List[Task] = field(default_factory=list)

  def task(self, key: str) -> Optional[Task]:
    """First task with the given key, or None."""
    for t in self.tasks:
      if t.key == key:
        return t
    return None

  def task_keys(self) -> List[str]:
    return [t.key for t in self.tasks]

  def has_task_with_call(self, call_prefix: str) -> bool:
    """True if any task calls the package, with or without a version.

    has_task_with_call("golang/install") matches "golang/install 1.2.0" but
    not "golang/install-extra 1.0.0".
    """
    return any(t.call == call_prefix or t.call.startswith(call_prefix + " ") for t in self.tasks)

  def tasks_with_run(self, substr: str) -> List[Task]:
    return [t for t in self.tasks if substr in t.run]

  def has_background_process(self, substr: str) -> bool:
    for t in self.tasks:
      for bp in t.background_processes:
        if substr in bp.key or substr in bp.run:
          return True
    return False

  def depends_on(self, task_key: str, dep: str) -> bool:
    t = self.task(task_key)
    if t is None:
      return False
    return dep in t.use


def _scalar_str(value: Any) -> Optional[str]:
  if isinstance(value, str):
    return value
  if isinstance(value, bool):
    return "true" if value else "false"
  if isinstance(value, (int, float)):
    return str(value)
  return None


def flex_strings(value: Any, field_name: str = "value") -> List[str]:
  """Normalize a "string or list of strings" field to a list.

  List decoding is attempted first, then a single scalar.
  """
  if value is None:
    return []
  if isinstance(value, list):
    out = [_scalar_str(v) for v in value]
    if all(s is not None for s in out):
      return out
  else:
    single = _scalar_str(value)
    if single is not None:
      return [single]
  raise ConfigParseError(f"{field_name}: expected string or list of strings, got {value!r}")


def _opt_str(obj: Dict[str, Any], name: str, where: str) -> str:
  value = obj.get(name)
  if value is None:
    return ""
  s = _scalar_str(value)
  if s is None:
    raise ConfigParseError(f"{where}.{name}: expected a string, got {type(value).__name__}")
  return s


def _mapping(obj: Dict[str, Any], name: str, where: str) -> Dict[str, Any]:
  value = obj.get(name)
  if value is None:
    return {}
  if not isinstance(value, dict):
    raise ConfigParseError(f"{where}.{name}: expected a mapping, got {type(value).__name__}")
  return {str(k): v for k, v in value.items()}


def _parse_background_process(obj: Any, where: str) -> BackgroundProcess:
  if not isinstance(obj, dict):
    raise ConfigParseError(f"{where}: expected a mapping, got {type(obj).__name__}")
  return BackgroundProcess(
      key=_opt_str(obj, "key", where),
      run=_opt_str(obj, "run", where),
      ready_check=_opt_str(obj, "ready-check", where),
  )


def _parse_task(obj: Any, index: int) -> Task:
  where = f"tasks[{index}]"
  if not isinstance(obj, dict):
    raise ConfigParseError(f"{where}: expected a mapping, got {type(obj).__name__}")

  env = {}
  for k, v in _mapping(obj, "env", where).items():
    s = _scalar_str(v) if v is not None else ""
    if s is None:
      raise ConfigParseError(f"{where}.env.{k}: expected a string, got {type(v).__name__}")
    env[k] = s

  bps = obj.get("background-processes") or []
  if not isinstance(bps, list):
    raise ConfigParseError(f"{where}.background-processes: expected a list, got {type(bps).__name__}")

  return Task(
      key=_opt_str(obj, "key", where),
      call=_opt_str(obj, "call", where),
      run=_opt_str(obj, "run", where),
      use=flex_strings(obj.get("use"), f"{where}.use"),
      with_=_mapping(obj, "with", where),
      env=env,
      if_=_opt_str(obj, "if", where),
      filter=flex_strings(obj.get("filter"), f"{where}.filter"),
      parallel=obj.get("parallel"),
      background_processes=[
          _parse_background_process(bp, f"{where}.background-processes[{i}]") for i, bp in enumerate(bps)
      ],
      outputs=obj.get("outputs"),
  )


def parse_config(data: Union[bytes, str]) -> PipelineConfig:
  """Parse one pipeline config document."""
  try:
    doc = yaml.safe_load(data)
  except yaml.YAMLError as e:
    raise ConfigParseError(f"parsing pipeline config: {e}") from e

  if doc is None:
    return PipelineConfig()
  if not isinstance(doc, dict):
    raise ConfigParseError(f"parsing pipeline config: expected a mapping at top level, got {type(doc).__name__}")

  tasks = doc.get("tasks") or []
  if not isinstance(tasks, list):
    raise ConfigParseError(f"parsing pipeline config: tasks must be a list, got {type(tasks).__name__}")
  return PipelineConfig(tasks=[_parse_task(t, i) for i, t in enumerate(tasks)])


def config_paths(work_dir: Path) -> List[Path]:
  return sorted((Path(work_dir) / CONFIG_DIR).glob(CONFIG_GLOB))


def load_configs(work_dir: Path) -> List[PipelineConfig]:
  """Parse every `.rwx/*.yml` in work_dir; all files must parse."""
  paths = config_paths(work_dir)
  if not paths:
    raise ConfigParseError(f"no {CONFIG_DIR}/{CONFIG_GLOB} files found in {work_dir}")

  configs = []
  for path in paths:
    try:
      data = path.read_bytes()
    except OSError as e:
      raise ConfigParseError(f"reading {path}: {e}") from e
    try:
      configs.append(parse_config(data))
    except ConfigParseError as e:
      raise ConfigParseError(f"{path}: {e}") from e
  return configs


def merge_configs(configs: Iterable[PipelineConfig]) -> PipelineConfig:
  merged = PipelineConfig()
  for cfg in configs:
    merged.tasks.extend(cfg.tasks)
  return merged
