from __future__ import annotations
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

WORKFLOWS_DIR = Path(".github") / "workflows"


@dataclass(frozen=True)
class Sandbox:
  root: Path


def _fresh_dir(dest: Optional[Path]) -> Path:
  if dest is None:
    return Path(tempfile.mkdtemp(prefix="skill-eval-")).resolve()
  dest = dest.expanduser().resolve()
  if dest.exists() and any(dest.iterdir()):
    raise ValueError(f"sandbox destination is not empty: {dest}")
  dest.mkdir(parents=True, exist_ok=True)
  return dest


def materialize_project(fixtures_root: Path, name: str, dest: Optional[Path] = None) -> Sandbox:
  """Copy the fixture project `projects/<name>` into a fresh work dir.

  If dest is provided, it must be empty or non-existent. Otherwise a temp dir is created.
  """
  src = (Path(fixtures_root) / "projects" / name).expanduser().resolve()
  if not src.is_dir():
    raise FileNotFoundError(f"fixture project not found: {src}")
  root = _fresh_dir(dest)
  shutil.copytree(src, root, dirs_exist_ok=True)
  return Sandbox(root=root)


def materialize_workflow(fixtures_root: Path, fixture: str, dest: Optional[Path] = None) -> Sandbox:
  """Copy one workflow fixture file into `.github/workflows/` of a fresh work dir."""
  src = (Path(fixtures_root) / fixture).expanduser().resolve()
  if not src.is_file():
    raise FileNotFoundError(f"workflow fixture not found: {src}")
  root = _fresh_dir(dest)
  workflows = root / WORKFLOWS_DIR
  workflows.mkdir(parents=True, exist_ok=True)
  shutil.copyfile(src, workflows / src.name)
  return Sandbox(root=root)


def cleanup_sandbox(sandbox: Sandbox) -> None:
  shutil.rmtree(sandbox.root, ignore_errors=True)
