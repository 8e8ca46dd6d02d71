"""Exception types raised by the eval harness."""

from __future__ import annotations

from typing import Any, List, Optional


class EvalError(Exception):
  pass


class SettingsError(EvalError):
  pass


class RepoRootError(EvalError):
  pass


class AgentLaunchError(EvalError):
  """The agent process could not start or exited non-zero."""

  def __init__(self, message: str, returncode: Optional[int] = None, stdout: str = "", stderr: str = ""):
    super().__init__(message)
    self.returncode = returncode
    self.stdout = stdout
    self.stderr = stderr


class AgentTimeoutError(EvalError):
  """The agent process outlived its deadline and was killed."""

  def __init__(self, message: str, timeout_s: float, stdout: str = "", stderr: str = ""):
    super().__init__(message)
    self.timeout_s = timeout_s
    self.stdout = stdout
    self.stderr = stderr


class TraceDecodeError(EvalError):
  """Agent output is not a JSON array of events."""

  def __init__(self, message: str, pos: Optional[int] = None, raw_output: bytes = b""):
    super().__init__(message)
    self.pos = pos
    self.raw_output = raw_output


class IncompleteRunError(EvalError):
  """The trace decoded fine but carries no terminal result event.

  `partial` holds whatever summary could be derived from the truncated trace.
  """

  def __init__(self, message: str, partial: Any = None):
    super().__init__(message)
    self.partial = partial


class ConfigParseError(EvalError):
  pass


class BaselineError(EvalError):
  pass


class ConfigAssertionError(EvalError, AssertionError):
  """One or more config assertions failed.

  `failures` is a list of (assertion name, messages) pairs.
  """

  def __init__(self, failures: List[Any]):
    self.failures = failures
    lines = [f"{len(failures)} config assertion(s) failed:"]
    for name, messages in failures:
      for msg in messages:
        lines.append(f"  {name}: {msg}")
    super().__init__("\n".join(lines))


class RegressionError(EvalError, AssertionError):

  def __init__(self, test_name: str, regressions: List[Any]):
    self.test_name = test_name
    self.regressions = regressions
    lines = [f"performance regressed for {test_name}:"]
    lines.extend(f"  {r.describe()}" for r in regressions)
    super().__init__("\n".join(lines))


class ValidationError(EvalError, AssertionError):

  def __init__(self, message: str, failures: Optional[List[Any]] = None):
    super().__init__(message)
    self.failures = failures or []
