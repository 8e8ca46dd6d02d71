"""Typed model of the agent's `--output-format json` execution trace."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .baseline import Baseline
from .errors import IncompleteRunError, TraceDecodeError

# Name of the tool the agent uses to invoke a skill on its own initiative.
SKILL_TOOL = "Skill"
RESULT_EVENT = "result"


class ContentBlockParseError(Exception):
  pass


@dataclass
class SkillInvocation:
  skill: str
  args: str = ""


@dataclass
class ContentBlock:
  type: str
  text: str = ""
  name: str = ""
  input: Any = None

  def skill_invocation(self) -> Optional[SkillInvocation]:
    """Decode the input of a Skill tool_use block; None for anything else."""
    if self.type != "tool_use" or self.name != SKILL_TOOL:
      return None
    if not isinstance(self.input, dict):
      return None
    skill = self.input.get("skill")
    if not isinstance(skill, str) or not skill:
      return None
    args = self.input.get("args")
    return SkillInvocation(skill=skill, args=args if isinstance(args, str) else "")


@dataclass
class TokenUsage:
  input_tokens: int = 0
  cache_creation_input_tokens: int = 0
  cache_read_input_tokens: int = 0
  output_tokens: int = 0

  @classmethod
  def from_dict(cls, d: Dict[str, Any]) -> "TokenUsage":
    return cls(
        input_tokens=_as_int(d.get("input_tokens")),
        cache_creation_input_tokens=_as_int(d.get("cache_creation_input_tokens")),
        cache_read_input_tokens=_as_int(d.get("cache_read_input_tokens")),
        output_tokens=_as_int(d.get("output_tokens")),
    )


@dataclass
class Message:
  role: str = ""
  content: List[ContentBlock] = field(default_factory=list)


@dataclass
class ExecutionEvent:
  """One element of the agent's output array.

    Attributes:
        type: Discriminator ("system", "assistant", "user", "result", ...).
        subtype: Secondary discriminator, e.g. "init" on the system event.
        message: Role and content blocks for message-bearing events.
        duration_ms: Wall-clock duration (result event only).
        total_cost_usd: Spend for the run (result event only).
        usage: Aggregate token usage (result event only).
        model_usage: Per-model token usage, when reported.
        skills: Skills the host registered (system/init event only).
        raw: The undecoded event object.
    """

  type: str
  subtype: str = ""
  message: Message = field(default_factory=Message)
  duration_ms: float = 0.0
  total_cost_usd: float = 0.0
  usage: Optional[TokenUsage] = None
  model_usage: Dict[str, TokenUsage] = field(default_factory=dict)
  skills: List[str] = field(default_factory=list)
  raw: Dict[str, Any] = field(default_factory=dict)

  @property
  def is_terminal(self) -> bool:
    return self.type == RESULT_EVENT


def _as_int(v: Any) -> int:
  if isinstance(v, bool):
    return int(v)
  if isinstance(v, (int, float)):
    return int(v)
  return 0


def _as_float(v: Any) -> float:
  if isinstance(v, (int, float)) and not isinstance(v, bool):
    return float(v)
  return 0.0


def parse_content_block(obj: Any) -> ContentBlock:
  if not isinstance(obj, dict):
    raise ContentBlockParseError("content block must be an object")
  typ = obj.get("type")
  if not isinstance(typ, str) or not typ:
    raise ContentBlockParseError("content block requires a string type")
  text = obj.get("text")
  name = obj.get("name")
  if text is not None and not isinstance(text, str):
    raise ContentBlockParseError(f"{typ} block text must be a string")
  if name is not None and not isinstance(name, str):
    raise ContentBlockParseError(f"{typ} block name must be a string")
  return ContentBlock(type=typ, text=text or "", name=name or "", input=obj.get("input"))


def _parse_message(obj: Any) -> Message:
  if not isinstance(obj, dict):
    return Message()
  role = obj.get("role")
  blocks: List[ContentBlock] = []
  content = obj.get("content")
  if isinstance(content, list):
    for raw_block in content:
      try:
        blocks.append(parse_content_block(raw_block))
      except ContentBlockParseError:
        # irrelevant or partial blocks are expected; skip them
        continue
  return Message(role=role if isinstance(role, str) else "", content=blocks)


def parse_event(obj: Any, index: int = 0) -> ExecutionEvent:
  if not isinstance(obj, dict):
    raise TraceDecodeError(f"event {index} is not an object: {obj!r}")
  typ = obj.get("type")
  if typ is None:
    typ = ""
  if not isinstance(typ, str):
    raise TraceDecodeError(f"event {index} has a non-string type: {typ!r}")
  subtype = obj.get("subtype")

  usage = obj.get("usage")
  model_usage = {}
  raw_model_usage = obj.get("model_usage")
  if isinstance(raw_model_usage, dict):
    model_usage = {
        str(model): TokenUsage.from_dict(u) for model, u in raw_model_usage.items() if isinstance(u, dict)
    }
  skills = obj.get("skills")

  return ExecutionEvent(
      type=typ,
      subtype=subtype if isinstance(subtype, str) else "",
      message=_parse_message(obj.get("message")),
      duration_ms=_as_float(obj.get("duration_ms")),
      total_cost_usd=_as_float(obj.get("total_cost_usd")),
      usage=TokenUsage.from_dict(usage) if isinstance(usage, dict) else None,
      model_usage=model_usage,
      skills=[s for s in skills if isinstance(s, str)] if isinstance(skills, list) else [],
      raw=obj,
  )


def parse_trace(raw: Union[bytes, str]) -> List[ExecutionEvent]:
  """Decode the agent's output into a list of events.

  Raises TraceDecodeError when the payload is not a JSON array of event
  objects. `pos` on the error is a byte offset into `raw` when known.
  """
  raw_bytes = raw.encode("utf-8") if isinstance(raw, str) else bytes(raw)
  try:
    text = raw_bytes.decode("utf-8")
  except UnicodeDecodeError as e:
    raise TraceDecodeError(f"agent output is not valid UTF-8: {e}", pos=e.start, raw_output=raw_bytes) from e

  try:
    data = json.loads(text)
  except json.JSONDecodeError as e:
    pos = len(text[:e.pos].encode("utf-8"))
    raise TraceDecodeError(f"invalid JSON at byte {pos}: {e.msg}", pos=pos, raw_output=raw_bytes) from e

  if not isinstance(data, list):
    raise TraceDecodeError(f"expected a JSON array of events, got {type(data).__name__}", raw_output=raw_bytes)

  events = []
  for i, obj in enumerate(data):
    try:
      events.append(parse_event(obj, i))
    except TraceDecodeError as e:
      e.raw_output = raw_bytes
      raise
  return events


@dataclass(frozen=True)
class ExecutionResult:
  """Parsed output of one headless agent run.

  Every accessor is derived from `events`; nothing is cached.
  """

  events: Tuple[ExecutionEvent, ...]
  raw_output: bytes = b""
  prompt: str = ""

  def __post_init__(self) -> None:
    object.__setattr__(self, "events", tuple(self.events))

  @classmethod
  def from_output(cls, raw: Union[bytes, str], prompt: str = "") -> "ExecutionResult":
    raw_bytes = raw.encode("utf-8") if isinstance(raw, str) else bytes(raw)
    return cls(events=tuple(parse_trace(raw_bytes)), raw_output=raw_bytes, prompt=prompt)

  def result_event(self) -> Optional[ExecutionEvent]:
    for evt in reversed(self.events):
      if evt.is_terminal:
        return evt
    return None

  def tool_uses(self) -> List[ContentBlock]:
    return [b for evt in self.events for b in evt.message.content if b.type == "tool_use"]

  def tool_names(self) -> List[str]:
    return _dedupe(b.name for b in self.tool_uses() if b.name)

  def skill_uses(self) -> List[str]:
    """Skills invoked during the run, in order of first appearance.

    Two paths are merged: Skill tool_use blocks emitted by the model, and a
    slash-command prompt ("/plugin:skill args") that the host expands
    directly. The slash path only counts when the name is among the skills
    the init event advertised, so prompts that merely begin with "/" are not
    mistaken for invocations.
    """
    skills = []
    for block in self.tool_uses():
      inv = block.skill_invocation()
      if inv is not None:
        skills.append(inv.skill)

    name = self.slash_command()
    if name and self.is_registered_skill(name):
      skills.append(name)
    return _dedupe(skills)

  def slash_command(self) -> str:
    if not self.prompt.startswith("/"):
      return ""
    return re.split(r"\s", self.prompt[1:], maxsplit=1)[0]

  def is_registered_skill(self, name: str) -> bool:
    for evt in self.events:
      if evt.type == "system" and evt.subtype == "init":
        return name in evt.skills
    return False

  def text_output(self) -> str:
    parts = []
    for evt in self.events:
      if evt.message.role != "assistant":
        continue
      parts.extend(b.text for b in evt.message.content if b.type == "text" and b.text)
    return "\n".join(parts)

  def summary(self) -> Baseline:
    """Snapshot of this run's metrics.

    Raises IncompleteRunError (with the partial snapshot attached) when the
    trace has no terminal result event.
    """
    b = Baseline(tools_used=self.tool_names(), skills_used=self.skill_uses())
    evt = self.result_event()
    if evt is None:
      raise IncompleteRunError(
          "no result event found in agent output (the agent may have crashed mid-run)",
          partial=b,
      )
    b.execution_time_ms = int(evt.duration_ms)
    if evt.usage is not None:
      b.input_tokens = evt.usage.input_tokens
      b.cache_creation_input_tokens = evt.usage.cache_creation_input_tokens
      b.cache_read_input_tokens = evt.usage.cache_read_input_tokens
      b.output_tokens = evt.usage.output_tokens
    return b


def _dedupe(items: Iterable[str]) -> List[str]:
  seen = set()
  out = []
  for item in items:
    if item not in seen:
      seen.add(item)
      out.append(item)
  return out


def load_execution_result(path: Path, prompt: str = "") -> ExecutionResult:
  """Read a saved raw agent output file back into an ExecutionResult."""
  path = Path(path).expanduser().resolve()
  return ExecutionResult.from_output(path.read_bytes(), prompt=prompt)
