"""Tool, agent and todo bookkeeping.

Both the transcript reader (replaying historical lines) and the state
reducer (applying live events) funnel through these functions, so a tool
use followed by its result produces the same records on either path.

Records are kept in dicts keyed by correlation id. Dict insertion order is
discovery order, which is what retention trimming keeps.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from sessionhud.models import (
    AgentEntry,
    AgentStatus,
    TodoItem,
    TodoStatus,
    ToolEntry,
    ToolStatus,
)

AGENT_TOOL = "Task"
TODO_TOOL = "TodoWrite"

MAX_TOOLS = 20
MAX_AGENTS = 10

TARGET_MAX_LEN = 30

_FILE_TOOLS = {"Read", "Write", "Edit"}
_PATTERN_TOOLS = {"Glob", "Grep"}
_SHELL_TOOLS = {"Bash"}

_UNINFORMATIVE_PREFIXES = ("[Request interrupted", "[Request cancelled")

_WHITESPACE = re.compile(r"\s+")


@dataclass
class Ledger:
    """Mutable working set of activity records."""

    tools: dict[str, ToolEntry] = field(default_factory=dict)
    agents: dict[str, AgentEntry] = field(default_factory=dict)
    todos: list[TodoItem] = field(default_factory=list)

    def trimmed_tools(self) -> list[ToolEntry]:
        return list(self.tools.values())[-MAX_TOOLS:]

    def trimmed_agents(self) -> list[AgentEntry]:
        return list(self.agents.values())[-MAX_AGENTS:]


def extract_target(tool_name: str, tool_input: Any) -> str | None:
    """Pick the display target of a tool call from its arguments."""
    if not isinstance(tool_input, dict):
        return None

    if tool_name in _FILE_TOOLS:
        value = tool_input.get("file_path")
        if value is None:
            value = tool_input.get("path")
    elif tool_name in _PATTERN_TOOLS:
        value = tool_input.get("pattern")
    elif tool_name in _SHELL_TOOLS:
        value = tool_input.get("command")
        if isinstance(value, str) and len(value) > TARGET_MAX_LEN:
            return value[:TARGET_MAX_LEN] + "..."
    else:
        return None

    return value if isinstance(value, str) else None


def parse_todos(raw: Any) -> list[TodoItem] | None:
    """Parse a TodoWrite payload, None when it carries no todo list."""
    if not isinstance(raw, list):
        return None
    todos: list[TodoItem] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        content = item.get("content")
        if not isinstance(content, str):
            continue
        try:
            status = TodoStatus(item.get("status"))
        except ValueError:
            status = TodoStatus.PENDING
        todos.append(TodoItem(content=content, status=status))
    return todos


def record_tool_use(
    ledger: Ledger,
    tool_id: str,
    name: str,
    tool_input: Any,
    timestamp: datetime,
) -> bool:
    """Apply a tool invocation. Returns True when the ledger changed.

    A repeated start for a known id is ignored, so a finished record never
    returns to running.
    """
    if name == AGENT_TOOL:
        if tool_id in ledger.agents:
            return False
        args = tool_input if isinstance(tool_input, dict) else {}
        subagent_type = args.get("subagent_type")
        model = args.get("model")
        description = args.get("description")
        ledger.agents[tool_id] = AgentEntry(
            id=tool_id,
            type=subagent_type if isinstance(subagent_type, str) else "unknown",
            model=model if isinstance(model, str) else None,
            description=description if isinstance(description, str) else None,
            start_time=timestamp,
        )
        return True

    if name == TODO_TOOL:
        args = tool_input if isinstance(tool_input, dict) else {}
        todos = parse_todos(args.get("todos"))
        if todos is None:
            return False
        ledger.todos = todos
        return True

    if tool_id in ledger.tools:
        return False
    ledger.tools[tool_id] = ToolEntry(
        id=tool_id,
        name=name,
        target=extract_target(name, tool_input),
        start_time=timestamp,
    )
    return True


def record_tool_result(
    ledger: Ledger,
    tool_id: str,
    is_error: bool,
    timestamp: datetime,
) -> bool:
    """Finish the tool or agent with this id.

    Only running records move; a second result for the same id is ignored,
    so status never goes backward and the end time is stamped once.
    """
    changed = False

    tool = ledger.tools.get(tool_id)
    if tool is not None and tool.status is ToolStatus.RUNNING:
        ledger.tools[tool_id] = replace(
            tool,
            status=ToolStatus.ERROR if is_error else ToolStatus.COMPLETED,
            end_time=max(timestamp, tool.start_time),
        )
        changed = True

    agent = ledger.agents.get(tool_id)
    if agent is not None and agent.status is AgentStatus.RUNNING:
        ledger.agents[tool_id] = replace(
            agent,
            status=AgentStatus.COMPLETED,
            end_time=max(timestamp, agent.start_time),
        )
        changed = True

    return changed


def complete_latest_agent(ledger: Ledger, timestamp: datetime) -> bool:
    """Finish the most recently started running agent, if any."""
    for agent_id in reversed(list(ledger.agents)):
        if ledger.agents[agent_id].status is AgentStatus.RUNNING:
            return record_tool_result(ledger, agent_id, False, timestamp)
    return False


def extract_user_text(content: Any) -> str:
    """Flatten user message content to a single whitespace-collapsed line."""
    if isinstance(content, str):
        text = content
    elif isinstance(content, list):
        parts = [
            block["text"]
            for block in content
            if isinstance(block, dict)
            and block.get("type") == "text"
            and isinstance(block.get("text"), str)
            and block["text"]
        ]
        text = " ".join(parts)
    else:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def is_uninformative(message: str) -> bool:
    """Interruption markers and blank messages are not worth showing."""
    return not message or message.startswith(_UNINFORMATIVE_PREFIXES)
