"""Agent package.

Public API:
    from trix.agent import AgentLoop, InteractiveSession, ToolRegistry
    from trix.agent import AgentEvent, AgentResult, AgentState, Outcome

Internal layout:
    models.py    — AgentState, AgentEvent, AgentResult, Outcome
    tools.py     — ToolRegistry (dispatch, concurrency, output truncation)
    tool_defs.py — built-in findings tools backed by kubectl
    system.py    — get_system_prompt()
    loop.py      — AgentLoop (turn driver)
    session.py   — InteractiveSession (REPL)
"""

from .loop import AgentLoop
from .models import AgentEvent, AgentResult, AgentState, Outcome
from .session import InteractiveSession
from .tools import ToolExecution, ToolRegistry

__all__ = [
    "AgentEvent",
    "AgentLoop",
    "AgentResult",
    "AgentState",
    "InteractiveSession",
    "Outcome",
    "ToolExecution",
    "ToolRegistry",
]
