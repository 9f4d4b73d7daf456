"""Tests for the agent loop, its state and its outcomes."""

import asyncio

import httpx
import pytest

from conftest import Recorder, ScriptedProvider, run, text_response, tool_response
from trix.agent import AgentLoop, AgentState, Outcome, ToolRegistry
from trix.llm import AnthropicProvider, Message, ProtocolError, Role, Tool, ToolCall, TransportError
from trix.llm.models import Response, Usage


def make_registry(**handlers):
    registry = ToolRegistry()
    for name, handler in handlers.items():
        registry.register(Tool(name=name, description=f"{name} tool"), handler)
    return registry


def count_findings(severity="ALL"):
    return f"3 findings ({severity})"


# ═══════════════════════════════════════════════════════════════
# Finishing
# ═══════════════════════════════════════════════════════════════

class TestFinished:

    def test_direct_answer(self):
        provider = ScriptedProvider([text_response("All clear.", usage=(7, 3))])
        loop = AgentLoop(provider, make_registry(queryFindings=count_findings))

        result = run(loop.run("anything critical?"))

        assert result.outcome is Outcome.FINISHED
        assert result.ok
        assert result.content == "All clear."
        assert result.turns == 1
        assert (result.usage.input_tokens, result.usage.output_tokens) == (7, 3)
        assert [m.role for m in loop.state.conversation] == [Role.USER, Role.ASSISTANT]

    def test_two_turn_tool_run(self):
        provider = ScriptedProvider([
            tool_response("t1", "queryFindings", {"severity": "CRITICAL"}, usage=(10, 5)),
            text_response("There are 3 critical findings.", usage=(20, 8)),
        ])
        loop = AgentLoop(provider, make_registry(queryFindings=count_findings))

        result = run(loop.run("What critical vulnerabilities exist?"))

        assert result.outcome is Outcome.FINISHED
        assert result.content == "There are 3 critical findings."
        assert (result.usage.input_tokens, result.usage.output_tokens) == (30, 13)
        assert result.turns == 2

        conv = loop.state.conversation
        assert [m.role for m in conv] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT]
        assert conv[1].tool_calls == [ToolCall("t1", "queryFindings", {"severity": "CRITICAL"})]
        assert conv[2].tool_call_id == "t1"
        assert conv[2].content == "3 findings (CRITICAL)"

        # Second request carries the tool result
        second = provider.calls[1]["messages"]
        assert second[-1].role == Role.TOOL
        assert provider.calls[0]["tools"][0].name == "queryFindings"

    def test_system_prompt_first(self):
        provider = ScriptedProvider([text_response()])
        loop = AgentLoop(provider, make_registry(), system_prompt="You are trix.")

        run(loop.run("hi"))

        assert provider.calls[0]["messages"][0] == Message.system("You are trix.")

    def test_invalid_max_turns(self):
        with pytest.raises(ValueError):
            AgentLoop(ScriptedProvider(), make_registry(), max_turns=0)


# ═══════════════════════════════════════════════════════════════
# Turn cap
# ═══════════════════════════════════════════════════════════════

class TestExhausted:

    def test_cap_of_one(self):
        provider = ScriptedProvider([tool_response("t1", content="Looking.")])
        loop = AgentLoop(provider, make_registry(queryFindings=count_findings), max_turns=1)

        result = run(loop.run("q"))

        assert result.outcome is Outcome.EXHAUSTED
        assert not result.ok
        assert result.error is None
        assert result.content == "Looking."
        assert len(provider.calls) == 1
        assert sum(1 for m in loop.state.conversation if m.role == Role.TOOL) == 1

    @pytest.mark.parametrize("cap", [2, 3, 5])
    def test_exactly_cap_provider_calls(self, cap):
        counter = iter(range(100))
        provider = ScriptedProvider(repeat=lambda: tool_response(f"t{next(counter)}"))
        loop = AgentLoop(provider, make_registry(queryFindings=count_findings), max_turns=cap)

        result = run(loop.run("q"))

        assert result.outcome is Outcome.EXHAUSTED
        assert result.turns == cap
        assert len(provider.calls) == cap
        assert result.usage.input_tokens == 10 * cap


# ═══════════════════════════════════════════════════════════════
# Failure and rollback
# ═══════════════════════════════════════════════════════════════

class TestFailed:

    def test_provider_error_on_first_turn(self):
        provider = ScriptedProvider([ProtocolError(429, "rate limited")])
        loop = AgentLoop(provider, make_registry())

        result = run(loop.run("q"))

        assert result.outcome is Outcome.FAILED
        assert isinstance(result.error, ProtocolError)
        assert "rate limited" in str(result.error)
        assert loop.state.conversation == []

    def test_failure_mid_run_keeps_usage_and_rolls_back(self):
        provider = ScriptedProvider([
            tool_response("t1", usage=(10, 5)),
            TransportError("connection reset"),
        ])
        loop = AgentLoop(provider, make_registry(queryFindings=count_findings), system_prompt="sys")

        result = run(loop.run("q"))

        assert result.outcome is Outcome.FAILED
        assert result.turns == 2
        assert (result.usage.input_tokens, result.usage.output_tokens) == (10, 5)
        assert (loop.state.usage.input_tokens, loop.state.usage.output_tokens) == (10, 5)
        assert [m.role for m in loop.state.conversation] == [Role.SYSTEM]

    def test_session_continues_after_failure(self):
        provider = ScriptedProvider([TransportError("down"), text_response("back")])
        loop = AgentLoop(provider, make_registry())

        assert run(loop.run("first")).outcome is Outcome.FAILED
        result = run(loop.run("second"))

        assert result.outcome is Outcome.FINISHED
        assert [m.content for m in loop.state.conversation] == ["second", "back"]

    def test_timeout_is_reported_as_transport_error(self):
        class Slow(ScriptedProvider):
            async def chat(self, messages, tools=()):
                self.calls.append({"messages": list(messages), "tools": list(tools)})
                await asyncio.sleep(10)

        loop = AgentLoop(Slow(), make_registry())

        result = run(loop.run("q", timeout=0.05))

        assert result.outcome is Outcome.FAILED
        assert isinstance(result.error, TransportError)
        assert "timed out" in str(result.error)
        assert loop.state.conversation == []

    def test_cancellation_rolls_back(self):
        started = None

        async def hang(severity="ALL"):
            started.set()
            await asyncio.sleep(10)

        provider = ScriptedProvider([tool_response("t1")])
        loop = AgentLoop(provider, make_registry(queryFindings=hang), system_prompt="sys")

        async def scenario():
            nonlocal started
            started = asyncio.Event()
            task = asyncio.create_task(loop.run("q"))
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        run(scenario())

        assert [m.role for m in loop.state.conversation] == [Role.SYSTEM]
        assert loop.state.usage.input_tokens == 10


# ═══════════════════════════════════════════════════════════════
# Usage accounting
# ═══════════════════════════════════════════════════════════════

class TestUsage:

    def test_cumulative_across_runs_and_reset(self):
        provider = ScriptedProvider([
            text_response(usage=(5, 1)),
            tool_response(usage=(10, 5)),
            text_response(usage=(20, 8)),
        ])
        loop = AgentLoop(provider, make_registry(queryFindings=count_findings), system_prompt="sys")

        first = run(loop.run("a"))
        second = run(loop.run("b"))

        total = first.usage + second.usage
        assert (loop.state.usage.input_tokens, loop.state.usage.output_tokens) == (35, 14)
        assert total == loop.state.usage

        loop.reset()
        assert loop.state.usage == Usage(0, 0)
        assert [m.role for m in loop.state.conversation] == [Role.SYSTEM]

    def test_usage_events_are_snapshots(self):
        provider = ScriptedProvider([
            tool_response(usage=(10, 5)),
            text_response(usage=(20, 8)),
        ])
        loop = AgentLoop(provider, make_registry(queryFindings=count_findings))
        events = []

        run(loop.run("q", on_event=events.append))

        first, second = [e.data for e in events if e.type == "usage"]
        assert first["turn"] == Usage(10, 5)
        assert first["run"] == Usage(10, 5)
        assert first["total"] == Usage(10, 5)
        assert second["run"] == Usage(30, 13)
        assert second["total"] is not loop.state.usage

    def test_history_accumulates_between_questions(self):
        provider = ScriptedProvider([text_response("one"), text_response("two")])
        loop = AgentLoop(provider, make_registry())

        run(loop.run("first"))
        run(loop.run("second"))

        assert [m.content for m in provider.calls[1]["messages"]] == ["first", "one", "second"]


# ═══════════════════════════════════════════════════════════════
# Tool dispatch inside the loop
# ═══════════════════════════════════════════════════════════════

class TestToolDispatch:

    def test_unknown_tool_becomes_result_text(self):
        provider = ScriptedProvider([tool_response("t1", "deleteCluster"), text_response()])
        loop = AgentLoop(provider, make_registry(queryFindings=count_findings))

        result = run(loop.run("q"))

        assert result.outcome is Outcome.FINISHED
        tool_msg = loop.state.conversation[2]
        assert "deleteCluster" in tool_msg.content
        assert "not available" in tool_msg.content
        assert "queryFindings" in tool_msg.content

    def test_concurrent_calls_keep_received_order(self):
        order = []

        async def slow(tag):
            await asyncio.sleep(0.05)
            order.append(tag)
            return f"slow {tag}"

        async def fast(tag):
            order.append(tag)
            return f"fast {tag}"

        provider = ScriptedProvider([
            Response(tool_calls=[ToolCall("a", "slow", {"tag": "a"}), ToolCall("b", "fast", {"tag": "b"})]),
            text_response(),
        ])
        loop = AgentLoop(provider, make_registry(slow=slow, fast=fast))

        run(loop.run("q"))

        assert order == ["b", "a"]
        results = [m for m in loop.state.conversation if m.role == Role.TOOL]
        assert [m.tool_call_id for m in results] == ["a", "b"]
        assert [m.content for m in results] == ["slow a", "fast b"]

    def test_event_sequence(self):
        provider = ScriptedProvider([
            tool_response("t1", content="Checking."),
            text_response("Done."),
        ])
        loop = AgentLoop(provider, make_registry(queryFindings=count_findings))
        events = []

        run(loop.run("q", on_event=events.append))

        assert [e.type for e in events] == [
            "usage", "text", "tool_start", "tool_end",
            "usage", "text", "done",
        ]
        assert events[2].data["tool"] == "queryFindings"
        assert events[3].data["success"] is True
        assert events[-1].data["result"].outcome is Outcome.FINISHED


# ═══════════════════════════════════════════════════════════════
# AgentState
# ═══════════════════════════════════════════════════════════════

class TestAgentState:

    def test_tool_message_requires_id(self):
        with pytest.raises(ValueError):
            AgentState().add_message(Message(Role.TOOL, "x"))

    def test_tool_call_id_only_on_tool_messages(self):
        with pytest.raises(ValueError):
            AgentState().add_message(Message(Role.USER, "x", tool_call_id="t1"))

    def test_tool_calls_only_on_assistant(self):
        with pytest.raises(ValueError):
            AgentState().add_message(Message(Role.USER, "x", tool_calls=[ToolCall("t1", "x")]))

    def test_add_turn_requires_matching_results(self):
        state = AgentState()
        assistant = Message.assistant("", [ToolCall("t1", "x"), ToolCall("t2", "y")])
        with pytest.raises(ValueError):
            state.add_turn(assistant, [Message.tool_result("t1", "r")])
        assert state.conversation == []

    def test_snapshot_and_rollback(self):
        state = AgentState()
        state.add_message(Message.system("s"))
        mark = state.snapshot()
        state.add_message(Message.user("u"))
        state.add_message(Message.assistant("a"))
        state.rollback(mark)
        assert state.conversation == [Message.system("s")]

    def test_clear_without_system(self):
        state = AgentState([Message.system("s"), Message.user("u")], Usage(3, 4))
        state.clear(keep_system=False)
        assert state.conversation == []
        assert state.usage == Usage()


# ═══════════════════════════════════════════════════════════════
# Loop over a real adapter with a faked HTTP transport
# ═══════════════════════════════════════════════════════════════

class TestLoopOverHttp:

    def test_empty_answer_does_not_poison_next_request(self, credentials):
        rec = Recorder(body={"content": []})
        provider = AnthropicProvider(credentials, http_client=rec.client())
        loop = AgentLoop(provider, make_registry())

        assert run(loop.run("first")).outcome is Outcome.FINISHED
        assert run(loop.run("second")).outcome is Outcome.FINISHED

        sent = rec.last_json["messages"]
        assert sent == [
            {"role": "user", "content": "first"},
            {"role": "user", "content": "second"},
        ]
        assert all(m["content"] for m in sent)

    def test_redirect_loop_is_failed_outcome(self, credentials):
        rec = Recorder(exc=httpx.TooManyRedirects("Exceeded maximum allowed redirects."))
        provider = AnthropicProvider(credentials, http_client=rec.client())
        loop = AgentLoop(provider, make_registry(), system_prompt="sys")

        result = run(loop.run("hi"))

        assert result.outcome is Outcome.FAILED
        assert isinstance(result.error, TransportError)
        assert [m.role for m in loop.state.conversation] == [Role.SYSTEM]
