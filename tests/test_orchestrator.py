import json

import pytest

from axis_kernel.config import Settings
from axis_kernel.errors import ProviderHTTPError
from axis_kernel.memory import MemoryKind
from axis_kernel.orchestrator import Task

from conftest import FakeFetcher, make_registry


def _route(target, task_type="general_qa"):
    return json.dumps({"target": target, "task_type": task_type, "reason": "test"})


@pytest.mark.asyncio
async def test_save_request_end_to_end(build_orchestrator, settings):
    llama = FakeFetcher("llama", [_route("gemini", "file_gen")])
    gemini = FakeFetcher("gemini", ["SAVE: notes.txt ||| 2+2 = 4"])
    gpt = FakeFetcher("gpt", ["I saved the result to notes.txt"])
    orch = build_orchestrator(make_registry(llama=llama, gemini=gemini, gpt=gpt))

    result = await orch.ask("What's 2+2 and save that as notes.txt as text", "s1")

    assert (settings.output_dir / "notes.txt").read_text(encoding="utf-8") == "2+2 = 4"
    assert result.answer == "I saved the result to notes.txt"
    assert result.actions_ran
    assert result.provider_used == "llama→gemini"
    assert result.task_type == "file_gen"
    report_prompt = gpt.calls[0][1]
    assert "[System] File saved successfully:" in report_prompt

    turns = orch.assembler.history.for_session("s1")
    assert [t.output_text for t in turns] == ["I saved the result to notes.txt"]
    assert turns[0].provider_used == "llama→gemini"
    metas = orch.assembler.index.list_meta()
    assert len(metas) == 1
    assert "task:file_gen" in metas[0].tags
    assert metas[0].provider == "gemini"


@pytest.mark.asyncio
async def test_named_worker_gets_context_block(build_orchestrator):
    llama = FakeFetcher("llama", [_route("gpt")])
    gpt = FakeFetcher("gpt", ["Paris."])
    orch = build_orchestrator(make_registry(llama=llama, gpt=gpt))
    result = await orch.ask("capital of france?", "s1")
    assert result.answer == "Paris."
    system_prompt, user_text, temperature = gpt.calls[0]
    assert system_prompt == orch.worker_prompt
    assert user_text.startswith("Context:\nNone\n")
    assert user_text.endswith("\n\nUser Request: capital of france?")
    assert temperature is None


@pytest.mark.asyncio
async def test_unknown_target_uses_default_worker_with_raw_input(build_orchestrator):
    llama = FakeFetcher("llama", [_route("mystery-model"), "hello from llama"])
    orch = build_orchestrator(make_registry(llama=llama))
    result = await orch.ask("hi there", "s1")
    assert result.answer == "hello from llama"
    assert result.provider_used == "llama→llama"
    _, user_text, temperature = llama.calls[1]
    assert user_text == "hi there"
    assert temperature == 0.7


@pytest.mark.asyncio
async def test_malformed_routing_reply_uses_fallback_target(build_orchestrator):
    llama = FakeFetcher("llama", ["I would pick gpt for this"])
    gpt = FakeFetcher("gpt", ["answer"])
    orch = build_orchestrator(make_registry(llama=llama, gpt=gpt))
    result = await orch.ask("explain closures", "s1")
    assert result.target == "gpt"
    assert result.answer == "answer"


@pytest.mark.asyncio
async def test_ensemble_labels_both_answers(build_orchestrator):
    llama = FakeFetcher("llama", [_route("ensemble")])
    gpt = FakeFetcher("gpt", ["Use a list."])
    gemini = FakeFetcher("gemini", ["Use a tuple."])
    orch = build_orchestrator(make_registry(llama=llama, gpt=gpt, gemini=gemini))
    result = await orch.ask("list or tuple?", "s1")
    assert result.answer == "GPT: Use a list.\nGemini: Use a tuple."
    assert result.provider_used == "llama→ensemble"


@pytest.mark.asyncio
async def test_ensemble_member_failure_leaves_empty_slot(build_orchestrator):
    llama = FakeFetcher("llama", [_route("ensemble")])
    gemini = FakeFetcher("gemini", error=ProviderHTTPError(500, "down"))
    gpt = FakeFetcher("gpt", ["Only me."])
    orch = build_orchestrator(make_registry(llama=llama, gpt=gpt, gemini=gemini))
    result = await orch.ask("opinions?", "s1")
    assert result.answer == "GPT: Only me.\nGemini:"


@pytest.mark.asyncio
async def test_worker_failure_surfaces_error_answer(build_orchestrator):
    llama = FakeFetcher("llama", [_route("gpt")])
    gpt = FakeFetcher("gpt", error=ProviderHTTPError(500, "boom"))
    orch = build_orchestrator(make_registry(llama=llama, gpt=gpt))
    result = await orch.ask("anything", "s1")
    assert result.answer == "Error: API Error [500]: boom"
    assert len(orch.assembler.history.for_session("s1")) == 1


@pytest.mark.asyncio
async def test_worker_reply_is_sanitized(build_orchestrator):
    llama = FakeFetcher("llama", [_route("grok")])
    grok = FakeFetcher("grok", ["CONVERSATION: Hey!"])
    orch = build_orchestrator(make_registry(llama=llama, grok=grok))
    result = await orch.ask("yo", "s1")
    assert result.answer == "Hey!"


@pytest.mark.asyncio
async def test_history_reaches_router_and_worker(build_orchestrator):
    llama = FakeFetcher("llama", [_route("gpt")])
    gpt = FakeFetcher("gpt", ["first answer", "second answer"])
    orch = build_orchestrator(make_registry(llama=llama, gpt=gpt))
    await orch.ask("first question", "s1")
    await orch.ask("second question", "s1")
    router_prompt = llama.calls[1][0]
    assert "User: first question\nAxis: first answer" in router_prompt
    worker_input = gpt.calls[1][1]
    assert "User: first question\nAxis: first answer" in worker_input


@pytest.mark.asyncio
async def test_memory_reaches_worker_across_sessions(build_orchestrator):
    llama = FakeFetcher("llama", [_route("gpt")])
    gpt = FakeFetcher("gpt", ["Sunny all week", "Bring sunglasses"])
    orch = build_orchestrator(make_registry(llama=llama, gpt=gpt))
    await orch.ask("tokyo weather forecast", "s1")
    await orch.ask("what about tokyo weather tomorrow", "s2")
    worker_input = gpt.calls[1][1]
    assert "Context:\nNone\n" in worker_input
    assert "[Relevant Memories]" in worker_input
    assert "Q: tokyo weather forecast / A: Sunny all week" in worker_input


@pytest.mark.asyncio
async def test_persistence_failures_do_not_fail_request(build_orchestrator, monkeypatch):
    llama = FakeFetcher("llama", [_route("gpt")])
    gpt = FakeFetcher("gpt", ["fine"])
    orch = build_orchestrator(make_registry(llama=llama, gpt=gpt))

    def broken_append(turn):
        raise OSError("disk full")

    def broken_record(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(orch.assembler.history, "append", broken_append)
    monkeypatch.setattr(orch.assembler.index, "record", broken_record)
    result = await orch.ask("still answer me", "s1")
    assert result.answer == "fine"


@pytest.mark.asyncio
async def test_session_id_with_path_separators_is_remembered(build_orchestrator):
    llama = FakeFetcher("llama", [_route("gpt")])
    gpt = FakeFetcher("gpt", ["rollout is green"])
    orch = build_orchestrator(make_registry(llama=llama, gpt=gpt))
    await orch.ask("deploy status?", "team/alpha")
    metas = orch.assembler.index.list_meta()
    assert [m.session_id for m in metas] == ["team/alpha"]
    assert metas[0].id.startswith("team_alpha-")


@pytest.mark.asyncio
async def test_direct_recall_answers_from_memory(build_orchestrator, tmp_path):
    cfg = Settings(
        data_dir=tmp_path / "data",
        output_dir=tmp_path / "out",
        memory_direct_recall=True,
        _env_file=None,
    )
    llama = FakeFetcher("llama")
    orch = build_orchestrator(make_registry(llama=llama), settings_obj=cfg)
    orch.assembler.index.record("old", "capital of france", "Paris", importance=0.9, task_type="general_qa")

    result = await orch.ask("capital of france", "s1")
    assert result.answer == "Paris"
    assert result.provider_used == "memory"
    assert result.task_type == "general_qa"
    assert llama.calls == []
    assert orch.assembler.history.for_session("s1")[0].provider_used == "memory"


@pytest.mark.asyncio
async def test_direct_recall_disabled_by_default(build_orchestrator):
    llama = FakeFetcher("llama", [_route("gpt")])
    orch = build_orchestrator(make_registry(llama=llama))
    orch.assembler.index.record("old", "capital of france", "Paris", importance=0.9)
    result = await orch.ask("capital of france", "s1")
    assert result.provider_used == "llama→gpt"


@pytest.mark.asyncio
async def test_sealed_memory_never_injected(build_orchestrator):
    llama = FakeFetcher("llama", [_route("gpt")])
    gpt = FakeFetcher("gpt", ["ok"])
    orch = build_orchestrator(make_registry(llama=llama, gpt=gpt))
    orch.assembler.index.record(
        "old", "my pin code", "1234", kind=MemoryKind.SEALED, sealed_reason="private"
    )
    await orch.ask("what is my pin code", "s1")
    assert "1234" not in gpt.calls[0][1]


@pytest.mark.asyncio
async def test_forget_removes_session(build_orchestrator):
    llama = FakeFetcher("llama", [_route("gpt")])
    orch = build_orchestrator(make_registry(llama=llama))
    await orch.ask("one", "s1")
    await orch.ask("two", "s1")
    await orch.ask("three", "s2")
    assert await orch.forget("s1") == 2
    assert orch.assembler.history.for_session("s1") == []
    assert len(orch.assembler.history.for_session("s2")) == 1


@pytest.mark.asyncio
async def test_run_accepts_task_or_dict(build_orchestrator):
    llama = FakeFetcher("llama", [_route("gpt")])
    orch = build_orchestrator(make_registry(llama=llama))
    first = await orch.run(Task(text="hi", session_id="a"))
    second = await orch.run({"text": "hello", "session_id": "b"})
    assert first.session_id == "a"
    assert second.session_id == "b"


@pytest.mark.asyncio
async def test_ask_writes_completion_event(build_orchestrator, isolated_logs):
    llama = FakeFetcher("llama", [_route("gpt")])
    orch = build_orchestrator(make_registry(llama=llama))
    await orch.ask("log me", "s1")
    lines = (isolated_logs / "kernel.log").read_text().splitlines()
    record = json.loads(lines[-1])
    assert record["event"] == "ask_complete"
    assert record["session_id"] == "s1"
    assert record["provider_used"] == "llama→gpt"
