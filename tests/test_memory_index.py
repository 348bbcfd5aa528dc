import json

import pytest

from axis_kernel.errors import MemoryValidationError
from axis_kernel.memory import MemoryIndex, MemoryKind, build_memory_context
from axis_kernel.scoring.memory_score import MS_PER_DAY

NOW = 1_700_000_000_000


class Clock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def index(tmp_path, clock):
    return MemoryIndex(tmp_path / "mem", clock=clock)


def _files(index):
    return sorted(p.name for p in index.entries_dir.iterdir() if not p.name.endswith(".tmp"))


def test_record_writes_entry_and_meta(index):
    meta = index.record("s1", "Weather in Tokyo?", "Sunny", provider="gpt")
    assert _files(index) == [f"{meta.id}.json", f"{meta.id}.meta.json"]
    entry = index.load_entry(meta.id)
    assert entry.input.text == "Weather in Tokyo?"
    assert entry.output.text == "Sunny"
    assert meta.search_text == "weather in tokyo?\nsunny"
    assert meta.kind is MemoryKind.SHORT_TERM


def test_same_interaction_twice_gets_distinct_ids(index):
    first = index.record("s1", "hello", "hi")
    second = index.record("s1", "hello", "hi")
    assert first.id != second.id
    assert len(index.list_meta()) == 2


def test_task_type_becomes_tag(index):
    meta = index.record("s1", "fix my loop", "done", task_type="code_edit", tags=["python"])
    assert meta.tags == ["python", "task:code_edit"]
    assert meta.task_type == "code_edit"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"importance": 1.5},
        {"importance": -0.1},
        {"kind": MemoryKind.SEALED},
        {"kind": MemoryKind.SEALED, "sealed_reason": "  "},
    ],
)
def test_invalid_record_rejected_before_write(index, kwargs):
    with pytest.raises(MemoryValidationError):
        index.record("s1", "secret", "value", **kwargs)
    assert _files(index) == []


def test_sealed_records_never_returned(index):
    index.record("s1", "bank password hint", "blue", kind=MemoryKind.SEALED, sealed_reason="private")
    visible = index.record("s1", "bank opening hours", "9 to 5")
    hits = index.retrieve_top_k("bank", 10)
    assert [h.id for h in hits] == [visible.id]


def test_scores_are_non_increasing(index, clock):
    for i, text in enumerate(["tokyo weather", "tokyo trains", "weather report", "osaka food"]):
        clock.now = NOW + i
        index.record("s1", text, "answer", importance=0.2 * i)
    hits = index.retrieve_top_k("tokyo weather", 10)
    assert len(hits) == 3
    scores = [h.score for h in hits]
    assert scores == sorted(scores, reverse=True)
    assert hits[0].entry.input.text == "tokyo weather"


def test_empty_query_returns_nothing(index, monkeypatch):
    index.record("s1", "anything", "at all")

    def boom():
        raise AssertionError("index scanned")

    monkeypatch.setattr(index, "list_meta", boom)
    assert index.retrieve_top_k("   ", 5) == []


def test_importance_and_recency_ranking(index, clock):
    clock.now = NOW - int(29 * MS_PER_DAY)
    old = index.record("s1", "weather in tokyo", "sunny", importance=0.1)
    clock.now = NOW
    fresh = index.record("s2", "weather in tokyo", "sunny", importance=0.9)
    hits = index.retrieve_top_k("weather in tokyo", 2)
    assert [h.id for h in hits] == [fresh.id, old.id]
    assert hits[0].score > hits[1].score


def test_k_limits_results(index):
    for _ in range(4):
        index.record("s1", "tokyo", "x")
    assert len(index.retrieve_top_k("tokyo", 2)) == 2
    assert index.search_best("tokyo") is not None
    assert index.search_best("zzz") is None


def test_rekind_promote_and_seal(index):
    meta = index.record("s1", "tokyo", "x")
    promoted = index.rekind(meta.id, MemoryKind.LONG_TERM)
    assert promoted.kind is MemoryKind.LONG_TERM
    sealed = index.rekind(meta.id, MemoryKind.SEALED, "outdated")
    assert sealed.sealed_reason == "outdated"
    assert index.retrieve_top_k("tokyo", 5) == []


def test_rekind_seal_without_reason_rejected(index):
    meta = index.record("s1", "tokyo", "x")
    with pytest.raises(MemoryValidationError):
        index.rekind(meta.id, MemoryKind.SEALED)
    assert index.load_meta(meta.id).kind is MemoryKind.SHORT_TERM


def test_rekind_missing_record(index):
    with pytest.raises(KeyError):
        index.rekind("nope", MemoryKind.LONG_TERM)


def test_delete(index):
    meta = index.record("s1", "tokyo", "x")
    assert index.delete(meta.id) is True
    assert index.delete(meta.id) is False
    assert _files(index) == []


def test_traversal_session_id_stays_inside_entries(tmp_path, index):
    meta = index.record("../../escaped", "hello world", "hi")
    assert meta.session_id == "../../escaped"
    assert "/" not in meta.id
    assert _files(index) == [f"{meta.id}.json", f"{meta.id}.meta.json"]
    written = sorted(p for p in tmp_path.rglob("*.json") if "logs" not in p.parts)
    assert all(p.parent == index.entries_dir for p in written)


def test_session_id_with_slash_is_remembered(index):
    meta = index.record("team/alpha", "deploy status", "green")
    assert meta.id.startswith("team_alpha-")
    assert index.load_entry(meta.id).session_id == "team/alpha"
    assert [hit.id for hit in index.retrieve_top_k("deploy status", 5)] == [meta.id]


@pytest.mark.parametrize("record_id", ["../outside", "../../etc/passwd", "nested/../../x"])
def test_record_ids_outside_entries_rejected(tmp_path, index, record_id):
    outside = tmp_path / "mem" / "outside.json"
    outside.write_text("{}", encoding="utf-8")
    with pytest.raises(MemoryValidationError):
        index.delete(record_id)
    with pytest.raises(MemoryValidationError):
        index.load_meta(record_id)
    with pytest.raises(MemoryValidationError):
        index.rekind(record_id, MemoryKind.LONG_TERM)
    assert outside.exists()


def test_save_persists_prebuilt_pair(index):
    meta = index.record("s1", "tokyo trip", "booked")
    entry = index.load_entry(meta.id)
    index.delete(meta.id)
    index.save(entry, meta)
    assert _files(index) == [f"{meta.id}.json", f"{meta.id}.meta.json"]
    assert index.load_entry(meta.id).output.text == "booked"


def test_save_rejects_mismatched_ids(index, clock):
    first = index.record("s1", "tokyo", "x")
    clock.now += 1
    second = index.record("s1", "osaka", "y")
    index.delete(second.id)
    with pytest.raises(MemoryValidationError):
        index.save(index.load_entry(first.id), second)
    assert _files(index) == [f"{first.id}.json", f"{first.id}.meta.json"]


def test_corrupt_meta_file_is_skipped(index):
    meta = index.record("s1", "tokyo", "x")
    (index.entries_dir / "broken.meta.json").write_text("{not json", encoding="utf-8")
    assert [m.id for m in index.list_meta()] == [meta.id]
    assert len(index.retrieve_top_k("tokyo", 5)) == 1


def test_meta_file_is_plain_json(index):
    meta = index.record("s1", "tokyo", "x", references=["doc-1"])
    data = json.loads((index.entries_dir / f"{meta.id}.meta.json").read_text(encoding="utf-8"))
    assert data["references"] == ["doc-1"]
    assert data["kind"] == "SHORT_TERM"


def test_memory_context_block(index):
    index.record("s1", "weather in tokyo", "sunny and warm")
    block = build_memory_context(index, "tokyo weather")
    assert block.startswith("\n[Relevant Memories]\n- (score=")
    assert "Q: weather in tokyo / A: sunny and warm" in block


def test_memory_context_empty(index):
    assert build_memory_context(index, "nothing stored") == ""


def test_memory_context_truncates(index):
    index.record("s1", "tokyo " + "q" * 200, "a" * 300)
    block = build_memory_context(index, "tokyo")
    line = block.splitlines()[-1]
    question = line.split("Q: ", 1)[1].split(" / A: ")[0]
    answer = line.split(" / A: ", 1)[1]
    assert len(question) == 80
    assert len(answer) == 120
