import json

from coach.store.kv import JsonFileBackend, MemoryBackend
from coach.store.profile import STORY_STORAGE_KEY, USER_STORAGE_KEY, StoryStore, UserProfileStore
from coach.voice.handoff import LATEST_KEY, HandoffStore, TranscriptHandoff, TranscriptRecord
from coach.voice.session import default_handoff
from coach.voice.transcript import Speaker, TranscriptEntry


def _record(session_id="s-1", topic="leadership"):
    entries = [
        TranscriptEntry(Speaker.ASSISTANT, "Tell me about a time you handled leadership."),
        TranscriptEntry(Speaker.USER, "I led a migration."),
    ]
    return TranscriptRecord.build(session_id, topic, entries)


def test_json_backend_persists_across_instances(tmp_path):
    path = tmp_path / "nested" / "store.json"
    backend = JsonFileBackend(path)
    backend.set("a", {"x": 1})
    backend.set("b", [1, 2])

    reopened = JsonFileBackend(path)
    assert reopened.get("a") == {"x": 1}
    assert sorted(reopened.keys()) == ["a", "b"]
    assert reopened.delete("a") == {"x": 1}
    assert reopened.delete("a") is None
    assert json.loads(path.read_text(encoding="utf-8")) == {"b": [1, 2]}


def test_json_backend_ignores_corrupt_file(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{broken", encoding="utf-8")
    assert JsonFileBackend(path).get("anything", "fallback") == "fallback"


def test_shared_json_backend_sees_writes_from_another_writer(tmp_path):
    path = tmp_path / "handoff.json"
    reader = JsonFileBackend(path, shared=True)
    writer = JsonFileBackend(path)

    writer.set("k", "v")

    assert reader.get("k") == "v"


def test_transcript_record_artifact_shape():
    artifact = _record().to_artifact()
    assert artifact["topic"] == "leadership"
    assert artifact["transcript"] == [
        {"from": "assistant", "text": "Tell me about a time you handled leadership."},
        {"from": "user", "text": "I led a migration."},
    ]
    assert artifact["timestamp"].endswith("+00:00")


def test_handoff_store_take_consumes_record():
    store = HandoffStore(MemoryBackend())
    store.put(_record("s-1"))

    assert store.pending() == ["s-1"]
    assert store.take("s-1")["topic"] == "leadership"
    assert store.take("s-1") is None
    assert store.take_latest() is None
    assert store.take("") is None


def test_handoff_store_latest_tracks_newest_record():
    backend = MemoryBackend()
    store = HandoffStore(backend)
    store.put(_record("old"))
    store.put(_record("new", topic="conflict"))

    session_id, artifact = store.take_latest()

    assert session_id == "new"
    assert artifact["topic"] == "conflict"
    assert backend.get(LATEST_KEY) is None
    assert store.pending() == ["old"]


def test_transcript_handoff_notifies_after_write():
    store = HandoffStore(MemoryBackend())
    seen = []

    def on_ready(record):
        seen.append((record.session_id, store.pending()))

    TranscriptHandoff(store, on_ready=on_ready).handoff(_record("s-9"))

    assert seen == [("s-9", ["s-9"])]


def test_profile_store_flushes_each_setter(tmp_path):
    path = tmp_path / "profile.json"
    store = UserProfileStore(JsonFileBackend(path))
    store.set_personality_type("INTJ")
    store.set_experience("senior")
    store.set_goals(["leadership", "communication"])
    store.set_resume("10 years backend")
    store.set_job_description("Staff engineer")
    store.set_additional_notes("prefers concise feedback")

    reloaded = UserProfileStore(JsonFileBackend(path)).profile
    assert reloaded.personality_type == "INTJ"
    assert reloaded.goals == ["leadership", "communication"]
    assert reloaded.as_prompt_profile() == {
        "resume": "10 years backend",
        "jobDescription": "Staff engineer",
        "additionalNotes": "prefers concise feedback",
    }
    assert USER_STORAGE_KEY in json.loads(path.read_text(encoding="utf-8"))


def test_story_store_crud():
    backend = MemoryBackend()
    stories = StoryStore(backend)

    added = stories.add({"title": "Migration", "situation": "legacy db"})
    assert added["id"]
    assert stories.get(added["id"])["title"] == "Migration"

    assert stories.update(added["id"], {"result": "zero downtime", "id": "hijack"}) is True
    assert stories.get(added["id"])["result"] == "zero downtime"
    assert stories.update("missing", {"x": 1}) is False

    assert StoryStore(backend).list() == stories.list()
    assert stories.remove(added["id"]) is True
    assert stories.remove(added["id"]) is False
    assert backend.get(STORY_STORAGE_KEY) == []


def test_client_handoff_does_not_restore_record_consumed_by_api(tmp_path):
    api_store = HandoffStore(JsonFileBackend(tmp_path / "handoff.json", shared=True))
    api_store.put(_record("A"))
    client = default_handoff(str(tmp_path))

    assert api_store.take("A") is not None
    assert api_store.take("A") is None

    client.handoff(_record("B"))

    assert api_store.take("A") is None
    assert api_store.pending() == ["B"]
    assert api_store.take_latest()[0] == "B"
