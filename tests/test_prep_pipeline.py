import json
from pathlib import Path

import pytest

import prep_pipeline
from app_contract import PREP_END_MARKER, PREP_START_MARKER
from prep_errors import EmptyAssetSetError, PrepAlreadyRunningError
from prep_pipeline import PrepPipeline, note_guard
from settings_store import PluginSettings
from vault import Vault

EXTRACTED = {
    "maps": [{"name": "map_player", "file": "map_player.png", "zones": [{"zoneId": "A-1", "title": "Gate", "summary": "A gate."}]}],
    "zone_descriptions": [{"zoneId": "A-1", "details": "Rusty portcullis."}],
    "connections": [],
    "party_summary": {"roles": "fighter, wizard"},
    "transitions": [],
}
MARKDOWN = "## Strong Start\n\nDie Tore öffnen sich (A-1)."


class FakeClient:
    def __init__(self):
        self.calls = []

    def create_chat_completion(self, model, messages):
        self.calls.append({"model": model, "messages": messages})
        if model == "ext":
            content = "```json\n" + json.dumps(EXTRACTED) + "\n```"
        else:
            content = MARKDOWN
        return {"choices": [{"message": {"content": content}}]}


def _vault_with_session(tmp_path: Path) -> Vault:
    s = tmp_path / "Campaign" / "Session 3"
    s.mkdir(parents=True)
    (s / "map_player.png").write_bytes(b"\x89PNG" + b"\0" * (500 * 1024))
    (s / "map.png").write_bytes(b"\x89PNG gm only")
    (s / "sheet.pdf").write_bytes(b"%PDF" + b"\0" * (1024 * 1024))
    (s / "Prep.md").write_text("# Session 3\n\nMy own notes.\n", "utf-8")
    return Vault(tmp_path)


def _pipeline(vault, client, notices):
    settings = PluginSettings(openrouter_api_key="k", extractor_model="ext", synthesizer_model="syn")
    return PrepPipeline(vault, settings, notices.append, client=client)


def test_end_to_end_writes_markdown_between_markers(tmp_path: Path):
    vault = _vault_with_session(tmp_path)
    note = vault.get_file("Campaign/Session 3/Prep.md")
    client = FakeClient()
    notices = []

    out = _pipeline(vault, client, notices).generate(note)

    assert out == MARKDOWN
    assert [c["model"] for c in client.calls] == ["ext", "syn"]

    blocks = client.calls[0]["messages"][1]["content"]
    labels = [b["text"] for b in blocks[1:] if b["type"] == "text"]
    assert labels == [
        "Map 1: map_player (Campaign/Session 3/map_player.png)",
        "Character PDF 1: sheet",
    ]

    synth_user = client.calls[1]["messages"][1]["content"]
    assert '"zoneId": "A-1"' in synth_user

    text = vault.read(note)
    assert text.startswith("# Session 3\n\nMy own notes.")
    assert f"{PREP_START_MARKER}\n{MARKDOWN}\n{PREP_END_MARKER}\n" in text
    assert notices[-1] == "Lazy DM prep inserted into the note."


def test_rerun_replaces_previous_block(tmp_path: Path):
    vault = _vault_with_session(tmp_path)
    note = vault.get_file("Campaign/Session 3/Prep.md")
    pipeline = _pipeline(vault, FakeClient(), [])

    pipeline.generate(note)
    first = vault.read(note)
    vault.append(note, "\nAfter the block.\n")
    pipeline.generate(note)

    text = vault.read(note)
    assert text == first + "\nAfter the block.\n"
    assert text.count(PREP_START_MARKER) == 1


def test_empty_folder_fails_before_any_request(tmp_path: Path):
    (tmp_path / "Prep.md").write_text("x", "utf-8")
    vault = Vault(tmp_path)
    client = FakeClient()

    with pytest.raises(EmptyAssetSetError):
        _pipeline(vault, client, []).generate(vault.get_file("Prep.md"))

    assert client.calls == []
    assert vault.read(vault.get_file("Prep.md")) == "x"


def test_second_run_for_same_note_is_rejected(tmp_path: Path):
    vault = _vault_with_session(tmp_path)
    note = vault.get_file("Campaign/Session 3/Prep.md")

    with note_guard(note.path):
        with pytest.raises(PrepAlreadyRunningError):
            _pipeline(vault, FakeClient(), []).generate(note)

    # guard released afterwards
    assert _pipeline(vault, FakeClient(), []).generate(note) == MARKDOWN


def test_guard_released_after_failure(tmp_path: Path):
    (tmp_path / "Prep.md").write_text("x", "utf-8")
    vault = Vault(tmp_path)
    note = vault.get_file("Prep.md")

    with pytest.raises(EmptyAssetSetError):
        _pipeline(vault, FakeClient(), []).generate(note)

    assert note.path not in prep_pipeline._in_flight_notes
