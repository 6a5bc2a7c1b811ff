import json

import settings_store as ss
from app_contract import DEFAULT_BASE_URL, DEFAULT_EXTRACTOR_MODEL, DEFAULT_SYNTHESIZER_MODEL


def _isolate(monkeypatch, tmp_path):
    monkeypatch.setenv("LAZY_DM_CONFIG_DIR", str(tmp_path / "cfg"))
    keychain = {}
    monkeypatch.setattr(ss, "keychain_get", lambda name: keychain.get(name))
    monkeypatch.setattr(ss, "keychain_set", lambda name, value: keychain.__setitem__(name, value))
    return keychain


def test_first_load_returns_defaults(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)

    s = ss.load_settings()

    assert s == ss.PluginSettings()
    assert s.extractor_model == DEFAULT_EXTRACTOR_MODEL
    assert s.synthesizer_model == DEFAULT_SYNTHESIZER_MODEL
    assert s.openrouter_base_url == DEFAULT_BASE_URL


def test_stored_values_are_merged_over_defaults(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    path = ss.config_path()
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"synthesizer_model": "custom/model", "obsolete_key": 1, "extractor_model": ""}), "utf-8")

    s = ss.load_settings()

    assert s.synthesizer_model == "custom/model"
    assert s.extractor_model == DEFAULT_EXTRACTOR_MODEL
    assert not hasattr(s, "obsolete_key")


def test_save_keeps_api_key_out_of_json(monkeypatch, tmp_path):
    keychain = _isolate(monkeypatch, tmp_path)
    s = ss.PluginSettings(openrouter_api_key="sk-or-secret", last_gm_zones_path="s1/cave_gm_zones.png")

    ss.save_settings(s)

    raw = ss.config_path().read_text("utf-8")
    assert "sk-or-secret" not in raw
    assert json.loads(raw)["last_gm_zones_path"] == "s1/cave_gm_zones.png"
    assert keychain == {ss.API_KEY_NAME: "sk-or-secret"}
    assert ss.load_settings() == s


def test_unreadable_config_falls_back_to_defaults(monkeypatch, tmp_path):
    _isolate(monkeypatch, tmp_path)
    path = ss.config_path()
    path.parent.mkdir(parents=True)
    path.write_text("{not json", "utf-8")

    assert ss.load_settings() == ss.PluginSettings()


def test_keychain_errors_read_as_missing(monkeypatch):
    from keyring.errors import KeyringError

    def broken(service, name):
        raise KeyringError("no backend")

    monkeypatch.setattr(ss.keyring, "get_password", broken)

    assert ss.keychain_get(ss.API_KEY_NAME) is None


def test_saving_zones_path_keeps_changes_made_by_another_process(monkeypatch, tmp_path):
    keychain = _isolate(monkeypatch, tmp_path)
    ss.save_settings(ss.PluginSettings(vault_path="/vaults/old", active_note_path="s1/Prep.md"))
    stale = ss.load_settings()

    fresh = ss.load_settings()
    fresh.vault_path = "/vaults/new"
    fresh.active_note_path = "s2/Prep.md"
    ss.save_settings(fresh)

    stale.last_gm_zones_path = "s1/cave_gm_zones.png"
    ss.save_last_gm_zones_path(stale)

    s = ss.load_settings()
    assert s.vault_path == "/vaults/new"
    assert s.active_note_path == "s2/Prep.md"
    assert s.last_gm_zones_path == "s1/cave_gm_zones.png"
    assert keychain == {}


def test_clear_api_key_deletes_keychain_entry(monkeypatch):
    deleted = []
    monkeypatch.setattr(ss.keyring, "delete_password", lambda service, name: deleted.append((service, name)))

    ss.clear_api_key()

    assert deleted == [(ss.SERVICE_NAME, ss.API_KEY_NAME)]


def test_clear_api_key_without_entry_is_quiet(monkeypatch):
    from keyring.errors import PasswordDeleteError

    def missing(service, name):
        raise PasswordDeleteError("not found")

    monkeypatch.setattr(ss.keyring, "delete_password", missing)

    ss.clear_api_key()
