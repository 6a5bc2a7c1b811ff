import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from app_contract import (
    DEFAULT_BASE_URL,
    DEFAULT_EXTRACTOR_MODEL,
    DEFAULT_SYNTHESIZER_MODEL,
    SERVICE_NAME,
)
from usage_tracker import _atomic_write_json

log = logging.getLogger(__name__)

API_KEY_NAME = "OPENROUTER_API_KEY"


def config_dir() -> Path:
    override = os.environ.get("LAZY_DM_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / "Library" / "Application Support" / "LazyDM"


def config_path() -> Path:
    return config_dir() / "config.json"


def usage_path() -> Path:
    return config_dir() / "usage.json"


def log_path() -> Path:
    return config_dir() / "lazy_dm.log"


def ensure_dirs() -> None:
    config_dir().mkdir(parents=True, exist_ok=True)


@dataclass
class PluginSettings:
    openrouter_api_key: str = ""
    extractor_model: str = DEFAULT_EXTRACTOR_MODEL
    synthesizer_model: str = DEFAULT_SYNTHESIZER_MODEL
    openrouter_base_url: str = DEFAULT_BASE_URL
    last_gm_zones_path: str = ""
    vault_path: str = ""
    active_note_path: str = ""


# Blank values for these fall back to the default instead of being stored as "".
_DEFAULTED_WHEN_BLANK = ("extractor_model", "synthesizer_model", "openrouter_base_url")


def keychain_set(name: str, value: str) -> None:
    keyring.set_password(SERVICE_NAME, name, value)


def keychain_get(name: str) -> Optional[str]:
    try:
        return keyring.get_password(SERVICE_NAME, name)
    except KeyringError as e:
        log.warning("Keychain read failed for %s: %s", name, e)
        return None


def keychain_delete(name: str) -> None:
    try:
        keyring.delete_password(SERVICE_NAME, name)
    except PasswordDeleteError:
        log.info("No keychain entry to delete for %s", name)


def load_config() -> dict:
    path = config_path()
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text("utf-8"))
    except ValueError as e:
        log.warning("Ignoring unreadable config %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def merge_settings(stored: dict) -> PluginSettings:
    """
    Stored values win over the defaults; unknown keys are dropped so an old
    config file never breaks startup.
    """
    defaults = PluginSettings()
    merged = asdict(defaults)
    known = {f.name for f in fields(PluginSettings)}
    for key, value in (stored or {}).items():
        if key in known and value is not None:
            merged[key] = str(value)
    for key in _DEFAULTED_WHEN_BLANK:
        if not merged[key].strip():
            merged[key] = getattr(defaults, key)
    return PluginSettings(**merged)


def load_settings() -> PluginSettings:
    settings = merge_settings(load_config())
    settings.openrouter_api_key = keychain_get(API_KEY_NAME) or ""
    return settings


def save_settings(settings: PluginSettings) -> None:
    data = asdict(settings)
    api_key = data.pop("openrouter_api_key", "")
    _atomic_write_json(config_path(), data)
    if api_key:
        keychain_set(API_KEY_NAME, api_key)


def save_config_fields(**changes) -> None:
    """
    Rewrite only the given keys on top of what is on disk right now, so values
    saved by another process in the meantime survive. Never touches the keychain.
    """
    data = asdict(merge_settings(load_config()))
    data.pop("openrouter_api_key", None)
    data.update(changes)
    _atomic_write_json(config_path(), data)


def save_last_gm_zones_path(settings: PluginSettings) -> None:
    save_config_fields(last_gm_zones_path=settings.last_gm_zones_path)


def clear_api_key() -> None:
    keychain_delete(API_KEY_NAME)
