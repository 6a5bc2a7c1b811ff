import logging
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import usage_tracker
from app_contract import EXTRACTOR_MAX_ATTEMPTS
from assets import load_assets_for_folder
from openrouter_client import OpenRouterClient, first_message_content
from prep_errors import EmptyAssetSetError, ExtractionFailedError, PrepAlreadyRunningError
from prep_format import (
    build_extractor_messages,
    build_synthesizer_messages,
    parse_json_content,
    patch_prep_region,
)
from settings_store import PluginSettings
from vault import Vault, VaultFile

log = logging.getLogger(__name__)

_IN_FLIGHT_LOCK = threading.Lock()
_in_flight_notes: set = set()


@contextmanager
def note_guard(note_path: str):
    """Only one prep run per note at a time; a second one is rejected."""
    with _IN_FLIGHT_LOCK:
        if note_path in _in_flight_notes:
            raise PrepAlreadyRunningError(f"Prep is already running for {note_path}.")
        _in_flight_notes.add(note_path)
    try:
        yield
    finally:
        with _IN_FLIGHT_LOCK:
            _in_flight_notes.discard(note_path)


class PrepPipeline:
    """
    scan -> materialize -> extract (with one retry) -> synthesize -> patch note.
    Steps run strictly one after another.
    """

    def __init__(
        self,
        vault: Vault,
        settings: PluginSettings,
        notice_cb: Callable[[str], None],
        client: Optional[OpenRouterClient] = None,
        usage_path: Optional[Path] = None,
    ):
        self.vault = vault
        self.settings = settings
        self.notice_cb = notice_cb
        self.client = client or OpenRouterClient(
            base_url=settings.openrouter_base_url,
            api_key=settings.openrouter_api_key,
            notice_cb=notice_cb,
        )
        self.usage_path = usage_path
        self.current_note: Optional[VaultFile] = None

    def _complete(self, stage: str, model: str, messages: List[Dict[str, Any]]) -> str:
        response = self.client.create_chat_completion(model=model, messages=messages)
        if self.usage_path is not None:
            event = {"ts": time.time(), "stage": stage, "model": model}
            event.update(usage_tracker.usage_from_response(response))
            if self.current_note is not None:
                event["note"] = self.current_note.path
            usage_tracker.append_event(self.usage_path, event)
        return first_message_content(response)

    def request_extractor(self, messages: List[Dict[str, Any]]) -> Any:
        for attempt in range(1, EXTRACTOR_MAX_ATTEMPTS + 1):
            content = self._complete("extractor", self.settings.extractor_model, messages)
            parsed = parse_json_content(content)
            if parsed is not None:
                return parsed

            log.warning("Extractor attempt %d returned invalid JSON", attempt)
            if attempt == 1:
                self.notice_cb("Extractor returned invalid JSON. Retrying once...")

        raise ExtractionFailedError("Extractor failed to produce valid JSON after retry.")

    def request_synthesizer(self, messages: List[Dict[str, Any]]) -> str:
        return self._complete("synthesizer", self.settings.synthesizer_model, messages)

    def update_note_with_prep(self, note: VaultFile, markdown: str) -> None:
        current = self.vault.read(note)
        self.vault.modify(note, patch_prep_region(current, markdown))

    def generate(self, note: VaultFile) -> str:
        with note_guard(note.path):
            self.current_note = note
            try:
                return self._generate(note)
            finally:
                self.current_note = None

    def _generate(self, note: VaultFile) -> str:
        assets = load_assets_for_folder(self.vault, note.parent, self.notice_cb)
        if assets.is_empty:
            raise EmptyAssetSetError("No maps or character PDFs found in the folder.")

        log.info("Prep for %s: %d map(s), %d PC sheet(s)", note.path, len(assets.maps), len(assets.pcs))

        self.notice_cb("Extracting structured prep from assets...")
        extracted = self.request_extractor(build_extractor_messages(assets))

        self.notice_cb("Synthesizing final prep in German...")
        markdown = self.request_synthesizer(build_synthesizer_messages(extracted, assets))

        self.update_note_with_prep(note, markdown)
        self.notice_cb("Lazy DM prep inserted into the note.")
        return markdown
