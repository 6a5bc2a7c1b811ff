"""
The five user-facing commands, independent of any particular UI toolkit.

The host passes in its collaborators:
  notice(text)                      transient notification
  present_choice(labels) -> index   pick one entry, None when cancelled
  annotate(map_file)                open the annotation surface for a map
  open_path(abs_path)               show a file to the user

Every command reports its own fatal errors (one notice + one log entry) and
never raises into the host.
"""

import logging
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from assets import build_folder_summary, check_asset
from openrouter_client import OpenRouterClient, first_message_content
from prep_errors import (
    EmptyAssetSetError,
    FileTooLargeError,
    LazyDMError,
    PrepAlreadyRunningError,
    UnsupportedTypeError,
)
from prep_format import format_folder_summary_block
from prep_pipeline import PrepPipeline
from prompt_contract import CONNECTIVITY_PROMPT
from settings_store import PluginSettings
from vault import Vault, VaultFile, VaultFolder

log = logging.getLogger(__name__)


class LazyDMCommands:
    def __init__(
        self,
        vault: Vault,
        settings: PluginSettings,
        notice: Callable[[str], None],
        present_choice: Optional[Callable[[Sequence[str]], Optional[int]]] = None,
        annotate: Optional[Callable[[VaultFile], None]] = None,
        open_path: Optional[Callable[[Path], None]] = None,
        usage_path: Optional[Path] = None,
    ):
        self.vault = vault
        self.settings = settings
        self.notice = notice
        self.present_choice = present_choice
        self.annotate = annotate
        self.open_path = open_path
        self.usage_path = usage_path

    def _client(self) -> OpenRouterClient:
        return OpenRouterClient(
            base_url=self.settings.openrouter_base_url,
            api_key=self.settings.openrouter_api_key,
            notice_cb=self.notice,
        )

    def active_note(self, action: str) -> Optional[VaultFile]:
        note = self.vault.get_file(self.settings.active_note_path)
        if note is None:
            self.notice(f"Open a note to {action}.")
        return note

    def test_connectivity(self) -> bool:
        if not self.settings.openrouter_api_key:
            self.notice("Set the OpenRouter API key in settings first.")
            return False

        try:
            response = self._client().create_chat_completion(
                model=self.settings.synthesizer_model,
                messages=[{"role": "user", "content": CONNECTIVITY_PROMPT}],
            )
        except LazyDMError as e:
            log.error("OpenRouter test failed: %s", e)
            self.notice("OpenRouter test failed. Check the log for details.")
            return False

        content = first_message_content(response) or "Received a response from OpenRouter."
        self.notice(f"OpenRouter test succeeded: {content}"[:200])
        return True

    def scan_folder_and_append(self) -> bool:
        note = self.active_note("scan its folder")
        if note is None:
            return False

        summary = build_folder_summary(self.vault, note.parent)
        try:
            self.vault.append(note, format_folder_summary_block(summary))
        except OSError as e:
            log.error("Failed to append folder summary to %s: %s", note.path, e)
            self.notice("Failed to append folder summary. Check the log for details.")
            return False

        self.notice("Folder summary appended to the current note.")
        return True

    def generate_prep(self) -> Optional[str]:
        note = self.active_note("generate prep")
        if note is None:
            return None

        pipeline = PrepPipeline(
            self.vault,
            self.settings,
            self.notice,
            client=self._client(),
            usage_path=self.usage_path,
        )
        try:
            return pipeline.generate(note)
        except (EmptyAssetSetError, PrepAlreadyRunningError) as e:
            log.warning("Prep not started for %s: %s", note.path, e)
            self.notice(str(e))
        except (LazyDMError, OSError) as e:
            log.error("Lazy DM prep generation failed for %s: %s", note.path, e)
            self.notice("Prep generation failed. Check the log for details.")
        return None

    def pick_map_from_folder(self, folder: VaultFolder) -> Optional[VaultFile]:
        summary = build_folder_summary(self.vault, folder)
        if not summary.maps:
            self.notice("No maps detected in the current folder.")
            return None

        labels: List[str] = [m.name or m.path for m in summary.maps]
        idx = self.present_choice(labels) if self.present_choice else 0
        if idx is None or not 0 <= idx < len(summary.maps):
            self.notice("Map selection cancelled.")
            return None

        file = self.vault.get_file(summary.maps[idx].path)
        if file is None:
            self.notice("Selected map could not be loaded.")
        return file

    def annotate_gm_zones(self) -> Optional[VaultFile]:
        note = self.active_note("choose a map from its folder")
        if note is None:
            return None

        map_file = self.pick_map_from_folder(note.parent)
        if map_file is None:
            return None

        try:
            check_asset(self.vault, map_file)
        except (UnsupportedTypeError, FileTooLargeError) as e:
            log.warning("%s (%s)", e, map_file.path)
            self.notice(str(e))
            return None

        if self.annotate is not None:
            self.annotate(map_file)
        return map_file

    def open_last_gm_zones_map(self) -> Optional[Path]:
        last_path = self.settings.last_gm_zones_path
        if not last_path:
            self.notice("No GM zones map has been generated yet.")
            return None

        file = self.vault.get_file(last_path)
        if file is None:
            self.notice("Stored GM zones map could not be found.")
            return None

        target = self.vault.absolute_path(file.path)
        if self.open_path is not None:
            self.open_path(target)
        return target
