import logging
import subprocess
import sys
import threading
from pathlib import Path
from typing import Optional, Sequence

import rumps
from PyObjCTools import AppHelper

import usage_tracker
from app_contract import (
    APP_NAME,
    APP_VERSION,
    CMD_ANNOTATE,
    CMD_OPEN_ZONES,
    CMD_PREP,
    CMD_SCAN,
    CMD_TEST,
)
from lazy_dm_commands import LazyDMCommands
from settings_store import (
    clear_api_key,
    ensure_dirs,
    load_settings,
    log_path,
    save_settings,
    usage_path,
)
from vault import Vault, VaultFile

log = logging.getLogger(__name__)

CLEAR_KEY_WORD = "clear"


def setup_logging() -> None:
    ensure_dirs()
    logging.basicConfig(
        filename=str(log_path()),
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def notify(message: str) -> None:
    """
    Transient notification. rumps must be touched from the main thread, so
    calls from a worker thread are queued on the main run loop.
    """
    if threading.current_thread() is threading.main_thread():
        rumps.notification(APP_NAME, "", message)
        return
    AppHelper.callAfter(rumps.notification, APP_NAME, "", message)


def present_choice(labels: Sequence[str]) -> Optional[int]:
    listing = "\n".join(f"{i}. {label}" for i, label in enumerate(labels, start=1))
    w = rumps.Window(
        title="Choose a map",
        message=listing,
        default_text="1",
        ok="Choose",
        cancel="Cancel",
    ).run()
    if not w.clicked:
        return None
    try:
        return int(w.text.strip()) - 1
    except ValueError:
        return None


def open_path(path: Path) -> None:
    subprocess.run(["open", str(path)])


class LazyDMMenuApp(rumps.App):
    def __init__(self):
        super().__init__(APP_NAME, quit_button=None)
        self.title = "🎲"

        self.status_msg = "Idle"
        self.settings = load_settings()

        self.mi_test = rumps.MenuItem(CMD_TEST[1], callback=self.test_openrouter)
        self.mi_scan = rumps.MenuItem(CMD_SCAN[1], callback=self.scan_folder)
        self.mi_prep = rumps.MenuItem(CMD_PREP[1], callback=self.generate_prep)
        self.mi_annotate = rumps.MenuItem(CMD_ANNOTATE[1], callback=self.annotate_gm_zones)
        self.mi_open_zones = rumps.MenuItem(CMD_OPEN_ZONES[1], callback=self.open_gm_zones)
        self.mi_note = rumps.MenuItem("Choose Note…", callback=self.choose_note)
        self.mi_setup = rumps.MenuItem("Setup…", callback=self.setup)
        self.mi_usage = rumps.MenuItem("Usage…", callback=self.show_usage)
        self.mi_status = rumps.MenuItem("Status…", callback=self.show_status)
        self.mi_quit = rumps.MenuItem("Quit", callback=self.quit_app)

        self.menu = [
            self.mi_test,
            self.mi_scan,
            self.mi_prep,
            self.mi_annotate,
            self.mi_open_zones,
            None,
            self.mi_note,
            self.mi_setup,
            self.mi_usage,
            self.mi_status,
            None,
            self.mi_quit,
        ]

    def notice(self, message: str) -> None:
        self.status_msg = message
        notify(message)

    def _commands(self) -> Optional[LazyDMCommands]:
        # Settings may have been changed by the annotator process.
        self.settings = load_settings()
        if not self.settings.vault_path:
            rumps.alert("Setup needed", "Click Setup… and choose your vault folder.")
            return None
        return LazyDMCommands(
            vault=Vault(self.settings.vault_path),
            settings=self.settings,
            notice=self.notice,
            present_choice=present_choice,
            annotate=self._launch_annotator,
            open_path=open_path,
            usage_path=usage_path(),
        )

    def _launch_annotator(self, map_file: VaultFile) -> None:
        subprocess.Popen([
            sys.executable, "-m", "zone_annotator_tk",
            "--vault", self.settings.vault_path,
            map_file.path,
        ])

    def test_openrouter(self, _):
        cmds = self._commands()
        if cmds:
            threading.Thread(target=cmds.test_connectivity, daemon=True).start()

    def scan_folder(self, _):
        cmds = self._commands()
        if cmds:
            cmds.scan_folder_and_append()

    def generate_prep(self, _):
        cmds = self._commands()
        if cmds:
            threading.Thread(target=cmds.generate_prep, daemon=True).start()

    def annotate_gm_zones(self, _):
        cmds = self._commands()
        if cmds:
            cmds.annotate_gm_zones()

    def open_gm_zones(self, _):
        cmds = self._commands()
        if cmds:
            cmds.open_last_gm_zones_map()

    def choose_note(self, _):
        self.settings = load_settings()
        w = rumps.Window(
            title="Active note",
            message="Note path relative to the vault, e.g. Campaign/Session 3/Prep.md",
            default_text=self.settings.active_note_path,
            ok="Save",
            cancel="Cancel",
        ).run()
        if not w.clicked:
            return

        note_path = w.text.strip()
        if self.settings.vault_path:
            try:
                found = Vault(self.settings.vault_path).get_file(note_path)
            except ValueError:
                found = None
            if found is None:
                rumps.alert("Note not found", note_path or "(empty)")
                return

        self.settings.active_note_path = note_path
        save_settings(self.settings)
        self.status_msg = f"Active note: {note_path}"

    def setup(self, _):
        s = load_settings()

        vault_w = rumps.Window(
            title="Vault folder path",
            message="Example: /Users/you/Documents/Campaigns",
            default_text=s.vault_path,
            ok="Next",
            cancel="Cancel",
        ).run()
        if not vault_w.clicked:
            return

        key_w = rumps.Window(
            title="OpenRouter API key",
            message=f"Saved to Keychain. Leave blank to keep existing, or enter {CLEAR_KEY_WORD} to remove it.",
            default_text="",
            ok="Next",
            cancel="Cancel",
        ).run()
        if not key_w.clicked:
            return

        extractor_w = rumps.Window(
            title="Extractor model",
            message="Model used for extracting details from maps and sheets.",
            default_text=s.extractor_model,
            ok="Next",
            cancel="Cancel",
        ).run()
        if not extractor_w.clicked:
            return

        synth_w = rumps.Window(
            title="Synthesizer model",
            message="Model used for creating narrative content.",
            default_text=s.synthesizer_model,
            ok="Next",
            cancel="Cancel",
        ).run()
        if not synth_w.clicked:
            return

        base_w = rumps.Window(
            title="OpenRouter base URL",
            message="Base API URL for OpenRouter requests.",
            default_text=s.openrouter_base_url,
            ok="Save",
            cancel="Cancel",
        ).run()
        if not base_w.clicked:
            return

        vault_path = Path(vault_w.text.strip()).expanduser()
        if not vault_path.is_dir():
            rumps.alert("Bad vault folder", f"Not a folder: {vault_path}")
            return

        s.vault_path = str(vault_path)
        s.extractor_model = extractor_w.text.strip()
        s.synthesizer_model = synth_w.text.strip()
        s.openrouter_base_url = base_w.text.strip()
        key_text = key_w.text.strip()
        if key_text == CLEAR_KEY_WORD:
            clear_api_key()
            s.openrouter_api_key = ""
        elif key_text:
            s.openrouter_api_key = key_text
        save_settings(s)
        # Reload so blank model/base-url fields pick up the defaults.
        self.settings = load_settings()

        self.status_msg = "Saved setup."
        rumps.alert("Saved", "Setup saved. Now click Choose Note….")

    def show_usage(self, _):
        events = usage_tracker.load_usage(usage_path())["events"]
        rumps.alert("Usage", usage_tracker.format_summary(usage_tracker.aggregates(events)))

    def show_status(self, _):
        rumps.alert(f"Status ({APP_VERSION})", self.status_msg or "—")

    def quit_app(self, _):
        rumps.quit_application()


if __name__ == "__main__":
    setup_logging()
    LazyDMMenuApp().run()
