"""
Tk window for placing GM zone labels on a map.

Run as its own process so it never fights the menu-bar app for the main loop:
    python -m zone_annotator_tk --vault ~/Vault Campaign/Session3/cave.png
"""

import argparse
import logging
import sys
import tkinter as tk
from tkinter import messagebox

from PIL import Image, ImageTk

from app_contract import APP_NAME, DEFAULT_ZONE_COUNT, DEFAULT_ZONE_PREFIX
from settings_store import ensure_dirs, load_settings, log_path, save_last_gm_zones_path
from vault import Vault
from zone_annotation import ZoneAnnotationSession

log = logging.getLogger(__name__)

MAX_DISPLAY_W = 1000
MAX_DISPLAY_H = 700
MARKER_R = 12


class ZoneAnnotatorWindow:
    def __init__(self, root: tk.Tk, vault: Vault, map_file, settings):
        self.root = root
        self.vault = vault
        self.map_file = map_file
        self.settings = settings
        self.session = ZoneAnnotationSession(notice_cb=self._notice)

        root.title(f"Annotate GM Zones: {map_file.basename}")

        with Image.open(vault.absolute_path(map_file.path)) as img:
            img.load()
            self.source = img.copy()
        scale = min(MAX_DISPLAY_W / self.source.width, MAX_DISPLAY_H / self.source.height, 1.0)
        self.display_w = max(1, int(self.source.width * scale))
        self.display_h = max(1, int(self.source.height * scale))
        self.photo = ImageTk.PhotoImage(self.source.resize((self.display_w, self.display_h)))

        tk.Label(
            root,
            text="Enter how many zones you want, or paste custom zone IDs. "
                 "Click the map in order to place labels.",
        ).pack(anchor="w", padx=8, pady=(8, 4))

        controls = tk.Frame(root)
        controls.pack(fill="x", padx=8)

        tk.Label(controls, text="Zone count").grid(row=0, column=0, sticky="w")
        self.count_var = tk.StringVar(value=str(DEFAULT_ZONE_COUNT))
        tk.Spinbox(controls, from_=1, to=99, width=5, textvariable=self.count_var).grid(row=0, column=1, sticky="w")

        tk.Label(controls, text="Default prefix").grid(row=0, column=2, sticky="w", padx=(12, 0))
        self.prefix_var = tk.StringVar(value=DEFAULT_ZONE_PREFIX)
        tk.Entry(controls, width=8, textvariable=self.prefix_var).grid(row=0, column=3, sticky="w")

        tk.Label(controls, text="Custom zone IDs (comma or newline separated)").grid(
            row=1, column=0, columnspan=4, sticky="w", pady=(6, 0)
        )
        self.ids_text = tk.Text(controls, height=3, width=60)
        self.ids_text.grid(row=2, column=0, columnspan=4, sticky="we")

        self.count_var.trace_add("write", lambda *_: self._on_config_change())
        self.prefix_var.trace_add("write", lambda *_: self._on_config_change())
        self.ids_text.bind("<<Modified>>", self._on_ids_modified)

        self.status_var = tk.StringVar()
        tk.Label(root, textvariable=self.status_var, anchor="w").pack(fill="x", padx=8, pady=4)

        self.canvas = tk.Canvas(root, width=self.display_w, height=self.display_h, highlightthickness=0)
        self.canvas.pack(padx=8)
        self.canvas.create_image(0, 0, image=self.photo, anchor="nw")
        self.canvas.bind("<Button-1>", self._on_click)

        actions = tk.Frame(root)
        actions.pack(fill="x", padx=8, pady=8)
        tk.Button(actions, text="Clear markers", command=self._on_clear).pack(side="left")
        self.save_button = tk.Button(actions, text="Save labeled map", command=self._on_save)
        self.save_button.pack(side="left", padx=(8, 0))

        self._refresh()

    def _notice(self, msg: str) -> None:
        log.info(msg)
        self.status_var.set(msg)

    def _on_ids_modified(self, _event) -> None:
        if self.ids_text.edit_modified():
            self.ids_text.edit_modified(False)
            self._on_config_change()

    def _on_config_change(self) -> None:
        self.session.configure(
            zone_count=self.count_var.get(),
            zone_prefix=self.prefix_var.get(),
            custom_ids=self.ids_text.get("1.0", "end"),
        )
        self._refresh()

    def _on_clear(self) -> None:
        self.session.clear()
        self._refresh()

    def _on_click(self, event) -> None:
        point = self.session.place_click(event.x, event.y, 0, 0, self.display_w, self.display_h)
        if point is not None:
            self._refresh()

    def _on_save(self) -> None:
        out = self.session.save(self.vault, self.map_file, self.settings, save_last_gm_zones_path)
        if out is None:
            messagebox.showerror(APP_NAME, "Failed to create GM zones map. Check the log for details.")
            return
        messagebox.showinfo(APP_NAME, f"Saved GM zones map to {out.name}.")
        self.root.destroy()

    def _refresh(self) -> None:
        self.canvas.delete("marker")
        for p in self.session.points:
            x = p.x * self.display_w
            y = p.y * self.display_h
            self.canvas.create_oval(
                x - MARKER_R, y - MARKER_R, x + MARKER_R, y + MARKER_R,
                fill="black", outline="", tags="marker",
            )
            self.canvas.create_text(x, y, text=p.id, fill="white", font=("Helvetica", 10, "bold"), tags="marker")
        self.status_var.set(self.session.status_text())
        self.save_button.config(state="normal" if self.session.can_save else "disabled")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Place GM zone labels on a map image")
    parser.add_argument("map_path", help="Map path relative to the vault root")
    parser.add_argument("--vault", required=True, help="Vault root folder")
    args = parser.parse_args(argv)

    ensure_dirs()
    logging.basicConfig(
        filename=str(log_path()),
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    vault = Vault(args.vault)
    map_file = vault.get_file(args.map_path)
    if map_file is None:
        log.error("Map not found: %s", args.map_path)
        print(f"Map not found: {args.map_path}", file=sys.stderr)
        return 1

    root = tk.Tk()
    ZoneAnnotatorWindow(root, vault, map_file, load_settings())
    root.mainloop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
