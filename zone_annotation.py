"""
Click-to-place GM zone labels on a map and bake them into a new PNG.

The session is UI-free: a surface forwards clicks (in its own pixel space,
plus the rendered image box) and config edits, and reads `status_text` /
`can_save` back.
"""

import io
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

from keyring.errors import KeyringError
from PIL import Image, ImageDraw, ImageFont

from app_contract import (
    DEFAULT_ZONE_COUNT,
    DEFAULT_ZONE_PREFIX,
    GM_ZONES_SUFFIX,
    ZONE_LABEL_MIN_PX,
    ZONE_LABEL_SCALE,
)
from prep_errors import AnnotationStateError
from settings_store import PluginSettings
from vault import Vault, VaultFile, join_path

log = logging.getLogger(__name__)

_ID_SPLIT_RE = re.compile(r"[,\n]")

MARKER_FILL = (0, 0, 0, 191)
LABEL_FILL = (255, 255, 255, 255)


class AnnotationState(Enum):
    CONFIGURING = "configuring"
    PLACING = "placing"
    ALL_PLACED = "all_placed"
    SAVED = "saved"


@dataclass(frozen=True)
class ZonePoint:
    id: str
    x: float
    y: float


def parse_zone_ids(custom_ids: str, count: int, prefix: str) -> List[str]:
    """
    Custom ids (comma or newline separated) win; otherwise prefix + 1..count.
    Example: ("", 3, "Z") -> ["Z1", "Z2", "Z3"]
    """
    provided = [s.strip() for s in _ID_SPLIT_RE.split(custom_ids or "")]
    provided = [s for s in provided if s]
    if provided:
        return provided
    return [f"{prefix}{i}" for i in range(1, count + 1)]


def _clamp01(v: float) -> float:
    return min(max(float(v), 0.0), 1.0)


def label_size(width: int) -> int:
    return max(ZONE_LABEL_MIN_PX, round(width * ZONE_LABEL_SCALE))


def _label_font(size: int):
    try:
        return ImageFont.truetype("DejaVuSans-Bold.ttf", size)
    except OSError:
        return ImageFont.load_default(size=size)


def render_labeled_image(image: Image.Image, points: Sequence[ZonePoint]) -> Image.Image:
    """Draw a filled circle with a centred label per point, at native resolution."""
    out = image.convert("RGBA")
    width, height = out.size
    size = label_size(width)
    font = _label_font(size)
    draw = ImageDraw.Draw(out, "RGBA")

    for p in points:
        x = p.x * width
        y = p.y * height
        draw.ellipse((x - size, y - size, x + size, y + size), fill=MARKER_FILL)
        draw.text((x, y), p.id, fill=LABEL_FILL, font=font, anchor="mm")

    return out


def encode_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def gm_zones_path(map_file: VaultFile) -> str:
    return join_path(map_file.parent.path, f"{map_file.basename}{GM_ZONES_SUFFIX}.png")


class ZoneAnnotationSession:
    def __init__(
        self,
        zone_count: int = DEFAULT_ZONE_COUNT,
        zone_prefix: str = DEFAULT_ZONE_PREFIX,
        custom_ids: str = "",
        notice_cb: Optional[Callable[[str], None]] = None,
    ):
        self.notice_cb = notice_cb or (lambda _msg: None)
        self.points: List[ZonePoint] = []
        self.saved = False
        self.configure(zone_count, zone_prefix, custom_ids)

    def configure(
        self,
        zone_count: Optional[int] = None,
        zone_prefix: Optional[str] = None,
        custom_ids: Optional[str] = None,
    ) -> None:
        """Any config edit recomputes the ids and drops every placed point."""
        if zone_count is not None:
            try:
                self.zone_count = max(1, int(zone_count))
            except (TypeError, ValueError):
                self.zone_count = 1
        if zone_prefix is not None:
            self.zone_prefix = zone_prefix.strip() or DEFAULT_ZONE_PREFIX
        if custom_ids is not None:
            self.custom_ids = custom_ids
        self.zone_ids = parse_zone_ids(self.custom_ids, self.zone_count, self.zone_prefix)
        self.clear()

    def clear(self) -> None:
        self.points = []
        self.saved = False

    @property
    def state(self) -> AnnotationState:
        if self.saved:
            return AnnotationState.SAVED
        if not self.zone_ids:
            return AnnotationState.CONFIGURING
        if len(self.points) >= len(self.zone_ids):
            return AnnotationState.ALL_PLACED
        return AnnotationState.PLACING

    @property
    def next_zone_id(self) -> Optional[str]:
        idx = len(self.points)
        return self.zone_ids[idx] if idx < len(self.zone_ids) else None

    @property
    def remaining(self) -> int:
        return max(0, len(self.zone_ids) - len(self.points))

    @property
    def can_save(self) -> bool:
        return self.state is AnnotationState.ALL_PLACED

    def status_text(self) -> str:
        return f"Next label: {self.next_zone_id or 'All placed'} | Remaining: {self.remaining}"

    def place(self, x_rel: float, y_rel: float) -> Optional[ZonePoint]:
        if not self.zone_ids:
            self.notice_cb("Add at least one zone.")
            return None
        if self.state is not AnnotationState.PLACING:
            self.notice_cb("All zones placed. Clear markers to start over.")
            return None

        point = ZonePoint(id=self.next_zone_id, x=_clamp01(x_rel), y=_clamp01(y_rel))
        self.points.append(point)
        return point

    def place_click(
        self,
        client_x: float,
        client_y: float,
        left: float,
        top: float,
        width: float,
        height: float,
    ) -> Optional[ZonePoint]:
        """Place at a click given in the same space as the rendered image box."""
        if width <= 0 or height <= 0:
            return None
        return self.place((client_x - left) / width, (client_y - top) / height)

    def save(
        self,
        vault: Vault,
        map_file: VaultFile,
        settings: PluginSettings,
        save_settings: Callable[[PluginSettings], None],
    ) -> Optional[VaultFile]:
        """
        Bake the labels into <map>_gm_zones.png next to the map, overwriting an
        earlier export. Returns None (and stays ALL_PLACED) if rendering, writing
        or persisting the settings fails.
        """
        if not self.can_save:
            raise AnnotationStateError("Place all zones before saving.")

        out_path = gm_zones_path(map_file)
        try:
            with Image.open(io.BytesIO(vault.read_binary(map_file))) as src:
                labeled = render_labeled_image(src, self.points)
            out_file = vault.write_binary(out_path, encode_png(labeled))
        except (OSError, ValueError) as e:
            log.error("Failed to render GM zones map for %s: %s", map_file.path, e)
            self.notice_cb("Failed to create GM zones map. Check the log for details.")
            return None

        previous = settings.last_gm_zones_path
        settings.last_gm_zones_path = out_file.path
        try:
            save_settings(settings)
        except (OSError, KeyringError) as e:
            settings.last_gm_zones_path = previous
            log.error("Failed to remember GM zones map %s: %s", out_file.path, e)
            self.notice_cb("Failed to save settings for the GM zones map. Check the log for details.")
            return None

        self.saved = True
        self.notice_cb(f"Saved GM zones map to {out_file.name}.")
        return out_file
