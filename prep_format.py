from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from app_contract import PREP_END_MARKER, PREP_START_MARKER
from assets import FolderSummary, MaterializedAssets
from prompt_contract import (
    EXTRACTOR_INTRO,
    EXTRACTOR_SCHEMA,
    EXTRACTOR_SYSTEM,
    EXTRACTOR_ZONE_HINT,
    SYNTHESIZER_INSTRUCTIONS,
)

log = logging.getLogger(__name__)

# Opening fence with an optional language tag, closing fence at the very end.
_LEADING_FENCE_RE = re.compile(r"^```[\w+.-]*[ \t]*\r?\n?")
_TRAILING_FENCE_RE = re.compile(r"\r?\n?[ \t]*```$")


def strip_json_fences(text: Optional[str]) -> str:
    """
    Remove a markdown code fence wrapped around a model reply.
    Example: "```json\\n{...}\\n```" -> "{...}"
    Repeats until nothing changes, so stripping twice equals stripping once.
    """
    s = (text or "").strip()
    while True:
        out = _LEADING_FENCE_RE.sub("", s, count=1)
        out = _TRAILING_FENCE_RE.sub("", out, count=1).strip()
        if out == s:
            return s
        s = out


def parse_json_content(content: Optional[str]) -> Optional[Any]:
    if not content:
        return None
    try:
        parsed = json.loads(strip_json_fences(content))
    except ValueError as e:
        log.warning("Failed to parse JSON content: %s | %r", e, content[:200])
        return None
    return parsed


def build_extractor_messages(assets: MaterializedAssets) -> List[Dict[str, Any]]:
    """
    Pure function: materialized assets -> chat messages for the extractor.
    Block order follows asset order: maps first, then party sheets.
    """
    blocks: List[Dict[str, Any]] = [
        {"type": "text", "text": f"{EXTRACTOR_INTRO}\n{EXTRACTOR_SCHEMA}\n{EXTRACTOR_ZONE_HINT}"},
    ]

    for idx, m in enumerate(assets.maps, start=1):
        blocks.append({"type": "text", "text": f"Map {idx}: {m.name} ({m.path})"})
        blocks.append({"type": "image_url", "image_url": {"url": m.data_url, "detail": "high"}})

    for idx, pc in enumerate(assets.pcs, start=1):
        blocks.append({"type": "text", "text": f"Character PDF {idx}: {pc.name}"})
        blocks.append({
            "type": "file",
            "file": {"filename": pc.path.rsplit("/", 1)[-1], "file_data": pc.data_url},
        })

    return [
        {"role": "system", "content": EXTRACTOR_SYSTEM},
        {"role": "user", "content": blocks},
    ]


def build_synthesizer_messages(extracted: Any, assets: MaterializedAssets) -> List[Dict[str, Any]]:
    filenames = {
        "maps": [m.path or m.name for m in assets.maps],
        "pcs": [pc.path or pc.name for pc in assets.pcs],
    }
    user = (
        f"Dateinamen: {json.dumps(filenames, ensure_ascii=False, indent=2)}\n"
        f"Extrahierte Daten:\n{json.dumps(extracted, ensure_ascii=False, indent=2)}"
    )
    return [
        {"role": "system", "content": SYNTHESIZER_INSTRUCTIONS},
        {"role": "user", "content": user},
    ]


def format_folder_summary_block(summary: FolderSummary) -> str:
    return f"\n\n```json\n{json.dumps(summary.to_dict(), ensure_ascii=False, indent=2)}\n```"


def find_prep_region(text: str) -> Optional[tuple[int, int]]:
    """
    (start, end) offsets of the start marker and of the first end marker after
    it, or None when there is no valid pair.
    """
    start = text.find(PREP_START_MARKER)
    if start == -1:
        return None
    end = text.find(PREP_END_MARKER, start + len(PREP_START_MARKER))
    if end == -1:
        return None
    return start, end


def patch_prep_region(current: str, markdown: str) -> str:
    """
    Pure function: replace the generated block between the markers, or append
    a new marked block when the note has none. Text outside the markers is
    never touched once they exist.
    """
    body = (markdown or "").strip()
    region = find_prep_region(current or "")

    if region is not None:
        start, end = region
        before = current[:start + len(PREP_START_MARKER)]
        after = current[end:]
        return f"{before}\n{body}\n{after}"

    head = (current or "").strip()
    prefix = f"{head}\n\n" if head else ""
    return f"{prefix}{PREP_START_MARKER}\n{body}\n{PREP_END_MARKER}\n"


def extract_prep_region(text: str) -> Optional[str]:
    region = find_prep_region(text or "")
    if region is None:
        return None
    start, end = region
    return text[start + len(PREP_START_MARKER):end].strip()
