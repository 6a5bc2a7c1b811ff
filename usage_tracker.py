import json
import threading
import time
from pathlib import Path
from typing import Optional

from app_contract import (
    PRICE_PER_1M_INPUT_TOKENS_USD,
    PRICE_PER_1M_OUTPUT_TOKENS_USD,
)


_WRITE_LOCK = threading.Lock()


def load_usage(path: Path) -> dict:
    if not path.exists():
        return {"events": []}
    try:
        data = json.loads(path.read_text("utf-8"))
    except ValueError:
        return {"events": []}
    events = data.get("events") if isinstance(data, dict) else None
    if not isinstance(events, list):
        return {"events": []}
    return {"events": events}


def _atomic_write_json(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), "utf-8")
    tmp.replace(path)


def usage_from_response(response: Optional[dict]) -> dict:
    """Token counts from an OpenAI-style `usage` object; zeros when absent."""
    usage = (response or {}).get("usage") or {}
    return {
        "input_tokens": int(usage.get("prompt_tokens", 0) or 0),
        "output_tokens": int(usage.get("completion_tokens", 0) or 0),
    }


def append_event(path: Path, event: dict) -> None:
    with _WRITE_LOCK:
        data = load_usage(path)
        events = data.setdefault("events", [])
        events.append(
            {
                "ts": float(event.get("ts", time.time())),
                "stage": event.get("stage", ""),
                "model": event.get("model", ""),
                "input_tokens": int(event.get("input_tokens", 0) or 0),
                "output_tokens": int(event.get("output_tokens", 0) or 0),
                "note": event.get("note", ""),
            }
        )
        _atomic_write_json(path, data)


def event_cost_usd(event: dict) -> float:
    input_tokens = max(int(event.get("input_tokens", 0) or 0), 0)
    output_tokens = max(int(event.get("output_tokens", 0) or 0), 0)
    return (
        (input_tokens * PRICE_PER_1M_INPUT_TOKENS_USD)
        + (output_tokens * PRICE_PER_1M_OUTPUT_TOKENS_USD)
    ) / 1_000_000.0


def aggregates(events: list, now_ts: Optional[float] = None) -> dict:
    now = float(now_ts if now_ts is not None else time.time())
    cutoff = now - (7 * 24 * 60 * 60)

    total_cost = 0.0
    last7_cost = 0.0
    by_stage: dict = {}
    for e in events:
        cost = event_cost_usd(e)
        total_cost += cost
        if float(e.get("ts", 0.0) or 0.0) >= cutoff:
            last7_cost += cost
        stage = e.get("stage") or "other"
        by_stage[stage] = by_stage.get(stage, 0.0) + cost

    count = len(events)
    return {
        "count": count,
        "total_cost": total_cost,
        "avg_cost": (total_cost / count) if count > 0 else 0.0,
        "last7_cost": last7_cost,
        "by_stage": by_stage,
    }


def format_summary(agg: dict) -> str:
    lines = [
        f"Calls: {agg['count']}",
        f"Estimated total: ${agg['total_cost']:.4f}",
        f"Average per call: ${agg['avg_cost']:.4f}",
        f"Last 7 days: ${agg['last7_cost']:.4f}",
    ]
    for stage, cost in sorted(agg.get("by_stage", {}).items()):
        lines.append(f"  {stage}: ${cost:.4f}")
    return "\n".join(lines)
