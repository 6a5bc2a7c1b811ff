import pytest

import app_contract as ac
import usage_tracker as ut


def test_usage_append_and_load_roundtrip(tmp_path):
    path = tmp_path / "usage.json"
    ut.append_event(
        path,
        {
            "ts": 1700000000.0,
            "stage": "extractor",
            "model": "z-ai/glm-4.6v",
            "input_tokens": 123,
            "output_tokens": 45,
            "note": "s1/Prep.md",
        },
    )

    data = ut.load_usage(path)
    assert len(data["events"]) == 1
    assert data["events"][0]["stage"] == "extractor"
    assert data["events"][0]["input_tokens"] == 123
    assert data["events"][0]["note"] == "s1/Prep.md"


def test_usage_from_response_reads_openai_usage():
    resp = {"usage": {"prompt_tokens": 900, "completion_tokens": 80, "total_tokens": 980}}
    assert ut.usage_from_response(resp) == {"input_tokens": 900, "output_tokens": 80}
    assert ut.usage_from_response({}) == {"input_tokens": 0, "output_tokens": 0}


def test_corrupt_ledger_reads_as_empty(tmp_path):
    path = tmp_path / "usage.json"
    path.write_text("[1, 2", "utf-8")
    assert ut.load_usage(path) == {"events": []}


def test_aggregates_split_recent_and_by_stage():
    now = 1_700_000_000.0
    old_event = {"ts": now - (8 * 24 * 60 * 60), "stage": "extractor", "input_tokens": 1_000_000, "output_tokens": 0}
    recent_event = {"ts": now - (1 * 24 * 60 * 60), "stage": "synthesizer", "input_tokens": 0, "output_tokens": 1_000_000}

    agg = ut.aggregates([old_event, recent_event], now_ts=now)

    expected_total = ut.event_cost_usd(old_event) + ut.event_cost_usd(recent_event)
    assert agg["count"] == 2
    assert agg["total_cost"] == pytest.approx(expected_total)
    assert agg["avg_cost"] == pytest.approx(expected_total / 2)
    assert agg["last7_cost"] == pytest.approx(ut.event_cost_usd(recent_event))
    assert agg["by_stage"]["extractor"] == pytest.approx(ac.PRICE_PER_1M_INPUT_TOKENS_USD)
    assert agg["by_stage"]["synthesizer"] == pytest.approx(ac.PRICE_PER_1M_OUTPUT_TOKENS_USD)


def test_format_summary_lists_stages():
    text = ut.format_summary(ut.aggregates([{"ts": 0, "stage": "extractor", "input_tokens": 10}], now_ts=0))
    assert text.startswith("Calls: 1\n")
    assert "  extractor: $" in text
