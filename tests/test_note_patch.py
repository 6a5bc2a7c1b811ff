from pathlib import Path

from app_contract import PREP_END_MARKER, PREP_START_MARKER
from prep_format import extract_prep_region, patch_prep_region


def test_first_run_appends_marked_block_below_existing_content():
    doc = "# Session 3\n\nSome notes.\n"

    out = patch_prep_region(doc, "## Prep\n\nStrong start.\n\n")

    assert out.startswith("# Session 3\n\nSome notes.")
    assert out.endswith(f"{PREP_START_MARKER}\n## Prep\n\nStrong start.\n{PREP_END_MARKER}\n")
    assert out == f"# Session 3\n\nSome notes.\n\n{PREP_START_MARKER}\n## Prep\n\nStrong start.\n{PREP_END_MARKER}\n"


def test_first_run_on_empty_note_has_no_leading_blank_lines():
    assert patch_prep_region("", "md") == f"{PREP_START_MARKER}\nmd\n{PREP_END_MARKER}\n"


def test_second_run_replaces_only_the_generated_block():
    doc = f"intro\n\n{PREP_START_MARKER}\nold prep\n{PREP_END_MARKER}\n\n## My own notes\nkeep me\n"

    out = patch_prep_region(doc, "new prep")

    assert out == f"intro\n\n{PREP_START_MARKER}\nnew prep\n{PREP_END_MARKER}\n\n## My own notes\nkeep me\n"
    assert "old prep" not in out


def test_patching_twice_is_byte_identical():
    doc = "top\n"
    once = patch_prep_region(doc, "  body  ")
    twice = patch_prep_region(once, "  body  ")

    assert once == twice
    assert twice.count(PREP_START_MARKER) == 1
    assert twice.count("body") == 1
    assert extract_prep_region(twice) == "body"


def test_content_outside_markers_is_untouched():
    before = "A\r\n  indented\t\n"
    after = "\n\nZ  \n\n"
    doc = f"{before}{PREP_START_MARKER}\nx\n{PREP_END_MARKER}{after}"

    out = patch_prep_region(doc, "y")

    start = out.index(PREP_START_MARKER)
    end = out.index(PREP_END_MARKER) + len(PREP_END_MARKER)
    assert out[:start] == before
    assert out[end:] == after
    assert extract_prep_region(out) == "y"


def test_end_marker_before_start_marker_falls_back_to_append():
    doc = f"{PREP_END_MARKER}\nuser text\n{PREP_START_MARKER}\n"

    out = patch_prep_region(doc, "md")

    assert out.startswith(doc.strip())
    assert out.endswith(f"{PREP_START_MARKER}\nmd\n{PREP_END_MARKER}\n")
