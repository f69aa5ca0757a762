from __future__ import annotations

from caseflow.records.application import render_template


def test_placeholders_are_substituted() -> None:
    rendered = render_template(
        "{{record_number}} moved to {{ to_state }} by {{performed_by}}",
        {"record_number": "INC-000001", "to_state": "Resolved", "performed_by": "u-7"},
    )
    assert rendered == "INC-000001 moved to Resolved by u-7"


def test_unknown_placeholders_are_left_in_place() -> None:
    assert render_template("Hello {{customer}}", {"title": "x"}) == "Hello {{customer}}"


def test_none_renders_empty_and_numbers_as_text() -> None:
    assert render_template("[{{assignee}}] P{{priority}}", {"assignee": None, "priority": 2}) == "[] P2"


def test_empty_template() -> None:
    assert render_template("", {"a": 1}) == ""
    assert render_template(None, {"a": 1}) == ""
