from __future__ import annotations

from datetime import datetime, timezone

from chronicle.modules.reconcile.sections import is_placeholder_label, upsert_section_item
from tests.support.drafts import make_section

AT = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_placeholder_labels() -> None:
    for label in ("Trait 1", "item", "ENTRY 12", "row3", "Example", "placeholder 2"):
        assert is_placeholder_label(label)
    for label in ("Traits", "Hair Color", "Item 1 extra", ""):
        assert not is_placeholder_label(label)


def test_exact_label_match_updates_in_place() -> None:
    sections = [make_section("Looks", [("Trait 1", ""), ("hair color", "Black")])]

    outcome = upsert_section_item(sections, title="looks", label="Hair Color", value="Auburn", at=AT)

    assert outcome == "updated"
    items = sections[0].items
    assert [(i.label, i.value) for i in items] == [("Trait 1", ""), ("hair color", "Auburn")]
    assert items[1].updated_at == AT
    assert sections[0].updated_at == AT


def test_first_placeholder_wins() -> None:
    sections = [make_section("Looks", [("Eyes", "Green"), ("Item 1", "x"), ("Trait 2", "")])]

    assert upsert_section_item(sections, title="Looks", label="Height", value="Tall", at=AT) == "placeholder"
    assert [i.label for i in sections[0].items] == ["Eyes", "Height", "Trait 2"]


def test_append_when_no_match_and_no_placeholder() -> None:
    sections = [make_section("Looks", [("Eyes", "Green")])]
    assert upsert_section_item(sections, title="Looks", label="Height", value="Tall", at=AT) == "appended"
    assert len(sections[0].items) == 2


def test_unchanged_value_does_not_bump_section() -> None:
    sections = [make_section("Looks", [("Eyes", "Green")])]
    before = sections[0].updated_at
    assert upsert_section_item(sections, title="Looks", label="eyes", value="Green", at=AT) == "unchanged"
    assert sections[0].updated_at == before


def test_missing_section_is_created() -> None:
    sections = []
    assert upsert_section_item(sections, title="Secrets", label="Hidden Fear", value="Heights", at=AT) == "appended"
    assert sections[0].title == "Secrets"
    assert sections[0].created_at == AT
