"""Tests for the scenario content editor."""

from datetime import datetime, timezone
from itertools import count

import pytest

from campaign_keeper.client.errors import ContentEditError, FormError
from campaign_keeper.core.ids import TimeIds
from campaign_keeper.core.scenario_editor import ScenarioEditor
from campaign_keeper.schemas.npc import NpcOut


def _sequential_ids():
    counter = count(1)
    return lambda: str(next(counter))


def _npc(npc_id, name, description):
    return NpcOut(
        id=npc_id,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        name=name,
        description=description,
        campaign_id="camp-1",
        user_id="user-1",
    )


NPCS = [
    _npc("npc-1", "Sildar Hallwinter", "A human knight of the Lords' Alliance"),
    _npc("npc-2", "Gundren Rockseeker", "Dwarf merchant, owner of the map"),
]


@pytest.fixture
def editor():
    return ScenarioEditor("camp-1", npcs=NPCS, id_factory=_sequential_ids())


def _titles(editor):
    return [s.title for s in editor.content.sections]


# ---------------------------------------------------------------------------
# Ids
# ---------------------------------------------------------------------------


def test_time_ids_strictly_increase_within_one_millisecond():
    ids = TimeIds(clock=lambda: 1_700_000_000.0)
    first, second, third = ids(), ids(), ids()
    assert first == "1700000000000"
    assert int(first) < int(second) < int(third)


def test_time_ids_never_repeat_when_clock_goes_back():
    ticks = iter([2.0, 1.0])
    ids = TimeIds(clock=lambda: next(ticks))
    assert ids() == "2000"
    assert ids() == "2001"


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def test_add_section_defaults(editor):
    for section_type in ("mission", "character", "resource", "note"):
        editor.add_section(section_type)

    assert _titles(editor) == ["New Mission", "New Character", "New Resource", "New Note"]
    assert [s.type for s in editor.content.sections] == [
        "mission", "character", "resource", "note"
    ]
    assert all(s.content == "" for s in editor.content.sections)


def test_add_character_section_awaits_npc_pick(editor):
    editor.add_section("mission")
    assert editor.pending_npc_section is None

    section = editor.add_section("character")
    assert editor.pending_npc_section == section.id


def test_add_unknown_section_type_rejected(editor):
    with pytest.raises(ContentEditError):
        editor.add_section("dungeon")
    assert editor.content.sections == []


def test_update_section(editor):
    section = editor.add_section("note")
    editor.update_section(section.id, title="Rumours", content="The mine is haunted")

    updated = editor.content.sections[0]
    assert updated.title == "Rumours"
    assert updated.content == "The mine is haunted"
    assert updated.type == "note"


def test_update_section_rejects_type_change(editor):
    section = editor.add_section("note")
    with pytest.raises(ContentEditError):
        editor.update_section(section.id, type="mission")


def test_update_unknown_section_rejected(editor):
    editor.add_section("note")
    before = editor.content
    with pytest.raises(ContentEditError):
        editor.update_section("missing", title="x")
    assert editor.content is before


def test_remove_section(editor):
    first = editor.add_section("mission")
    editor.add_section("note")
    editor.remove_section(first.id)
    assert _titles(editor) == ["New Note"]


def test_move_section_swaps_neighbours(editor):
    a = editor.add_section("mission")
    b = editor.add_section("note")
    c = editor.add_section("resource")

    editor.move_section(c.id, "up")
    assert [s.id for s in editor.content.sections] == [a.id, c.id, b.id]

    editor.move_section(a.id, "down")
    assert [s.id for s in editor.content.sections] == [c.id, a.id, b.id]


def test_move_first_up_and_last_down_are_noops(editor):
    a = editor.add_section("mission")
    b = editor.add_section("note")
    before = editor.content

    editor.move_section(a.id, "up")
    editor.move_section(b.id, "down")

    assert editor.content == before
    assert [s.id for s in editor.content.sections] == [a.id, b.id]


def test_edits_never_mutate_previous_document(editor):
    section = editor.add_section("mission")
    snapshot = editor.content
    snapshot_json = snapshot.to_json()

    editor.update_section(section.id, title="Changed")
    editor.add_choice()
    editor.add_deliverable()

    assert snapshot.to_json() == snapshot_json
    assert editor.content is not snapshot


# ---------------------------------------------------------------------------
# NPC links
# ---------------------------------------------------------------------------


def test_select_npc_copies_name_and_description(editor):
    section = editor.add_section("character")
    editor.select_npc(section.id, "npc-1")

    linked = editor.content.sections[0]
    assert linked.npc_id == "npc-1"
    assert linked.title == "Sildar Hallwinter"
    assert linked.content == "A human knight of the Lords' Alliance"
    assert editor.pending_npc_section is None


def test_npc_copy_is_taken_once(editor):
    section = editor.add_section("character")
    editor.select_npc(section.id, "npc-1")
    editor.update_section(section.id, content="Captured by goblins")

    # Later NPC changes are not pulled into the section
    editor.npcs = [NPCS[0].model_copy(update={"description": "Rescued"}), NPCS[1]]
    assert editor.content.sections[0].content == "Captured by goblins"


def test_clear_npc_keeps_copied_text(editor):
    section = editor.add_section("character")
    editor.select_npc(section.id, "npc-2")
    editor.clear_npc(section.id)

    cleared = editor.content.sections[0]
    assert cleared.npc_id is None
    assert cleared.title == "Gundren Rockseeker"


def test_select_npc_only_on_character_sections(editor):
    section = editor.add_section("mission")
    with pytest.raises(ContentEditError):
        editor.select_npc(section.id, "npc-1")


def test_select_unknown_npc_rejected(editor):
    section = editor.add_section("character")
    with pytest.raises(ContentEditError):
        editor.select_npc(section.id, "npc-404")


def test_search_npcs_matches_name_or_description(editor):
    assert [n.id for n in editor.search_npcs("sildar")] == ["npc-1"]
    assert [n.id for n in editor.search_npcs("MERCHANT")] == ["npc-2"]
    assert editor.search_npcs("dragon") == []
    assert len(editor.search_npcs("")) == 2


def test_npc_link_survives_stored_round_trip(editor):
    section = editor.add_section("character")
    editor.select_npc(section.id, "npc-1")

    reloaded = ScenarioEditor("camp-1", content=editor.content.to_json())
    assert reloaded.content == editor.content


# ---------------------------------------------------------------------------
# Choices and options
# ---------------------------------------------------------------------------


def test_add_choice_has_two_default_options(editor):
    choice = editor.add_choice()

    assert choice.title == "New Choice Point"
    assert [o.text for o in choice.options] == ["Option 1", "Option 2"]
    assert [o.id for o in choice.options] == [f"{choice.id}-1", f"{choice.id}-2"]
    assert all(o.consequences == [] for o in choice.options)


def test_add_option_numbers_by_count(editor):
    choice = editor.add_choice()
    option = editor.add_option(choice.id)

    assert option.text == "Option 3"
    assert len(editor.content.choices[0].options) == 3


def test_update_choice_and_option(editor):
    choice = editor.add_choice()
    editor.update_choice(choice.id, title="Ambush", description="Goblins attack")
    editor.update_option(choice.id, choice.options[0].id, text="Fight", outcome="Battle")

    updated = editor.content.choices[0]
    assert updated.title == "Ambush"
    assert updated.options[0].text == "Fight"
    assert updated.options[0].outcome == "Battle"
    assert updated.options[1].text == "Option 2"


def test_remove_option_keeps_at_least_one(editor):
    choice = editor.add_choice()
    first, second = choice.options

    editor.remove_option(choice.id, first.id)
    assert [o.id for o in editor.content.choices[0].options] == [second.id]

    with pytest.raises(ContentEditError):
        editor.remove_option(choice.id, second.id)
    assert len(editor.content.choices[0].options) == 1


def test_remove_choice(editor):
    choice = editor.add_choice()
    editor.remove_choice(choice.id)
    assert editor.content.choices == []


def test_option_consequences_have_no_minimum(editor):
    choice = editor.add_choice()
    option_id = choice.options[0].id

    consequence = editor.add_option_consequence(choice.id, option_id)
    editor.update_option_consequence(
        choice.id, option_id, consequence.id, description="Wagon lost", impact="high"
    )
    stored = editor.content.choices[0].options[0].consequences
    assert [(c.description, c.impact) for c in stored] == [("Wagon lost", "high")]

    editor.remove_option_consequence(choice.id, option_id, consequence.id)
    assert editor.content.choices[0].options[0].consequences == []


def test_option_consequence_on_unknown_option_rejected(editor):
    choice = editor.add_choice()
    with pytest.raises(ContentEditError):
        editor.add_option_consequence(choice.id, "missing")


# ---------------------------------------------------------------------------
# Consequences and deliverables
# ---------------------------------------------------------------------------


def test_top_level_consequence_crud(editor):
    consequence = editor.add_consequence()
    assert consequence.title == "New Consequence"

    editor.update_consequence(
        consequence.id, condition="Party flees", outcome="Town is raided"
    )
    assert editor.content.consequences[0].outcome == "Town is raided"

    editor.remove_consequence(consequence.id)
    assert editor.content.consequences == []


def test_consequence_rejects_unknown_fields(editor):
    consequence = editor.add_consequence()
    with pytest.raises(ContentEditError):
        editor.update_consequence(consequence.id, impact="high")


def test_add_deliverable_defaults(editor):
    deliverable = editor.add_deliverable()

    assert deliverable.title == "New Deliverable"
    assert deliverable.status == "pending"
    assert [i.text for i in deliverable.instructions] == [""]
    assert [c.text for c in deliverable.criteria] == [""]


def test_update_deliverable_status(editor):
    deliverable = editor.add_deliverable()
    editor.update_deliverable(deliverable.id, status="completed", objective="Find the map")
    assert editor.content.deliverables[0].status == "completed"

    with pytest.raises(ContentEditError):
        editor.update_deliverable(deliverable.id, status="abandoned")
    assert editor.content.deliverables[0].status == "completed"


def test_last_instruction_cannot_be_removed(editor):
    deliverable = editor.add_deliverable()
    only = deliverable.instructions[0]

    with pytest.raises(ContentEditError):
        editor.remove_instruction(deliverable.id, only.id)

    extra = editor.add_instruction(deliverable.id)
    editor.update_instruction(deliverable.id, extra.id, "Talk to the innkeeper")
    editor.remove_instruction(deliverable.id, only.id)
    assert [i.text for i in editor.content.deliverables[0].instructions] == [
        "Talk to the innkeeper"
    ]


def test_last_criterion_cannot_be_removed(editor):
    deliverable = editor.add_deliverable()
    only = deliverable.criteria[0]

    with pytest.raises(ContentEditError):
        editor.remove_criterion(deliverable.id, only.id)
    assert len(editor.content.deliverables[0].criteria) == 1

    editor.add_criterion(deliverable.id)
    editor.remove_criterion(deliverable.id, only.id)
    assert len(editor.content.deliverables[0].criteria) == 1


def test_remove_deliverable(editor):
    deliverable = editor.add_deliverable()
    editor.remove_deliverable(deliverable.id)
    assert editor.content.deliverables == []


# ---------------------------------------------------------------------------
# Saving
# ---------------------------------------------------------------------------


async def test_save_requires_title_and_description(workspace, campaign):
    editor = ScenarioEditor(campaign.id, title="Goblin Arrows")
    with pytest.raises(FormError, match="Please fill in all required fields"):
        await editor.save(workspace.scenarios)
    assert workspace.scenarios.items == []


async def test_save_creates_then_updates(workspace, campaign):
    editor = ScenarioEditor(campaign.id, title="Goblin Arrows", description="Chapter one")
    editor.add_section("mission")

    created = await editor.save(workspace.scenarios)
    assert created is not None
    assert editor.scenario_id == created.id
    assert created.user_id == workspace.auth.user.id

    editor.add_choice()
    updated = await editor.save(workspace.scenarios)
    assert updated.id == created.id
    assert len(updated.content.choices) == 1
    assert [s.id for s in workspace.scenarios.items] == [created.id]


async def test_for_scenario_loads_stored_document(workspace, campaign):
    editor = ScenarioEditor(campaign.id, title="Goblin Arrows", description="Chapter one")
    editor.add_deliverable()
    scenario = await editor.save(workspace.scenarios)

    reopened = ScenarioEditor.for_scenario(scenario)
    assert reopened.scenario_id == scenario.id
    assert reopened.content == editor.content
