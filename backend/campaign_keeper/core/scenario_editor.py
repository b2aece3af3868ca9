"""Scenario editor - in-memory edits of one scenario's content document.

Every edit builds a new ``ScenarioContent`` with exactly one addressed node
changed and assigns it to ``editor.content``. Earlier values are never
mutated, so a caller may keep them around (for undo, or to compare).
Nodes are addressed by their ids. An unknown id, a forbidden field or a rule
violation (removing the last option, instruction or criterion) raises
``ContentEditError`` and leaves the document unchanged.

Nothing is sent anywhere until ``save()``, which writes the whole document
in a single create or update.
"""

from collections.abc import Callable, Iterable
from typing import Literal

from pydantic import ValidationError

from campaign_keeper.client.errors import ContentEditError, FormError
from campaign_keeper.core.ids import new_id
from campaign_keeper.schemas.content import (
    SECTION_CLASSES,
    CharacterSection,
    Choice,
    ChoiceOption,
    Consequence,
    ContentNode,
    Deliverable,
    ListItem,
    OptionConsequence,
    ScenarioContent,
    SectionType,
)
from campaign_keeper.schemas.npc import NpcOut
from campaign_keeper.schemas.scenario import ScenarioOut
from campaign_keeper.stores.npcs import matches
from campaign_keeper.stores.scenarios import ScenarioStore

DEFAULT_SECTION_TITLES = {
    "mission": "New Mission",
    "character": "New Character",
    "resource": "New Resource",
    "note": "New Note",
}

SECTION_FIELDS = {"title", "content"}
CHOICE_FIELDS = {"title", "description"}
OPTION_FIELDS = {"text", "outcome"}
OPTION_CONSEQUENCE_FIELDS = {"description", "impact"}
CONSEQUENCE_FIELDS = {"title", "description", "condition", "outcome"}
DELIVERABLE_FIELDS = {"title", "objective", "status"}

DeliverableList = Literal["instructions", "criteria"]


def _index_of(items: list, item_id: str, kind: str) -> int:
    for index, item in enumerate(items):
        if item.id == item_id:
            return index
    raise ContentEditError(f"No {kind} with id {item_id!r}")


def _replace(items: list, item_id: str, kind: str, change: Callable) -> list:
    index = _index_of(items, item_id, kind)
    updated = list(items)
    updated[index] = change(items[index])
    return updated


def _without(items: list, item_id: str, kind: str) -> list:
    index = _index_of(items, item_id, kind)
    return items[:index] + items[index + 1:]


def _edit(node: ContentNode, fields: dict, allowed: set[str], kind: str) -> ContentNode:
    """Copy ``node`` with ``fields`` changed, re-validating the result."""
    unknown = set(fields) - allowed
    if unknown:
        raise ContentEditError(f"Cannot edit {', '.join(sorted(unknown))} on a {kind}")
    try:
        return type(node).model_validate({**node.model_dump(), **fields})
    except ValidationError as exc:
        raise ContentEditError(f"Invalid {kind}: {exc.errors()[0]['msg']}") from exc


class ScenarioEditor:
    def __init__(
        self,
        campaign_id: str,
        *,
        scenario_id: str | None = None,
        title: str = "",
        description: str = "",
        content: ScenarioContent | dict | None = None,
        npcs: Iterable[NpcOut] = (),
        id_factory: Callable[[], str] = new_id,
    ):
        self.campaign_id = campaign_id
        self.scenario_id = scenario_id
        self.title = title
        self.description = description
        if isinstance(content, ScenarioContent):
            self.content = content
        else:
            self.content = ScenarioContent.model_validate(content or {})
        self.npcs = list(npcs)
        self._new_id = id_factory
        # Character section waiting for the user to pick an NPC
        self.pending_npc_section: str | None = None

    @classmethod
    def for_scenario(cls, scenario: ScenarioOut, npcs: Iterable[NpcOut] = (), **kwargs) -> "ScenarioEditor":
        return cls(
            scenario.campaign_id,
            scenario_id=scenario.id,
            title=scenario.title,
            description=scenario.description,
            content=scenario.content,
            npcs=npcs,
            **kwargs,
        )

    def _update(self, **lists) -> ScenarioContent:
        self.content = self.content.model_copy(update=lists)
        return self.content

    # --- sections ---

    def add_section(self, section_type: SectionType):
        section_cls = SECTION_CLASSES.get(section_type)
        if section_cls is None:
            raise ContentEditError(f"Unknown section type {section_type!r}")
        section = section_cls(id=self._new_id(), title=DEFAULT_SECTION_TITLES[section_type])
        self._update(sections=[*self.content.sections, section])
        if section_type == "character":
            self.pending_npc_section = section.id
        return section

    def update_section(self, section_id: str, **fields) -> ScenarioContent:
        return self._update(sections=_replace(
            self.content.sections, section_id, "section",
            lambda s: _edit(s, fields, SECTION_FIELDS, "section"),
        ))

    def remove_section(self, section_id: str) -> ScenarioContent:
        if self.pending_npc_section == section_id:
            self.pending_npc_section = None
        return self._update(sections=_without(self.content.sections, section_id, "section"))

    def move_section(self, section_id: str, direction: Literal["up", "down"]) -> ScenarioContent:
        """Swap a section with its neighbour; moving past either end does nothing."""
        if direction not in ("up", "down"):
            raise ContentEditError(f"Unknown direction {direction!r}")
        sections = self.content.sections
        index = _index_of(sections, section_id, "section")
        target = index - 1 if direction == "up" else index + 1
        if target < 0 or target >= len(sections):
            return self.content

        reordered = list(sections)
        reordered[index], reordered[target] = reordered[target], reordered[index]
        return self._update(sections=reordered)

    # --- NPC links ---

    def search_npcs(self, query: str) -> list[NpcOut]:
        if not query:
            return list(self.npcs)
        return [npc for npc in self.npcs if matches(npc, query)]

    def select_npc(self, section_id: str, npc_id: str) -> ScenarioContent:
        """Link an NPC to a character section, copying its name and description once."""
        npc = next((n for n in self.npcs if n.id == npc_id), None)
        if npc is None:
            raise ContentEditError(f"No NPC with id {npc_id!r}")

        def link(section):
            if not isinstance(section, CharacterSection):
                raise ContentEditError("NPCs can only be linked to character sections")
            return section.model_copy(
                update={"npc_id": npc.id, "title": npc.name, "content": npc.description}
            )

        content = self._update(
            sections=_replace(self.content.sections, section_id, "section", link)
        )
        self.pending_npc_section = None
        return content

    def clear_npc(self, section_id: str) -> ScenarioContent:
        """Drop the link but keep the copied title and content."""
        def unlink(section):
            if not isinstance(section, CharacterSection):
                raise ContentEditError("Only character sections link to NPCs")
            return section.model_copy(update={"npc_id": None})

        return self._update(
            sections=_replace(self.content.sections, section_id, "section", unlink)
        )

    # --- choices ---

    def add_choice(self) -> Choice:
        choice_id = self._new_id()
        choice = Choice(
            id=choice_id,
            title="New Choice Point",
            options=[
                ChoiceOption(id=f"{choice_id}-1", text="Option 1"),
                ChoiceOption(id=f"{choice_id}-2", text="Option 2"),
            ],
        )
        self._update(choices=[*self.content.choices, choice])
        return choice

    def update_choice(self, choice_id: str, **fields) -> ScenarioContent:
        return self._update(choices=_replace(
            self.content.choices, choice_id, "choice",
            lambda c: _edit(c, fields, CHOICE_FIELDS, "choice"),
        ))

    def remove_choice(self, choice_id: str) -> ScenarioContent:
        return self._update(choices=_without(self.content.choices, choice_id, "choice"))

    def _change_options(self, choice_id: str, change: Callable[[list], list]) -> ScenarioContent:
        return self._update(choices=_replace(
            self.content.choices, choice_id, "choice",
            lambda c: c.model_copy(update={"options": change(c.options)}),
        ))

    def add_option(self, choice_id: str) -> ChoiceOption:
        choice = self.content.choices[_index_of(self.content.choices, choice_id, "choice")]
        option = ChoiceOption(id=self._new_id(), text=f"Option {len(choice.options) + 1}")
        self._change_options(choice_id, lambda options: [*options, option])
        return option

    def update_option(self, choice_id: str, option_id: str, **fields) -> ScenarioContent:
        return self._change_options(choice_id, lambda options: _replace(
            options, option_id, "option",
            lambda o: _edit(o, fields, OPTION_FIELDS, "option"),
        ))

    def remove_option(self, choice_id: str, option_id: str) -> ScenarioContent:
        def drop(options: list) -> list:
            remaining = _without(options, option_id, "option")
            if not remaining:
                raise ContentEditError("A choice point needs at least one option")
            return remaining

        return self._change_options(choice_id, drop)

    # --- option consequences ---

    def _change_option_consequences(
        self, choice_id: str, option_id: str, change: Callable[[list], list]
    ) -> ScenarioContent:
        return self._change_options(choice_id, lambda options: _replace(
            options, option_id, "option",
            lambda o: o.model_copy(update={"consequences": change(o.consequences)}),
        ))

    def add_option_consequence(self, choice_id: str, option_id: str) -> OptionConsequence:
        consequence = OptionConsequence(id=self._new_id())
        self._change_option_consequences(
            choice_id, option_id, lambda items: [*items, consequence]
        )
        return consequence

    def update_option_consequence(
        self, choice_id: str, option_id: str, consequence_id: str, **fields
    ) -> ScenarioContent:
        return self._change_option_consequences(choice_id, option_id, lambda items: _replace(
            items, consequence_id, "consequence",
            lambda c: _edit(c, fields, OPTION_CONSEQUENCE_FIELDS, "consequence"),
        ))

    def remove_option_consequence(
        self, choice_id: str, option_id: str, consequence_id: str
    ) -> ScenarioContent:
        return self._change_option_consequences(
            choice_id, option_id,
            lambda items: _without(items, consequence_id, "consequence"),
        )

    # --- top-level consequences ---

    def add_consequence(self) -> Consequence:
        consequence = Consequence(id=self._new_id(), title="New Consequence")
        self._update(consequences=[*self.content.consequences, consequence])
        return consequence

    def update_consequence(self, consequence_id: str, **fields) -> ScenarioContent:
        return self._update(consequences=_replace(
            self.content.consequences, consequence_id, "consequence",
            lambda c: _edit(c, fields, CONSEQUENCE_FIELDS, "consequence"),
        ))

    def remove_consequence(self, consequence_id: str) -> ScenarioContent:
        return self._update(consequences=_without(
            self.content.consequences, consequence_id, "consequence"
        ))

    # --- deliverables ---

    def add_deliverable(self) -> Deliverable:
        deliverable_id = self._new_id()
        deliverable = Deliverable(
            id=deliverable_id,
            title="New Deliverable",
            instructions=[ListItem(id=f"{deliverable_id}-1")],
            criteria=[ListItem(id=f"{deliverable_id}-2")],
        )
        self._update(deliverables=[*self.content.deliverables, deliverable])
        return deliverable

    def update_deliverable(self, deliverable_id: str, **fields) -> ScenarioContent:
        return self._update(deliverables=_replace(
            self.content.deliverables, deliverable_id, "deliverable",
            lambda d: _edit(d, fields, DELIVERABLE_FIELDS, "deliverable"),
        ))

    def remove_deliverable(self, deliverable_id: str) -> ScenarioContent:
        return self._update(deliverables=_without(
            self.content.deliverables, deliverable_id, "deliverable"
        ))

    def _change_items(
        self, deliverable_id: str, which: DeliverableList, change: Callable[[list], list]
    ) -> ScenarioContent:
        return self._update(deliverables=_replace(
            self.content.deliverables, deliverable_id, "deliverable",
            lambda d: d.model_copy(update={which: change(getattr(d, which))}),
        ))

    def _add_item(self, deliverable_id: str, which: DeliverableList) -> ListItem:
        item = ListItem(id=self._new_id())
        self._change_items(deliverable_id, which, lambda items: [*items, item])
        return item

    def _update_item(
        self, deliverable_id: str, which: DeliverableList, item_id: str, text: str
    ) -> ScenarioContent:
        return self._change_items(deliverable_id, which, lambda items: _replace(
            items, item_id, which, lambda i: _edit(i, {"text": text}, {"text"}, which),
        ))

    def _remove_item(
        self, deliverable_id: str, which: DeliverableList, item_id: str
    ) -> ScenarioContent:
        def drop(items: list) -> list:
            remaining = _without(items, item_id, which)
            if not remaining:
                raise ContentEditError(f"A deliverable keeps at least one entry in {which}")
            return remaining

        return self._change_items(deliverable_id, which, drop)

    def add_instruction(self, deliverable_id: str) -> ListItem:
        return self._add_item(deliverable_id, "instructions")

    def update_instruction(self, deliverable_id: str, instruction_id: str, text: str) -> ScenarioContent:
        return self._update_item(deliverable_id, "instructions", instruction_id, text)

    def remove_instruction(self, deliverable_id: str, instruction_id: str) -> ScenarioContent:
        return self._remove_item(deliverable_id, "instructions", instruction_id)

    def add_criterion(self, deliverable_id: str) -> ListItem:
        return self._add_item(deliverable_id, "criteria")

    def update_criterion(self, deliverable_id: str, criterion_id: str, text: str) -> ScenarioContent:
        return self._update_item(deliverable_id, "criteria", criterion_id, text)

    def remove_criterion(self, deliverable_id: str, criterion_id: str) -> ScenarioContent:
        return self._remove_item(deliverable_id, "criteria", criterion_id)

    # --- persistence ---

    async def save(self, store: ScenarioStore) -> ScenarioOut | None:
        """Write title, description and the whole document in one call.

        Returns None when the store reports a remote failure (see
        ``store.error("create")`` / ``store.error("update")``).
        """
        if not self.title.strip() or not self.description.strip():
            raise FormError("Please fill in all required fields")

        fields = {
            "title": self.title,
            "description": self.description,
            "content": self.content.to_json(),
        }
        if self.scenario_id is not None:
            return await store.update(self.scenario_id, fields)

        record = await store.create({**fields, "campaign_id": self.campaign_id})
        if record is not None:
            self.scenario_id = record.id
        return record
