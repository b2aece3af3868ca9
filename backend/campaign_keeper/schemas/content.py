"""Scenario content document schema.

The document is stored verbatim in ``scenarios.content``:

- ``sections``: ordered; one variant per section ``type``
  ("mission", "character", "note", "resource"). Only character sections
  carry an ``npcId`` back-reference.
- ``consequences``: standalone branching notes, not tied to an option.
- ``deliverables``: objectives with ``instructions`` and ``criteria`` lists.
- ``choices``: choice points -> options -> option consequences.

Every node is frozen. Editing produces new values instead of mutating
shared structure (see ``core.scenario_editor``).
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ContentNode(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ListItem(ContentNode):
    """A single instruction or criterion line of a deliverable."""
    id: str
    text: str = ""


class OptionConsequence(ContentNode):
    id: str
    description: str = ""
    impact: str = ""


class ChoiceOption(ContentNode):
    id: str
    text: str = ""
    outcome: str = ""
    # Older documents omit this list entirely
    consequences: list[OptionConsequence] = Field(default_factory=list)


class Choice(ContentNode):
    id: str
    title: str = ""
    description: str = ""
    options: list[ChoiceOption] = Field(min_length=1)


class Consequence(ContentNode):
    id: str
    title: str = ""
    description: str = ""
    condition: str = ""
    outcome: str = ""


class Deliverable(ContentNode):
    id: str
    title: str = ""
    objective: str = ""
    instructions: list[ListItem] = Field(default_factory=list)
    criteria: list[ListItem] = Field(default_factory=list)
    status: Literal["pending", "completed"] = "pending"


class _SectionBase(ContentNode):
    id: str
    title: str = ""
    content: str = ""


class MissionSection(_SectionBase):
    type: Literal["mission"] = "mission"


class CharacterSection(_SectionBase):
    type: Literal["character"] = "character"
    # Weak link: copied name/description are never re-synced with the NPC
    npc_id: str | None = Field(default=None, alias="npcId")


class NoteSection(_SectionBase):
    type: Literal["note"] = "note"


class ResourceSection(_SectionBase):
    type: Literal["resource"] = "resource"


Section = Annotated[
    Union[MissionSection, CharacterSection, NoteSection, ResourceSection],
    Field(discriminator="type"),
]

SectionType = Literal["mission", "character", "note", "resource"]

SECTION_CLASSES: dict[str, type[_SectionBase]] = {
    "mission": MissionSection,
    "character": CharacterSection,
    "note": NoteSection,
    "resource": ResourceSection,
}


def _duplicate_ids(items) -> set[str]:
    seen: set[str] = set()
    dupes: set[str] = set()
    for item in items:
        if item.id in seen:
            dupes.add(item.id)
        seen.add(item.id)
    return dupes


class ScenarioContent(ContentNode):
    sections: list[Section] = Field(default_factory=list)
    consequences: list[Consequence] = Field(default_factory=list)
    deliverables: list[Deliverable] = Field(default_factory=list)
    choices: list[Choice] = Field(default_factory=list)

    @model_validator(mode="after")
    def _ids_unique_per_list(self) -> "ScenarioContent":
        lists: list[tuple[str, list]] = [
            ("sections", self.sections),
            ("consequences", self.consequences),
            ("deliverables", self.deliverables),
            ("choices", self.choices),
        ]
        for d in self.deliverables:
            lists.append((f"deliverable {d.id} instructions", d.instructions))
            lists.append((f"deliverable {d.id} criteria", d.criteria))
        for c in self.choices:
            lists.append((f"choice {c.id} options", c.options))
            for o in c.options:
                lists.append((f"option {o.id} consequences", o.consequences))

        for where, items in lists:
            dupes = _duplicate_ids(items)
            if dupes:
                raise ValueError(f"Duplicate ids in {where}: {', '.join(sorted(dupes))}")
        return self

    def to_json(self) -> dict:
        """Dump in the stored wire shape (camelCase ``npcId``)."""
        return self.model_dump(mode="json", by_alias=True)
