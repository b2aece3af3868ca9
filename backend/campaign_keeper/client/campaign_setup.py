"""Campaign form submission: save, invite, import."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from campaign_keeper.client.errors import FormError, NotOwnerError
from campaign_keeper.client.importer import ImportReport
from campaign_keeper.client.membership import FlowResult, StepOutcome, check_new_member
from campaign_keeper.schemas.campaign import CampaignOut, Member

logger = logging.getLogger(__name__)


@dataclass
class CampaignSaveResult:
    campaign: CampaignOut | None
    save: StepOutcome
    invitations: FlowResult = field(default_factory=FlowResult)
    imports: ImportReport = field(default_factory=ImportReport)

    @property
    def ok(self) -> bool:
        return self.save.ok and self.invitations.ok and self.imports.ok


class CampaignSetup:
    def __init__(self, workspace):
        self.workspace = workspace

    def _validate_roster(self, members: Iterable[Member | dict]) -> list[Member]:
        owner = self.workspace.auth.user
        roster: list[Member] = []
        for member in members:
            member = Member.model_validate(member)
            email = check_new_member(roster, owner.email if owner else None, member.email)
            roster.append(member.model_copy(update={"email": email}))
        return roster

    async def save(
        self,
        title: str,
        description: str,
        *,
        campaign: CampaignOut | None = None,
        image_url: str | None = None,
        members: Iterable[Member | dict] = (),
        imported_scenarios: Iterable[str] = (),
    ) -> CampaignSaveResult:
        """Create ``campaign`` (or update it), invite pending members, clone imports.

        Scenarios already listed on ``campaign`` are not cloned again. An
        ``image_url`` of None leaves the stored image alone; "" clears it.
        """
        if not (title or "").strip() or not (description or "").strip():
            raise FormError("Please fill in all required fields")
        user = self.workspace.auth.user
        if campaign is not None and (user is None or user.id != campaign.user_id):
            raise NotOwnerError("Only the campaign owner can edit this campaign")

        roster = self._validate_roster(members)
        imported = list(dict.fromkeys(imported_scenarios))
        fields = {
            "title": title.strip(),
            "description": description.strip(),
            "members": roster or None,
            "imported_scenarios": imported or None,
        }
        if image_url is not None:
            fields["image_url"] = image_url or None

        store = self.workspace.campaigns
        if campaign is None:
            record = await store.create(fields)
            operation = "create"
        else:
            record = await store.update(campaign.id, fields, expected_version=campaign.version)
            operation = "update"
        if record is None:
            return CampaignSaveResult(None, StepOutcome("save", False, store.error(operation)))

        invitations = await self.workspace.membership.invite_pending(record)

        already = set(campaign.imported_scenarios or []) if campaign else set()
        to_clone = [sid for sid in imported if sid not in already]
        imports = ImportReport()
        if to_clone:
            imports = await self.workspace.importer.import_scenarios(to_clone, record.id)

        result = CampaignSaveResult(record, StepOutcome("save", True), invitations, imports)
        if not result.ok:
            logger.warning(
                "Campaign %s saved with %d failed invitation(s) and %d failed import(s)",
                record.id, len(invitations.failures), len(imports.failed),
            )
        return result
