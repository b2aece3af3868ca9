"""Campaign roster management and magic-link invitations.

Adding a member is two independent steps: persist the roster, then send
the invitation. A failed invitation never rolls the roster back; the member
simply stays ``invited`` and can be re-invited later. Each flow returns a
``FlowResult`` listing how every step went.
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from pydantic_core import to_jsonable_python

from campaign_keeper.client.errors import ConflictError, FormError, NotOwnerError, RemoteError
from campaign_keeper.schemas.auth import CampaignInvitation, KnownUser
from campaign_keeper.schemas.campaign import CampaignOut, Member, MemberRole, normalize_email

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

ACTIVATION_ATTEMPTS = 3


@dataclass(frozen=True)
class StepOutcome:
    name: str
    ok: bool
    error: str | None = None


@dataclass
class FlowResult:
    steps: list[StepOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(step.ok for step in self.steps)

    @property
    def failures(self) -> list[StepOutcome]:
        return [step for step in self.steps if not step.ok]

    def step(self, name: str) -> StepOutcome | None:
        return next((s for s in self.steps if s.name == name), None)


def check_new_member(roster: Iterable[Member], owner_email: str | None, email: str) -> str:
    """Validate an email about to join ``roster``; returns it normalised."""
    email = normalize_email(email)
    if not email:
        raise FormError("Please enter an email address")
    if not EMAIL_PATTERN.match(email):
        raise FormError("Please enter a valid email address")
    if any(normalize_email(m.email) == email for m in roster):
        raise FormError("This email is already added to the campaign")
    if owner_email and normalize_email(owner_email) == email:
        raise FormError("The campaign owner cannot be added as a member")
    return email


class MembershipService:
    def __init__(self, workspace):
        self.workspace = workspace

    @property
    def remote(self):
        return self.workspace.remote

    @property
    def campaigns(self):
        return self.workspace.campaigns

    def _require_owner(self, campaign: CampaignOut) -> None:
        user = self.workspace.auth.user
        if user is None or user.id != campaign.user_id:
            raise NotOwnerError("Only the campaign owner can manage members")

    def _require_member(self, campaign: CampaignOut, email: str) -> Member:
        member = campaign.find_member(email)
        if member is None:
            raise FormError(f"{email} is not a member of this campaign")
        return member

    async def _save_roster(self, campaign: CampaignOut, roster: list[Member]) -> CampaignOut | None:
        # An empty roster is stored as null
        return await self.campaigns.update(
            campaign.id,
            {"members": roster or None},
            expected_version=campaign.version,
        )

    async def _invite(self, campaign: CampaignOut, email: str) -> StepOutcome:
        inviter = self.workspace.auth.user
        invitation = CampaignInvitation(
            campaign_id=campaign.id,
            campaign_title=campaign.title,
            inviter_email=inviter.email if inviter else "",
        )
        try:
            await self.remote.auth.sign_in_with_otp(
                email,
                redirect_to=f"/campaigns/{campaign.id}",
                data=invitation.to_metadata(),
            )
        except RemoteError as exc:
            logger.warning("Invitation to %s for campaign %s failed: %s", email, campaign.id, exc)
            return StepOutcome(f"invite {email}", False, str(exc))
        logger.info("Invitation sent to %s for campaign %s", email, campaign.id)
        return StepOutcome(f"invite {email}", True)

    def validate_new_member(self, campaign: CampaignOut, email: str) -> str:
        self._require_owner(campaign)
        return check_new_member(campaign.roster, self.workspace.auth.user.email, email)

    async def add_member(
        self, campaign: CampaignOut, email: str, role: MemberRole = "player"
    ) -> FlowResult:
        """Append an invited member, save the roster, then send the invitation."""
        email = self.validate_new_member(campaign, email)
        roster = [*campaign.roster, Member(email=email, role=role)]

        updated = await self._save_roster(campaign, roster)
        if updated is None:
            return FlowResult([
                StepOutcome("persist", False, self.campaigns.error("update")),
                StepOutcome(f"invite {email}", False, "Skipped because the member was not saved"),
            ])
        return FlowResult([StepOutcome("persist", True), await self._invite(updated, email)])

    async def add_existing_user(self, campaign: CampaignOut, email: str) -> FlowResult:
        """Add a user picked from the known-users list, always as a player."""
        return await self.add_member(campaign, email, "player")

    async def remove_member(self, campaign: CampaignOut, email: str) -> CampaignOut | None:
        self._require_owner(campaign)
        member = self._require_member(campaign, email)
        roster = [m for m in campaign.roster if m.email != member.email]
        return await self._save_roster(campaign, roster)

    async def update_member_role(
        self, campaign: CampaignOut, email: str, role: MemberRole
    ) -> CampaignOut | None:
        self._require_owner(campaign)
        member = self._require_member(campaign, email)
        roster = [
            m.model_copy(update={"role": role}) if m.email == member.email else m
            for m in campaign.roster
        ]
        return await self._save_roster(campaign, roster)

    async def resend_invitation(self, campaign: CampaignOut, email: str) -> StepOutcome:
        """Send the invitation again; the roster is left alone."""
        self._require_owner(campaign)
        member = self._require_member(campaign, email)
        return await self._invite(campaign, member.email)

    async def invite_pending(self, campaign: CampaignOut) -> FlowResult:
        """Invite every member still ``invited``, one after another."""
        result = FlowResult()
        for member in campaign.roster:
            if member.status == "invited":
                result.steps.append(await self._invite(campaign, member.email))
        return result

    async def list_known_users(self) -> list[KnownUser]:
        try:
            rows = await self.remote.rpc("get_all_users")
        except RemoteError as exc:
            logger.warning("get_all_users failed, falling back to profiles: %s", exc)
            rows = await self.remote.select("profiles", order="username", descending=False)
            rows = [row for row in rows if row.get("email")]
        return [KnownUser.model_validate(row) for row in rows]

    async def activate_member(
        self, campaign_id: str, email: str, attempts: int = ACTIVATION_ATTEMPTS
    ) -> CampaignOut | None:
        """Flip ``email`` from invited to active on a fresh copy of the campaign.

        The write is conditional on the version that was read. When someone
        else saved the campaign in between, re-read and try again, up to
        ``attempts`` times. Returns None when ``email`` is not on the roster.
        """
        for attempt in range(1, attempts + 1):
            campaign = CampaignOut.model_validate(await self.remote.get("campaigns", campaign_id))
            member = campaign.find_member(email)
            if member is None:
                logger.warning("%s is not on the roster of campaign %s", email, campaign_id)
                return None
            if member.status == "active":
                return campaign

            roster = [
                m.model_copy(update={"status": "active"}) if m.email == member.email else m
                for m in campaign.roster
            ]
            try:
                row = await self.remote.update(
                    "campaigns",
                    campaign_id,
                    {"members": to_jsonable_python(roster)},
                    expected_version=campaign.version,
                )
            except ConflictError:
                logger.info("Campaign %s changed during activation (attempt %d)", campaign_id, attempt)
                continue

            updated = CampaignOut.model_validate(row)
            self.campaigns.apply(updated)
            logger.info("%s is now active in campaign %s", email, campaign_id)
            return updated

        raise ConflictError(
            f"Could not activate {email}: campaign {campaign_id} kept changing", 409
        )
