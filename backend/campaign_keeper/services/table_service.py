"""Table service - row access behind the /rest endpoints.

Each exposed table is described by a ``TableSpec``: its ORM model, the
schemas used to validate writes and render rows, and which columns may be
used as equality filters. Visibility rules:

- campaigns: owned by the caller, or listing the caller's email as a member
- scenarios / npcs / sessions: owned by the caller, or in a visible campaign
- profiles: everyone
"""

import logging
from dataclasses import dataclass

from pydantic import BaseModel
from sqlalchemy import delete as sa_delete, or_, select, update as sa_update
from sqlalchemy.ext.asyncio import AsyncSession

from campaign_keeper.db.database import Base
from campaign_keeper.models import Campaign, GameSession, Npc, Profile, Scenario, User
from campaign_keeper.schemas.auth import ProfileOut
from campaign_keeper.schemas.campaign import (
    CampaignCreate,
    CampaignOut,
    CampaignUpdate,
    Member,
    normalize_email,
)
from campaign_keeper.schemas.npc import NpcCreate, NpcOut, NpcUpdate
from campaign_keeper.schemas.scenario import ScenarioCreate, ScenarioOut, ScenarioUpdate
from campaign_keeper.schemas.session import SessionCreate, SessionOut, SessionUpdate

logger = logging.getLogger(__name__)


class TableError(Exception):
    """Base class for row-access failures."""


class UnknownTable(TableError):
    pass


class RowNotFound(TableError):
    pass


class NotAllowed(TableError):
    pass


class ReadOnlyTable(TableError):
    pass


class BadQuery(TableError):
    pass


class VersionConflict(TableError):
    pass


class InvalidRoster(TableError):
    pass


@dataclass(frozen=True)
class TableSpec:
    model: type[Base]
    out_schema: type[BaseModel]
    create_schema: type[BaseModel] | None = None
    update_schema: type[BaseModel] | None = None
    filterable: frozenset[str] = frozenset({"id", "user_id"})
    campaign_scoped: bool = True

    @property
    def writable(self) -> bool:
        return self.create_schema is not None


TABLES: dict[str, TableSpec] = {
    "campaigns": TableSpec(
        Campaign, CampaignOut, CampaignCreate, CampaignUpdate,
        campaign_scoped=False,
    ),
    "scenarios": TableSpec(
        Scenario, ScenarioOut, ScenarioCreate, ScenarioUpdate,
        filterable=frozenset({"id", "user_id", "campaign_id"}),
    ),
    "npcs": TableSpec(
        Npc, NpcOut, NpcCreate, NpcUpdate,
        filterable=frozenset({"id", "user_id", "campaign_id"}),
    ),
    "sessions": TableSpec(
        GameSession, SessionOut, SessionCreate, SessionUpdate,
        filterable=frozenset({"id", "user_id", "campaign_id", "scenario_id"}),
    ),
    "profiles": TableSpec(
        Profile, ProfileOut,
        filterable=frozenset({"id", "email", "username"}),
        campaign_scoped=False,
    ),
}

CAMPAIGN_CHILDREN = (Scenario, Npc, GameSession)

MEMBER_WRITABLE = frozenset({"members"})


def get_table(name: str) -> TableSpec:
    spec = TABLES.get(name)
    if spec is None:
        raise UnknownTable(f"Unknown table: {name}")
    return spec


def parse_order(spec: TableSpec, order: str | None) -> tuple[str, bool]:
    """Parse ``column.desc`` / ``column.asc``; defaults to newest first."""
    if not order:
        return "created_at", True
    column, _, direction = order.partition(".")
    if column not in spec.model.__table__.columns:
        raise BadQuery(f"Cannot order {spec.model.__tablename__} by {column}")
    if direction not in ("", "asc", "desc"):
        raise BadQuery(f"Unknown order direction: {direction}")
    return column, direction != "asc"


def parse_filters(spec: TableSpec, params: dict[str, str]) -> dict[str, str]:
    """Parse ``column=eq.value`` query parameters."""
    filters = {}
    for column, raw in params.items():
        if column not in spec.filterable:
            raise BadQuery(f"Cannot filter {spec.model.__tablename__} by {column}")
        op, _, value = raw.partition(".")
        if op != "eq":
            raise BadQuery(f"Unsupported filter operator: {op}")
        filters[column] = value
    return filters


def check_roster(members: list[dict] | None, owner_email: str) -> None:
    """The owner is never a member, and an email appears at most once."""
    owner = normalize_email(owner_email)
    seen = set()
    for member in members or []:
        email = normalize_email(member.get("email"))
        if email == owner:
            raise InvalidRoster("The campaign owner cannot be a member")
        if email in seen:
            raise InvalidRoster(f"{email} is listed more than once")
        seen.add(email)


def check_self_activation(stored: list[dict] | None, proposed: list[dict] | None, email: str) -> None:
    """Allow a member to flip their own entry from invited to active, nothing more."""
    old_roster = [Member.model_validate(m) for m in stored or []]
    new_roster = [Member.model_validate(m) for m in proposed or []]
    if len(old_roster) != len(new_roster):
        raise NotAllowed("Only the owner can add or remove members")

    email = normalize_email(email)
    for old, new in zip(old_roster, new_roster):
        if normalize_email(old.email) != normalize_email(new.email) or old.role != new.role:
            raise NotAllowed("Only the owner can change the roster")
        if old.status == new.status:
            continue
        if normalize_email(old.email) != email or (old.status, new.status) != ("invited", "active"):
            raise NotAllowed("Members may only accept their own invitation")


class TableService:
    @staticmethod
    async def visible_campaign_ids(db: AsyncSession, user: User) -> set[str]:
        result = await db.execute(select(Campaign))
        return {
            c.id for c in result.scalars()
            if c.user_id == user.id or c.has_member(user.email)
        }

    @staticmethod
    async def _can_see(db: AsyncSession, spec: TableSpec, user: User, row) -> bool:
        if spec.model is Profile:
            return True
        if spec.model is Campaign:
            return row.user_id == user.id or row.has_member(user.email)
        if row.user_id == user.id:
            return True
        return row.campaign_id in await TableService.visible_campaign_ids(db, user)

    @staticmethod
    async def select_rows(
        db: AsyncSession,
        spec: TableSpec,
        user: User,
        filters: dict[str, str],
        order: tuple[str, bool],
    ) -> list:
        model = spec.model
        stmt = select(model)
        for column, value in filters.items():
            stmt = stmt.where(getattr(model, column) == value)

        if spec.campaign_scoped:
            visible = await TableService.visible_campaign_ids(db, user)
            stmt = stmt.where(or_(model.user_id == user.id, model.campaign_id.in_(visible)))

        column, descending = order
        order_col = getattr(model, column)
        stmt = stmt.order_by(order_col.desc() if descending else order_col.asc(), model.id)

        rows = list((await db.execute(stmt)).scalars().all())
        if model is Campaign:
            rows = [r for r in rows if r.user_id == user.id or r.has_member(user.email)]
        return rows

    @staticmethod
    async def get_row(db: AsyncSession, spec: TableSpec, user: User, row_id: str):
        row = await db.get(spec.model, row_id)
        if row is None or not await TableService._can_see(db, spec, user, row):
            raise RowNotFound(f"No {spec.model.__tablename__} row with id {row_id}")
        return row

    @staticmethod
    async def insert_row(db: AsyncSession, spec: TableSpec, user: User, payload: BaseModel):
        if not spec.writable:
            raise ReadOnlyTable(f"{spec.model.__tablename__} is read-only")

        data = payload.model_dump(by_alias=True)
        if spec.campaign_scoped:
            campaign = await db.get(Campaign, data["campaign_id"])
            if campaign is None or not (
                campaign.user_id == user.id or campaign.has_member(user.email)
            ):
                raise RowNotFound("Campaign not found")
        elif spec.model is Campaign:
            check_roster(data.get("members"), user.email)

        row = spec.model(**data, user_id=user.id)
        db.add(row)
        await db.flush()
        await db.refresh(row)
        logger.info("Inserted %s %s for user %s", spec.model.__tablename__, row.id, user.id)
        return row

    @staticmethod
    async def update_row(
        db: AsyncSession,
        spec: TableSpec,
        user: User,
        row_id: str,
        payload: BaseModel,
        expected_version: int | None = None,
    ):
        if not spec.writable:
            raise ReadOnlyTable(f"{spec.model.__tablename__} is read-only")

        row = await TableService.get_row(db, spec, user, row_id)
        model = spec.model
        columns = model.__table__.columns
        changes = payload.model_dump(exclude_unset=True, by_alias=True)

        # Members may touch a shared campaign's roster (accepting an invite), nothing else
        if row.user_id != user.id:
            if model is not Campaign or set(changes) - MEMBER_WRITABLE:
                raise NotAllowed("Only the owner can change this row")
            # A stale roster is a conflict to retry, not a forbidden edit
            if expected_version is not None and row.version != expected_version:
                raise VersionConflict(f"{model.__tablename__} {row_id} was changed by someone else")
            check_self_activation(row.members, changes.get("members"), user.email)
        elif model is Campaign and changes.get("members"):
            check_roster(changes["members"], user.email)

        values = {}
        for field, value in changes.items():
            # Required columns cannot be cleared through a partial update
            if value is None and not columns[field].nullable:
                continue
            values[field] = value

        versioned = "version" in columns
        if not values and not versioned:
            return row

        stmt = sa_update(model).where(model.id == row_id)
        if versioned:
            if expected_version is not None:
                stmt = stmt.where(model.version == expected_version)
            values["version"] = model.version + 1

        result = await db.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise VersionConflict(
                f"{model.__tablename__} {row_id} was changed by someone else"
            )
        await db.refresh(row)
        return row

    @staticmethod
    async def delete_row(db: AsyncSession, spec: TableSpec, user: User, row_id: str) -> None:
        if not spec.writable:
            raise ReadOnlyTable(f"{spec.model.__tablename__} is read-only")

        row = await TableService.get_row(db, spec, user, row_id)
        if row.user_id != user.id:
            raise NotAllowed("Only the owner can delete this row")

        if spec.model is Campaign:
            # Children go with their campaign, in the same transaction
            for child in CAMPAIGN_CHILDREN:
                await db.execute(sa_delete(child).where(child.campaign_id == row_id))

        await db.delete(row)
        await db.flush()
        logger.info("Deleted %s %s", spec.model.__tablename__, row_id)

    @staticmethod
    async def list_known_users(db: AsyncSession) -> list[dict]:
        """Body of the get_all_users server function."""
        result = await db.execute(
            select(User, Profile).outerjoin(Profile, Profile.id == User.id).order_by(User.email)
        )
        return [
            {
                "id": u.id,
                "email": u.email,
                "username": p.username if p else None,
                "avatar_url": p.avatar_url if p else None,
            }
            for u, p in result.all()
        ]


table_service = TableService()
