"""Entity store - client-side mirror of one table.

A store keeps the rows from its last fetch (``items``), a ``current``
selection, and one ``OperationState`` per operation, so a slow fetch and a
concurrent delete never overwrite each other's loading flag or error.
Remote failures never raise out of a store method. The message goes to the
operation's error slot and ``items`` is left as it was.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from pydantic import BaseModel, ValidationError
from pydantic_core import to_jsonable_python

from campaign_keeper.client.errors import RemoteError
from campaign_keeper.client.remote import RemoteDataService

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)

Listener = Callable[["StateHolder"], None]


@dataclass(frozen=True)
class OperationState:
    loading: bool = False
    error: str | None = None


def to_payload(fields: dict | BaseModel, *, partial: bool = False) -> dict:
    """JSON-ready dict for a write; models keep only the fields that were set."""
    if isinstance(fields, BaseModel):
        return fields.model_dump(mode="json", by_alias=True, exclude_unset=partial)
    return to_jsonable_python(fields, by_alias=True)


class StateHolder:
    """Observable state with one ``OperationState`` slot per operation."""
    name: str = "state"
    operations: tuple[str, ...] = ()

    def __init__(self):
        self.status: dict[str, OperationState] = {op: OperationState() for op in self.operations}
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(holder)`` after every state change; returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    @property
    def loading(self) -> bool:
        return any(state.loading for state in self.status.values())

    def error(self, operation: str) -> str | None:
        return self.status[operation].error

    def _begin(self, operation: str) -> None:
        self.status[operation] = OperationState(loading=True)
        self._notify()

    def _finish(self, operation: str) -> None:
        self.status[operation] = OperationState()
        self._notify()

    def _fail(self, operation: str, exc: Exception) -> None:
        logger.warning("%s %s failed: %s", self.name, operation, exc)
        self.status[operation] = OperationState(error=str(exc))
        self._notify()


class EntityStore(StateHolder, Generic[R]):
    table: str
    record_type: type[R]
    order_column: str = "created_at"
    scope_column: str | None = "campaign_id"
    operations: tuple[str, ...] = ("fetch", "create", "update", "delete")

    def __init__(self, remote: RemoteDataService):
        super().__init__()
        self.remote = remote
        self.items: list[R] = []
        self.current: R | None = None

    @property
    def name(self) -> str:
        return self.table

    # --- local state ---

    def _parse(self, row: dict) -> R:
        return self.record_type.model_validate(row)

    def get_by_id(self, record_id: str) -> R | None:
        for item in self.items:
            if item.id == record_id:
                return item
        return None

    def set_current(self, record: R | None) -> None:
        self.current = record
        self._notify()

    def apply(self, record: R) -> None:
        """Replace the cached copy of ``record`` (list and current) if present."""
        self.items = [record if item.id == record.id else item for item in self.items]
        if self.current is not None and self.current.id == record.id:
            self.current = record
        self._notify()

    def discard(self, predicate: Callable[[R], bool]) -> None:
        """Drop cached rows matching ``predicate`` without a remote call."""
        self.items = [item for item in self.items if not predicate(item)]
        if self.current is not None and predicate(self.current):
            self.current = None
        self._notify()

    # --- remote operations ---

    async def fetch_all(self, scope_id: str | None = None) -> list[R]:
        """Replace ``items`` with every visible row, newest first."""
        self._begin("fetch")
        eq = None
        if scope_id is not None and self.scope_column:
            eq = {self.scope_column: scope_id}
        try:
            rows = await self.remote.select(self.table, eq=eq, order=self.order_column)
            items = [self._parse(row) for row in rows]
        except (RemoteError, ValidationError) as exc:
            self._fail("fetch", exc)
            return self.items

        self.items = items
        self._finish("fetch")
        return self.items

    async def create(self, fields: dict | BaseModel) -> R | None:
        """Insert one row and put it at the front of ``items``."""
        self._begin("create")
        try:
            record = self._parse(await self.remote.insert(self.table, to_payload(fields)))
        except (RemoteError, ValidationError) as exc:
            self._fail("create", exc)
            return None

        self.items = [record] + [item for item in self.items if item.id != record.id]
        self._finish("create")
        return record

    async def update(
        self,
        record_id: str,
        fields: dict | BaseModel,
        *,
        expected_version: int | None = None,
    ) -> R | None:
        self._begin("update")
        try:
            row = await self.remote.update(
                self.table,
                record_id,
                to_payload(fields, partial=True),
                expected_version=expected_version,
            )
            record = self._parse(row)
        except (RemoteError, ValidationError) as exc:
            self._fail("update", exc)
            return None

        self.items = [record if item.id == record_id else item for item in self.items]
        if self.current is not None and self.current.id == record_id:
            self.current = record
        self._finish("update")
        return record

    async def delete(self, record_id: str) -> bool:
        self._begin("delete")
        try:
            await self.remote.delete(self.table, record_id)
        except RemoteError as exc:
            self._fail("delete", exc)
            return False

        self.items = [item for item in self.items if item.id != record_id]
        if self.current is not None and self.current.id == record_id:
            self.current = None
        self._finish("delete")
        return True
