"""Table endpoints - select/insert/update/delete over the exposed tables.

Filtering follows ``?column=eq.value``; ordering ``?order=column.desc``.
"""

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from campaign_keeper.api.deps import get_current_user
from campaign_keeper.db.database import get_db
from campaign_keeper.models.user import User
from campaign_keeper.services.table_service import (
    BadQuery,
    InvalidRoster,
    NotAllowed,
    ReadOnlyTable,
    RowNotFound,
    TableSpec,
    UnknownTable,
    VersionConflict,
    get_table,
    parse_filters,
    parse_order,
    table_service,
)

router = APIRouter()


def _spec_or_404(table: str) -> TableSpec:
    try:
        return get_table(table)
    except UnknownTable as exc:
        raise HTTPException(status_code=404, detail=str(exc))


def _render(spec: TableSpec, row) -> dict:
    return spec.out_schema.model_validate(row).model_dump(mode="json", by_alias=True)


def _parse_body(schema: type[BaseModel] | None, body: dict) -> BaseModel:
    if schema is None:
        raise HTTPException(status_code=405, detail="Table is read-only")
    try:
        return schema.model_validate(body)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False))


@router.get("/{table}")
async def select_rows(
    table: str,
    request: Request,
    order: str | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Select visible rows, optionally filtered and ordered."""
    spec = _spec_or_404(table)
    params = {k: v for k, v in request.query_params.items() if k != "order"}
    try:
        filters = parse_filters(spec, params)
        ordering = parse_order(spec, order)
    except BadQuery as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    rows = await table_service.select_rows(db, spec, user, filters, ordering)
    return JSONResponse([_render(spec, row) for row in rows])


@router.get("/{table}/{row_id}")
async def get_row(
    table: str,
    row_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    spec = _spec_or_404(table)
    try:
        row = await table_service.get_row(db, spec, user, row_id)
    except RowNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return JSONResponse(_render(spec, row))


@router.post("/{table}", status_code=201)
async def insert_row(
    table: str,
    body: dict = Body(...),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Insert one row owned by the caller and return it."""
    spec = _spec_or_404(table)
    payload = _parse_body(spec.create_schema, body)
    try:
        row = await table_service.insert_row(db, spec, user, payload)
    except RowNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except InvalidRoster as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return JSONResponse(_render(spec, row), status_code=201)


@router.patch("/{table}/{row_id}")
async def update_row(
    table: str,
    row_id: str,
    body: dict = Body(...),
    if_match: int | None = Header(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Partial update. ``If-Match: <version>`` guards versioned rows."""
    spec = _spec_or_404(table)
    payload = _parse_body(spec.update_schema, body)
    try:
        row = await table_service.update_row(db, spec, user, row_id, payload, if_match)
    except RowNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except NotAllowed as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    except VersionConflict as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except InvalidRoster as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return JSONResponse(_render(spec, row))


@router.delete("/{table}/{row_id}", status_code=204)
async def delete_row(
    table: str,
    row_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    spec = _spec_or_404(table)
    try:
        await table_service.delete_row(db, spec, user, row_id)
    except RowNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except NotAllowed as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    except ReadOnlyTable as exc:
        raise HTTPException(status_code=405, detail=str(exc))
