"""Remote data service client.

Every call is one HTTP request against the Campaign Keeper API and either
returns decoded JSON or raises ``RemoteError``. Successful sign-in, sign-up
and magic-link verification attach the returned access token to all later
requests made through the same ``RemoteDataService``.
"""

import logging
from typing import Any

import httpx

from campaign_keeper.client.errors import ConflictError, RemoteError
from campaign_keeper.config import settings
from campaign_keeper.schemas.auth import AuthSession, Identity

logger = logging.getLogger(__name__)


def _error_message(resp: httpx.Response) -> str:
    try:
        detail = resp.json().get("detail")
    except (ValueError, AttributeError):
        detail = None
    if isinstance(detail, list):
        # FastAPI request validation errors
        return "; ".join(str(err.get("msg", err)) for err in detail)
    if detail:
        return str(detail)
    return resp.text or f"HTTP {resp.status_code}"


class RemoteDataService:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ):
        self._client = client or httpx.AsyncClient(base_url=base_url or settings.API_BASE_URL)
        self._owns_client = client is None
        self.access_token: str | None = None
        self.auth = AuthClient(self)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "RemoteDataService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: Any = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        headers = dict(headers or {})
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        try:
            resp = await self._client.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            raise RemoteError(f"Could not reach the data service: {exc}") from exc

        if resp.status_code == 409:
            raise ConflictError(_error_message(resp), resp.status_code)
        if resp.status_code >= 400:
            raise RemoteError(_error_message(resp), resp.status_code)
        return resp

    # --- tables ---

    async def select(
        self,
        table: str,
        *,
        eq: dict[str, str] | None = None,
        order: str | None = None,
        descending: bool = True,
    ) -> list[dict]:
        params = {column: f"eq.{value}" for column, value in (eq or {}).items()}
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        resp = await self.request("GET", f"/rest/{table}", params=params)
        return resp.json()

    async def get(self, table: str, row_id: str) -> dict:
        resp = await self.request("GET", f"/rest/{table}/{row_id}")
        return resp.json()

    async def insert(self, table: str, values: dict) -> dict:
        resp = await self.request("POST", f"/rest/{table}", json=values)
        return resp.json()

    async def update(
        self,
        table: str,
        row_id: str,
        values: dict,
        *,
        expected_version: int | None = None,
    ) -> dict:
        headers = {}
        if expected_version is not None:
            headers["If-Match"] = str(expected_version)
        resp = await self.request("PATCH", f"/rest/{table}/{row_id}", json=values, headers=headers)
        return resp.json()

    async def delete(self, table: str, row_id: str) -> None:
        await self.request("DELETE", f"/rest/{table}/{row_id}")

    async def rpc(self, name: str, args: dict | None = None) -> Any:
        resp = await self.request("POST", f"/rpc/{name}", json=args or {})
        return resp.json()


class AuthClient:
    def __init__(self, remote: RemoteDataService):
        self._remote = remote

    def _adopt(self, resp: httpx.Response) -> AuthSession:
        session = AuthSession.model_validate(resp.json())
        self._remote.access_token = session.access_token
        return session

    async def sign_up(self, email: str, password: str) -> AuthSession:
        resp = await self._remote.request(
            "POST", "/auth/signup", json={"email": email, "password": password}
        )
        return self._adopt(resp)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        resp = await self._remote.request(
            "POST", "/auth/token", json={"email": email, "password": password}
        )
        return self._adopt(resp)

    async def sign_out(self) -> None:
        if self._remote.access_token:
            await self._remote.request("POST", "/auth/logout")
        self._remote.access_token = None

    async def get_user(self) -> Identity:
        resp = await self._remote.request("GET", "/auth/user")
        return Identity.model_validate(resp.json())

    async def sign_in_with_otp(
        self, email: str, redirect_to: str | None = None, data: dict | None = None
    ) -> None:
        """Ask the service to email a magic link carrying ``data`` as metadata."""
        await self._remote.request(
            "POST",
            "/auth/otp",
            json={"email": email, "redirect_to": redirect_to, "data": data or {}},
        )

    async def verify(self, token: str) -> AuthSession:
        resp = await self._remote.request("POST", "/auth/verify", json={"token": token})
        return self._adopt(resp)
