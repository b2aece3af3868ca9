"""Auth store - the signed-in identity and its session."""

from urllib.parse import parse_qs, urlsplit

from pydantic import ValidationError

from campaign_keeper.client.errors import FormError, RemoteError
from campaign_keeper.client.remote import RemoteDataService
from campaign_keeper.config import settings
from campaign_keeper.schemas.auth import AuthSession, CampaignInvitation, Identity
from campaign_keeper.stores.base import StateHolder


def access_token_from_url(url: str) -> str | None:
    """Pull ``access_token`` out of a magic-link URL fragment."""
    fragment = urlsplit(url).fragment
    if "access_token" not in fragment:
        return None
    values = parse_qs(fragment).get("access_token")
    return values[0] if values else None


class AuthStore(StateHolder):
    name = "auth"
    operations = ("sign_up", "sign_in", "sign_out", "load_session", "magic_link")

    def __init__(self, remote: RemoteDataService):
        super().__init__()
        self.remote = remote
        self.user: Identity | None = None
        self.session: AuthSession | None = None

    def _signed_in(self, session: AuthSession) -> None:
        self.session = session
        self.user = session.user

    async def sign_up(self, email: str, password: str, confirm_password: str) -> bool:
        if not email or not password or not confirm_password:
            raise FormError("Please fill in all fields")
        if password != confirm_password:
            raise FormError("Passwords do not match")
        if len(password) < settings.MIN_PASSWORD_LENGTH:
            raise FormError(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters"
            )

        self._begin("sign_up")
        try:
            session = await self.remote.auth.sign_up(email, password)
        except RemoteError as exc:
            self._fail("sign_up", exc)
            return False
        self._signed_in(session)
        self._finish("sign_up")
        return True

    async def sign_in(self, email: str, password: str) -> bool:
        if not email or not password:
            raise FormError("Please fill in all fields")

        self._begin("sign_in")
        try:
            session = await self.remote.auth.sign_in(email, password)
        except RemoteError as exc:
            self._fail("sign_in", exc)
            return False
        self._signed_in(session)
        self._finish("sign_in")
        return True

    async def sign_out(self) -> bool:
        self._begin("sign_out")
        try:
            await self.remote.auth.sign_out()
        except RemoteError as exc:
            self._fail("sign_out", exc)
            return False
        self.user = None
        self.session = None
        self._finish("sign_out")
        return True

    async def load_session(self) -> Identity | None:
        """Refresh ``user`` from the current access token, if there is one."""
        if not self.remote.access_token:
            return None
        self._begin("load_session")
        try:
            self.user = await self.remote.auth.get_user()
        except RemoteError as exc:
            self._fail("load_session", exc)
            return None
        self._finish("load_session")
        return self.user

    async def process_magic_link(self, url: str) -> CampaignInvitation | None:
        """Redeem the token in ``url`` and return its campaign invitation, if any.

        URLs without an ``access_token`` fragment are ignored.
        """
        token = access_token_from_url(url)
        if token is None:
            return None

        self._begin("magic_link")
        try:
            session = await self.remote.auth.verify(token)
            identity = await self.remote.auth.get_user()
        except (RemoteError, ValidationError) as exc:
            self._fail("magic_link", exc)
            return None

        self.session = session
        self.user = identity
        self._finish("magic_link")
        return CampaignInvitation.from_metadata(identity.user_metadata)
