"""Client-side error types.

- ``FormError``: rejected locally before any remote call (missing fields,
  bad email, duplicate member, editor rules). ``str(exc)`` is the message
  to show next to the form.
- ``RemoteError``: the data service or the network failed. Stores catch it
  and keep ``str(exc)`` in their error slot.
"""


class CampaignKeeperError(Exception):
    """Base class for client errors."""


class FormError(CampaignKeeperError):
    pass


class NotOwnerError(FormError):
    """Owner-only action attempted by someone else."""


class ContentEditError(FormError):
    """A scenario content edit was rejected (unknown id, minimum count, ...)."""


class RemoteError(CampaignKeeperError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ConflictError(RemoteError):
    """The row changed since it was read (version mismatch)."""
