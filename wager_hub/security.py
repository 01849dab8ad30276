import hmac

from fastapi import Header

from wager_hub.config import settings
from wager_hub.errors import ForbiddenError, UnauthorizedError


def authorize_scheduler(authorization: str | None) -> None:
    """
    Check the scheduler's ``Authorization: Bearer <secret>`` header.

    An unconfigured secret rejects every run.
    """
    if not settings.cron_secret:
        raise UnauthorizedError()
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError()
    token = authorization.split(" ", 1)[1].strip()
    if not hmac.compare_digest(token, settings.cron_secret):
        raise UnauthorizedError()


def require_cron_secret(authorization: str | None = Header(None, alias="Authorization")):
    authorize_scheduler(authorization)


def require_admin_token(x_admin_token: str | None = Header(None, alias="X-Admin-Token")):
    if not settings.admin_token or not x_admin_token:
        raise ForbiddenError()
    if not hmac.compare_digest(x_admin_token, settings.admin_token):
        raise ForbiddenError()


def current_owner(x_owner_id: str | None = Header(None, alias="X-Owner-Id")) -> str:
    # Set by the identity gateway in front of the hub.
    if not x_owner_id:
        raise UnauthorizedError("missing X-Owner-Id header")
    return x_owner_id
