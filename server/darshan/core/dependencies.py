"""FastAPI dependencies for authentication, the change feed and the dispatcher."""

from typing import Optional

from fastapi import Depends, Header, Request

from ..realtime.feed import ChangeFeed
from ..services.notification_service import NotificationDispatcher
from .exceptions import AuthorizationError
from .security import RESPONDER_ROLES, STAFF_ROLES, CurrentUser, decode_bearer_token


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> CurrentUser:
    """Authentication dependency that validates Bearer tokens."""
    return decode_bearer_token(authorization)


def require_roles(*roles: str):
    """Build a dependency that admits only users holding one of ``roles``."""

    async def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not user.has_any_role(roles):
            raise AuthorizationError(required_roles=sorted(roles))
        return user

    return dependency


def get_change_feed(request: Request) -> ChangeFeed:
    """The application's change feed, created once per app."""
    return request.app.state.change_feed


def get_notification_dispatcher(request: Request) -> NotificationDispatcher:
    """Dispatcher writing through its own sessions, independent of the request's."""
    return NotificationDispatcher(
        session_factory=request.app.state.session_factory,
        feed=request.app.state.change_feed,
    )


RequiredAuth = Depends(get_current_user)
StaffAuth = Depends(require_roles(*STAFF_ROLES))
ResponderAuth = Depends(require_roles(*RESPONDER_ROLES))
ChangeFeedDependency = Depends(get_change_feed)
DispatcherDependency = Depends(get_notification_dispatcher)
