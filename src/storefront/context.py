"""
Request-scoped context.

Every mutation receives a RequestContext naming the caller (if a valid
session cookie was sent) and the collaborators it may use.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from aiohttp import web
from loguru import logger

from .auth.jwt_handler import COOKIE_NAME, SessionIssuer
from .database import StoreDatabase
from .mailer import Mailer


@dataclass
class RequestContext:
    """
    Context for a single request.

    Attributes:
        caller_id: Id of the logged-in user, None for anonymous callers
        storage: Store database
        mailer: Outgoing mail transport
    """
    caller_id: Optional[str]
    storage: StoreDatabase
    mailer: Mailer


CONTEXT_KEY = web.RequestKey("storefront_context", RequestContext)


def session_middleware(
    issuer: SessionIssuer,
    storage: StoreDatabase,
    mailer: Mailer,
) -> Callable[[web.Request, Callable[[web.Request], Awaitable[web.StreamResponse]]], Awaitable[web.StreamResponse]]:
    """
    Build middleware that decodes the session cookie into a RequestContext.

    An invalid or missing cookie yields an anonymous context; guards decide
    later whether the mutation needs a caller.
    """

    @web.middleware
    async def middleware(request: web.Request, handler):
        caller_id = issuer.decode(request.cookies.get(COOKIE_NAME))
        if caller_id:
            logger.debug(f"Request {request.method} {request.path} from user {caller_id}")

        request[CONTEXT_KEY] = RequestContext(
            caller_id=caller_id,
            storage=storage,
            mailer=mailer,
        )
        return await handler(request)

    return middleware


def get_context(request: web.Request) -> RequestContext:
    return request[CONTEXT_KEY]
