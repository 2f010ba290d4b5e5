"""
HTTP API for the storefront.

Exposes every mutation as ``POST /api/<mutationName>`` with a JSON body of
its arguments, and the read queries as GET routes.

Responses:
    {"success": true, "data": ...}
    {"success": false, "error": "...", "code": "<ErrorName>"}
"""

from typing import Any, Awaitable, Callable, List, Optional, Type

import pydantic
from aiohttp import web
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from .auth.jwt_handler import SessionIssuer
from .config import Settings
from .context import get_context, session_middleware
from .database import StoreDatabase
from .errors import StorefrontError, ValidationError
from .mailer import Mailer
from .mutations import MutationResult, Mutations


# Request bodies, camelCase on the wire
class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class EmptyBody(_Body):
    pass


class IdBody(_Body):
    id: str


class CreateItemBody(_Body):
    title: str
    description: str
    price: int
    image: Optional[str] = None
    large_image: Optional[str] = Field(default=None, alias="largeImage")


class UpdateItemBody(_Body):
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[int] = None
    image: Optional[str] = None
    large_image: Optional[str] = Field(default=None, alias="largeImage")


class SignupBody(_Body):
    email: str
    password: str
    name: str


class SigninBody(_Body):
    email: str
    password: str


class RequestResetBody(_Body):
    email: str


class ResetPasswordBody(_Body):
    reset_token: str = Field(alias="resetToken")
    password: str
    confirm_password: str = Field(alias="confirmPassword")


class UpdatePermissionsBody(_Body):
    user_id: str = Field(alias="userId")
    permissions: List[str]


# Mutation name -> (request body, Mutations method name)
MUTATION_ROUTES = {
    "createItem": (CreateItemBody, "create_item"),
    "updateItem": (UpdateItemBody, "update_item"),
    "deleteItem": (IdBody, "delete_item"),
    "signup": (SignupBody, "signup"),
    "signin": (SigninBody, "signin"),
    "signout": (EmptyBody, "signout"),
    "requestReset": (RequestResetBody, "request_reset"),
    "resetPassword": (ResetPasswordBody, "reset_password"),
    "updatePermissions": (UpdatePermissionsBody, "update_permissions"),
    "addToCart": (IdBody, "add_to_cart"),
    "removeFromCart": (IdBody, "remove_from_cart"),
}


def serialize(value: Any) -> Any:
    """Convert entities (and lists of them) to JSON-ready dicts."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [serialize(v) for v in value]
    return value


def error_response(error: StorefrontError) -> web.Response:
    return web.json_response({
        'success': False,
        'error': error.message,
        'code': error.code,
    }, status=error.status)


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Turn storefront errors into JSON failure responses."""
    try:
        return await handler(request)
    except StorefrontError as e:
        logger.warning(f"{request.method} {request.path} failed: {e.code}: {e.message}")
        return error_response(e)
    except web.HTTPException:
        raise
    except Exception:
        logger.exception(f"Unhandled error in {request.method} {request.path}")
        return web.json_response({
            'success': False,
            'error': 'Internal server error',
            'code': 'InternalError',
        }, status=500)


def cors_middleware(frontend_url: str):
    """Allow the frontend origin to call the API with credentials."""

    @web.middleware
    async def middleware(request: web.Request, handler):
        if request.method == 'OPTIONS':
            # Preflight request
            response = web.Response()
        else:
            response = await handler(request)

        response.headers['Access-Control-Allow-Origin'] = frontend_url
        response.headers['Access-Control-Allow-Credentials'] = 'true'
        response.headers['Access-Control-Allow-Methods'] = 'GET, POST, OPTIONS'
        response.headers['Access-Control-Allow-Headers'] = 'Content-Type'
        return response

    return middleware


async def _read_body(request: web.Request, model: Type[BaseModel]) -> BaseModel:
    body = {}
    if request.can_read_body:
        try:
            body = await request.json()
        except ValueError:
            # Covers JSONDecodeError and bodies that are not valid UTF-8
            raise ValidationError("Request body must be JSON") from None
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    try:
        return model.model_validate(body)
    except pydantic.ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ValidationError(f"Invalid or missing fields: {fields}") from None


def _mutation_handler(
    mutations: Mutations,
    issuer: SessionIssuer,
    model: Type[BaseModel],
    method_name: str,
) -> Callable[[web.Request], Awaitable[web.Response]]:
    method = getattr(mutations, method_name)

    async def handler(request: web.Request) -> web.Response:
        payload = await _read_body(request, model)
        result = await method(get_context(request), **payload.model_dump())

        if not isinstance(result, MutationResult):
            result = MutationResult(result)

        response = web.json_response({'success': True, 'data': serialize(result.value)})
        if result.session_token:
            issuer.attach(result.session_token, response)
        if result.clear_session:
            issuer.clear(response)
        return response

    return handler


def _query_int(request: web.Request, name: str, default: Optional[int]) -> Optional[int]:
    raw = request.query.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer") from None
    if value < 0:
        raise ValidationError(f"{name} cannot be negative")
    return value


def create_app(
    settings: Settings,
    storage: Optional[StoreDatabase] = None,
    mailer: Optional[Mailer] = None,
) -> web.Application:
    """
    Build the aiohttp application.

    Args:
        settings: Loaded settings; APP_SECRET must be set
        storage: Store database (default: opened at settings.database_path)
        mailer: Mail transport (default: SMTP from settings)

    Raises:
        ConfigurationError: If APP_SECRET is missing
    """
    issuer = SessionIssuer(settings.require_secret())
    storage = storage or StoreDatabase(settings.database_path)
    mailer = mailer or Mailer(
        settings.mail_host,
        settings.mail_port,
        username=settings.mail_user,
        password=settings.mail_pass,
    )
    mutations = Mutations(settings, issuer)

    app = web.Application(middlewares=[
        cors_middleware(settings.frontend_url),
        error_middleware,
        session_middleware(issuer, storage, mailer),
    ])

    for name, (model, method_name) in MUTATION_ROUTES.items():
        app.router.add_post(f'/api/{name}', _mutation_handler(mutations, issuer, model, method_name))

    async def me(request: web.Request) -> web.Response:
        user = await mutations.me(get_context(request))
        return web.json_response({'success': True, 'data': serialize(user)})

    async def items(request: web.Request) -> web.Response:
        result = await mutations.items(
            get_context(request),
            skip=_query_int(request, 'skip', 0),
            first=_query_int(request, 'first', None),
        )
        return web.json_response({'success': True, 'data': serialize(result)})

    async def item(request: web.Request) -> web.Response:
        result = await mutations.item(get_context(request), request.match_info['id'])
        return web.json_response({'success': True, 'data': serialize(result)})

    async def users(request: web.Request) -> web.Response:
        result = await mutations.users(get_context(request))
        return web.json_response({'success': True, 'data': serialize(result)})

    async def cart(request: web.Request) -> web.Response:
        result = await mutations.cart(get_context(request))
        return web.json_response({'success': True, 'data': serialize(result)})

    async def health(request: web.Request) -> web.Response:
        return web.json_response({'status': 'healthy', 'service': 'storefront'})

    app.router.add_get('/api/me', me)
    app.router.add_get('/api/items', items)
    app.router.add_get('/api/items/{id}', item)
    app.router.add_get('/api/users', users)
    app.router.add_get('/api/cart', cart)
    app.router.add_get('/health', health)

    logger.info(f"Storefront API ready with {len(MUTATION_ROUTES)} mutations")
    return app
