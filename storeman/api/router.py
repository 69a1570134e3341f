"""
Request routing for the shop API.

Public routes:
    GET     /shop                     - List items (archived hidden by default)
    GET     /shop/{id}                - Get one item

Admin routes (caller must be in the admin group):
    GET     /admin/shop               - List items
    GET     /admin/shop/{id}          - Get one item
    POST    /admin/shop               - Create item
    POST    /admin/shop/upload-image  - Attach an image to an item
    PUT     /admin/shop/{id}          - Update item
    PATCH   /admin/shop/{id}          - Partial update
    DELETE  /admin/shop/{id}          - Guarded delete

OPTIONS on any path answers the CORS preflight.
"""

import base64
import binascii
import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.parse import quote, unquote

from django.core.serializers.json import DjangoJSONEncoder

from storeman.auth import check_authentication
from storeman.exceptions import ShopError
from storeman.service import CatalogService

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token",
    "Access-Control-Allow-Methods": "GET,POST,PUT,PATCH,DELETE,OPTIONS",
    "Content-Type": "application/json",
}

ADMIN_PREFIX = "/admin/shop"
UPLOAD_SUFFIX = "upload-image"


class ShopJSONEncoder(DjangoJSONEncoder):
    """DjangoJSONEncoder that renders DynamoDB Decimals as JSON numbers."""

    def default(self, o):
        if isinstance(o, Decimal):
            return int(o) if o == o.to_integral_value() else float(o)
        if isinstance(o, (set, frozenset)):
            return sorted(o)
        return super().default(o)


def encode_page_token(token: Any) -> str:
    """Continuation token -> URL-safe string (percent-encoded JSON)."""
    return quote(json.dumps(token, cls=ShopJSONEncoder, separators=(",", ":")), safe="")


def _reject_constant(name: str):
    raise ShopError("VALIDATION_ERROR", f"{name} is not a valid JSON number")


def decode_page_token(value: str, key_attributes: Sequence[str] | None = None) -> dict:
    """
    Percent-encoded JSON -> continuation token.

    With key_attributes, the token must carry exactly those keys, each a
    string or a number, as DynamoDB's LastEvaluatedKey for that table or
    index does.
    """
    try:
        token = json.loads(unquote(value), parse_float=Decimal, parse_constant=_reject_constant)
    except (ValueError, ShopError):
        raise ShopError("INVALID_PAGE_TOKEN", lastKey=value)
    if not isinstance(token, dict) or not token:
        raise ShopError("INVALID_PAGE_TOKEN", lastKey=value)
    if key_attributes is not None:
        if set(token) != set(key_attributes):
            raise ShopError("INVALID_PAGE_TOKEN", lastKey=value)
        for key_value in token.values():
            if isinstance(key_value, bool) or not isinstance(key_value, (str, int, Decimal)):
                raise ShopError("INVALID_PAGE_TOKEN", lastKey=value)
    return token


@dataclass
class ApiRequest:
    """Gateway-independent view of an HTTP request."""

    method: str
    path: str = ""
    path_params: dict = field(default_factory=dict)
    query: dict = field(default_factory=dict)
    headers: dict = field(default_factory=dict)
    body: str | bytes | None = None

    @property
    def is_admin_route(self) -> bool:
        return ADMIN_PREFIX in self.path

    @property
    def is_upload(self) -> bool:
        return self.path.rstrip("/").endswith(UPLOAD_SUFFIX)

    @property
    def item_id(self) -> str | None:
        return self.path_params.get("id") or self.path_params.get("productId")

    def json(self) -> dict:
        """Parse the body as a JSON object; numbers with a fraction become Decimal."""
        if not self.body:
            return {}
        try:
            body = self.body.decode("utf-8") if isinstance(self.body, bytes) else self.body
            data = json.loads(body, parse_float=Decimal, parse_constant=_reject_constant)
        except ValueError:
            raise ShopError("VALIDATION_ERROR", "Request body is not valid JSON")
        if not isinstance(data, dict):
            raise ShopError("VALIDATION_ERROR", "Request body must be a JSON object")
        return data

    def flag(self, name: str) -> bool:
        return self.query.get(name) == "true"

    def limit(self) -> int | None:
        raw = self.query.get("limit")
        if raw in (None, ""):
            return None
        try:
            limit = int(raw)
        except ValueError:
            raise ShopError("VALIDATION_ERROR", "limit must be a positive integer", field="limit")
        if limit <= 0:
            raise ShopError("VALIDATION_ERROR", "limit must be a positive integer", field="limit")
        return limit

    def number(self, name: str) -> Decimal | None:
        raw = self.query.get(name)
        if raw in (None, ""):
            return None
        try:
            value = Decimal(raw)
        except InvalidOperation:
            raise ShopError("VALIDATION_ERROR", f"{name} must be a number", field=name)
        if not value.is_finite():
            raise ShopError("VALIDATION_ERROR", f"{name} must be a number", field=name)
        return value

    def page_token(self, *index_keys: str) -> dict | None:
        """Decoded lastKey; it must hold the catalog key plus index_keys."""
        from storeman.conf import storeman_settings

        raw = self.query.get("lastKey")
        if not raw:
            return None
        return decode_page_token(raw, (storeman_settings.CATALOG_KEY, *index_keys))


@dataclass
class ApiResponse:
    status: int
    body: Any
    headers: dict = field(default_factory=lambda: dict(CORS_HEADERS))

    def content(self) -> str:
        return json.dumps(self.body, cls=ShopJSONEncoder)


# ==========================================================================
# Handlers
# ==========================================================================


def _page_body(page, **selector) -> dict:
    body = {"products": page.items, "count": page.count, **selector}
    if page.next_token:
        body["lastKey"] = encode_page_token(page.next_token)
    return body


def get_item(request: ApiRequest) -> ApiResponse:
    return ApiResponse(200, CatalogService.require(request.item_id))


def get_featured_items(request: ApiRequest) -> ApiResponse:
    page = CatalogService.list_featured(
        include_archived=request.flag("includeArchived"),
        page_token=request.page_token(),
        limit=request.limit(),
    )
    return ApiResponse(200, _page_body(page, featured=True))


def get_items_by_system(request: ApiRequest) -> ApiResponse:
    system_id = request.query["gamingSystemId"]
    page = CatalogService.list_by_system(
        system_id,
        include_archived=request.flag("includeArchived"),
        min_price=request.number("minPrice"),
        max_price=request.number("maxPrice"),
        page_token=request.page_token("GamingSystemID"),
        limit=request.limit(),
    )
    return ApiResponse(200, _page_body(page, gamingSystemId=system_id))


def get_items_by_type(request: ApiRequest) -> ApiResponse:
    item_type = request.query.get("type") or request.query["category"]
    page = CatalogService.list_by_type(
        item_type,
        include_archived=request.flag("includeArchived"),
        page_token=request.page_token(),
        limit=request.limit(),
    )
    return ApiResponse(200, _page_body(page, type=item_type))


def get_items_by_status(request: ApiRequest) -> ApiResponse:
    status = request.query["status"]
    page = CatalogService.list_by_status(
        status,
        include_archived=request.flag("includeArchived"),
        min_price=request.number("minPrice"),
        max_price=request.number("maxPrice"),
        page_token=request.page_token("Status", "Price"),
        limit=request.limit(),
    )
    return ApiResponse(200, _page_body(page, status=status))


def get_all_items(request: ApiRequest) -> ApiResponse:
    page = CatalogService.list_all(
        include_archived=request.flag("includeArchived"),
        page_token=request.page_token(),
        limit=request.limit(),
    )
    return ApiResponse(200, _page_body(page))


def create_item(request: ApiRequest) -> ApiResponse:
    return ApiResponse(201, CatalogService.create(request.json()))


def update_item(request: ApiRequest) -> ApiResponse:
    return ApiResponse(200, CatalogService.update(request.item_id, request.json()))


def delete_item(request: ApiRequest) -> ApiResponse:
    removed = CatalogService.delete(request.item_id)
    return ApiResponse(200, {"message": "Product deleted successfully", "deletedProduct": removed})


def upload_image(request: ApiRequest) -> ApiResponse:
    body = request.json()
    for name in ("productId", "gamingSystemId", "imageBase64"):
        if not body.get(name):
            raise ShopError("VALIDATION_ERROR", f"{name} is required", field=name)
    try:
        raw = base64.b64decode("".join(body["imageBase64"].split()), validate=True)
    except (binascii.Error, AttributeError, TypeError, ValueError):
        raise ShopError("INVALID_IMAGE", "imageBase64 is not valid base64")

    logger.info(
        "Uploading image for product %s in gaming system %s (filename=%s, type=%s, %d bytes)",
        body["productId"],
        body["gamingSystemId"],
        body.get("imageFilename"),
        body.get("imageType"),
        len(raw),
    )
    image_path, record = CatalogService.attach_image(body["productId"], body["gamingSystemId"], raw)
    return ApiResponse(
        200,
        {"message": "Image uploaded successfully", "imagePath": image_path, "product": record},
    )


# ==========================================================================
# Dispatch
# ==========================================================================


def _list_handler(request: ApiRequest) -> Callable[[ApiRequest], ApiResponse]:
    if request.flag("featured"):
        return get_featured_items
    if request.query.get("gamingSystemId"):
        return get_items_by_system
    if request.query.get("type") or request.query.get("category"):
        return get_items_by_type
    if request.query.get("status"):
        return get_items_by_status
    return get_all_items


def resolve(request: ApiRequest) -> Callable[[ApiRequest], ApiResponse]:
    """
    Pick the handler for a request.

    Raises:
        ShopError: ID_REQUIRED, FORBIDDEN (writes on public routes),
            METHOD_NOT_ALLOWED
    """
    method = request.method.upper()
    if method == "GET":
        return get_item if request.item_id else _list_handler(request)

    if method not in ("POST", "PUT", "PATCH", "DELETE"):
        raise ShopError("METHOD_NOT_ALLOWED", method=method)
    if not request.is_admin_route:
        raise ShopError("FORBIDDEN")

    if method == "POST":
        return upload_image if request.is_upload else create_item
    if not request.item_id:
        raise ShopError("ID_REQUIRED", method=method)
    if method == "DELETE":
        return delete_item
    return update_item


def _error_response(exc: ShopError) -> ApiResponse:
    return ApiResponse(exc.status_code, {"error": exc.message, "code": exc.code, **exc.data})


def route(request: ApiRequest) -> ApiResponse:
    """Authenticate, dispatch and render one request. Never raises."""
    operation = "handler"
    try:
        if request.method.upper() == "OPTIONS":
            return ApiResponse(200, {})

        if request.is_admin_route:
            auth = check_authentication(request.headers)
            if not auth.ok:
                raise ShopError("UNAUTHORIZED", auth.message or "")
            if not auth.is_admin:
                raise ShopError("FORBIDDEN")
            logger.info("Admin authenticated: %s", auth.user_id)

        handler = resolve(request)
        operation = handler.__name__
        logger.info("%s %s -> %s", request.method, request.path, operation)
        return handler(request)
    except ShopError as exc:
        if exc.status_code >= 500:
            logger.error("Error in %s: %s", operation, exc)
        return _error_response(exc)
    except Exception as exc:
        logger.exception("Error in %s", operation)
        return ApiResponse(
            500,
            {"error": "Internal Server Error", "message": str(exc), "operation": operation},
        )
