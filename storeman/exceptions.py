"""Storeman exceptions."""

from typing import Any


ERROR_MESSAGES = {
    "VALIDATION_ERROR": "Invalid request data",
    "MISSING_FIELDS": "Missing required fields",
    "ID_REQUIRED": "Product ID is required",
    "INVALID_PAGE_TOKEN": "Invalid pagination token",
    "INVALID_IMAGE": "Invalid image data",
    "UNAUTHORIZED": "Unauthorized",
    "FORBIDDEN": "Administrator access required",
    "ITEM_NOT_FOUND": "Product not found",
    "METHOD_NOT_ALLOWED": "Method not allowed",
    "ITEM_EXISTS": "Product already exists",
    "DUPLICATE_SYSTEM_TYPE": "Product with this Gaming System and Type combination already exists",
    "DELETE_BLOCKED": "Product is still in use",
}

STATUS_CODES = {
    "VALIDATION_ERROR": 400,
    "MISSING_FIELDS": 400,
    "ID_REQUIRED": 400,
    "INVALID_PAGE_TOKEN": 400,
    "INVALID_IMAGE": 400,
    "UNAUTHORIZED": 401,
    "FORBIDDEN": 403,
    "ITEM_NOT_FOUND": 404,
    "METHOD_NOT_ALLOWED": 405,
    "ITEM_EXISTS": 409,
    "DUPLICATE_SYSTEM_TYPE": 409,
    "DELETE_BLOCKED": 409,
}


class ShopError(Exception):
    """
    Structured exception for shop operations.

    Usage:
        try:
            item = CatalogService.get("XYZ")
        except ShopError as e:
            if e.code == "ITEM_NOT_FOUND":
                print(f"Item {e.item_id} does not exist")
    """

    def __init__(self, code: str, message: str = "", **data: Any) -> None:
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    @property
    def item_id(self) -> str | None:
        return self.data.get("itemId")

    @property
    def status_code(self) -> int:
        return STATUS_CODES.get(self.code, 500)

    def as_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "data": self.data,
        }


class ConditionFailed(Exception):
    """
    A conditioned write found the stored state did not match its precondition.

    Raised by storage gateways; callers translate it into ITEM_EXISTS or
    ITEM_NOT_FOUND depending on the operation.
    """

    def __init__(self, collection: Any, key: str, condition: Any) -> None:
        self.collection = collection
        self.key = key
        self.condition = condition
        super().__init__(f"Condition {condition} failed for {collection}:{key}")
