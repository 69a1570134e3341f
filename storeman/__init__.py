"""
Django Storeman - Shop catalog over DynamoDB.

Usage:
    from storeman import CatalogService, ShopError

    item = CatalogService.get("1700000000000_k3j9x0a1b")
    CatalogService.delete("1700000000000_k3j9x0a1b")  # guarded
"""


def __getattr__(name):
    if name == "CatalogService":
        from storeman.service import CatalogService

        return CatalogService
    elif name == "ShopError":
        from storeman.exceptions import ShopError

        return ShopError
    elif name == "DeleteGuard":
        from storeman.guard import DeleteGuard

        return DeleteGuard
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["CatalogService", "DeleteGuard", "ShopError"]
__version__ = "0.1.0"
