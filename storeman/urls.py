"""
Storeman URLconf.

Usage in the project's urls.py:
    path("", include("storeman.urls")),
"""

from django.urls import path

from storeman.api.views import catalog_view

app_name = "storeman"

urlpatterns = [
    path("shop", catalog_view, name="shop"),
    path("shop/<str:item_id>", catalog_view, name="shop-item"),
    path("admin/shop", catalog_view, name="admin-shop"),
    path("admin/shop/upload-image", catalog_view, name="admin-upload-image"),
    path("admin/shop/<str:item_id>", catalog_view, name="admin-shop-item"),
]
