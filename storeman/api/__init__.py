"""Storeman HTTP API."""

from storeman.api.router import CORS_HEADERS, ApiRequest, ApiResponse, route

__all__ = ["ApiRequest", "ApiResponse", "CORS_HEADERS", "route"]
