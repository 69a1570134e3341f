"""
AWS Lambda entry point (API Gateway REST proxy integration).

Handler: storeman.lambda_handler.handler
"""

import base64
import logging
import os

import django

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "storeman.lambda_settings")
django.setup()

from storeman.api.router import ApiRequest, route  # noqa: E402

logger = logging.getLogger(__name__)


def request_from_event(event: dict) -> ApiRequest:
    body = event.get("body")
    if body and event.get("isBase64Encoded"):
        body = base64.b64decode(body)
    return ApiRequest(
        method=event.get("httpMethod") or "",
        path=event.get("path") or event.get("resource") or "",
        path_params=event.get("pathParameters") or {},
        query=event.get("queryStringParameters") or {},
        headers=event.get("headers") or {},
        body=body,
    )


def handler(event, context):
    request = request_from_event(event)
    logger.info("Event: %s %s", request.method, request.path)
    response = route(request)
    return {
        "statusCode": response.status,
        "headers": response.headers,
        "body": response.content(),
    }
