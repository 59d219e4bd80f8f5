"""
API Gateway (REST proxy integration) entry point.

    Handler: products_api.lambda_handler.handler
"""

from __future__ import annotations

import base64
import binascii
from typing import Any, Dict, Optional

from products_api.core.config import get_settings
from products_api.core.deps import get_handlers
from products_api.core.logging import configure_logging
from products_api.exceptions import PayloadValidationError
from products_api.handlers import ProductHandlers
from products_api.http import ApiRequest
from products_api.responses import map_error

configure_logging(get_settings().log_level)


def event_to_request(event: Dict[str, Any], context: Any = None) -> ApiRequest:
    body = event.get("body")
    if body is not None and event.get("isBase64Encoded"):
        body = base64.b64decode(body, validate=True)

    request_context = event.get("requestContext") or {}
    request_id: Optional[str] = request_context.get("requestId") or getattr(context, "aws_request_id", None)

    return ApiRequest(
        method=event.get("httpMethod") or "GET",
        path=event.get("path") or event.get("resource") or "/",
        headers=event.get("headers") or {},
        path_params=event.get("pathParameters") or {},
        body=body,
        request_id=request_id,
    )


def handler(event: Dict[str, Any], context: Any = None, handlers: Optional[ProductHandlers] = None) -> Dict[str, Any]:
    handlers = handlers or get_handlers()
    try:
        request = event_to_request(event, context)
    except binascii.Error:
        return map_error(PayloadValidationError("Invalid request body")).to_envelope()
    return handlers.dispatch(request).to_envelope()
