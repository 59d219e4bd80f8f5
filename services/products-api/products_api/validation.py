from __future__ import annotations

import json
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from products_api.exceptions import NoFieldsError, PayloadValidationError
from products_api.schemas import ProductCreate, ProductUpdate


def parse_body(body: Optional[Union[str, bytes]]) -> Dict[str, Any]:
    """Decode a JSON request body; an absent body is an empty object."""
    if body is None or (isinstance(body, (str, bytes)) and not body.strip()):
        return {}
    try:
        payload = json.loads(body)
    except (TypeError, ValueError) as e:
        raise PayloadValidationError("Invalid JSON body") from e
    if not isinstance(payload, dict):
        raise PayloadValidationError("Request body must be a JSON object")
    return payload


def _field_name(error: Dict[str, Any]) -> str:
    # Payload fields are flat; union members add their type name after the field.
    loc = error.get("loc") or ()
    return str(loc[0]) if loc else "body"


def _to_payload_error(exc: ValidationError, payload: Dict[str, Any]) -> PayloadValidationError:
    first = exc.errors()[0]
    name = _field_name(first)
    if first.get("type") == "missing" or payload.get(name, "") is None:
        return PayloadValidationError(f"Missing required field: {name}")
    return PayloadValidationError(f"Invalid value for field: {name}")


def validate_create(payload: Dict[str, Any]) -> ProductCreate:
    try:
        return ProductCreate.model_validate(payload)
    except ValidationError as e:
        raise _to_payload_error(e, payload) from e


def validate_update(payload: Dict[str, Any]) -> ProductUpdate:
    try:
        update = ProductUpdate.model_validate(payload)
    except ValidationError as e:
        raise _to_payload_error(e, payload) from e

    changes = update.changes()
    if not changes:
        raise NoFieldsError()

    for name, value in changes.items():
        if value is None:
            alias = ProductUpdate.model_fields[name].alias or name
            raise PayloadValidationError(f"Field cannot be null: {alias}")
    return update
