# -*- coding: utf-8 -*-
"""
Request body schemas.

Validation failures are turned into ValidationError with a single message,
so clients keep receiving one {"error": "..."} string.
"""
from marshmallow import EXCLUDE, Schema, fields, validate
from marshmallow import ValidationError as SchemaError

from khidma.middleware.errors import ValidationError
from khidma.services.pricing import MAX_ORDER_QUANTITY

MISSING = "Missing data for required field."


class FoodOrderRequestSchema(Schema):
    """Schema for order intake."""
    class Meta:
        unknown = EXCLUDE

    dish_id = fields.Str(required=True, validate=validate.Length(min=1))
    quantity = fields.Integer(required=True, strict=True,
                              validate=validate.Range(min=1, max=MAX_ORDER_QUANTITY))
    delivery_address = fields.Str(load_default=None, allow_none=True)
    delivery_notes = fields.Str(load_default=None, allow_none=True)
    scheduled_delivery_at = fields.DateTime(load_default=None, allow_none=True)


class ConfirmDeliveryRequestSchema(Schema):
    """Schema for the dual confirmation gate; presence is checked by the service."""
    class Meta:
        unknown = EXCLUDE

    order_id = fields.Str(load_default=None, allow_none=True)
    role = fields.Str(load_default=None, allow_none=True)


class ProviderTypeRequestSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    provider_type = fields.Str(load_default=None, allow_none=True)


def load_request(schema: Schema, payload) -> dict:
    """Validate payload against schema, raising the marketplace ValidationError."""
    try:
        return schema.load(payload or {})
    except SchemaError as e:
        messages = e.messages if isinstance(e.messages, dict) else {'body': e.messages}
        missing = [name for name, errors in messages.items()
                   if isinstance(errors, list) and MISSING in errors]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        name, errors = next(iter(messages.items()))
        detail = errors[0] if isinstance(errors, list) and errors else errors
        raise ValidationError(f"Invalid {name}: {detail}")
