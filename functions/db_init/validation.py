# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================


"""
Request validation for writes that go through the functions.

Field shapes are decoded strictly: unknown keys, missing required keys, wrong
types and unknown enum values are all rejected with ValidationError.
"""

import re
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any, Optional, Type, TypeVar

from dacite import Config, DaciteError, from_dict

from shared.constants import (
    MAX_CART_ITEMS,
    MAX_DISPLAY_NAME_LENGTH,
    MAX_EVENT_NAME_LENGTH,
    MAX_NOTE_LENGTH,
    MAX_REFERENCE_ID_LENGTH,
)
from shared.errors import RateLimitedError, ValidationError
from shared.json_utils import convert_keys
from shared.types import (
    AnalyticsEvent,
    Cart,
    ClientEvent,
    InventoryAdjustmentRequest,
    OrderEventRequest,
    ProfileUpdateRequest,
)

T = TypeVar("T")

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _to_float(value: Any) -> float:
    # JSON true/false would otherwise become 1.0/0.0.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expected a number, got {value!r}")
    return float(value)


STRICT_CONFIG = Config(cast=[StrEnum], type_hooks={float: _to_float}, strict=True)


def _decode(data_class: Type[T], payload: Any) -> T:
    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object.")
    try:
        return from_dict(
            data_class=data_class,
            data=convert_keys(payload, "camel_to_snake"),
            config=STRICT_CONFIG,
        )
    except (DaciteError, ValueError, TypeError) as e:
        raise ValidationError(f"Invalid {data_class.__name__}: {e}") from e


def _require_text(value: str, name: str, max_length: Optional[int] = None) -> None:
    if not value or not value.strip():
        raise ValidationError(f"{name} must not be empty.")
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{name} exceeds max length.")


def _require_int(value: Any, name: str) -> None:
    # bool is an int subclass, JSON true/false are not quantities.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer.")


def parse_inventory_adjustment(payload: Any) -> InventoryAdjustmentRequest:
    request = _decode(InventoryAdjustmentRequest, payload)
    _require_text(request.product_id, "productId")
    _require_text(request.reference_id, "referenceId", MAX_REFERENCE_ID_LENGTH)
    _require_int(request.quantity_change, "quantityChange")
    if request.quantity_change == 0:
        raise ValidationError("quantityChange must not be zero.")
    if request.note is not None and len(request.note) > MAX_NOTE_LENGTH:
        raise ValidationError("note exceeds max length.")
    return request


def parse_order_event(payload: Any) -> OrderEventRequest:
    request = _decode(OrderEventRequest, payload)
    _require_text(request.order_id, "orderId")
    refund_amount = request.metadata.refund_amount
    if refund_amount is not None and refund_amount < 0:
        raise ValidationError("refundAmount must not be negative.")
    return request


def parse_analytics_event(payload: Any) -> AnalyticsEvent:
    event = _decode(AnalyticsEvent, payload)
    _require_text(event.session_id, "sessionId")
    quantity = event.event_data.quantity
    if quantity is not None:
        _require_int(quantity, "eventData.quantity")
    return event


def parse_client_event(payload: Any) -> ClientEvent:
    """
    Parses an event in the storefront client's {eventName, eventData} shape.

    eventData is free-form and is kept with its original keys.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Expected a JSON object.")
    unexpected = set(payload) - {"eventName", "eventData"}
    if unexpected:
        raise ValidationError(f"Unexpected fields: {sorted(unexpected)}")
    event_name = payload.get("eventName")
    event_data = payload.get("eventData")
    if not isinstance(event_name, str):
        raise ValidationError("eventName must be a string.")
    _require_text(event_name, "eventName", MAX_EVENT_NAME_LENGTH)
    if not isinstance(event_data, dict) or not event_data:
        raise ValidationError("eventData must be a non-empty object.")
    return ClientEvent(event_name=event_name, event_data=event_data)


def parse_cart(payload: Any) -> Cart:
    cart = _decode(Cart, payload)
    if len(cart.items) > MAX_CART_ITEMS:
        raise ValidationError("Cart has too many items.")
    for item in cart.items:
        _require_text(item.product_id, "items.productId")
        _require_int(item.quantity, "items.quantity")
        if item.quantity < 1:
            raise ValidationError("items.quantity must be at least 1.")
    return cart


def parse_profile_update(payload: Any) -> ProfileUpdateRequest:
    request = _decode(ProfileUpdateRequest, payload)
    if request.display_name is not None and (
        len(request.display_name) > MAX_DISPLAY_NAME_LENGTH
    ):
        raise ValidationError("displayName exceeds max length.")
    if request.display_name is None and request.preferences is None:
        raise ValidationError("Nothing to update.")
    return request


def validate_email(email: str) -> str:
    if not EMAIL_PATTERN.match(email or ""):
        raise ValidationError("email is not a valid address.")
    return email


def ensure_update_interval(
    last_write: Optional[datetime], now: datetime, min_interval: timedelta
) -> None:
    """
    Rejects a write made less than `min_interval` after `last_write`.

    Raises:
        RateLimitedError: With the number of seconds left to wait.
    """
    if last_write is None:
        return
    elapsed = now - last_write
    if elapsed < min_interval:
        raise RateLimitedError((min_interval - elapsed).total_seconds())
