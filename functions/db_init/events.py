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

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from google.api_core import exceptions
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.store import DocumentStore
from shared.constants import ANALYTICS_COLLECTION, ORDER_EVENTS_COLLECTION
from shared.errors import WriteFailureError
from shared.json_utils import convert_keys, drop_none
from shared.types import (
    AnalyticsEventType,
    DeviceInfo,
    EventData,
    OrderEventMetadata,
    OrderEventType,
)

logger = logging.getLogger(__name__)


def _append(store: DocumentStore, collection: str, data: dict) -> str:
    data["createdAt"] = SERVER_TIMESTAMP
    try:
        return store.add(collection, data)
    except (exceptions.GoogleAPIError, OSError) as e:
        logger.error(f"Failed to write to {collection}: {e}")
        raise WriteFailureError(f"Failed to write to {collection}: {e}") from e


def create_order_event(
    store: DocumentStore,
    order_id: str,
    event_type: OrderEventType,
    metadata: OrderEventMetadata,
    performed_by: str,
) -> str:
    """
    Appends an entry to the order history in the orderEvents collection.

    Only the metadata fields that are set are written. Returns the id of the
    new event document.
    """
    event = {
        "orderId": order_id,
        "eventType": OrderEventType(event_type),
        **drop_none(convert_keys(asdict(metadata), "snake_to_camel")),
        "performedBy": performed_by,
    }
    return _append(store, ORDER_EVENTS_COLLECTION, event)


def track_analytics_event(
    store: DocumentStore,
    event_type: AnalyticsEventType,
    session_id: str,
    event_data: EventData,
    device_info: DeviceInfo,
    user_id: Optional[str] = None,
) -> str:
    """
    Appends a storefront analytics event to the analytics collection.

    Returns the id of the new analytics document.
    """
    event = {
        "eventType": AnalyticsEventType(event_type),
        "sessionId": session_id,
        "userId": user_id or None,
        "eventData": drop_none(convert_keys(asdict(event_data), "snake_to_camel")),
        "deviceInfo": convert_keys(asdict(device_info), "snake_to_camel"),
    }
    return _append(store, ANALYTICS_COLLECTION, event)


def track_client_event(
    store: DocumentStore,
    event_name: str,
    event_data: Dict[str, Any],
    received_at: Optional[datetime] = None,
) -> str:
    """Appends an event in the storefront client's {eventName, eventData} shape."""
    event = {
        "eventName": event_name,
        "eventData": event_data,
        "receivedAt": received_at or datetime.now(timezone.utc),
    }
    return _append(store, ANALYTICS_COLLECTION, event)
