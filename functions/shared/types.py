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


from enum import StrEnum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class ChangeType(StrEnum):
    """Reason recorded for an inventory adjustment."""

    ORDER = "order"
    RESTOCK = "restock"
    ADJUSTMENT = "adjustment"


class OrderEventType(StrEnum):
    STATUS_CHANGE = "status_change"
    SHIPMENT_UPDATE = "shipment_update"
    REFUND_PROCESSED = "refund_processed"


class AnalyticsEventType(StrEnum):
    PAGE_VIEW = "page_view"
    PRODUCT_VIEW = "product_view"
    ADD_TO_CART = "add_to_cart"
    BEGIN_CHECKOUT = "begin_checkout"
    PURCHASE = "purchase"


class UserRole(StrEnum):
    CUSTOMER = "customer"
    ADMIN = "admin"


@dataclass
class InventoryLogEntry:
    """Immutable audit record written alongside every inventory change."""

    product_id: str
    change_type: ChangeType
    previous_quantity: int
    new_quantity: int
    change_amount: int
    reference_id: str
    performed_by: str
    note: Optional[str] = None
    created_at: Any = None  # Firestore timestamp, set by the server on write


@dataclass
class OrderNumberCounter:
    year: int
    count: int
    updated_at: Any = None


@dataclass
class OrderEventMetadata:
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    refund_amount: Optional[float] = None


@dataclass
class EventData:
    page: Optional[str] = None
    product_id: Optional[str] = None
    quantity: Optional[int] = None
    value: Optional[float] = None


@dataclass
class DeviceInfo:
    user_agent: str
    platform: str
    is_mobile: bool


@dataclass
class AnalyticsEvent:
    """An analytics event as submitted by the storefront."""

    event_type: AnalyticsEventType
    session_id: str
    event_data: EventData
    device_info: DeviceInfo
    user_id: Optional[str] = None


@dataclass
class ClientEvent:
    """An event in the {eventName, eventData} shape posted by the storefront client."""

    event_name: str
    event_data: Dict[str, Any]


@dataclass
class InventoryAdjustmentRequest:
    product_id: str
    quantity_change: int
    change_type: ChangeType
    reference_id: str
    note: Optional[str] = None


@dataclass
class OrderEventRequest:
    order_id: str
    event_type: OrderEventType
    metadata: OrderEventMetadata = field(default_factory=OrderEventMetadata)


@dataclass
class CartItem:
    product_id: str
    quantity: int


@dataclass
class Cart:
    items: List[CartItem]


@dataclass
class UserPreferences:
    marketing_emails: bool = True
    order_notifications: bool = True


@dataclass
class PreferencesUpdate:
    """Preference keys sent in a profile update; absent keys stay unchanged."""

    marketing_emails: Optional[bool] = None
    order_notifications: Optional[bool] = None


@dataclass
class UserProfile:
    """Schema for user profiles stored in Firestore."""

    uid: str
    email: str
    display_name: str
    role: UserRole
    created_at: Any
    updated_at: Any
    last_login_at: Any
    preferences: UserPreferences
    email_verified: bool = False


@dataclass
class ProfileUpdateRequest:
    display_name: Optional[str] = None
    preferences: Optional[PreferencesUpdate] = None
