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


# Cloud functions for the Vida Tea storefront: HTTP endpoints for inventory,
# order numbers, order events, analytics, carts and user profiles, plus the
# scheduled cart cleanup.
#
# This file containing Python cloud functions must be named main.py.
# See https://cloud.google.com/run/docs/write-functions#python for more info.

# Standard library imports
import json
from dataclasses import asdict
from datetime import datetime, timedelta, timezone
from typing import Optional

# Third-party library imports
from firebase_admin import initialize_app, auth
from firebase_functions import https_fn, logger, scheduler_fn
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

# Local application imports
from backend.config import get_settings
from backend.dependencies import get_document_store
from db_init import carts, events, inventory, order_numbers, validation
from db_init.retry import retry_on_conflict
from shared.constants import CARTS_COLLECTION, SERVICE_NAME, USERS_COLLECTION
from shared.errors import (
    InsufficientInventoryError,
    NotFoundError,
    RateLimitedError,
    TransactionConflictError,
    ValidationError,
    VidaTeaError,
    WriteFailureError,
)
from shared.json_utils import convert_keys, drop_none
from shared.types import UserPreferences, UserProfile, UserRole

# Most specific classes first.
ERROR_STATUS_CODES = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (InsufficientInventoryError, 409),
    (TransactionConflictError, 409),
    (RateLimitedError, 429),
    (WriteFailureError, 503),
]

initialize_app()


def _set_cors_headers(req: https_fn.Request, response: https_fn.Response) -> None:
    """Adds CORS headers for allowed origins to the response."""
    settings = get_settings()
    origin = req.headers.get("Origin")
    if origin and origin in settings.cors_origins:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Vary"] = "Origin"
    elif not origin and settings.is_development:
        response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    response.headers["Access-Control-Max-Age"] = "3600"


def _json_response(
    req: https_fn.Request, payload: dict, status: int = 200
) -> https_fn.Response:
    response = https_fn.Response(
        json.dumps(payload), status=status, mimetype="application/json"
    )
    _set_cors_headers(req, response)
    return response


def _preflight_response(req: https_fn.Request) -> https_fn.Response:
    response = https_fn.Response("", status=204)
    _set_cors_headers(req, response)
    return response


def _error_response(req: https_fn.Request, error: VidaTeaError) -> https_fn.Response:
    status = next(
        (code for error_type, code in ERROR_STATUS_CODES if isinstance(error, error_type)),
        500,
    )
    response = _json_response(req, {"error": str(error)}, status)
    if isinstance(error, RateLimitedError):
        response.headers["Retry-After"] = str(int(error.retry_after_seconds) + 1)
    return response


def _internal_error(req: https_fn.Request, message: str, e: Exception):
    logger.error(f"{message}: {e}")
    return _json_response(req, {"error": "Internal server error"}, 500)


def _verify_bearer_token(req: https_fn.Request) -> Optional[dict]:
    """Returns the decoded Firebase ID token, or None if it is missing or invalid."""
    auth_header = req.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None

    id_token = auth_header.split("Bearer ")[1]
    try:
        return auth.verify_id_token(id_token)
    except (auth.InvalidIdTokenError, auth.UserDisabledError, ValueError) as e:
        logger.warn(f"Rejected ID token: {e}")
        return None
    except auth.CertificateFetchError as e:
        logger.error(f"Could not fetch token signing certificates: {e}")
        return None


def _request_json(req: https_fn.Request) -> dict:
    body = req.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object.")
    return body


@https_fn.on_request()
def health_check(req: https_fn.Request) -> https_fn.Response:
    logger.info("Health check requested")
    if req.method == "OPTIONS":
        return _preflight_response(req)

    return _json_response(
        req,
        {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
        },
    )


@https_fn.on_request()
def config(req: https_fn.Request) -> https_fn.Response:
    """Serves the public Firebase web config used by the storefront."""
    logger.info("Config requested")
    if req.method == "OPTIONS":
        return _preflight_response(req)

    settings = get_settings()
    firebase_config = {
        "apiKey": settings.firebase_api_key,
        "authDomain": settings.firebase_auth_domain,
        "projectId": settings.firebase_project_id,
        "storageBucket": settings.firebase_storage_bucket,
        "messagingSenderId": settings.firebase_messaging_sender_id,
        "appId": settings.firebase_app_id,
        "measurementId": settings.firebase_measurement_id,
    }
    response = _json_response(req, firebase_config)
    response.headers["Cache-Control"] = "public, max-age=300"
    return response


@https_fn.on_request()
def track_analytics(req: https_fn.Request) -> https_fn.Response:
    """
    Stores a batch of storefront analytics events.

    Events that fail validation are skipped; the rest are written to the
    analytics collection.
    """
    logger.info(f"Analytics event received ({req.method})")
    if req.method == "OPTIONS":
        return _preflight_response(req)
    if req.method != "POST":
        return _json_response(req, {"error": "Method not allowed"}, 405)

    body = req.get_json(silent=True)
    event_payloads = body.get("events") if isinstance(body, dict) else None
    if not isinstance(event_payloads, list):
        return _json_response(
            req, {"error": "Invalid request: events array required"}, 400
        )

    settings = get_settings()
    if len(event_payloads) > settings.max_analytics_events:
        return _json_response(req, {"error": "Too many events in one request"}, 400)

    try:
        store = get_document_store()
        tracked = 0
        for payload in event_payloads:
            if isinstance(payload, dict) and "eventName" in payload:
                try:
                    client_event = validation.parse_client_event(payload)
                except ValidationError as e:
                    logger.warn(f"Invalid event structure: {e}")
                    continue
                events.track_client_event(
                    store, client_event.event_name, client_event.event_data
                )
                tracked += 1
                continue

            try:
                event = validation.parse_analytics_event(payload)
            except ValidationError as e:
                logger.warn(f"Invalid event structure: {e}")
                continue
            events.track_analytics_event(
                store,
                event.event_type,
                event.session_id,
                event.event_data,
                event.device_info,
                user_id=event.user_id,
            )
            tracked += 1
    except VidaTeaError as e:
        return _error_response(req, e)
    except Exception as e:
        return _internal_error(req, "Error tracking analytics", e)

    logger.info(f"Analytics events saved: {tracked} of {len(event_payloads)}")
    return _json_response(
        req,
        {"success": True, "message": f"{tracked} events tracked successfully"},
    )


@https_fn.on_request()
def create_user_profile(req: https_fn.Request) -> https_fn.Response:
    """Creates the customer profile for the signed-in user if it is missing."""
    logger.info(f"Create user profile requested ({req.method})")
    if req.method == "OPTIONS":
        return _preflight_response(req)
    if req.method != "POST":
        return _json_response(req, {"error": "Method not allowed"}, 405)

    token = _verify_bearer_token(req)
    if token is None:
        return _json_response(req, {"error": "Unauthorized"}, 401)

    uid = token["uid"]
    try:
        store = get_document_store()
        if store.get(USERS_COLLECTION, uid) is not None:
            return _json_response(
                req, {"success": True, "message": "User profile already exists"}
            )

        email = token.get("email") or ""
        if email:
            validation.validate_email(email)

        now = datetime.now(timezone.utc)
        profile = UserProfile(
            uid=uid,
            email=email,
            display_name=token.get("name") or "",
            role=UserRole.CUSTOMER,
            created_at=now,
            updated_at=now,
            last_login_at=now,
            preferences=UserPreferences(),
            email_verified=bool(token.get("email_verified", False)),
        )
        store.set(USERS_COLLECTION, uid, convert_keys(asdict(profile), "snake_to_camel"))
    except VidaTeaError as e:
        return _error_response(req, e)
    except Exception as e:
        return _internal_error(req, "Error creating user profile", e)

    logger.info(f"User profile created for {uid}")
    return _json_response(req, {"success": True, "message": "User profile created"}, 201)


@https_fn.on_request()
def update_user_profile(req: https_fn.Request) -> https_fn.Response:
    """
    Updates the display name and/or preferences of the caller's own profile.

    Roles cannot be changed here, and a profile cannot be updated again within
    the configured minimum interval.
    """
    if req.method == "OPTIONS":
        return _preflight_response(req)
    if req.method != "POST":
        return _json_response(req, {"error": "Method not allowed"}, 405)

    token = _verify_bearer_token(req)
    if token is None:
        return _json_response(req, {"error": "Unauthorized"}, 401)

    uid = token["uid"]
    settings = get_settings()
    try:
        update = validation.parse_profile_update(_request_json(req))
        store = get_document_store()
        profile = store.get(USERS_COLLECTION, uid)
        if profile is None:
            raise NotFoundError("User profile not found")

        # profileUpdatedAt is written only by this function, never on creation.
        now = datetime.now(timezone.utc)
        validation.ensure_update_interval(
            profile.get("profileUpdatedAt"),
            now,
            timedelta(seconds=settings.profile_update_min_interval_seconds),
        )

        changes: dict = {"updatedAt": now, "profileUpdatedAt": now}
        if update.display_name is not None:
            changes["displayName"] = update.display_name
        if update.preferences is not None:
            preferences = dict(profile.get("preferences") or {})
            preferences.update(
                drop_none(convert_keys(asdict(update.preferences), "snake_to_camel"))
            )
            changes["preferences"] = preferences
        store.update(USERS_COLLECTION, uid, changes)
    except VidaTeaError as e:
        return _error_response(req, e)
    except Exception as e:
        return _internal_error(req, "Error updating user profile", e)

    return _json_response(req, {"success": True, "message": "User profile updated"})


@https_fn.on_request()
def set_admin_role(req: https_fn.Request) -> https_fn.Response:
    """Grants the admin custom claim to a user. Only admins may call this."""
    logger.info(f"Admin role request ({req.method})")
    if req.method == "OPTIONS":
        return _preflight_response(req)

    token = _verify_bearer_token(req)
    if token is None:
        return _json_response(req, {"error": "Unauthorized"}, 401)
    if not token.get("admin"):
        return _json_response(
            req, {"error": "Forbidden: Only admins can set admin roles"}, 403
        )

    body = req.get_json(silent=True) or {}
    uid = body.get("uid") if isinstance(body, dict) else None
    if not uid:
        return _json_response(req, {"error": "Missing uid parameter"}, 400)

    try:
        auth.set_custom_user_claims(uid, {"admin": True})
        get_document_store().update(
            USERS_COLLECTION,
            uid,
            {"role": UserRole.ADMIN, "updatedAt": datetime.now(timezone.utc)},
        )
    except VidaTeaError as e:
        return _error_response(req, e)
    except Exception as e:
        return _internal_error(req, "Error setting admin role", e)

    return _json_response(req, {"success": True, "message": "Admin role granted"})


@https_fn.on_request()
def adjust_inventory(req: https_fn.Request) -> https_fn.Response:
    """
    Applies an inventory change for a product and records it in the
    inventory log. Admin only.
    """
    logger.info(f"Inventory adjustment requested ({req.method})")
    if req.method == "OPTIONS":
        return _preflight_response(req)
    if req.method != "POST":
        return _json_response(req, {"error": "Method not allowed"}, 405)

    token = _verify_bearer_token(req)
    if token is None:
        return _json_response(req, {"error": "Unauthorized"}, 401)
    if not token.get("admin"):
        return _json_response(
            req, {"error": "Forbidden: Only admins can adjust inventory"}, 403
        )

    settings = get_settings()
    try:
        request = validation.parse_inventory_adjustment(_request_json(req))
        store = get_document_store()
        retry_on_conflict(
            lambda: inventory.adjust_inventory(
                store,
                request.product_id,
                request.quantity_change,
                request.change_type,
                request.reference_id,
                token["uid"],
                note=request.note,
            ),
            attempts=settings.conflict_retry_attempts,
        )
    except VidaTeaError as e:
        return _error_response(req, e)
    except Exception as e:
        return _internal_error(req, "Error adjusting inventory", e)

    return _json_response(req, {"success": True, "productId": request.product_id})


@https_fn.on_request()
def generate_order_number(req: https_fn.Request) -> https_fn.Response:
    """Allocates the next order number for a signed-in customer's order."""
    if req.method == "OPTIONS":
        return _preflight_response(req)
    if req.method != "POST":
        return _json_response(req, {"error": "Method not allowed"}, 405)

    if _verify_bearer_token(req) is None:
        return _json_response(req, {"error": "Unauthorized"}, 401)

    settings = get_settings()
    try:
        store = get_document_store()
        order_number = retry_on_conflict(
            lambda: order_numbers.next_order_number(
                store, prefix=settings.order_number_prefix
            ),
            attempts=settings.conflict_retry_attempts,
        )
    except VidaTeaError as e:
        return _error_response(req, e)
    except Exception as e:
        return _internal_error(req, "Error generating order number", e)

    return _json_response(req, {"orderNumber": order_number})


@https_fn.on_request()
def record_order_event(req: https_fn.Request) -> https_fn.Response:
    """Appends a status, shipment or refund event to an order's history. Admin only."""
    if req.method == "OPTIONS":
        return _preflight_response(req)
    if req.method != "POST":
        return _json_response(req, {"error": "Method not allowed"}, 405)

    token = _verify_bearer_token(req)
    if token is None:
        return _json_response(req, {"error": "Unauthorized"}, 401)
    if not token.get("admin"):
        return _json_response(
            req, {"error": "Forbidden: Only admins can record order events"}, 403
        )

    try:
        request = validation.parse_order_event(_request_json(req))
        event_id = events.create_order_event(
            get_document_store(),
            request.order_id,
            request.event_type,
            request.metadata,
            token["uid"],
        )
    except VidaTeaError as e:
        return _error_response(req, e)
    except Exception as e:
        return _internal_error(req, "Error recording order event", e)

    return _json_response(req, {"success": True, "eventId": event_id}, 201)


@https_fn.on_request()
def save_cart(req: https_fn.Request) -> https_fn.Response:
    """Replaces the signed-in user's cart and refreshes its updatedAt."""
    if req.method == "OPTIONS":
        return _preflight_response(req)
    if req.method != "POST":
        return _json_response(req, {"error": "Method not allowed"}, 405)

    token = _verify_bearer_token(req)
    if token is None:
        return _json_response(req, {"error": "Unauthorized"}, 401)

    try:
        cart = validation.parse_cart(_request_json(req))
        get_document_store().set(
            CARTS_COLLECTION,
            token["uid"],
            {
                "items": convert_keys(
                    [asdict(item) for item in cart.items], "snake_to_camel"
                ),
                "updatedAt": SERVER_TIMESTAMP,
            },
        )
    except VidaTeaError as e:
        return _error_response(req, e)
    except Exception as e:
        return _internal_error(req, "Error saving cart", e)

    return _json_response(req, {"success": True, "itemCount": len(cart.items)})


@scheduler_fn.on_schedule(schedule="every 24 hours")
def cleanup_expired_carts(event: scheduler_fn.ScheduledEvent) -> None:
    """Deletes carts that have not been updated within the expiry window."""
    settings = get_settings()
    deleted = carts.sweep_expired_carts(
        get_document_store(), max_age=timedelta(days=settings.cart_expiry_days)
    )
    logger.info(f"Expired cart cleanup removed {deleted} carts")
