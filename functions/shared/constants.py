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


# Firestore collection names
PRODUCTS_COLLECTION = "products"
INVENTORY_LOGS_COLLECTION = "inventoryLogs"
COUNTERS_COLLECTION = "counters"
ORDER_EVENTS_COLLECTION = "orderEvents"
ANALYTICS_COLLECTION = "analytics"
CARTS_COLLECTION = "carts"
USERS_COLLECTION = "users"

# Singleton document in COUNTERS_COLLECTION holding the yearly order sequence.
ORDER_NUMBER_COUNTER_ID = "orderNumber"

ORDER_NUMBER_PREFIX = "VT"
ORDER_NUMBER_DIGITS = 4

CART_EXPIRY_DAYS = 7

# Firestore rejects write batches with more operations than this.
MAX_BATCH_WRITES = 500

SERVICE_NAME = "vita-tea-functions"

MAX_NOTE_LENGTH = 500
MAX_REFERENCE_ID_LENGTH = 128
MAX_CART_ITEMS = 100
MAX_DISPLAY_NAME_LENGTH = 100
MAX_EVENT_NAME_LENGTH = 100
