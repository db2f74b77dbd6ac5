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
from datetime import datetime, timedelta, timezone
from typing import Optional

from backend.store import DocumentStore
from shared.constants import CART_EXPIRY_DAYS, CARTS_COLLECTION

logger = logging.getLogger(__name__)

DEFAULT_CART_MAX_AGE = timedelta(days=CART_EXPIRY_DAYS)


def sweep_expired_carts(
    store: DocumentStore,
    now: Optional[datetime] = None,
    max_age: timedelta = DEFAULT_CART_MAX_AGE,
) -> int:
    """
    Deletes carts whose updatedAt is older than `max_age` and returns how many
    were deleted.

    The scan and the delete are separate steps, so a cart touched in between
    can still be removed. Carts only mirror client state, which makes that
    acceptable.
    """
    cutoff = (now or datetime.now(timezone.utc)) - max_age
    expired_ids = store.find_before(CARTS_COLLECTION, "updatedAt", cutoff)
    if not expired_ids:
        return 0

    store.delete_batch(CARTS_COLLECTION, expired_ids)
    logger.info(f"Deleted {len(expired_ids)} carts not updated since {cutoff}")
    return len(expired_ids)
