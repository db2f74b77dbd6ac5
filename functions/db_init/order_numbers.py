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
from typing import Optional

from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.store import DocumentStore, StoreTransaction
from shared.constants import (
    COUNTERS_COLLECTION,
    ORDER_NUMBER_COUNTER_ID,
    ORDER_NUMBER_DIGITS,
    ORDER_NUMBER_PREFIX,
)
from shared.json_utils import convert_keys
from shared.types import OrderNumberCounter

logger = logging.getLogger(__name__)


def format_order_number(prefix: str, year: int, number: int) -> str:
    return f"{prefix}-{year}-{number:0{ORDER_NUMBER_DIGITS}d}"


def next_order_number(
    store: DocumentStore,
    now: Optional[datetime] = None,
    prefix: str = ORDER_NUMBER_PREFIX,
) -> str:
    """
    Allocates the next order number, formatted as PREFIX-YYYY-NNNN.

    Numbering restarts at 1 whenever the stored counter belongs to an earlier
    year. Every call consumes a number: there is no way to hand one back, so an
    order that fails after allocation leaves a gap in the sequence.

    Args:
        store: The document store holding the counters collection.
        now: Allocation time, defaults to the current UTC time.
        prefix: Order number prefix.

    Returns:
        The allocated order number.
    """
    year = (now or datetime.now(timezone.utc)).year

    def _allocate(transaction: StoreTransaction) -> int:
        counter = transaction.get(COUNTERS_COLLECTION, ORDER_NUMBER_COUNTER_ID)

        next_number = 1
        if counter is not None and counter.get("year") == year:
            next_number = counter.get("count", 0) + 1

        counter_doc = convert_keys(
            asdict(OrderNumberCounter(year=year, count=next_number)), "snake_to_camel"
        )
        counter_doc["updatedAt"] = SERVER_TIMESTAMP
        transaction.set(COUNTERS_COLLECTION, ORDER_NUMBER_COUNTER_ID, counter_doc)
        return next_number

    number = store.run_transaction(_allocate)
    order_number = format_order_number(prefix, year, number)
    logger.info(f"Allocated order number {order_number}")
    return order_number
