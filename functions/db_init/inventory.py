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
from typing import Optional

from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.store import DocumentStore, StoreTransaction
from shared.constants import INVENTORY_LOGS_COLLECTION, PRODUCTS_COLLECTION
from shared.errors import InsufficientInventoryError, ProductNotFoundError
from shared.json_utils import convert_keys
from shared.types import ChangeType, InventoryLogEntry

logger = logging.getLogger(__name__)


def adjust_inventory(
    store: DocumentStore,
    product_id: str,
    quantity_change: int,
    change_type: ChangeType,
    reference_id: str,
    user_id: str,
    note: Optional[str] = None,
) -> None:
    """
    Applies `quantity_change` to a product's stock and records an audit entry.

    The product update and the inventoryLogs entry are committed in one
    transaction, so either both are written or neither is. The transaction is
    attempted once; on contention TransactionConflictError propagates to the
    caller.

    Args:
        store: The document store to run the transaction against.
        product_id: Product document id.
        quantity_change: Amount to add to the stock (negative to decrease).
        change_type: Reason for the change (order, restock, adjustment).
        reference_id: Related document id, e.g. the order id.
        user_id: User performing the change.
        note: Optional free-text note stored with the log entry.

    Raises:
        ProductNotFoundError: If the product does not exist.
        InsufficientInventoryError: If the stock would go below zero.
    """

    def _adjust(transaction: StoreTransaction) -> tuple[int, int]:
        product = transaction.get(PRODUCTS_COLLECTION, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)

        current_inventory = product.get("inventory", 0)
        new_inventory = current_inventory + quantity_change
        if new_inventory < 0:
            raise InsufficientInventoryError(
                product_id, available=current_inventory, requested=quantity_change
            )

        transaction.update(
            PRODUCTS_COLLECTION,
            product_id,
            {"inventory": new_inventory, "updatedAt": SERVER_TIMESTAMP},
        )

        log_entry = InventoryLogEntry(
            product_id=product_id,
            change_type=ChangeType(change_type),
            previous_quantity=current_inventory,
            new_quantity=new_inventory,
            change_amount=quantity_change,
            reference_id=reference_id,
            performed_by=user_id,
            note=note or None,
        )
        log_doc = convert_keys(asdict(log_entry), "snake_to_camel")
        log_doc["createdAt"] = SERVER_TIMESTAMP
        transaction.add(INVENTORY_LOGS_COLLECTION, log_doc)
        return current_inventory, new_inventory

    previous, new = store.run_transaction(_adjust)
    logger.info(
        f"Inventory for {product_id} changed {previous} -> {new} "
        f"({change_type}, ref {reference_id}, by {user_id})"
    )
