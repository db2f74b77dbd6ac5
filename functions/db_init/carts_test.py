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


import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from backend.store import InMemoryDocumentStore
from db_init import carts
from shared.constants import CARTS_COLLECTION

NOW = datetime(2025, 9, 15, 3, 0, tzinfo=timezone.utc)


class SweepExpiredCartsTest(unittest.TestCase):

    def setUp(self):
        self.store = InMemoryDocumentStore(clock=lambda: NOW)

    def _add_cart(self, cart_id, age):
        self.store.set(
            CARTS_COLLECTION, cart_id, {"items": [], "updatedAt": NOW - age}
        )

    def test_deletes_only_stale_carts(self):
        for i in range(7):
            self._add_cart(f"fresh-{i}", timedelta(days=i, hours=1))
        for i in range(3):
            self._add_cart(f"stale-{i}", timedelta(days=8 + i))

        deleted = carts.sweep_expired_carts(self.store, now=NOW)

        self.assertEqual(deleted, 3)
        remaining = self.store.documents(CARTS_COLLECTION)
        self.assertEqual(len(remaining), 7)
        self.assertFalse(any(cart_id.startswith("stale") for cart_id in remaining))

    def test_cart_exactly_at_cutoff_is_kept(self):
        self._add_cart("edge", timedelta(days=7))

        self.assertEqual(carts.sweep_expired_carts(self.store, now=NOW), 0)
        self.assertIsNotNone(self.store.get(CARTS_COLLECTION, "edge"))

    def test_custom_max_age(self):
        self._add_cart("two-days", timedelta(days=2))

        deleted = carts.sweep_expired_carts(
            self.store, now=NOW, max_age=timedelta(days=1)
        )

        self.assertEqual(deleted, 1)

    def test_no_matches_skips_delete(self):
        store = MagicMock()
        store.find_before.return_value = []

        self.assertEqual(carts.sweep_expired_carts(store, now=NOW), 0)
        store.find_before.assert_called_once_with(
            CARTS_COLLECTION, "updatedAt", NOW - timedelta(days=7)
        )
        store.delete_batch.assert_not_called()


if __name__ == "__main__":
    unittest.main()
