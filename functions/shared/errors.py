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


"""Error taxonomy shared by the document store and the db_init operations."""


class VidaTeaError(Exception):
    """Base class for errors raised by the Vida Tea backend."""


class NotFoundError(VidaTeaError):
    """A referenced document does not exist."""


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: str):
        super().__init__(f"Product not found: {product_id}")
        self.product_id = product_id


class InsufficientInventoryError(VidaTeaError):
    """The adjustment would leave a product with negative stock."""

    def __init__(self, product_id: str, available: int, requested: int):
        super().__init__(
            f"Insufficient inventory for {product_id}: "
            f"{available} available, change of {requested} requested"
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class TransactionConflictError(VidaTeaError):
    """The store aborted a transaction because of a concurrent write.

    The operation had no effect and may be retried by the caller.
    """


class WriteFailureError(VidaTeaError):
    """A non-transactional append could not be written."""


class ValidationError(VidaTeaError):
    """A request payload does not have the expected shape."""


class RateLimitedError(VidaTeaError):
    """A document was written again sooner than allowed."""

    def __init__(self, retry_after_seconds: float):
        super().__init__(
            f"Updated too recently, retry in {retry_after_seconds:.0f} seconds"
        )
        self.retry_after_seconds = retry_after_seconds
