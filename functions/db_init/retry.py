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
from typing import Callable, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from shared.errors import TransactionConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CONFLICT_WAIT = wait_random_exponential(multiplier=0.05, max=1)


def retry_on_conflict(fn: Callable[[], T], attempts: int = 5, wait=None) -> T:
    """
    Calls `fn` again while it fails with TransactionConflictError.

    Waits with jittered exponential backoff between attempts and re-raises the
    last TransactionConflictError once `attempts` calls have failed. Any other
    exception is raised immediately.
    """
    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait if wait is not None else DEFAULT_CONFLICT_WAIT,
        retry=retry_if_exception_type(TransactionConflictError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    return retrying(fn)
