#!/usr/bin/env python
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
#
# GameShelf - Resumable game library server
# Copyright (C) 2025-2026 GameShelf contributors
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

import threading
import time

from typing import Callable, Optional

from gameshelf.Kernel import getLogger
from gameshelf.Listing import Listing

logger = getLogger(__name__)


class ListingCache:
    """
    Single-slot, time-based cache for the merged library listing.

    The slot holds one (listing, createdAt) tuple that is replaced as a whole,
    so readers never see a half-written entry and need no lock.
    """

    def __init__(self, ttlSeconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = max(0, ttlSeconds)
        self._clock = clock
        self._entry = None
        self._buildLock = threading.Lock()

    def get(self) -> Optional[Listing]:
        entry = self._entry
        if entry is None:
            return None

        listing, createdAt = entry
        if self._clock() - createdAt < self.ttl:
            return listing

        # Expired: drop it unless another thread already stored a newer one
        if self._entry is entry:
            self._entry = None
        return None

    def set(self, listing: Listing):
        self._entry = (listing, self._clock())

    def invalidate(self):
        self._entry = None

    reset = invalidate

    def isValid(self) -> bool:
        return self.get() is not None

    def getOrBuild(self, builder: Callable[[], Listing]) -> Listing:
        """
        Return the cached listing, building and storing a new one on a miss.

        Concurrent misses wait for a single in-flight build instead of each
        scanning the library. Exceptions from the builder propagate and leave
        the cache empty.
        """
        listing = self.get()
        if listing is not None:
            return listing

        with self._buildLock:
            # Another thread may have rebuilt it while we waited
            listing = self.get()
            if listing is not None:
                return listing

            logger.debug("Listing cache miss, rebuilding")
            listing = builder()
            self.set(listing)
            return listing
