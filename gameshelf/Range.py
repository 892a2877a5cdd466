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
"""
HTTP Range request utilities (RFC 7233), single ranges only.

    parseRange("bytes=0-99", 1000)      # ByteRange(0, 99)
    parseRange("bytes=500-", 1000)      # ByteRange(500, 999)
    parseRange("bytes=-500", 1000)      # ByteRange(500, 999), the last 500 bytes
    parseRange("bytes=1000-1099", 1000) # None, starts past EOF

A `None` result means "not satisfiable"; malformed headers are an expected
outcome here, never an exception.
"""

import re

from dataclasses import dataclass
from typing import Optional

BYTE_RANGE_PATTERN = re.compile(r'bytes=([0-9]*)-([0-9]*)', re.ASCII)


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int # Inclusive

    @property
    def length(self) -> int:
        return self.end - self.start + 1


def isSingleRange(rangeHeader: str) -> bool:
    return ',' not in rangeHeader


def parseRange(rangeHeader: str, fileSize: int) -> Optional[ByteRange]:
    """
    Parse a single `bytes=` range against a file of known size.

    Args:
        rangeHeader: Raw Range header value, e.g. "bytes=0-1023"
        fileSize: Total file size in bytes

    Returns:
        ByteRange with inclusive bounds, or None if the range is malformed or
        cannot be satisfied.
    """
    match = BYTE_RANGE_PATTERN.fullmatch(rangeHeader)
    if not match:
        return None

    startStr, endStr = match.groups()

    # "bytes=-" names nothing
    if not startStr and not endStr:
        return None

    # No byte position exists in an empty file
    if fileSize <= 0:
        return None

    if startStr and endStr:
        start = int(startStr)
        end = int(endStr)
        if start > end or start >= fileSize:
            return None
        end = min(end, fileSize - 1)
    elif startStr:
        start = int(startStr)
        if start >= fileSize:
            return None
        end = fileSize - 1
    else:
        suffix = int(endStr)
        if suffix <= 0:
            return None
        start = max(0, fileSize - suffix)
        end = fileSize - 1

    return ByteRange(start, end)


def getContentRangeHeader(start: int, end: int, total: int) -> str:
    return f'bytes {start}-{end}/{total}'


def getUnsatisfiedRangeHeader(total: int) -> str:
    return f'bytes */{total}'
