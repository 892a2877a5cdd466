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
Morgan-style access log lines.

    tiny      GET /shop.tfl 200 - 12ms
    short     GET /shop.tfl 200 3K - 12ms
    dev       same as short, status coloured
    common    10.0.0.2 - - [2025-01-01T10:00:00+00:00] "GET /shop.tfl HTTP/1.1" 200 3120
    combined  common + "-" "<user agent>"
"""

import datetime

from dataclasses import dataclass
from typing import Optional

from gameshelf.Kernel import getLogger
from gameshelf.Utils import formatDuration, formatSize

LOG_FORMATS = ('tiny', 'short', 'dev', 'common', 'combined')
DEFAULT_LOG_FORMAT = 'dev'

RESET = '\x1b[0m'

logger = getLogger('gameshelf.access')


@dataclass
class LogContext:
    method: str
    path: str
    status: int
    responseTime: float # Milliseconds
    contentLength: Optional[int] = None
    userAgent: Optional[str] = None
    remoteAddr: Optional[str] = None
    timestamp: Optional[str] = None


def getStatusColor(status):
    if status >= 500:
        return '\x1b[31m' # red
    if status >= 400:
        return '\x1b[33m' # yellow
    if status >= 300:
        return '\x1b[36m' # cyan
    if status >= 200:
        return '\x1b[32m' # green
    return '\x1b[37m'


def formatBytes(size):
    if not size:
        return '-'
    return formatSize(size)


def _timestamp(ctx):
    return ctx.timestamp or datetime.datetime.now(datetime.timezone.utc).isoformat(timespec='seconds')


def formatLog(logFormat, ctx: LogContext) -> str:
    elapsed = formatDuration(ctx.responseTime)

    if logFormat == 'tiny':
        return f'{ctx.method} {ctx.path} {int(ctx.status)} - {elapsed}'

    if logFormat == 'short':
        return f'{ctx.method} {ctx.path} {int(ctx.status)} {formatBytes(ctx.contentLength)} - {elapsed}'

    if logFormat in ('common', 'combined'):
        line = (
            f'{ctx.remoteAddr or "-"} - - [{_timestamp(ctx)}] "{ctx.method} {ctx.path} HTTP/1.1" '
            f'{int(ctx.status)} {ctx.contentLength or 0}'
        )
        if logFormat == 'combined':
            line += f' "-" "{ctx.userAgent or "-"}"'
        return line

    # dev, also the fallback for unknown formats
    color = getStatusColor(ctx.status)
    return f'{color}{ctx.method} {ctx.path} {int(ctx.status)}{RESET} {formatBytes(ctx.contentLength)} - {elapsed}'


def normalizeLogFormat(logFormat):
    if logFormat and logFormat.lower() in LOG_FORMATS:
        return logFormat.lower()
    return DEFAULT_LOG_FORMAT


class AccessLog:

    def __init__(self, logFormat=DEFAULT_LOG_FORMAT):
        self.logFormat = normalizeLogFormat(logFormat)

    def log(self, request, response):
        ctx = LogContext(
            method=request.method,
            path=request.path,
            status=response.status,
            responseTime=request.elapsedMilliseconds,
            contentLength=response.contentLength,
            userAgent=request.userAgent,
            remoteAddr=request.remoteAddress,
        )
        line = formatLog(self.logFormat, ctx)
        logger.info(line)
        return line
