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
Transport-independent request and response objects.

The pipeline and route handlers only see these; Server.py converts between
them and the http.server socket handler.
"""

import json
import time

from dataclasses import dataclass, field
from http import HTTPStatus
from http.client import HTTPMessage
from typing import Dict, Optional, Union


@dataclass(frozen=True)
class FileBody:
    """An offset+length window onto a file on disk. Content is streamed, never loaded."""
    path: str
    offset: int
    length: int


def makeHeaders(values=None) -> HTTPMessage:
    """Build the case-insensitive header mapping http.server hands out from a dict."""
    headers = HTTPMessage()
    for name, value in (values or {}).items():
        headers[name] = value
    return headers


@dataclass
class Request:
    method: str
    target: str
    headers: HTTPMessage = field(default_factory=HTTPMessage)
    clientAddress: Optional[str] = None
    startTime: float = field(default_factory=time.monotonic)
    accessLogged: bool = False

    @property
    def path(self) -> str:
        """Raw (still percent-encoded) path without the query string."""
        return self.target.partition('?')[0].partition('#')[0] or '/'

    @property
    def query(self) -> str:
        return self.target.partition('?')[2].partition('#')[0]

    @property
    def userAgent(self) -> str:
        return self.headers.get('User-Agent', '')

    @property
    def remoteAddress(self) -> str:
        """First X-Forwarded-For hop when behind a proxy, else the socket peer."""
        forwardedFor = self.headers.get('X-Forwarded-For', '')
        forwarded = forwardedFor.split(',')[0].strip()
        return forwarded or self.clientAddress or '-'

    @property
    def elapsedMilliseconds(self) -> float:
        return (time.monotonic() - self.startTime) * 1000


@dataclass
class Response:
    status: int = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: Union[bytes, FileBody] = b''

    @property
    def contentLength(self) -> int:
        if 'Content-Length' in self.headers:
            return int(self.headers['Content-Length'])
        if isinstance(self.body, FileBody):
            return self.body.length
        return len(self.body)


def textResponse(text, status=HTTPStatus.OK, headers=None, contentType='text/plain; charset=utf-8'):
    body = text.encode('utf-8')
    allHeaders = {'Content-Type': contentType, 'Content-Length': str(len(body))}
    allHeaders.update(headers or {})
    return Response(status=status, headers=allHeaders, body=body)


def jsonResponse(obj, status=HTTPStatus.OK, contentType='application/json'):
    return bytesResponse(json.dumps(obj).encode('utf-8'), contentType, status=status)


def bytesResponse(payload, contentType, status=HTTPStatus.OK, headers=None):
    allHeaders = {'Content-Type': contentType, 'Content-Length': str(len(payload))}
    allHeaders.update(headers or {})
    return Response(status=status, headers=allHeaders, body=payload)
