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

import os

from http import HTTPStatus
from typing import Optional, Sequence
from urllib.parse import unquote

from gameshelf.Aliases import SourceDirectory
from gameshelf.Cache import ListingCache
from gameshelf.Errors import InternalError, NotFoundError, RangeNotSatisfiableError, ServiceError
from gameshelf.HTTP import FileBody, Request, Response, bytesResponse, jsonResponse, textResponse
from gameshelf.Kernel import getLogger
from gameshelf.Listing import GAME_EXTENSIONS, ListingError, buildListing
from gameshelf.Paths import resolveVirtualPath
from gameshelf.Pipeline import Route, Router
from gameshelf.Range import getContentRangeHeader, isSingleRange, parseRange

INDEX_PATHS = ('/', '/tinfoil')
SHOP_PATHS = ('/shop.json', '/shop.tfl')
FILES_PREFIX = '/files/'

INDEX_HTML_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'static', 'index.html')

FILE_CACHE_CONTROL = 'public, max-age=31536000, immutable'

HEALTH_MESSAGE = '* GameShelf is active.\nIndex: / or /tinfoil\nShop: /shop.tfl'

logger = getLogger(__name__)


def buildIndexPayload(successMessage=None):
    payload = {
        'files': [
            {'url': 'shop.json', 'size': 0},
            {'url': 'shop.tfl', 'size': 0},
        ],
        'directories': [],
    }
    if successMessage:
        payload['success'] = successMessage
    return payload


class IndexHandler:
    """Browsers get the landing page, Tinfoil gets a pointer at the shop files."""

    def __init__(self, successMessage=None, indexPath=INDEX_HTML_PATH):
        self.successMessage = successMessage
        self.indexPath = indexPath

    def __call__(self, request: Request) -> Response:
        accept = request.headers.get('Accept', '')
        if 'text/html' in accept:
            try:
                with open(self.indexPath, 'rb') as f:
                    html = f.read()
            except FileNotFoundError:
                logger.error(f"Index page not found at {self.indexPath}")
                raise ServiceError('Index page missing', statusCode=HTTPStatus.INTERNAL_SERVER_ERROR)

            return bytesResponse(html, 'text/html; charset=utf-8')

        return jsonResponse(buildIndexPayload(self.successMessage))


class ShopHandler:

    def __init__(
        self,
        sourceDirs: Sequence[SourceDirectory],
        cache: ListingCache,
        successMessage: Optional[str] = None,
        extensions: Sequence[str] = GAME_EXTENSIONS,
    ):
        self.sourceDirs = list(sourceDirs)
        self.cache = cache
        self.successMessage = successMessage
        self.extensions = tuple(extensions)

    def buildListing(self):
        return buildListing(self.sourceDirs, self.extensions, self.successMessage)

    def __call__(self, request: Request) -> Response:
        try:
            listing = self.cache.getOrBuild(self.buildListing)
        except (ListingError, OSError) as e:
            logger.error(f"Error building shop data: {e}")
            raise InternalError('Error scanning libraries') from e

        contentType = 'application/octet-stream' if request.path.endswith('.tfl') else 'application/json'
        return bytesResponse(listing.toJSON(), contentType)


class FilesHandler:
    """Serves /files/<alias>/<path>, whole or as one byte range."""

    def __init__(self, sourceDirs: Sequence[SourceDirectory]):
        self.sourceDirs = list(sourceDirs)

    def __call__(self, request: Request) -> Response:
        virtualPath = unquote(request.path[len(FILES_PREFIX):])

        resolved = resolveVirtualPath(virtualPath, self.sourceDirs)
        if resolved is None:
            raise NotFoundError()

        fileSize = resolved.size
        headers = {
            'Content-Type': 'application/octet-stream',
            'Accept-Ranges': 'bytes',
            'Cache-Control': FILE_CACHE_CONTROL,
        }

        rangeHeader = request.headers.get('Range')
        if rangeHeader is None:
            headers['Content-Length'] = str(fileSize)
            return Response(status=HTTPStatus.OK, headers=headers, body=FileBody(resolved.absPath, 0, fileSize))

        if not isSingleRange(rangeHeader):
            raise RangeNotSatisfiableError(fileSize, 'Multiple ranges not supported')

        byteRange = parseRange(rangeHeader, fileSize)
        if byteRange is None:
            logger.debug(f"Unsatisfiable range {rangeHeader!r} for {virtualPath} ({fileSize} bytes)")
            raise RangeNotSatisfiableError(fileSize)

        headers['Content-Length'] = str(byteRange.length)
        headers['Content-Range'] = getContentRangeHeader(byteRange.start, byteRange.end, fileSize)
        return Response(
            status=HTTPStatus.PARTIAL_CONTENT,
            headers=headers,
            body=FileBody(resolved.absPath, byteRange.start, byteRange.length),
        )


def healthHandler(request: Request) -> Response:
    return textResponse(HEALTH_MESSAGE)


def createRouter(
    sourceDirs: Sequence[SourceDirectory],
    cache: ListingCache,
    successMessage: Optional[str] = None,
    indexPath: str = INDEX_HTML_PATH,
) -> Router:
    return Router([
        Route.exact(INDEX_PATHS, IndexHandler(successMessage, indexPath), name='index'),
        Route.exact(SHOP_PATHS, ShopHandler(sourceDirs, cache, successMessage), name='shop'),
        Route.prefix(FILES_PREFIX, FilesHandler(sourceDirs), name='files'),
        Route.fallback(healthHandler, name='health'),
    ])
