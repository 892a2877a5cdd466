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

import socket
import sys
import threading

from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional

from gameshelf.AccessLog import AccessLog
from gameshelf.Auth import AuthorizeStage
from gameshelf.Cache import ListingCache
from gameshelf.HTTP import FileBody, Request, Response
from gameshelf.Kernel import PUBLIC_VERSION, ShelfEvent, getLogger
from gameshelf.Pipeline import LoggingStage, Pipeline, TimingStage
from gameshelf.Routes import createRouter

DISCONNECT_ERRORS = (BrokenPipeError, ConnectionResetError, ConnectionAbortedError)

# Responses that must not carry a body
BODYLESS_STATUSES = (HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED)

logger = getLogger(__name__)


class ShelfRequestHandler(BaseHTTPRequestHandler):

    # Keep-alive, so Tinfoil can issue many range requests on one connection
    protocol_version = 'HTTP/1.1'
    server_version = f'GameShelf/{PUBLIC_VERSION}'

    def _toRequest(self):
        return Request(
            method=self.command,
            target=self.path,
            headers=self.headers,
            clientAddress=self.client_address[0] if self.client_address else None,
        )

    def _discardRequestBody(self):
        # Nothing here accepts a body; drop the connection rather than read it
        if self.headers.get('Transfer-Encoding'):
            self.close_connection = True
            return

        contentLength = self.headers.get('Content-Length')
        if contentLength is None:
            return

        try:
            hasBody = int(contentLength) != 0
        except ValueError:
            logger.debug(f"Malformed Content-Length {contentLength!r} from {self.address_string()}")
            hasBody = True

        if hasBody:
            self.close_connection = True

    def _handle(self):
        self._discardRequestBody()

        request = self._toRequest()
        response = self.server.pipeline.handle(request)
        self._writeResponse(request, response)

    def handle_one_request(self) -> None:
        """Like BaseHTTPRequestHandler's, but every method goes through the pipeline instead of do_<METHOD>."""
        try:
            self.raw_requestline = self.rfile.readline(65537)
            if len(self.raw_requestline) > 65536:
                self.requestline = ''
                self.request_version = ''
                self.command = ''
                self.send_error(HTTPStatus.REQUEST_URI_TOO_LONG)
                return

            if not self.raw_requestline:
                self.close_connection = True
                return

            if not self.parse_request():
                # parse_request already sent the error
                return

            self._handle()
            self.wfile.flush()
        except socket.timeout as e:
            self.log_error("Request timed out: %r", e)
            self.close_connection = True

    def _writeHeaders(self, response: Response):
        self.send_response(int(response.status))

        for name, value in response.headers.items():
            self.send_header(name, value)

        if 'Content-Length' not in response.headers and response.status not in BODYLESS_STATUSES:
            self.send_header('Content-Length', str(response.contentLength))

        if self.close_connection:
            self.send_header('Connection', 'close')

        self.end_headers()

    def _writeResponse(self, request: Request, response: Response):
        try:
            self._writeHeaders(response)

            if self.command == 'HEAD' or response.status in BODYLESS_STATUSES:
                return

            if isinstance(response.body, FileBody):
                self._sendFile(response.body)
            elif response.body:
                self.wfile.write(response.body)
        except DISCONNECT_ERRORS as e:
            self.close_connection = True
            logger.info(f"Client {request.remoteAddress} disconnected during {request.method} {request.path}: {e}")
            ShelfEvent.transferAbort.trigger(request=request, error=e)

    def _sendFile(self, body: FileBody):
        """Stream a file window to the socket, zero-copy where os.sendfile is available."""
        if body.length == 0:
            return

        with open(body.path, 'rb') as f:
            self.wfile.flush()
            sent = self.connection.sendfile(f, offset=body.offset, count=body.length)

        if sent < body.length:
            # File shrank after Content-Length was announced; the response is broken
            logger.warning(f"Short transfer of {body.path}: sent {sent} of {body.length} bytes")
            self.close_connection = True

    def log_message(self, format, *args):
        # Access lines come from AccessLog, keep http.server's own output at debug
        logger.debug(f"{self.address_string()} - {format % args}")


class ShelfServer(ThreadingHTTPServer):

    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, serverAddress, pipeline: Pipeline, requestHandlerClass=None, sourceDirs=()):
        self.pipeline = pipeline
        self.sourceDirs = list(sourceDirs)

        self._thread: Optional[threading.Thread] = None
        self._running = False

        super().__init__(serverAddress, requestHandlerClass or ShelfRequestHandler)

    @property
    def host(self) -> str:
        return self.server_address[0]

    @property
    def port(self) -> int:
        """Actual bound port (useful when port=0)"""
        return self.server_address[1]

    @property
    def url(self) -> str:
        host = '127.0.0.1' if self.host in ('0.0.0.0', '') else self.host
        return f'http://{host}:{self.port}'

    def start(self, blocking: bool = False) -> None:
        """
        Start serving.

        Args:
            blocking: If True, serve on the calling thread until stop() or Ctrl+C

        Raises:
            RuntimeError: If the server is already started
        """
        if self._running:
            raise RuntimeError("Server already started")

        self._running = True
        logger.info(f"GameShelf listening on {self.url}")

        if blocking:
            self.serve_forever(poll_interval=0.5)
        else:
            self._thread = threading.Thread(target=self.serve_forever, kwargs={'poll_interval': 0.5}, daemon=True)
            self._thread.start()

    def stop(self) -> None:
        if not self._running:
            return

        self._running = False

        # shutdown() waits for serve_forever, which never ran if we are on its own thread
        if self._thread is not None:
            self.shutdown()
            self._thread.join(timeout=5.0)
            self._thread = None

        self.server_close()
        logger.debug("GameShelf server stopped")

    def handle_error(self, request, client_address):
        error = sys.exc_info()[1]
        if isinstance(error, DISCONNECT_ERRORS):
            logger.debug(f"Connection from {client_address} dropped: {error}")
            return
        logger.exception(f"Unhandled error serving {client_address}")


def createPipeline(settings, sourceDirs, cache: ListingCache) -> Pipeline:
    accessLog = AccessLog(settings.logFormat)
    router = createRouter(sourceDirs, cache, settings.successMessage)
    stages = [
        AuthorizeStage(settings.auth),
        TimingStage(),
        LoggingStage(accessLog),
    ]
    return Pipeline(stages, router, accessLog)


def createServer(settings, host=None, port=None, handlerClass=None) -> ShelfServer:
    """Build a ready-to-start server from Settings; host and port override the configured ones."""
    sourceDirs = settings.bases
    cache = ListingCache(settings.cacheTTL)
    pipeline = createPipeline(settings, sourceDirs, cache)

    serverAddress = (settings.host if host is None else host, settings.port if port is None else port)
    return ShelfServer(serverAddress, pipeline, handlerClass, sourceDirs=sourceDirs)
