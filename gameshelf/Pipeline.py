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
Request processing pipeline.

A request passes an ordered list of stages before reaching the router:

    AuthorizeStage -> TimingStage -> LoggingStage -> Router -> MethodValidator -> handler

Each stage may answer early from `before()`; `after()` hooks then run in
reverse order for the stages that were entered. A `ServiceError` raised
anywhere becomes its response and unwinds through those same hooks. Every
request produces exactly one response and one access log line.
"""

import time

from http import HTTPStatus
from typing import Callable, List, Optional, Sequence

from gameshelf.AccessLog import AccessLog
from gameshelf.Errors import InternalError, MethodNotAllowedError, ServiceError
from gameshelf.HTTP import Request, Response
from gameshelf.Kernel import getLogger

DEFAULT_METHODS = ('GET', 'HEAD')
PREFLIGHT_MAX_AGE = 86400

logger = getLogger(__name__)

Handler = Callable[[Request], Response]


class Stage:
    """Base pipeline stage; both hooks are optional."""

    def before(self, request: Request) -> Optional[Response]:
        return None

    def after(self, request: Request, response: Response) -> Response:
        return response


class TimingStage(Stage):
    """Restarts the request clock and reports the handling time in X-Response-Time."""

    def before(self, request):
        request.startTime = time.monotonic()
        return None

    def after(self, request, response):
        response.headers['X-Response-Time'] = f'{request.elapsedMilliseconds:.1f}ms'
        return response


class LoggingStage(Stage):

    def __init__(self, accessLog: AccessLog):
        self.accessLog = accessLog

    def after(self, request, response):
        self.accessLog.log(request, response)
        request.accessLogged = True
        return response


class MethodValidator:
    """
    Wraps a route handler with method checks.

    OPTIONS answers a CORS preflight, methods outside the allowed set are
    rejected with 405.
    """

    def __init__(self, handler: Handler, allowedMethods: Sequence[str] = DEFAULT_METHODS):
        self.handler = handler
        self.allowedMethods = tuple(allowedMethods)

    def __call__(self, request: Request) -> Response:
        method = request.method.upper()
        allowed = ', '.join(self.allowedMethods)

        if method == 'OPTIONS':
            return Response(
                status=HTTPStatus.NO_CONTENT,
                headers={
                    'Allow': allowed,
                    'Access-Control-Allow-Origin': '*',
                    'Access-Control-Allow-Methods': allowed,
                    'Access-Control-Allow-Headers': 'Authorization, Range',
                    'Access-Control-Max-Age': str(PREFLIGHT_MAX_AGE),
                },
            )

        if method not in self.allowedMethods:
            raise MethodNotAllowedError(method, self.allowedMethods)

        return self.handler(request)


class Route:

    def __init__(self, matcher: Callable[[str], bool], handler: Handler, allowedMethods=DEFAULT_METHODS, name=None):
        self.matcher = matcher
        self.handler = MethodValidator(handler, allowedMethods)
        self.name = name or getattr(handler, '__name__', 'route')

    def matches(self, path):
        return self.matcher(path)

    @classmethod
    def exact(cls, paths, handler, **kwargs):
        paths = frozenset(paths)
        return cls(lambda path: path in paths, handler, **kwargs)

    @classmethod
    def prefix(cls, prefix, handler, **kwargs):
        return cls(lambda path: path.startswith(prefix), handler, **kwargs)

    @classmethod
    def fallback(cls, handler, **kwargs):
        return cls(lambda path: True, handler, **kwargs)


class Router:
    """First matching route wins."""

    def __init__(self, routes: Sequence[Route] = ()):
        self.routes: List[Route] = list(routes)

    def __call__(self, request: Request) -> Response:
        for route in self.routes:
            if route.matches(request.path):
                return route.handler(request)

        raise ServiceError('Not Found', statusCode=HTTPStatus.NOT_FOUND)


class Pipeline:

    def __init__(self, stages: Sequence[Stage], router: Handler, accessLog: AccessLog):
        self.stages = list(stages)
        self.router = router
        self.accessLog = accessLog

    def _forward(self, request, entered):
        for stage in self.stages:
            entered.append(stage)
            response = stage.before(request)
            if response is not None:
                return response

        return self.router(request)

    def _unwind(self, request, response, entered):
        while entered:
            stage = entered.pop()
            response = stage.after(request, response)
        return response

    def handle(self, request: Request) -> Response:
        entered = []
        try:
            response = self._forward(request, entered)
        except ServiceError as e:
            response = e.toResponse()
        except Exception as e:
            logger.exception(f"Unexpected error handling {request.method} {request.path}: {e}")
            response = InternalError().toResponse()

        try:
            response = self._unwind(request, response, entered)
        except Exception as e:
            logger.exception(f"Unexpected error finishing {request.method} {request.path}: {e}")
            response = InternalError().toResponse()

        # Answers from stages ahead of LoggingStage still get their line
        if not request.accessLogged:
            try:
                self.accessLog.log(request, response)
            except Exception as e:
                logger.exception(f"Failed to write access log: {e}")

        return response
