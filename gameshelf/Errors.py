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

from http import HTTPStatus

from gameshelf.HTTP import textResponse
from gameshelf.Range import getUnsatisfiedRangeHeader

DEFAULT_REALM = 'gameshelf'


class ServiceError(Exception):
    """Base exception for errors that map onto one HTTP response"""

    statusCode = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message, statusCode=None, headers=None):
        super().__init__(message)
        self.message = message
        if statusCode is not None:
            self.statusCode = statusCode
        self.headers = dict(headers or {})

    def toResponse(self):
        return textResponse(self.message, status=self.statusCode, headers=self.headers)


class UnauthorizedError(ServiceError):
    """Raised when Basic Auth is configured and the credentials are missing or wrong (401)"""
    statusCode = HTTPStatus.UNAUTHORIZED

    def __init__(self, message='Authentication required', realm=DEFAULT_REALM):
        super().__init__(message, headers={'WWW-Authenticate': f'Basic realm="{realm}"'})


class NotFoundError(ServiceError):
    """Unknown alias, traversal attempt and missing file all look the same (404)"""
    statusCode = HTTPStatus.NOT_FOUND

    def __init__(self, message='File not found'):
        super().__init__(message)


class MethodNotAllowedError(ServiceError):
    statusCode = HTTPStatus.METHOD_NOT_ALLOWED

    def __init__(self, method, allowedMethods):
        self.allowedMethods = tuple(allowedMethods)
        super().__init__(f'Method {method} not allowed', headers={'Allow': ', '.join(self.allowedMethods)})


class RangeNotSatisfiableError(ServiceError):
    statusCode = HTTPStatus.REQUESTED_RANGE_NOT_SATISFIABLE

    def __init__(self, fileSize, message='Range request invalid'):
        self.fileSize = fileSize
        super().__init__(
            message, headers={
                'Content-Range': getUnsatisfiedRangeHeader(fileSize),
                'Accept-Ranges': 'bytes',
            }
        )


class InternalError(ServiceError):
    """Unexpected failure; the message is generic, details stay in the server log (500)"""
    statusCode = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message='Internal server error'):
        super().__init__(message)
