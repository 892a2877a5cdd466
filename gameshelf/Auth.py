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

import base64
import binascii
import hmac

from typing import NamedTuple, Optional

from gameshelf.Errors import DEFAULT_REALM, UnauthorizedError
from gameshelf.Kernel import getLogger
from gameshelf.Pipeline import Stage

logger = getLogger(__name__)


class HTTPAuth(NamedTuple):
    user: Optional[str] = None
    password: Optional[str] = None

    @property
    def enabled(self) -> bool:
        # Both parts are required, a half-configured pair protects nothing
        return bool(self.user) and bool(self.password)


def parseBasicAuthHeader(header: Optional[str]) -> Optional[HTTPAuth]:
    """
    Decode an `Authorization: Basic <base64(user:pass)>` header.

    Returns:
        HTTPAuth with the supplied credentials, or None if the header is absent or malformed.
    """
    if not header:
        return None

    scheme, _, encodedCredentials = header.strip().partition(' ')
    if scheme.lower() != 'basic' or not encodedCredentials:
        return None

    try:
        credentials = base64.b64decode(encodedCredentials.strip(), validate=True).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        logger.debug(f"Error decoding credentials: {e}")
        return None

    user, separator, password = credentials.partition(':')
    if not separator:
        return None

    return HTTPAuth(user, password)


def isAuthorized(headers, auth: HTTPAuth) -> bool:
    """Check the request headers against the configured pair. Always True when auth is disabled."""
    if not auth.enabled:
        return True

    provided = parseBasicAuthHeader(headers.get('Authorization'))
    if provided is None:
        logger.warning("Authentication challenge sent: No or invalid auth header")
        return False

    userMatches = hmac.compare_digest(provided.user.encode('utf-8'), auth.user.encode('utf-8'))
    passwordMatches = hmac.compare_digest(provided.password.encode('utf-8'), auth.password.encode('utf-8'))
    if userMatches and passwordMatches:
        return True

    logger.warning(f"Authentication failed: Invalid credentials for user '{provided.user}'")
    return False


class AuthorizeStage(Stage):
    """First pipeline stage: every route is protected when credentials are configured."""

    def __init__(self, auth: HTTPAuth, realm: str = DEFAULT_REALM):
        self.auth = auth
        self.realm = realm

    def before(self, request):
        if not isAuthorized(request.headers, self.auth):
            raise UnauthorizedError(realm=self.realm)
        return None
