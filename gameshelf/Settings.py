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

import dataclasses
import os

from dataclasses import dataclass
from typing import Optional, Tuple

from gameshelf.AccessLog import DEFAULT_LOG_FORMAT, normalizeLogFormat
from gameshelf.Aliases import buildAliases
from gameshelf.Auth import HTTPAuth
from gameshelf.Kernel import getLogger
from gameshelf.Utils import getEnv, splitDirectories

DEFAULT_PORT = 3000
DEFAULT_HOST = '0.0.0.0' # All interfaces, needed inside containers
DEFAULT_GAMES_DIRS = '/data/games'
DEFAULT_CACHE_TTL = 300 # 5 minutes

logger = getLogger(__name__)


def parseCredentials(credentials: Optional[str]) -> Optional[Tuple[str, str]]:
    """Split `user:pass` on the first colon; both halves must be non-empty."""
    if not credentials or ':' not in credentials:
        return None
    user, _, password = credentials.partition(':')
    if not user or not password:
        return None
    return user, password


@dataclass(frozen=True)
class Settings:
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    dirs: Tuple[str, ...] = (DEFAULT_GAMES_DIRS,)
    authUser: Optional[str] = None
    authPassword: Optional[str] = None
    cacheTTL: int = DEFAULT_CACHE_TTL
    successMessage: Optional[str] = None
    logFormat: str = DEFAULT_LOG_FORMAT

    def __post_init__(self):
        # Frozen dataclass, so normalise through object.__setattr__
        object.__setattr__(self, 'dirs', tuple(self.dirs))
        object.__setattr__(self, 'cacheTTL', max(0, int(self.cacheTTL)))
        object.__setattr__(self, 'logFormat', normalizeLogFormat(self.logFormat))
        object.__setattr__(self, 'successMessage', self.successMessage or None)

    @classmethod
    def fromEnvironment(cls, environ=None):
        environ = os.environ if environ is None else environ

        authUser = getEnv('AUTH_USER', None, environ) or None
        authPassword = getEnv('AUTH_PASS', None, environ) or None
        if not (authUser and authPassword):
            credentials = parseCredentials(getEnv('AUTH_CREDENTIALS', None, environ))
            if credentials:
                authUser, authPassword = credentials
            else:
                authUser = authPassword = None

        logFormat = getEnv('LOG_FORMAT', DEFAULT_LOG_FORMAT, environ)
        if normalizeLogFormat(logFormat) != logFormat.lower():
            logger.warning(f"Unknown LOG_FORMAT {logFormat!r}, using {DEFAULT_LOG_FORMAT}")

        return cls(
            port=getEnv('PORT', DEFAULT_PORT, environ),
            host=getEnv('HOST', DEFAULT_HOST, environ),
            dirs=tuple(splitDirectories(getEnv('GAMES_DIRS', DEFAULT_GAMES_DIRS, environ))),
            authUser=authUser,
            authPassword=authPassword,
            cacheTTL=getEnv('CACHE_TTL', DEFAULT_CACHE_TTL, environ),
            successMessage=getEnv('SUCCESS_MESSAGE', '', environ),
            logFormat=logFormat,
        )

    def override(self, **changes):
        """Copy with the given fields replaced; None values are ignored so unset CLI flags keep env values."""
        changes = {key: value for key, value in changes.items() if value is not None}
        return dataclasses.replace(self, **changes)

    @property
    def bases(self):
        return buildAliases(self.dirs)

    @property
    def auth(self) -> HTTPAuth:
        return HTTPAuth(self.authUser, self.authPassword)
