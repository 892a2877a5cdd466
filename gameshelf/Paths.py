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
Virtual path resolution.

A virtual path looks like `alias/sub/dir/file.nsp`. The first segment picks a
configured source directory, the rest is a path below it. Every miss (unknown
alias, traversal attempt, missing file) yields the same `None` outcome so a
client cannot probe the filesystem through the error it gets back.
"""

import os
import stat

from dataclasses import dataclass
from typing import List, Optional, Sequence
from urllib.parse import quote

from gameshelf.Aliases import SourceDirectory, findSourceDirectory
from gameshelf.Kernel import getLogger

logger = getLogger(__name__)


@dataclass(frozen=True)
class ResolvedFile:
    absPath: str
    size: int


def splitVirtualPath(virtualPath: str) -> List[str]:
    return [part for part in virtualPath.split('/') if part]


def hasPathTraversal(parts: Sequence[str]) -> bool:
    return any(part in ('.', '..') or not part.strip() for part in parts)


def encodePath(path: str) -> str:
    """Percent-encode each segment on its own, leaving the '/' separators alone."""
    return '/'.join(quote(segment, safe='') for segment in splitVirtualPath(path))


def resolveVirtualPath(virtualPath: str, sourceDirs: Sequence[SourceDirectory]) -> Optional[ResolvedFile]:
    """
    Map an already URL-decoded virtual path to a readable regular file.

    Args:
        virtualPath: Path as the client sees it, e.g. "games-2/Title [v0].nsp"
        sourceDirs: Configured source directories with their aliases

    Returns:
        ResolvedFile with the absolute path and its size, or None when the
        path cannot be served for any reason.
    """
    parts = splitVirtualPath(virtualPath)

    if not parts or hasPathTraversal(parts):
        logger.debug(f"Rejected virtual path (empty or traversal): {virtualPath!r}")
        return None

    alias, rest = parts[0], parts[1:]
    sourceDir = findSourceDirectory(alias, sourceDirs)
    if sourceDir is None:
        logger.debug(f"Unknown alias {alias!r}, available: {[s.alias for s in sourceDirs]}")
        return None

    absPath = os.path.join(sourceDir.path, *rest)

    try:
        st = os.stat(absPath)
    except (OSError, ValueError) as e:
        # ValueError: embedded NUL byte in the decoded path
        logger.debug(f"File not found: {absPath} ({e})")
        return None

    if not stat.S_ISREG(st.st_mode) or not os.access(absPath, os.R_OK):
        logger.debug(f"Not a readable regular file: {absPath}")
        return None

    return ResolvedFile(absPath=absPath, size=st.st_size)
