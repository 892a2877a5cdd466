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
Library scanning ("shop data").

Walks every source directory for game images and builds the listing served at
/shop.json and /shop.tfl:

    {
        "files": [{"url": "../files/games/My%20Game.nsp", "size": 5678901234}],
        "directories": ["../files/games"],
        "success": "optional message"
    }

Scans of different source directories run concurrently. A missing source
directory contributes nothing (with a warning); an I/O error while walking an
existing one fails the whole scan, so a listing is either complete or absent.
"""

import json
import os
import stat
import time

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from gameshelf.Aliases import SourceDirectory
from gameshelf.Kernel import getLogger, ShelfEvent
from gameshelf.Paths import encodePath

GAME_EXTENSIONS = ('.nsp', '.nsz', '.xci', '.xciz')

# Listing URLs are resolved by clients relative to /shop.tfl
FILES_URL_PREFIX = '../files/'

logger = getLogger(__name__)


class ListingError(Exception):
    """Raised when a library scan cannot complete."""

    def __init__(self, message, sourceDir=None):
        super().__init__(message)
        self.sourceDir = sourceDir


@dataclass(frozen=True)
class ListingEntry:
    virtualPath: str
    absolutePath: str
    sizeBytes: int

    @property
    def directory(self) -> str:
        """Virtual path of the containing directory, the alias itself at the root."""
        return self.virtualPath.rsplit('/', 1)[0]


@dataclass(frozen=True)
class Listing:
    files: Tuple[ListingEntry, ...] = ()
    directories: Tuple[str, ...] = ()
    success: Optional[str] = None

    @property
    def totalSize(self) -> int:
        return sum(entry.sizeBytes for entry in self.files)

    def toDict(self) -> dict:
        payload = {
            'files': [{
                'url': FILES_URL_PREFIX + encodePath(entry.virtualPath),
                'size': entry.sizeBytes
            } for entry in self.files],
            'directories': [FILES_URL_PREFIX + encodePath(directory) for directory in self.directories],
        }

        if self.success:
            payload['success'] = self.success

        return payload

    def toJSON(self) -> bytes:
        return json.dumps(self.toDict()).encode('utf-8')


def isGameFile(name: str, extensions: Iterable[str] = GAME_EXTENSIONS) -> bool:
    return name.endswith(tuple(extensions))


def _raiseWalkError(error):
    raise error


def scanSourceDirectory(sourceDir: SourceDirectory, extensions: Sequence[str] = GAME_EXTENSIONS) -> List[ListingEntry]:
    """
    Recursively collect game files below one source directory.

    Symbolic links are followed; a directory reached twice through links is
    only walked once. Hidden files are included.

    Raises:
        OSError: If a directory or file cannot be read during the walk
    """
    if not os.path.isdir(sourceDir.path):
        logger.warning(f"Source directory {sourceDir.path} ({sourceDir.alias}) does not exist, skipping")
        return []

    root = os.path.abspath(sourceDir.path)
    entries = []
    visited = set()

    for dirPath, dirNames, fileNames in os.walk(root, onerror=_raiseWalkError, followlinks=True):
        st = os.stat(dirPath)
        key = (st.st_dev, st.st_ino)
        if key in visited:
            logger.debug(f"Skipping already visited directory {dirPath}")
            dirNames[:] = []
            continue
        visited.add(key)

        dirNames.sort()

        relativeDir = os.path.relpath(dirPath, root)
        for name in sorted(fileNames):
            if not isGameFile(name, extensions):
                continue

            absolutePath = os.path.join(dirPath, name)
            try:
                fileStat = os.stat(absolutePath)
            except FileNotFoundError:
                # Dangling symlink or a file removed mid-scan
                logger.debug(f"Skipping vanished file {absolutePath}")
                continue

            if not stat.S_ISREG(fileStat.st_mode):
                continue

            relativePath = name if relativeDir == os.curdir else os.path.join(relativeDir, name)
            virtualPath = f"{sourceDir.alias}/{relativePath.replace(os.sep, '/')}"
            entries.append(ListingEntry(virtualPath, absolutePath, fileStat.st_size))

    return entries


def buildListing(
    sourceDirs: Sequence[SourceDirectory],
    extensions: Sequence[str] = GAME_EXTENSIONS,
    successMessage: Optional[str] = None,
    maxWorkers: Optional[int] = None,
) -> Listing:
    """
    Scan all source directories concurrently and merge the results.

    Args:
        sourceDirs: Aliased source directories, in configuration order
        extensions: Case-sensitive file suffixes to include
        successMessage: Optional message attached verbatim to the listing
        maxWorkers: Thread pool size (default: one thread per directory)

    Returns:
        Listing: Files in source-directory order and their distinct directories

    Raises:
        ListingError: If any source directory fails while being walked
    """
    startTime = time.monotonic()
    results = []

    if sourceDirs:
        with ThreadPoolExecutor(max_workers=maxWorkers or len(sourceDirs), thread_name_prefix='scan') as executor:
            futures = [
                (sourceDir, executor.submit(scanSourceDirectory, sourceDir, extensions)) for sourceDir in sourceDirs
            ]

            # Leaving the executor waits for the remaining scans even if one failed
            for sourceDir, future in futures:
                try:
                    results.append(future.result())
                except OSError as e:
                    logger.error(f"Failed to scan {sourceDir.path} ({sourceDir.alias}): {e}")
                    raise ListingError(f"Error scanning {sourceDir.alias}", sourceDir) from e

    files = []
    directories = {}
    for sourceDir, entries in zip(sourceDirs, results):
        logger.info(f"Scanned {len(entries)} files from {sourceDir.alias} ({sourceDir.path})")
        for entry in entries:
            files.append(entry)
            directories.setdefault(entry.directory, None)

    listing = Listing(files=tuple(files), directories=tuple(directories), success=successMessage or None)

    elapsed = (time.monotonic() - startTime) * 1000
    logger.debug(f"Listing built: {len(files)} files in {len(directories)} directories ({elapsed:.0f}ms)")

    ShelfEvent.listingBuild.trigger(listing=listing)

    return listing
