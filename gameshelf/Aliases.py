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
Short public names for the configured game directories.

Every source directory is exposed to clients under an alias instead of its
absolute path: `/mnt/a/games` becomes `games`, a second `/mnt/b/games`
becomes `games-2`, and so on.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Optional

DEFAULT_ALIAS = 'games'


@dataclass(frozen=True)
class SourceDirectory:
    path: str
    alias: str


def _baseName(path: str) -> str:
    segments = [segment for segment in path.split('/') if segment]
    return segments[-1] if segments else DEFAULT_ALIAS


def buildAliases(paths: Iterable[str]) -> List[SourceDirectory]:
    """
    Assign a unique alias to each directory, preserving input order.

    The first directory with a given base name keeps it verbatim, the Nth
    one (N >= 2) is suffixed with `-N`. A generated name already taken by a
    directory literally called e.g. `games-2` moves on to the next number.
    """
    nameCounts = Counter()
    usedAliases = set()
    sourceDirs = []

    for path in paths:
        baseName = _baseName(path)
        nameCounts[baseName] += 1
        count = nameCounts[baseName]

        alias = baseName if count == 1 else f'{baseName}-{count}'
        while alias in usedAliases:
            nameCounts[baseName] += 1
            alias = f'{baseName}-{nameCounts[baseName]}'

        usedAliases.add(alias)
        sourceDirs.append(SourceDirectory(path=path, alias=alias))

    return sourceDirs


def findSourceDirectory(alias: str, sourceDirs: Iterable[SourceDirectory]) -> Optional[SourceDirectory]:
    for sourceDir in sourceDirs:
        if sourceDir.alias == alias:
            return sourceDir
    return None
