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

import json
import os
import unittest

from unittest.mock import patch

from gameshelf.Aliases import SourceDirectory, buildAliases
from gameshelf.Kernel import ShelfEvent
from gameshelf.Listing import (
    FILES_URL_PREFIX, Listing, ListingEntry, ListingError, buildListing, isGameFile, scanSourceDirectory
)

from .ShelfTestBase import GameShelfTestBase


class IsGameFileTest(unittest.TestCase):

    def testExtensions(self):
        for name in ('a.nsp', 'b.nsz', 'c.xci', 'd.xciz', '.hidden.nsp'):
            self.assertTrue(isGameFile(name), name)

    def testCaseSensitiveAndUnrelated(self):
        for name in ('a.NSP', 'b.txt', 'c.nsp.part', 'nsp', 'd.zip'):
            self.assertFalse(isGameFile(name), name)


class ListingSerializationTest(unittest.TestCase):

    def testToDictEncodesUrls(self):
        listing = Listing(
            files=(ListingEntry('games/My Game [v0].nsp', '/x/My Game [v0].nsp', 1234),),
            directories=('games',),
        )
        self.assertEqual(
            listing.toDict(), {
                'files': [{'url': '../files/games/My%20Game%20%5Bv0%5D.nsp', 'size': 1234}],
                'directories': ['../files/games'],
            }
        )

    def testSuccessOnlyWhenSet(self):
        self.assertNotIn('success', Listing().toDict())
        self.assertEqual(Listing(success='Welcome').toDict()['success'], 'Welcome')

    def testToJSONIsBytes(self):
        payload = Listing(success='Hi').toJSON()
        self.assertIsInstance(payload, bytes)
        self.assertEqual(json.loads(payload), {'files': [], 'directories': [], 'success': 'Hi'})

    def testTotalSize(self):
        listing = Listing(files=(ListingEntry('g/a.nsp', '/a', 10), ListingEntry('g/b.nsp', '/b', 5)))
        self.assertEqual(listing.totalSize, 15)


class ScanSourceDirectoryTest(GameShelfTestBase):

    def setUp(self):
        super().setUp()
        (self.root,) = self.makeLibrary('library/games')
        self.sourceDir = SourceDirectory(self.root, 'games')

    def testRecursiveScanFiltersExtensions(self):
        self.makeGame(self.root, 'Top.nsp', 10)
        self.makeGame(self.root, 'Sub/Deep/Inner.xciz', 20)
        self.makeGame(self.root, 'Sub/readme.txt', 5)
        self.makeGame(self.root, 'Sub/Upper.NSP', 5)

        entries = scanSourceDirectory(self.sourceDir)
        self.assertEqual(
            [(e.virtualPath, e.sizeBytes) for e in entries],
            [('games/Top.nsp', 10), ('games/Sub/Deep/Inner.xciz', 20)],
        )
        self.assertEqual(entries[0].directory, 'games')
        self.assertEqual(entries[1].directory, 'games/Sub/Deep')

    def testHiddenFilesIncluded(self):
        self.makeGame(self.root, '.hidden/Secret.nsz', 3)
        entries = scanSourceDirectory(self.sourceDir)
        self.assertEqual([e.virtualPath for e in entries], ['games/.hidden/Secret.nsz'])

    def testMissingDirectoryIsEmpty(self):
        missing = SourceDirectory(os.path.join(self.tempDir, 'nope'), 'nope')
        self.assertEqual(scanSourceDirectory(missing), [])

    @unittest.skipUnless(hasattr(os, 'symlink'), 'symlinks not supported')
    def testSymlinkLoopIsWalkedOnce(self):
        self.makeGame(self.root, 'Sub/Game.nsp', 10)
        try:
            os.symlink(self.root, os.path.join(self.root, 'Sub', 'loop'), target_is_directory=True)
        except OSError:
            self.skipTest('symlink creation not permitted')

        entries = scanSourceDirectory(self.sourceDir)
        self.assertEqual([e.virtualPath for e in entries], ['games/Sub/Game.nsp'])

    @unittest.skipUnless(hasattr(os, 'symlink'), 'symlinks not supported')
    def testDanglingSymlinkSkipped(self):
        self.makeGame(self.root, 'Real.nsp', 10)
        try:
            os.symlink(os.path.join(self.tempDir, 'gone.nsp'), os.path.join(self.root, 'Broken.nsp'))
        except OSError:
            self.skipTest('symlink creation not permitted')

        entries = scanSourceDirectory(self.sourceDir)
        self.assertEqual([e.virtualPath for e in entries], ['games/Real.nsp'])

    def testWalkErrorPropagates(self):
        self.makeGame(self.root, 'Real.nsp', 10)

        def brokenWalk(top, onerror=None, followlinks=False):
            onerror(PermissionError(13, 'Permission denied', top))
            return iter(())

        with patch('gameshelf.Listing.os.walk', brokenWalk):
            with self.assertRaises(PermissionError):
                scanSourceDirectory(self.sourceDir)


class BuildListingTest(GameShelfTestBase):

    def testThreeDirectoriesScenario(self):
        gamesA, gamesB, dlc = self.makeLibrary('a/games', 'b/games', 'c/dlc')
        self.makeGame(gamesA, 'Alpha.nsp', 100)
        self.makeGame(gamesB, 'Beta.nsp', 100)
        self.makeGame(dlc, 'Gamma DLC.nsz', 100)

        sourceDirs = buildAliases([gamesA, gamesB, dlc])
        listing = buildListing(sourceDirs)

        self.assertEqual([s.alias for s in sourceDirs], ['games', 'games-2', 'dlc'])
        self.assertEqual(
            [e.virtualPath for e in listing.files], ['games/Alpha.nsp', 'games-2/Beta.nsp', 'dlc/Gamma DLC.nsz']
        )
        self.assertEqual(listing.directories, ('games', 'games-2', 'dlc'))
        self.assertEqual(
            [f['url'] for f in listing.toDict()['files']], [
                FILES_URL_PREFIX + 'games/Alpha.nsp',
                FILES_URL_PREFIX + 'games-2/Beta.nsp',
                FILES_URL_PREFIX + 'dlc/Gamma%20DLC.nsz',
            ]
        )

    def testDirectoriesAreDistinct(self):
        (root,) = self.makeLibrary('games')
        self.makeGame(root, 'Sub/A.nsp')
        self.makeGame(root, 'Sub/B.nsp')
        self.makeGame(root, 'C.nsp')

        listing = buildListing(buildAliases([root]))
        self.assertEqual(listing.directories, ('games', 'games/Sub'))

    def testMissingDirectoryContributesNothing(self):
        (root,) = self.makeLibrary('games')
        self.makeGame(root, 'A.nsp')

        listing = buildListing(buildAliases([os.path.join(self.tempDir, 'missing'), root]))
        self.assertEqual([e.virtualPath for e in listing.files], ['games/A.nsp'])

    def testSuccessMessage(self):
        listing = buildListing([], successMessage='Hello')
        self.assertEqual(listing.toDict(), {'files': [], 'directories': [], 'success': 'Hello'})

        self.assertIsNone(buildListing([], successMessage='').success)

    def testScanFailureRaisesListingError(self):
        (root,) = self.makeLibrary('games')
        sourceDirs = buildAliases([root])

        with patch('gameshelf.Listing.scanSourceDirectory', side_effect=PermissionError(13, 'denied')):
            with self.assertRaises(ListingError) as context:
                buildListing(sourceDirs)

        self.assertEqual(context.exception.sourceDir, sourceDirs[0])

    def testListingBuildEventTriggered(self):
        received = []

        def onListingBuild(listing=None, **kwargs):
            received.append(listing)

        ShelfEvent.listingBuild.subscribe(onListingBuild)
        listing = buildListing([])

        self.assertEqual(received, [listing])


if __name__ == '__main__':
    unittest.main()
