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
import signal
import sys

from gameshelf.CLI import (
    applyArguments, configureCLIParser, configureLogging, loadEnvFile, printBanner, printEndpoints, showVersion,
    subscribeConsoleEvents
)
from gameshelf.Kernel import getLogger
from gameshelf.Server import createServer
from gameshelf.Settings import Settings
from gameshelf.Utils import flushPrint

logger = getLogger(__name__)


def setupGracefulShutdown():
    """Setup signal handlers for graceful shutdown on multiple Ctrl+C"""
    context = {'shutdownInProgress': False}

    def signalHandler(signum, frame):
        if context['shutdownInProgress']:
            # Second Ctrl+C - force immediate exit without cleanup messages
            os._exit(0)
        else:
            # First Ctrl+C - set flag and raise KeyboardInterrupt normally
            context['shutdownInProgress'] = True
            raise KeyboardInterrupt()

    signal.signal(signal.SIGINT, signalHandler)


def setupSettings(argv=None):
    # Load .env file early, before anything reads the environment
    loadEnvFile()

    parser = configureCLIParser()
    args = parser.parse_args(argv)

    configureLogging(args.logLevel)

    settings = applyArguments(Settings.fromEnvironment(), args)
    return args, settings


def runServer(settings):
    if not settings.dirs:
        flushPrint("Error: No game directories configured (set GAMES_DIRS or --dirs)")
        return 1

    if not any(os.path.isdir(sourceDir.path) for sourceDir in settings.bases):
        flushPrint(f"Error: None of the game directories exist: {', '.join(settings.dirs)}")
        return 1

    printBanner(settings)
    subscribeConsoleEvents()

    try:
        server = createServer(settings)
    except OSError as e:
        flushPrint(f"Error: Unable to listen on {settings.host}:{settings.port}: {e}")
        logger.debug("Server bind failed", exc_info=True)
        return 1

    printEndpoints(server)

    try:
        server.start(blocking=True)
    except KeyboardInterrupt:
        flushPrint('\nShutting down...')
    finally:
        server.server_close()

    return 0


def main(argv=None):
    setupGracefulShutdown()

    args, settings = setupSettings(argv)

    if args.version:
        showVersion()
        return 0

    try:
        return runServer(settings)
    except KeyboardInterrupt:
        flushPrint('\nExiting on user request (Ctrl+C)...')
        return 0


if __name__ == '__main__':
    try:
        sys.exit(main() or 0)
    except KeyboardInterrupt:
        flushPrint('\nExiting on user request (Ctrl+C)...')
        sys.exit(0)
    except Exception as e:
        logger.exception(f"GameShelf stopped: {e}")
        sys.exit(1)
