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

import argparse
import json
import os
import logging
import logging.config
import platform

from gameshelf.AccessLog import LOG_FORMATS
from gameshelf.Kernel import LOG_LEVEL_MAPPING, PUBLIC_VERSION, ShelfEvent, configureGlobalLogLevel, getLogger
from gameshelf.Utils import flushPrint, formatSize, getEnv, splitDirectories

HOME_ENV = 'GAMESHELF_HOME'
LOGGING_LEVEL_ENV = 'GAMESHELF_LOGGING_LEVEL'

BANNER = """
+----------------------------------------+
|       GameShelf server running!        |
+----------------------------------------+
"""

logger = getLogger(__name__)


def findEnvFile(environ=None):
    """Return the first existing .env: working directory first, then $GAMESHELF_HOME."""
    environ = os.environ if environ is None else environ

    candidates = [os.path.join(os.getcwd(), '.env')]
    home = environ.get(HOME_ENV)
    if home:
        candidates.append(os.path.join(home, '.env'))

    for candidate in candidates:
        if os.path.isfile(candidate):
            return candidate
    return None


def loadEnvFile(envFilePath=None, environ=None):
    """
    Load KEY=VALUE pairs from a .env file into the environment.
    Only sets variables that are not already defined, the real environment wins.

    Returns:
        int: Number of variables set
    """
    environ = os.environ if environ is None else environ
    envFilePath = envFilePath or findEnvFile(environ)

    if not envFilePath or not os.path.exists(envFilePath):
        return 0

    loadedCount = 0
    try:
        logger.debug(f'Loading .env file from: {envFilePath}')

        with open(envFilePath, 'r', encoding='utf-8') as f:
            for lineNum, line in enumerate(f, 1):
                line = line.strip()

                # Skip empty lines and comments
                if not line or line.startswith('#'):
                    continue

                if '=' not in line:
                    flushPrint(f'Warning: .env line {lineNum}: Invalid format (missing =): {line}')
                    continue

                key, _, value = line.partition('=')
                key = key.strip()
                value = value.strip()

                if key.startswith('export '):
                    key = key[len('export '):].strip()

                if not key:
                    flushPrint(f'Warning: .env line {lineNum}: Empty key')
                    continue

                # Remove quotes if present (both single and double)
                if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                    value = value[1:-1]

                if key not in environ:
                    environ[key] = value
                    loadedCount += 1
                else:
                    logger.debug(f'.env: Skipped {key} (already set in environment)')

        logger.info(f'Loaded {loadedCount} environment variables from {envFilePath}')

    except OSError as e:
        flushPrint(f'Error: Unable to read .env file {envFilePath}: {e}')
        logger.error(f'Unable to read .env file: {e}', exc_info=True)

    return loadedCount


def configureLogging(logLevel=None):
    """Configure logging from --log-level or GAMESHELF_LOGGING_LEVEL.

    Both can be a level name (DEBUG, INFO, WARNING, ERROR) or a path to a
    logging configuration JSON file. Without either, access lines still reach
    the console at INFO.
    """

    def suppressNoisyLogger():
        logging.getLogger('sentry_sdk').setLevel(logging.INFO)

    if logLevel is None:
        logLevel = getEnv(LOGGING_LEVEL_ENV, None)

    if logLevel is None:
        configureGlobalLogLevel(logging.INFO)
        suppressNoisyLogger()
        return None

    if os.path.isfile(logLevel):
        try:
            with open(logLevel, 'r') as configFile:
                configDict = json.load(configFile)

            logging.config.dictConfig(configDict)
            logger.info(f"Logging configured from file: {logLevel}")
            suppressNoisyLogger()
            return logLevel

        except (json.JSONDecodeError, OSError, KeyError, ValueError) as e:
            flushPrint(f"Failed to load logging config from {logLevel}: {e}")
            flushPrint("Falling back to default logging level configuration")

    if logLevel.upper() in LOG_LEVEL_MAPPING:
        configureGlobalLogLevel(LOG_LEVEL_MAPPING[logLevel.upper()])
        logger.info(f"Logging level set to {logLevel}")
    else:
        logger.warning(f"Invalid logging level '{logLevel}', using INFO as default")
        configureGlobalLogLevel(logging.INFO)

    suppressNoisyLogger()
    return logLevel


def showVersion():
    flushPrint(f"GameShelf v{PUBLIC_VERSION}")
    uname = platform.uname()
    flushPrint(f"Python {platform.python_version()} on {uname.system} {uname.release} {uname.machine}")


def configureCLIParser():
    """Build the command line parser. Flags left unset keep the environment's value."""

    def validatePort(portStr):
        try:
            port = int(portStr)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid port number: {portStr}")
        if not (0 <= port <= 65535):
            raise argparse.ArgumentTypeError(f"Port {port} is out of valid range (0-65535)")
        return port

    def validateTTL(ttlStr):
        try:
            return max(0, int(ttlStr))
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid cache TTL: {ttlStr}")

    def validateLogLevel(logLevel):
        # Allow file paths (they'll be validated later)
        if os.path.exists(logLevel):
            return logLevel
        if logLevel.upper() not in LOG_LEVEL_MAPPING:
            raise argparse.ArgumentTypeError(
                f"Invalid log level '{logLevel}'. Valid levels are: {', '.join(LOG_LEVEL_MAPPING)}"
            )
        return logLevel.upper()

    parser = argparse.ArgumentParser(
        prog='gameshelf', description="GameShelf serves game backups to Tinfoil with resumable downloads."
    )
    parser.add_argument("--version", action="store_true", help="Show version information")
    parser.add_argument("--port", type=validatePort, help="Listening port (env PORT, default: 3000)", metavar="PORT")
    parser.add_argument("--host", help="Listening address (env HOST, default: 0.0.0.0)", metavar="HOST")
    parser.add_argument(
        "--dirs",
        help="Game directories separated by ',' or ';' (env GAMES_DIRS, default: /data/games)",
        metavar="DIRS",
    )
    parser.add_argument(
        "--cache-ttl",
        type=validateTTL,
        help="Seconds the library listing is cached (env CACHE_TTL, default: 300)",
        metavar="SECONDS",
        dest="cacheTTL"
    )
    parser.add_argument(
        "--success-message",
        help="Message shown by Tinfoil after loading the shop (env SUCCESS_MESSAGE)",
        metavar="TEXT",
        dest="successMessage"
    )
    parser.add_argument(
        "--auth-user",
        help="Username for HTTP Basic Authentication (env AUTH_USER)",
        metavar="USERNAME",
        dest="authUser"
    )
    parser.add_argument(
        "--auth-password",
        help="Password for HTTP Basic Authentication (env AUTH_PASS)",
        metavar="PASSWORD",
        dest="authPassword"
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        help="Access log format (env LOG_FORMAT, default: dev)",
        dest="logFormat"
    )
    parser.add_argument(
        "--log-level",
        type=validateLogLevel,
        help="Logging level (DEBUG, INFO, WARNING, ERROR) or path to logging config JSON file",
        metavar="LEVEL_OR_FILE",
        dest="logLevel"
    )
    return parser


def applyArguments(settings, args):
    dirs = tuple(splitDirectories(args.dirs)) if args.dirs else None
    return settings.override(
        port=args.port,
        host=args.host,
        dirs=dirs,
        cacheTTL=args.cacheTTL,
        successMessage=args.successMessage,
        authUser=args.authUser,
        authPassword=args.authPassword,
        logFormat=args.logFormat,
    )


def printBanner(settings):
    flushPrint(BANNER)

    flushPrint("> Scanning directories:")
    for sourceDir in settings.bases:
        marker = '' if os.path.isdir(sourceDir.path) else '  (missing)'
        flushPrint(f"   {sourceDir.alias} -> {sourceDir.path}{marker}")

    if settings.auth.enabled:
        flushPrint(f"> Authentication enabled (user: {settings.auth.user})")
    else:
        flushPrint("> Authentication disabled")

    flushPrint(f"> Cache TTL: {settings.cacheTTL}s")

    if settings.successMessage:
        flushPrint(f'> Success message: "{settings.successMessage}"')

    flushPrint(f"> Log format: {settings.logFormat}")


def printEndpoints(server):
    flushPrint(f"\n>> Server is up and listening on {server.url}")
    flushPrint(">> Endpoints:")
    flushPrint("   GET /          - Index listing")
    flushPrint("   GET /shop.tfl  - Game library (Tinfoil format)")
    for sourceDir in server.sourceDirs:
        flushPrint(f"   GET /files/{sourceDir.alias}/*  - Downloads from {sourceDir.path}")


def printListingSummary(listing=None, **kwargs):
    """ShelfEvent.listingBuild observer: one console line per rebuilt library."""
    if listing is None:
        return
    flushPrint(
        f"> Library scanned: {len(listing.files)} files in {len(listing.directories)} directories "
        f"({formatSize(listing.totalSize)})"
    )


def subscribeConsoleEvents():
    ShelfEvent.listingBuild.subscribe(printListingSummary)
