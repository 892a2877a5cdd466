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
import logging
import threading

# Error reporting is opt-in: nothing is sent unless GAMESHELF_SENTRY_DSN is set.
import sentry_sdk

from enum import Enum

from signalslot import Signal

from sentry_sdk.integrations.logging import SentryHandler, LoggingIntegration
from sentry_sdk.integrations import atexit as sentryAtexit

PUBLIC_VERSION = '1.2.0'

SENTRY_DSN_ENV = 'GAMESHELF_SENTRY_DSN'

# Map string levels to logging constants for standard level names
LOG_LEVEL_MAPPING = {'DEBUG': logging.DEBUG, 'INFO': logging.INFO, 'WARNING': logging.WARNING, 'ERROR': logging.ERROR}

LOG_FORMATTER = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def configureGlobalLogLevel(logLevel):
    """
    Configure the global logging level for the application.
    This affects all loggers created via getLogger().

    Args:
        logLevel: Logging level (logging.DEBUG, logging.INFO, etc.)
    """
    rootLogger = logging.getLogger()
    rootLogger.setLevel(logLevel)

    formatter = logging.Formatter(LOG_FORMATTER)

    # Add console handler if none exists
    if not rootLogger.handlers:
        consoleHandler = logging.StreamHandler()
        consoleHandler.setLevel(logLevel)
        consoleHandler.setFormatter(formatter)
        rootLogger.addHandler(consoleHandler)
    else:
        # Update existing handlers
        for handler in rootLogger.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(handler, SentryHandler):
                handler.setLevel(logLevel)
                handler.setFormatter(formatter)


if os.getenv('GAMESHELF_LOGGING_LEVEL', '').upper() in LOG_LEVEL_MAPPING:
    configureGlobalLogLevel(LOG_LEVEL_MAPPING[os.getenv('GAMESHELF_LOGGING_LEVEL').upper()])

_sentryLock = threading.Lock()
_sentryInitialized = False


def _initSentry():
    """Initialize Sentry once if a DSN is configured. Returns True when reporting is active."""
    global _sentryInitialized

    sentryDsn = os.getenv(SENTRY_DSN_ENV)
    if not sentryDsn:
        return False

    with _sentryLock:
        if not _sentryInitialized:
            # Suppress "sentry is attempting to send pending events..." on exit
            sentryAtexit.default_callback = lambda pending, timeout: None

            sentry_sdk.init(
                dsn=sentryDsn,
                release=PUBLIC_VERSION,
                default_integrations=False,
                integrations=[
                    LoggingIntegration(),
                    sentryAtexit.AtexitIntegration(),
                ],
            )
            _sentryInitialized = True

    return True


def getLogger(name):
    """
    Get a logger, with a Sentry handler attached when error reporting is enabled.

    Args:
        name: Logger name
    """
    logger = logging.getLogger(name)

    try:
        if _initSentry() and not any(isinstance(h, SentryHandler) for h in logger.handlers):
            logger.addHandler(SentryHandler(level=logging.ERROR))
    except Exception as e:
        # If Sentry setup fails, log the error and continue with standard logging
        logger.warning(f"Failed to initialize Sentry: {e}")

    return logger


class Singleton:
    """
    Thread-safe singleton base class that can be inherited by other classes.
    Subclasses override initialize() for custom initialization.
    """

    _instances = {}
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        if cls not in cls._instances:
            with cls._lock:
                if cls not in cls._instances:
                    cls._instances[cls] = super().__new__(cls)
        return cls._instances[cls]

    def __init__(self, *args, **kwargs):
        if not hasattr(self, '_initialized'):
            self.initialize(*args, **kwargs)
            self._initialized = True

    def initialize(self, *args, **kwargs):
        pass

    @classmethod
    def getInstance(cls):
        if cls not in cls._instances:
            cls()
        return cls._instances[cls]


class EventTiming(Enum):
    """Constants for event timing phases"""
    BEFORE = "BEFORE"
    AFTER = "AFTER"


class EventService(Singleton):
    """
    Dispatches events to every subscribed component.
    Thread-safe singleton on top of the 'signalslot' library.
    """

    def initialize(self):
        self.signals = {}
        self._signalsLock = threading.Lock()

    def reset(self):
        """
        Disconnect every observer but keep the registered events.
        Test suites use it for isolation.
        """
        with self._signalsLock:
            for signalObjects in self.signals.values():
                for signalObject in signalObjects:
                    for observer in list(signalObject._slots):
                        signalObject.disconnect(observer)

    def _normalizeTiming(self, timing):
        if timing is None or isinstance(timing, EventTiming):
            return timing

        if isinstance(timing, str):
            try:
                return EventTiming(timing.upper())
            except ValueError:
                raise ValueError(f"Invalid timing value: '{timing}'. Must be 'BEFORE' or 'AFTER'.")

        raise ValueError(f"Timing must be EventTiming enum, string, or None. Got: {type(timing)}")

    def isRegistered(self, event):
        return event in self.signals

    def register(self, event):
        """Register a new event by creating its Signal objects."""
        with self._signalsLock:
            if self.isRegistered(event):
                return False
            self.signals[event] = (Signal(), Signal())
            return True

    def trigger(self, event, timing=None, **kwargs):
        """
        Trigger an event, calling all connected observers (slots).
        Observers receive keyword arguments only and must accept **kwargs.
        """
        timing = self._normalizeTiming(timing)

        signalObjects = self.signals.get(event)
        if not signalObjects:
            return

        beforeSignal, afterSignal = signalObjects

        if timing in (EventTiming.BEFORE, None):
            beforeSignal.emit(**kwargs)

        if timing in (EventTiming.AFTER, None):
            afterSignal.emit(**kwargs)

    def subscribe(self, event, observer, timing=EventTiming.AFTER):
        if not self.isRegistered(event):
            raise KeyError(f"You must register event '{event}' first.")

        timing = self._normalizeTiming(timing)
        if timing not in (EventTiming.BEFORE, EventTiming.AFTER):
            raise ValueError("Timing must be EventTiming.BEFORE or EventTiming.AFTER.")

        signalObject = self.signals[event][0 if timing == EventTiming.BEFORE else 1]
        if observer not in signalObject._slots:
            signalObject.connect(observer)

    def unsubscribe(self, event, observer, timing=None):
        if not self.isRegistered(event):
            return

        timing = self._normalizeTiming(timing)
        timingsToCheck = [timing] if timing else [EventTiming.BEFORE, EventTiming.AFTER]

        for t in timingsToCheck:
            signalObject = self.signals[event][0 if t == EventTiming.BEFORE else 1]
            if observer in signalObject._slots:
                signalObject.disconnect(observer)


class Event:
    """ Simple Event wrapper"""

    def __init__(self, key):
        self.key = key

        self.eventService = EventService.getInstance()

    def subscribe(self, observer, timing=EventTiming.AFTER):
        return self.eventService.subscribe(self.key, observer, timing=timing)

    def unsubscribe(self, observer, timing=None):
        return self.eventService.unsubscribe(self.key, observer, timing=timing)

    def trigger(self, **kwargs):
        return self.eventService.trigger(self.key, **kwargs)


# Event pattern: RESTful + /[action] (create, update, get, delete, others...)
class ShelfEvent:
    listingBuild = Event('/listing/build')
    transferAbort = Event('/transfer/abort')


eventService = EventService.getInstance()

eventService.register(ShelfEvent.listingBuild.key)
eventService.register(ShelfEvent.transferAbort.key)
