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

import unittest

from http import HTTPStatus

from gameshelf.AccessLog import AccessLog
from gameshelf.Auth import AuthorizeStage, HTTPAuth
from gameshelf.Errors import NotFoundError
from gameshelf.HTTP import Response, textResponse
from gameshelf.Pipeline import LoggingStage, MethodValidator, Pipeline, Route, Router, Stage, TimingStage

from .ShelfTestBase import makeRequest


class RecordingAccessLog(AccessLog):

    def __init__(self):
        super().__init__('tiny')
        self.entries = []

    def log(self, request, response):
        self.entries.append((request.path, int(response.status)))
        return ''


class RecordingStage(Stage):

    def __init__(self, name, calls, answer=None):
        self.name = name
        self.calls = calls
        self.answer = answer

    def before(self, request):
        self.calls.append(f'{self.name}.before')
        return self.answer

    def after(self, request, response):
        self.calls.append(f'{self.name}.after')
        return response


def okHandler(request):
    return textResponse('ok')


class PipelineOrderTest(unittest.TestCase):

    def setUp(self):
        self.calls = []
        self.accessLog = RecordingAccessLog()

    def router(self, request):
        self.calls.append('router')
        return textResponse('routed')

    def testBeforeInOrderAfterInReverse(self):
        pipeline = Pipeline(
            [RecordingStage('a', self.calls), RecordingStage('b', self.calls)], self.router, self.accessLog
        )
        response = pipeline.handle(makeRequest())

        self.assertEqual(response.body, b'routed')
        self.assertEqual(self.calls, ['a.before', 'b.before', 'router', 'b.after', 'a.after'])

    def testEarlyAnswerSkipsRestAndRouter(self):
        early = Response(status=HTTPStatus.ACCEPTED)
        pipeline = Pipeline(
            [
                RecordingStage('a', self.calls),
                RecordingStage('b', self.calls, answer=early),
                RecordingStage('c', self.calls),
            ],
            self.router,
            self.accessLog,
        )
        response = pipeline.handle(makeRequest())

        self.assertIs(response, early)
        self.assertEqual(self.calls, ['a.before', 'b.before', 'b.after', 'a.after'])
        self.assertEqual(self.accessLog.entries, [('/', 202)])


class PipelineErrorTest(unittest.TestCase):

    def setUp(self):
        self.accessLog = RecordingAccessLog()

    def makePipeline(self, router, auth=HTTPAuth()):
        return Pipeline([AuthorizeStage(auth), TimingStage(), LoggingStage(self.accessLog)], router, self.accessLog)

    def testSuccessIsLoggedOnce(self):
        response = self.makePipeline(okHandler).handle(makeRequest('GET', '/health'))

        self.assertEqual(response.status, HTTPStatus.OK)
        self.assertIn('X-Response-Time', response.headers)
        self.assertEqual(self.accessLog.entries, [('/health', 200)])

    def testServiceErrorIsTranslatedAndLoggedOnce(self):

        def router(request):
            raise NotFoundError()

        response = self.makePipeline(router).handle(makeRequest('GET', '/files/games/x.nsp'))

        self.assertEqual(response.status, HTTPStatus.NOT_FOUND)
        self.assertEqual(response.body, b'File not found')
        self.assertEqual(self.accessLog.entries, [('/files/games/x.nsp', 404)])

    def testUnexpectedErrorBecomesGeneric500(self):

        def router(request):
            raise RuntimeError('secret detail /srv/games')

        with self.assertLogs('gameshelf.Pipeline', level='ERROR') as captured:
            response = self.makePipeline(router).handle(makeRequest())

        self.assertEqual(response.status, HTTPStatus.INTERNAL_SERVER_ERROR)
        self.assertEqual(response.body, b'Internal server error')
        self.assertNotIn(b'secret', response.body)
        self.assertIsNotNone(captured.records[0].exc_info)
        self.assertEqual(self.accessLog.entries, [('/', 500)])

    def testAuthFailureIsLoggedOnce(self):
        response = self.makePipeline(okHandler, auth=HTTPAuth('alice', 'pw')).handle(makeRequest())

        self.assertEqual(response.status, HTTPStatus.UNAUTHORIZED)
        self.assertIn('WWW-Authenticate', response.headers)
        self.assertEqual(self.accessLog.entries, [('/', 401)])

    def testServiceErrorRunsAfterHooks(self):

        def router(request):
            raise NotFoundError()

        response = self.makePipeline(router).handle(makeRequest('GET', '/files/games/x.nsp'))

        self.assertTrue(response.headers['X-Response-Time'].endswith('ms'))
        self.assertEqual(response.headers['Content-Type'], 'text/plain; charset=utf-8')

    def testErrorUnwindsOnlyEnteredStages(self):
        calls = []

        def router(request):
            calls.append('router')
            raise NotFoundError()

        pipeline = Pipeline(
            [RecordingStage('a', calls), RecordingStage('b', calls)], router, self.accessLog
        )
        response = pipeline.handle(makeRequest())

        self.assertEqual(response.status, HTTPStatus.NOT_FOUND)
        self.assertEqual(calls, ['a.before', 'b.before', 'router', 'b.after', 'a.after'])
        # No LoggingStage here, the pipeline writes the line itself
        self.assertEqual(self.accessLog.entries, [('/', 404)])


class MethodValidatorTest(unittest.TestCase):

    def setUp(self):
        self.validator = MethodValidator(okHandler)

    def testGetAndHeadPass(self):
        for method in ('GET', 'HEAD', 'get'):
            with self.subTest(method=method):
                self.assertEqual(self.validator(makeRequest(method)).status, HTTPStatus.OK)

    def testOptionsPreflight(self):
        response = self.validator(makeRequest('OPTIONS'))

        self.assertEqual(response.status, HTTPStatus.NO_CONTENT)
        self.assertEqual(response.headers['Allow'], 'GET, HEAD')
        self.assertEqual(response.headers['Access-Control-Allow-Methods'], 'GET, HEAD')
        self.assertEqual(response.headers['Access-Control-Max-Age'], '86400')
        self.assertEqual(response.body, b'')

    def testOtherMethodsRejected(self):
        accessLog = RecordingAccessLog()
        pipeline = Pipeline([], Router([Route.fallback(okHandler)]), accessLog)

        for method in ('POST', 'PUT', 'DELETE', 'PATCH', 'TRACE', 'PROPFIND'):
            with self.subTest(method=method):
                response = pipeline.handle(makeRequest(method))
                self.assertEqual(response.status, HTTPStatus.METHOD_NOT_ALLOWED)
                self.assertEqual(response.headers['Allow'], 'GET, HEAD')


class RouterTest(unittest.TestCase):

    def testFirstMatchWins(self):
        router = Router([
            Route.exact(['/a'], lambda request: textResponse('exact')),
            Route.prefix('/a', lambda request: textResponse('prefix')),
            Route.fallback(lambda request: textResponse('fallback')),
        ])

        self.assertEqual(router(makeRequest('GET', '/a')).body, b'exact')
        self.assertEqual(router(makeRequest('GET', '/a/b')).body, b'prefix')
        self.assertEqual(router(makeRequest('GET', '/zzz')).body, b'fallback')

    def testNoRouteIs404(self):
        pipeline = Pipeline([], Router(), RecordingAccessLog())
        self.assertEqual(pipeline.handle(makeRequest()).status, HTTPStatus.NOT_FOUND)


if __name__ == '__main__':
    unittest.main()
