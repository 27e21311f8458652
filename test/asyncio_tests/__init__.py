# Copyright 2014 MongoDB, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""Utilities for testing mcollection with asyncio."""

import asyncio
import functools
import gc
import inspect
import unittest
from asyncio import ensure_future

from mcollection import mcollection_asyncio
from test.mock_server import MockServer
from test.utils import get_async_test_timeout


class _TestMethodWrapper(object):
    """Wraps a test method to raise an error if it returns a value.

    This is mainly used to detect undecorated coroutines (if a test
    method awaits it must use a decorator to run the coroutine),
    but will also detect other kinds of return values (these are not
    necessarily errors, but we alert anyway since there is no good
    reason to return a value from a test).

    Adapted from Tornado's test framework.
    """

    def __init__(self, orig_method):
        self.orig_method = orig_method

    def __call__(self):
        result = self.orig_method()
        if inspect.iscoroutine(result):
            # Close the undecorated coroutine to avoid this warning:
            # RuntimeWarning: coroutine 'test_foo' was never awaited
            result.close()
            raise TypeError("Coroutine test methods should be decorated "
                            "with @asyncio_test")
        elif result is not None:
            raise ValueError("Return value from test method ignored: %r"
                             % result)

    def __getattr__(self, name):
        """Proxy all unknown attributes to the original method.

        This is important for some of the decorators in the `unittest`
        module, such as `unittest.skipIf`.
        """
        return getattr(self.orig_method, name)


class AsyncIOTestCase(unittest.TestCase):
    longMessage = True  # Used by unittest.TestCase

    def __init__(self, methodName='runTest'):
        super().__init__(methodName)

        # It's easy to forget the @asyncio_test decorator, but if you do
        # the test will silently be ignored because nothing will await
        # the coroutine. Replace the test method with a wrapper that will
        # make sure it's not an undecorated coroutine.
        # (Adapted from Tornado's AsyncTestCase.)
        # pytest instantiates each case with the default "runTest" while
        # collecting, and no case here defines that method.
        if methodName != 'runTest' or hasattr(self, methodName):
            setattr(self, methodName, _TestMethodWrapper(
                getattr(self, methodName)))

    def setUp(self):
        super().setUp()

        asyncio.set_event_loop(None)
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)

        self.server = self.mock_server()
        self.collection = self.asyncio_collection()

    def mock_server(self, **kwargs):
        return MockServer(**kwargs)

    def asyncio_collection(self, name='test_collection', server=None,
                           **kwargs):
        """Get an AsyncIOCollection on the test database."""
        return mcollection_asyncio.AsyncIOCollection(
            server or self.server, 'mcollection_test', name, **kwargs)

    async def make_test_data(self, n=200):
        await self.collection.insert_many([{'_id': i} for i in range(n)])
        # Leave the request log to the test.
        del self.server.requests[:]

    make_test_data.__test__ = False

    def tearDown(self):
        self.loop.stop()
        self.loop.run_forever()
        self.loop.close()
        asyncio.set_event_loop(None)
        gc.collect()


def asyncio_test(func=None, timeout=None):
    """Decorator for coroutine methods of AsyncIOTestCase::

        class MyTestCase(AsyncIOTestCase):
            @asyncio_test
            async def test(self):
                # Your test code here....
                pass

    Default timeout is 5 seconds. Override like::

        class MyTestCase(AsyncIOTestCase):
            @asyncio_test(timeout=10)
            async def test(self):
                # Your test code here....
                pass

    You can also set the ASYNC_TEST_TIMEOUT environment variable to a number
    of seconds. The final timeout is the ASYNC_TEST_TIMEOUT or the timeout
    in the test (5 seconds or the passed-in timeout), whichever is longest.
    """
    def wrap(f):
        @functools.wraps(f)
        def wrapped(self, *args, **kwargs):
            if timeout is None:
                actual_timeout = get_async_test_timeout()
            else:
                actual_timeout = get_async_test_timeout(timeout)

            coro_exc = None

            def exc_handler(loop, context):
                nonlocal coro_exc
                # Exception is optional.
                coro_exc = context.get('exception', Exception(context))

                # Raise CancelledError from run_until_complete below.
                task.cancel()

            self.loop.set_exception_handler(exc_handler)
            coro = asyncio.wait_for(f(self, *args, **kwargs), actual_timeout)
            task = ensure_future(coro, loop=self.loop)
            try:
                self.loop.run_until_complete(task)
            except BaseException:
                if coro_exc:
                    # Raise the error thrown in on_timeout, with only the
                    # traceback from the coroutine itself, not from
                    # run_until_complete.
                    raise coro_exc from None

                raise

        return wrapped

    if func is not None:
        # Used like:
        #     @asyncio_test
        #     async def f(self):
        #         pass
        if not inspect.isfunction(func):
            msg = ("%r is not a test method. Pass a timeout as"
                   " a keyword argument, like @asyncio_test(timeout=7)")
            raise TypeError(msg % func)
        return wrap(func)
    else:
        # Used like @asyncio_test(timeout=10)
        return wrap
