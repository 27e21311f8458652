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

"""asyncio compatibility layer for mcollection."""

import asyncio
import functools

CLASS_PREFIX = 'AsyncIO'


def get_event_loop():
    return asyncio.get_running_loop()


def call_later(loop, delay, callback, *args, **kwargs):
    if kwargs:
        return loop.call_later(delay,
                               functools.partial(callback, *args, **kwargs))
    else:
        return loop.call_later(delay, callback, *args)


def call_later_cancel(loop, handle):
    handle.cancel()


def with_timeout(coro, timeout):
    """Return an awaitable for `coro` that gives up after `timeout` seconds.

    Giving up cancels `coro` and raises :exc:`asyncio.TimeoutError`.
    """
    if timeout is None:
        return coro
    return asyncio.wait_for(coro, timeout)


timeout_errors = (asyncio.TimeoutError,)
