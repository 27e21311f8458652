# Copyright 2024-present MongoDB, Inc.
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


"""Send built commands through a transport and check the replies."""

import logging
import time
from collections import abc

from pymongo.errors import ConnectionFailure
from pymongo.read_preferences import ReadPreference

from .errors import (OperationCancelled,
                     ProtocolError,
                     ServerCommandError)

_LOGGER = logging.getLogger(__name__)


def _check_command_response(command_name, response):
    """Raise if `response` is malformed or reports a command failure."""
    if not isinstance(response, abc.Mapping):
        raise ProtocolError("%s: expected a reply document, got %r"
                            % (command_name, response))
    if 'ok' not in response:
        raise ProtocolError("%s: reply has no 'ok' field: %r"
                            % (command_name, response))
    if not response['ok']:
        message = response.get('errmsg') or '%s failed' % command_name
        raise ServerCommandError(message, response.get('code'), response)
    return response


class OperationExecutor(object):
    """Runs each command as exactly one round trip through a transport.

    Nothing is retried. A failed or timed-out command raises; the caller's
    own task cancellation propagates into the pending round trip as
    :exc:`asyncio.CancelledError`.
    """

    def __init__(self, transport, framework, timeout=None):
        self.transport = transport
        self._framework = framework
        self._timeout = timeout

    async def execute_read(self, database_name, command, read_preference):
        """Run a read command on a server `read_preference` allows."""
        return await self._run(
            database_name, next(iter(command)),
            lambda: self.transport.send(database_name, command,
                                        read_preference))

    async def execute_write(self, database_name, command):
        """Run a write command on the primary."""
        return await self._run(
            database_name, next(iter(command)),
            lambda: self.transport.send(database_name, command,
                                        ReadPreference.PRIMARY))

    async def get_more(self, namespace, cursor_id, batch_size):
        return await self._run(
            namespace.database, 'getMore',
            lambda: self.transport.get_more(namespace, cursor_id,
                                            batch_size))

    def kill_cursor(self, namespace, cursor_id):
        _LOGGER.debug("Killing cursor %d on %s", cursor_id, namespace)
        self.transport.kill_cursor(namespace, cursor_id)

    async def _run(self, database_name, command_name, send):
        _LOGGER.debug("Running %s on %s", command_name, database_name)
        start = time.monotonic()

        async def round_trip():
            # Mapped inside the deadline: a socket TimeoutError is not ours.
            try:
                return await send()
            except (OSError, ConnectionFailure) as exc:
                _LOGGER.debug("%s failed in transport: %s", command_name, exc)
                raise ProtocolError(
                    "%s failed: %s" % (command_name, exc)) from exc

        if self._timeout is None:
            response = await round_trip()
        else:
            try:
                response = await self._framework.with_timeout(
                    round_trip(), self._timeout)
            except self._framework.timeout_errors:
                _LOGGER.debug("%s abandoned after %.3fs", command_name,
                              time.monotonic() - start)
                raise OperationCancelled(
                    "%s did not complete within %s seconds"
                    % (command_name, self._timeout)) from None

        try:
            _check_command_response(command_name, response)
        except (ProtocolError, ServerCommandError) as exc:
            _LOGGER.debug("%s failed after %.3fs: %s", command_name,
                          time.monotonic() - start, exc)
            raise

        _LOGGER.debug("%s succeeded in %.3fs", command_name,
                      time.monotonic() - start)
        return response
