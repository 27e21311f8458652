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


"""The interface mcollection needs from a connection to the server."""

import abc

from .common import MAX_BSON_SIZE, MAX_MESSAGE_SIZE, MAX_WRITE_BATCH_SIZE


class Transport(abc.ABC):
    """Runs commands against a server or cluster.

    mcollection builds command documents and interprets the replies; a
    transport takes care of everything between the two: server selection,
    connections, authentication, framing and retries, if any. Replies are
    decoded documents (mappings).

    Subclasses may override the size limits with the values the connected
    server advertises.
    """

    #: Largest BSON document the server accepts.
    max_bson_size = MAX_BSON_SIZE

    #: Largest message, in bytes, a single write batch may fill.
    max_message_size = MAX_MESSAGE_SIZE

    #: Most statements a single write command may carry.
    max_write_batch_size = MAX_WRITE_BATCH_SIZE

    @abc.abstractmethod
    async def send(self, database_name, command, read_preference):
        """Run `command` on `database_name` and return the reply document.

        `read_preference` selects the server: reads pass the handle's
        preference, writes always pass ``ReadPreference.PRIMARY``.
        """

    @abc.abstractmethod
    async def get_more(self, namespace, cursor_id, batch_size):
        """Fetch the next batch of a server cursor.

        Returns the reply to a ``getMore`` command on `namespace` (a
        :class:`~mcollection.common.Namespace`). `batch_size` is ``None``
        to let the server choose.
        """

    @abc.abstractmethod
    def kill_cursor(self, namespace, cursor_id):
        """Release a server cursor. Fire and forget: must not block or raise."""
