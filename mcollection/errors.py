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


"""Exceptions raised by mcollection.

Every error derives from :class:`CollectionError`, which is itself a
:class:`~pymongo.errors.PyMongoError`, so code that already catches
PyMongo's base exception keeps working.
"""

from pymongo.errors import PyMongoError

# Server error codes mcollection inspects or produces itself.
DUPLICATE_KEY_CODES = (11000, 11001, 12582)
BSON_OBJECT_TOO_LARGE = 10334


class CollectionError(PyMongoError):
    """Base class for all mcollection exceptions."""


class ClientArgumentError(CollectionError):
    """An operation was called with invalid or conflicting arguments.

    Raised before anything is sent to the server.
    """


class InvalidOperation(ClientArgumentError):
    """A handle or cursor was used in a way it does not allow."""


class CursorClosedError(InvalidOperation):
    """Read from a cursor that was closed or reaped."""


class CodecError(CollectionError):
    """A document could not be encoded or decoded."""


class ProtocolError(CollectionError):
    """The transport failed or the server sent a malformed response."""


class OperationCancelled(CollectionError):
    """The client stopped waiting for a response.

    The request may or may not have reached the server.
    """


class ServerCommandError(CollectionError):
    """The server rejected a command.

    :Parameters:
      - `message`: the server's error message
      - `code` (optional): the server's error code
      - `details` (optional): the full server response
    """

    def __init__(self, message, code=None, details=None):
        error_labels = None
        if details is not None:
            error_labels = details.get('errorLabels')
        super().__init__(message, error_labels)
        self.__code = code
        self.__details = details

    @property
    def code(self):
        """The error code returned by the server, if any."""
        return self.__code

    @property
    def code_name(self):
        """The symbolic name of :attr:`code`, if the server sent one."""
        if self.__details:
            return self.__details.get('codeName')
        return None

    @property
    def details(self):
        """The complete error document returned by the server.

        For a bulk write this is the merged result of every batch that ran.
        """
        return self.__details

    def __str__(self):
        output = super().__str__()
        if self.__code is not None:
            output = '%s, code: %s' % (output, self.__code)
        return output


class WriteError(ServerCommandError):
    """A single-document write failed."""


class DuplicateKeyError(WriteError):
    """A write would have created a duplicate value in a unique index."""


class WriteConcernError(ServerCommandError):
    """The write was applied but its write concern was not satisfied."""


class BulkWriteError(ServerCommandError):
    """One or more models of a bulk write failed.

    :attr:`details` holds the merged raw result; :attr:`result` is a
    :class:`~pymongo.results.BulkWriteResult` over the same counts so far.
    """

    def __init__(self, details, result=None):
        super().__init__('batch op errors occurred', 65, details)
        self.result = result

    @property
    def write_errors(self):
        """Per-model errors, each carrying the model's original index."""
        return self.details.get('writeErrors', [])

    def __reduce__(self):
        return self.__class__, (self.details, self.result)
