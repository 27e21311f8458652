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


"""Settings, limits and argument validation shared by mcollection modules."""

import collections
from collections import abc

from bson.son import SON
from pymongo import collation, common
from pymongo.read_preferences import ReadPreference
from pymongo.write_concern import WriteConcern

from .errors import ClientArgumentError

# Limits a transport reports when it knows nothing better. They match the
# defaults of a current MongoDB server.
MAX_BSON_SIZE = 16 * (1024 ** 2)
MAX_MESSAGE_SIZE = 48000000
MAX_WRITE_BATCH_SIZE = 100000

# Documents in a first batch when the caller asks for none in particular.
DEFAULT_BATCH_SIZE = 101

# The server reaps idle cursors after cursorTimeoutMillis (ten minutes by
# default). The client stops waiting for an abandoned cursor at the same
# point and releases it itself.
CURSOR_IDLE_TIMEOUT = 600

ASCENDING = 1
DESCENDING = -1

_DEFAULT_WRITE_CONCERN = WriteConcern()


class Namespace(collections.namedtuple('Namespace', ['database', 'collection'])):
    """A (database, collection) pair identifying a collection."""

    __slots__ = ()

    def __new__(cls, database, collection):
        _validate_database_name(database)
        _validate_collection_name(collection)
        return super().__new__(cls, database, collection)

    @property
    def full_name(self):
        return '%s.%s' % (self.database, self.collection)

    def __str__(self):
        return self.full_name


class Settings(collections.namedtuple(
        'Settings', ['read_preference', 'write_concern', 'codec', 'timeout'])):
    """The immutable options a collection handle runs every operation with.

    Use :meth:`_replace` to get a copy with some fields changed; the codec
    object itself is shared, never copied.
    """

    __slots__ = ()


def make_settings(codec, read_preference=None, write_concern=None,
                  timeout=None):
    if read_preference is None:
        read_preference = ReadPreference.PRIMARY
    else:
        common.validate_read_preference('read_preference', read_preference)

    if write_concern is None:
        write_concern = _DEFAULT_WRITE_CONCERN
    elif not isinstance(write_concern, WriteConcern):
        raise TypeError("write_concern must be an instance of "
                        "pymongo.write_concern.WriteConcern, not %r"
                        % (write_concern,))

    if timeout is not None:
        timeout = common.validate_positive_float('timeout', timeout)
    return Settings(read_preference, write_concern, codec, timeout)


def _validate_database_name(name):
    if not isinstance(name, str):
        raise TypeError("database name must be an instance of str, not %r"
                        % (name,))
    if not name:
        raise ClientArgumentError("database name cannot be empty")
    for invalid in (' ', '.', '$', '/', '\\', '\x00', '"'):
        if invalid in name:
            raise ClientArgumentError(
                "database names cannot contain the character %r" % invalid)


def _validate_collection_name(name):
    if not isinstance(name, str):
        raise TypeError("collection name must be an instance of str, not %r"
                        % (name,))
    if not name:
        raise ClientArgumentError("collection names cannot be empty")
    if '..' in name:
        raise ClientArgumentError("collection names cannot contain '..'")
    if '$' in name:
        raise ClientArgumentError("collection names must not contain '$'")
    if name[0] == '.' or name[-1] == '.':
        raise ClientArgumentError(
            "collection names must not start or end with '.'")
    if '\x00' in name:
        raise ClientArgumentError(
            "collection names must not contain the null character")


def validate_argument(validator, option, value):
    """Run a :mod:`pymongo.common` validator on an operation argument.

    Operation arguments are part of the call contract, so a bad one is a
    :class:`~mcollection.errors.ClientArgumentError` rather than the
    TypeError or ValueError the validator raises.
    """
    try:
        return validator(option, value)
    except (TypeError, ValueError) as exc:
        raise ClientArgumentError(str(exc)) from exc


def validate_is_mapping(option, value):
    return validate_argument(common.validate_is_mapping, option, value)


def validate_boolean(option, value):
    return validate_argument(common.validate_boolean, option, value)


def validate_non_negative_integer(option, value):
    return validate_argument(common.validate_non_negative_integer,
                             option, value)


def validate_collation_or_none(value):
    """Return the document form of a Collation, mapping or None."""
    try:
        return collation.validate_collation_or_none(value)
    except TypeError as exc:
        raise ClientArgumentError(str(exc)) from exc


def validate_ok_for_replace(replacement):
    validate_is_mapping('replacement', replacement)
    if replacement and next(iter(replacement)).startswith('$'):
        raise ClientArgumentError('replacement can not include $ operators')


def validate_ok_for_update(update):
    if isinstance(update, list):
        if not update:
            raise ClientArgumentError('update must not be an empty pipeline')
        for stage in update:
            validate_is_mapping('update pipeline stage', stage)
        return
    validate_is_mapping('update', update)
    if not update:
        raise ClientArgumentError('update cannot be empty')
    first = next(iter(update))
    if not first.startswith('$'):
        raise ClientArgumentError('update only works with $ operators')


def index_document(index_list):
    """Turn a sort specification into an ordered document.

    Takes a key name, a list of (key, direction) pairs, or a mapping.
    """
    if isinstance(index_list, abc.Mapping):
        return SON(index_list)
    if isinstance(index_list, str):
        return SON([(index_list, ASCENDING)])
    if not isinstance(index_list, (list, tuple)):
        raise ClientArgumentError(
            "sort must be a key name, a mapping or a list of "
            "(key, direction) pairs, not %r" % (index_list,))
    if not index_list:
        raise ClientArgumentError("sort must not be empty")

    index = SON()
    for item in index_list:
        if isinstance(item, str):
            index[item] = ASCENDING
            continue
        try:
            key, value = item
        except (TypeError, ValueError):
            raise ClientArgumentError(
                "sort items must be (key, direction) pairs, not %r"
                % (item,)) from None
        if not isinstance(key, str):
            raise ClientArgumentError(
                "first item in each sort pair must be an instance of str")
        index[key] = value
    return index


def fields_list_to_dict(fields, option_name):
    """Turn a projection given as a list of names into a document.

    ["a", "b.c"] becomes {"a": 1, "b.c": 1}.
    """
    if isinstance(fields, abc.Mapping):
        return fields
    if isinstance(fields, (abc.Sequence, abc.Set)) and not isinstance(
            fields, str):
        if not all(isinstance(field, str) for field in fields):
            raise ClientArgumentError(
                "%s must be a list of key names, each an instance of str"
                % (option_name,))
        return dict.fromkeys(fields, 1)
    raise ClientArgumentError(
        "%s must be a mapping or list of key names" % (option_name,))
