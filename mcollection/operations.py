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


"""Write models for bulk writes, and find-and-modify options."""

from .common import (validate_boolean,
                     validate_collation_or_none,
                     validate_is_mapping,
                     validate_ok_for_update)
from .errors import ClientArgumentError

# Statement families. A write command carries statements of one family.
_INSERT = 0
_UPDATE = 1
_DELETE = 2

_OP_NAMES = {_INSERT: 'insert', _UPDATE: 'update', _DELETE: 'delete'}


class ReturnDocument(object):
    """Which version of the document a find-and-modify returns."""

    BEFORE = False
    """The document as it was before the update, or ``None`` if nothing
    matched."""

    AFTER = True
    """The document after the update or replacement, or the upserted one."""


def _validate_array_filters(array_filters):
    if array_filters is None:
        return None
    if not isinstance(array_filters, list):
        raise ClientArgumentError("array_filters must be a list")
    return array_filters


class WriteModel(object):
    """One request of a bulk write.

    Models are tagged: :attr:`kind` names the request and :attr:`op_type`
    the statement family it is sent with. Use the concrete classes below.
    """

    __slots__ = ('_filter', '_doc', '_upsert', '_collation',
                 '_array_filters', '_hint')

    kind = None
    op_type = None
    multi = False

    def __init__(self, filter=None, doc=None, upsert=None, collation=None,
                 array_filters=None, hint=None):
        if filter is not None:
            validate_is_mapping('filter', filter)
        if upsert is not None:
            validate_boolean('upsert', upsert)
        self._filter = filter
        self._doc = doc
        self._upsert = upsert
        self._collation = validate_collation_or_none(collation)
        self._array_filters = _validate_array_filters(array_filters)
        self._hint = hint

    @property
    def filter(self):
        return self._filter

    @property
    def upsert(self):
        return self._upsert

    @property
    def collation(self):
        return self._collation

    @property
    def array_filters(self):
        return self._array_filters

    @property
    def hint(self):
        return self._hint

    def _key(self):
        return (self._filter, self._doc, self._upsert, self._collation,
                self._array_filters, self._hint)

    def __eq__(self, other):
        if type(other) is type(self):
            return self._key() == other._key()
        return NotImplemented

    def __ne__(self, other):
        return not self == other

    def __repr__(self):
        return '%s(%r, %r)' % (self.__class__.__name__, self._filter,
                               self._doc)


class InsertOne(WriteModel):
    """Insert one document."""

    __slots__ = ()
    kind = 'insertOne'
    op_type = _INSERT

    def __init__(self, document):
        super().__init__(doc=document)

    @property
    def document(self):
        return self._doc

    def __repr__(self):
        return 'InsertOne(%r)' % (self._doc,)


class DeleteOne(WriteModel):
    """Delete at most one document matching `filter`."""

    __slots__ = ()
    kind = 'deleteOne'
    op_type = _DELETE

    def __init__(self, filter, collation=None, hint=None):
        validate_is_mapping('filter', filter)
        super().__init__(filter, collation=collation, hint=hint)

    def __repr__(self):
        return '%s(%r, %r)' % (self.__class__.__name__, self._filter,
                               self._collation)


class DeleteMany(DeleteOne):
    """Delete every document matching `filter`."""

    __slots__ = ()
    kind = 'deleteMany'
    multi = True


class ReplaceOne(WriteModel):
    """Replace at most one document matching `filter`."""

    __slots__ = ()
    kind = 'replaceOne'
    op_type = _UPDATE

    def __init__(self, filter, replacement, upsert=False, collation=None,
                 hint=None):
        validate_is_mapping('filter', filter)
        super().__init__(filter, replacement, upsert, collation, hint=hint)

    @property
    def replacement(self):
        return self._doc


class UpdateOne(WriteModel):
    """Apply `update` to at most one document matching `filter`.

    `update` is a document of update operators or a list of aggregation
    stages.
    """

    __slots__ = ()
    kind = 'updateOne'
    op_type = _UPDATE

    def __init__(self, filter, update, upsert=False, collation=None,
                 array_filters=None, hint=None):
        validate_is_mapping('filter', filter)
        validate_ok_for_update(update)
        super().__init__(filter, update, upsert, collation, array_filters,
                         hint)

    @property
    def update(self):
        return self._doc


class UpdateMany(UpdateOne):
    """Apply `update` to every document matching `filter`."""

    __slots__ = ()
    kind = 'updateMany'
    multi = True
