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


"""Framework-agnostic core of mcollection."""

import collections
import functools
import logging
from collections import abc

from pymongo.results import (DeleteResult,
                             InsertManyResult,
                             InsertOneResult,
                             UpdateResult)

from . import commands
from .bulk import _Bulk, _encode_model
from .codec import DocumentCodec
from .common import (CURSOR_IDLE_TIMEOUT,
                     make_settings,
                     Namespace,
                     validate_boolean,
                     validate_collation_or_none,
                     validate_is_mapping,
                     validate_non_negative_integer,
                     validate_ok_for_replace,
                     validate_ok_for_update)
from .errors import (BSON_OBJECT_TOO_LARGE,
                     ClientArgumentError,
                     CursorClosedError,
                     DUPLICATE_KEY_CODES,
                     DuplicateKeyError,
                     InvalidOperation,
                     ProtocolError,
                     ServerCommandError,
                     WriteConcernError,
                     WriteError)
from .executor import OperationExecutor
from .metaprogramming import create_class_with_framework
from .operations import (DeleteMany,
                         DeleteOne,
                         InsertOne,
                         ReplaceOne,
                         ReturnDocument,
                         UpdateMany,
                         UpdateOne)
from .transport import Transport

_LOGGER = logging.getLogger(__name__)

# Old servers report a findAndModify that matched nothing as an error.
_NO_OBJ_ERROR = 'No matching object found'

_UNSET = object()


def _check_write_command_response(response, acknowledged):
    """Raise the first write error or write concern error in a reply."""
    if not acknowledged:
        return
    write_errors = response.get('writeErrors')
    if write_errors:
        error = write_errors[0]
        code = error.get('code')
        message = error.get('errmsg', 'write failed')
        if code in DUPLICATE_KEY_CODES:
            raise DuplicateKeyError(message, code, error)
        raise WriteError(message, code, error)
    wc_error = response.get('writeConcernError')
    if wc_error:
        raise WriteConcernError(wc_error.get('errmsg', 'write concern error'),
                                wc_error.get('code'), wc_error)


class AgnosticCollection(object):
    __agnostic_class_name__ = 'Collection'

    def __init__(self, transport, database_name, name, read_preference=None,
                 write_concern=None, codec=None, timeout=None,
                 _namespace=None):
        """A handle on one collection.

        The handle holds no state besides its settings, which never change,
        so it may be shared freely between tasks. Use
        :meth:`with_read_preference`, :meth:`with_write_concern` or
        :meth:`with_options` to get a handle with different settings.

        :Parameters:
          - `transport`: a :class:`~mcollection.transport.Transport`
          - `database_name`: the database the collection lives in
          - `name`: the collection's name
          - `read_preference` (optional): the read preference for reads.
            Defaults to ``ReadPreference.PRIMARY``. See
            :mod:`~pymongo.read_preferences` for options.
          - `write_concern` (optional): a
            :class:`~pymongo.write_concern.WriteConcern`. Defaults to the
            server's default write concern.
          - `codec` (optional): a :class:`~mcollection.codec.DocumentCodec`
            converting application documents. Defaults to plain mappings.
          - `timeout` (optional): seconds to wait for each server round
            trip before raising
            :exc:`~mcollection.errors.OperationCancelled`. Defaults to
            waiting forever.
        """
        if not isinstance(transport, Transport):
            raise TypeError("transport must be an instance of "
                            "mcollection.transport.Transport, not %r"
                            % (transport,))
        if codec is None:
            codec = DocumentCodec()
        elif not isinstance(codec, DocumentCodec):
            raise TypeError("codec must be an instance of "
                            "mcollection.codec.DocumentCodec, not %r"
                            % (codec,))

        if _namespace is None:
            _namespace = Namespace(database_name, name)
        self.__namespace = _namespace
        self.__transport = transport
        self.__settings = make_settings(codec, read_preference,
                                        write_concern, timeout)
        self._executor = OperationExecutor(transport, self._framework,
                                           self.__settings.timeout)

    @property
    def namespace(self):
        """The :class:`~mcollection.common.Namespace` of this collection."""
        return self.__namespace

    @property
    def name(self):
        return self.__namespace.collection

    @property
    def database_name(self):
        return self.__namespace.database

    @property
    def full_name(self):
        """The full name of this collection, like ``"db.coll"``."""
        return self.__namespace.full_name

    @property
    def transport(self):
        return self.__transport

    @property
    def settings(self):
        """The immutable :class:`~mcollection.common.Settings` in use."""
        return self.__settings

    @property
    def read_preference(self):
        return self.__settings.read_preference

    @property
    def write_concern(self):
        return self.__settings.write_concern

    @property
    def codec(self):
        return self.__settings.codec

    @property
    def codec_options(self):
        return self.__settings.codec.codec_options

    def with_options(self, read_preference=None, write_concern=None,
                     timeout=_UNSET):
        """Get a handle on the same collection with different settings.

        Settings left out are copied from this handle. The new handle
        shares this handle's namespace, codec and transport; this handle is
        not changed.
        """
        settings = self.__settings
        if read_preference is None:
            read_preference = settings.read_preference
        if write_concern is None:
            write_concern = settings.write_concern
        if timeout is _UNSET:
            timeout = settings.timeout
        return self.__class__(
            self.__transport, None, None,
            read_preference=read_preference,
            write_concern=write_concern,
            codec=settings.codec,
            timeout=timeout,
            _namespace=self.__namespace)

    def with_read_preference(self, read_preference):
        """Get a handle that reads with `read_preference`."""
        if read_preference is None:
            raise ClientArgumentError("read_preference must not be None")
        return self.with_options(read_preference=read_preference)

    def with_write_concern(self, write_concern):
        """Get a handle that writes with `write_concern`."""
        if write_concern is None:
            raise ClientArgumentError("write_concern must not be None")
        return self.with_options(write_concern=write_concern)

    def __getattr__(self, name):
        # Dotted collection name, like "foo.bar".
        if name.startswith('_'):
            full_name = "%s.%s" % (self.name, name)
            raise AttributeError(
                "%s has no attribute %r. To access the %s"
                " collection, use collection['%s']." % (
                    self.__class__.__name__, name, full_name, name))

        return self[name]

    def __getitem__(self, name):
        """Get the sub-collection ``"<this collection>.<name>"``."""
        settings = self.__settings
        return self.__class__(
            self.__transport, self.database_name,
            '%s.%s' % (self.name, name),
            read_preference=settings.read_preference,
            write_concern=settings.write_concern,
            codec=settings.codec,
            timeout=settings.timeout)

    def __call__(self, *args, **kwargs):
        raise TypeError(
            "%s object is not callable. If you meant to call a method on "
            "the collection named '%s', no such method exists."
            % (self.__class__.__name__, self.name))

    def __eq__(self, other):
        if isinstance(other, self.__class__):
            return (self.__namespace == other.namespace and
                    self.__transport is other.transport)
        return NotImplemented

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(self.__namespace)

    def __repr__(self):
        return '%s(%r, %r)' % (self.__class__.__name__,
                               self.database_name, self.name)

    # Reads.

    def find(self, filter=None, projection=None, skip=0, limit=0, sort=None,
             batch_size=0, read_preference=None, comment=None,
             max_time_ms=None, no_cursor_timeout=False,
             allow_partial_results=False, collation=None, hint=None):
        """Create a cursor over the documents matching `filter`.

        ``find`` does no I/O and needs no ``await``: the query
        is sent when the cursor is first iterated::

          async for doc in collection.find({'x': 1}, sort=[('y', -1)]):
              print(doc)

        :Parameters:
          - `filter` (optional): a query document. Matches everything if
            omitted.
          - `projection` (optional): fields to return, as a list of names
            or a mapping of names to include (1) or exclude (0).
          - `skip` (optional): the number of documents to skip.
          - `limit` (optional): the most documents to return, 0 for no
            limit.
          - `sort` (optional): a key name, or a list of (key, direction)
            pairs.
          - `batch_size` (optional): the most documents per server batch.
          - `read_preference` (optional): overrides this handle's read
            preference for this query only.
          - `comment`, `max_time_ms`, `no_cursor_timeout`,
            `allow_partial_results`, `collation`, `hint` (optional): passed
            to the find command.
        """
        filter = self._encode_filter(filter)
        validate_non_negative_integer('skip', skip)
        validate_non_negative_integer('limit', limit)
        validate_non_negative_integer('batch_size', batch_size)
        validate_boolean('no_cursor_timeout', no_cursor_timeout)
        validate_boolean('allow_partial_results', allow_partial_results)
        build = functools.partial(
            commands.find_command, self.__namespace, filter,
            projection=projection, skip=skip, limit=limit, sort=sort,
            no_cursor_timeout=no_cursor_timeout,
            allow_partial_results=allow_partial_results,
            max_time_ms=max_time_ms,
            collation=validate_collation_or_none(collation),
            comment=comment, hint=hint)
        return self._cursor(build, batch_size, limit=limit,
                            read_preference=read_preference)

    async def find_one(self, filter=None, *args, **kwargs):
        """Get a single document, or ``None`` if nothing matches.

        Takes the same arguments as :meth:`find`. A `filter` that is not a
        mapping is taken as an ``_id`` value.
        """
        if filter is not None and not isinstance(filter, abc.Mapping):
            filter = {'_id': filter}
        kwargs['limit'] = 1
        async with self.find(filter, *args, **kwargs) as cursor:
            for document in await cursor.to_list(1):
                return document
        return None

    def aggregate(self, pipeline, batch_size=0, allow_disk_use=None,
                  max_time_ms=None, collation=None, comment=None, hint=None,
                  read_preference=None):
        """Run an aggregation pipeline; returns a cursor over its output.

        Stages run in the order given. A pipeline ending in ``$out`` or
        ``$merge`` writes its output, so it runs on the primary with this
        handle's write concern and its cursor yields nothing::

          pipeline = [{'$match': {'status': 'A'}},
                      {'$group': {'_id': '$cust_id',
                                  'total': {'$sum': '$amount'}}}]
          async for doc in collection.aggregate(pipeline):
              print(doc)

        As with :meth:`find`, nothing is sent until the cursor is iterated.
        """
        if not isinstance(pipeline, list):
            raise ClientArgumentError("pipeline must be a list")
        validate_non_negative_integer('batch_size', batch_size)
        pipeline = [self._encode_filter(stage, 'pipeline stage')
                    for stage in pipeline]
        is_write = commands.has_write_stage(pipeline)
        build = functools.partial(
            commands.aggregate_command, self.__namespace, pipeline,
            allow_disk_use=allow_disk_use, max_time_ms=max_time_ms,
            collation=validate_collation_or_none(collation),
            comment=comment, hint=hint, write_concern=self.write_concern)
        return self._cursor(build, batch_size, read_preference=read_preference,
                            is_write=is_write)

    def distinct(self, key, filter=None, max_time_ms=None, collation=None,
                 read_preference=None):
        """Get a cursor over the distinct values of `key`.

        Values come back as the server sent them; they are not decoded as
        documents.
        """
        if filter is not None:
            filter = self._encode_filter(filter)
        cmd = commands.distinct_command(
            self.__namespace, key, filter, max_time_ms,
            validate_collation_or_none(collation))
        return self._cursor(lambda batch_size=0: cmd, 0,
                            read_preference=read_preference,
                            unpack=commands.unpack_values_response,
                            decode=False)

    async def count(self, filter=None, skip=0, limit=0, max_time_ms=None,
                    collation=None, hint=None, read_preference=None):
        """Count the documents matching `filter`."""
        filter = self._encode_filter(filter)
        validate_non_negative_integer('skip', skip)
        validate_non_negative_integer('limit', limit)
        cmd = commands.count_command(
            self.__namespace, filter, skip, limit, max_time_ms,
            validate_collation_or_none(collation), hint)
        response = await self._executor.execute_read(
            self.database_name, cmd,
            read_preference or self.read_preference)
        try:
            return int(response['n'])
        except (KeyError, TypeError, ValueError):
            raise ProtocolError(
                "malformed count reply: %r" % (response,)) from None

    # Writes.

    async def bulk_write(self, requests, ordered=True,
                         bypass_document_validation=False):
        """Send a batch of write operations.

        `requests` is a list of :class:`~mcollection.operations.InsertOne`,
        :class:`~mcollection.operations.UpdateOne`,
        :class:`~mcollection.operations.UpdateMany`,
        :class:`~mcollection.operations.ReplaceOne`,
        :class:`~mcollection.operations.DeleteOne` or
        :class:`~mcollection.operations.DeleteMany`::

          result = await collection.bulk_write([
              InsertOne({'_id': 1}),
              UpdateOne({'_id': 1}, {'$set': {'x': 1}}),
              DeleteMany({'x': 2}),
          ])

        With `ordered` (the default) operations run in order and the first
        failure stops the rest. Otherwise every operation is attempted, in
        whatever order batches are most efficiently sent.

        Returns a :class:`~pymongo.results.BulkWriteResult`. If anything
        failed, raises :exc:`~mcollection.errors.BulkWriteError`, whose
        ``details`` hold the counts of what did run and a ``writeErrors``
        entry, with its index in `requests`, for each failure.
        """
        validate_boolean('ordered', ordered)
        validate_boolean('bypass_document_validation',
                         bypass_document_validation)
        if isinstance(requests, (str, bytes, abc.Mapping)) or not isinstance(
                requests, abc.Iterable):
            raise ClientArgumentError("requests must be a list of write "
                                      "models")
        blk = _Bulk(self, ordered, bypass_document_validation)
        for request in requests:
            blk.add_model(request)
        return await blk.execute(self.write_concern)

    async def insert_one(self, document, bypass_document_validation=False):
        """Insert a single document.

        An ``_id`` is generated if the document has none. Returns a
        :class:`~pymongo.results.InsertOneResult`; raises
        :exc:`~mcollection.errors.DuplicateKeyError` or
        :exc:`~mcollection.errors.WriteError` if the server rejects it.
        """
        _, inserted_id = await self._write_one(InsertOne(document),
                                               bypass_document_validation)
        return InsertOneResult(inserted_id, self.write_concern.acknowledged)

    async def insert_many(self, documents, ordered=True,
                          bypass_document_validation=False):
        """Insert an iterable of documents.

        Returns a :class:`~pymongo.results.InsertManyResult`. Failures are
        reported like :meth:`bulk_write` reports them: by raising
        :exc:`~mcollection.errors.BulkWriteError`, with one
        ``writeErrors`` entry per failed document.
        """
        if isinstance(documents, abc.Mapping) or not isinstance(
                documents, abc.Iterable):
            raise ClientArgumentError("documents must be a non-empty list")
        validate_boolean('ordered', ordered)
        blk = _Bulk(self, ordered, bypass_document_validation)
        for document in documents:
            blk.add_model(InsertOne(document))
        if not blk.ops:
            raise ClientArgumentError("documents must be a non-empty list")
        await blk.execute(self.write_concern)
        return InsertManyResult(blk.inserted_ids,
                                self.write_concern.acknowledged)

    async def replace_one(self, filter, replacement, upsert=False,
                          bypass_document_validation=False, collation=None,
                          hint=None):
        """Replace a single document matching `filter`.

        Returns a :class:`~pymongo.results.UpdateResult`.
        """
        response, _ = await self._write_one(
            ReplaceOne(filter, replacement, upsert, collation, hint),
            bypass_document_validation)
        return self._update_result(response)

    async def update_one(self, filter, update, upsert=False,
                         bypass_document_validation=False, collation=None,
                         array_filters=None, hint=None):
        """Update a single document matching `filter`.

        Returns a :class:`~pymongo.results.UpdateResult`.
        """
        response, _ = await self._write_one(
            UpdateOne(filter, update, upsert, collation, array_filters, hint),
            bypass_document_validation)
        return self._update_result(response)

    async def update_many(self, filter, update, upsert=False,
                          bypass_document_validation=False, collation=None,
                          array_filters=None, hint=None):
        """Update every document matching `filter`.

        Returns a :class:`~pymongo.results.UpdateResult`.
        """
        response, _ = await self._write_one(
            UpdateMany(filter, update, upsert, collation, array_filters, hint),
            bypass_document_validation)
        return self._update_result(response)

    async def delete_one(self, filter, collation=None, hint=None):
        """Delete a single document matching `filter`.

        Returns a :class:`~pymongo.results.DeleteResult`.
        """
        response, _ = await self._write_one(DeleteOne(filter, collation, hint))
        return DeleteResult(response, self.write_concern.acknowledged)

    async def delete_many(self, filter, collation=None, hint=None):
        """Delete every document matching `filter`.

        Returns a :class:`~pymongo.results.DeleteResult`.
        """
        response, _ = await self._write_one(DeleteMany(filter, collation,
                                                       hint))
        return DeleteResult(response, self.write_concern.acknowledged)

    # Find and modify.

    async def find_one_and_delete(self, filter, projection=None, sort=None,
                                  max_time_ms=None, collation=None, hint=None):
        """Delete a single document and return it.

        If several documents match, `sort` picks the one to delete. Returns
        ``None`` if nothing matched.
        """
        return await self._find_and_modify(
            filter, projection, sort, remove=True, max_time_ms=max_time_ms,
            collation=collation, hint=hint)

    async def find_one_and_replace(self, filter, replacement, projection=None,
                                   sort=None, upsert=False,
                                   return_document=ReturnDocument.BEFORE,
                                   max_time_ms=None, collation=None,
                                   hint=None):
        """Replace a single document and return either version of it.

        Returns the original document, or with
        ``return_document=ReturnDocument.AFTER`` the replacement (or the
        upserted document). Returns ``None`` if nothing matched and nothing
        was upserted.
        """
        replacement = self.codec.encode(replacement)
        validate_ok_for_replace(replacement)
        return await self._find_and_modify(
            filter, projection, sort, upsert, return_document,
            update=replacement, max_time_ms=max_time_ms,
            collation=collation, hint=hint)

    async def find_one_and_update(self, filter, update, projection=None,
                                  sort=None, upsert=False,
                                  return_document=ReturnDocument.BEFORE,
                                  array_filters=None, max_time_ms=None,
                                  collation=None, hint=None):
        """Update a single document and return either version of it.

        For example, to atomically increment a counter and read the new
        value::

          doc = await db.counters.find_one_and_update(
              {'_id': 'userid'}, {'$inc': {'seq': 1}},
              projection={'seq': True, '_id': False},
              upsert=True, return_document=ReturnDocument.AFTER)

        Returns ``None`` if nothing matched and nothing was upserted.
        """
        validate_ok_for_update(update)
        if isinstance(update, list):
            update = [self.codec.encode_mapping(stage) for stage in update]
        else:
            update = self.codec.encode_mapping(update)
        return await self._find_and_modify(
            filter, projection, sort, upsert, return_document,
            update=update, array_filters=array_filters,
            max_time_ms=max_time_ms, collation=collation, hint=hint)

    # Helpers.

    def _encode_filter(self, filter, option='filter'):
        if filter is None:
            return {}
        validate_is_mapping(option, filter)
        return self.codec.encode_mapping(filter)

    def _cursor(self, build, batch_size, limit=0, read_preference=None,
                is_write=False, unpack=commands.unpack_cursor_response,
                decode=True):
        cursor_class = create_class_with_framework(
            AgnosticCursor, self._framework, self.__module__)
        return cursor_class(
            self, build, batch_size=batch_size, limit=limit,
            read_preference=read_preference or self.read_preference,
            is_write=is_write, unpack=unpack,
            decode=self.codec.decode if decode else None)

    async def _write_one(self, model, bypass_document_validation=False):
        """Send one statement and check it for write errors.

        Returns the reply and the _id of an inserted document.
        """
        validate_boolean('bypass_document_validation',
                         bypass_document_validation)
        op_type, statement, inserted_id = _encode_model(model, self.codec)
        max_doc_size = self.__transport.max_bson_size
        size = self.codec.document_size(statement)
        if size > max_doc_size:
            raise WriteError('statement is %d bytes, the maximum is %d'
                             % (size, max_doc_size), BSON_OBJECT_TOO_LARGE)

        cmd = commands.write_command(op_type, self.__namespace, [statement],
                                     True, self.write_concern,
                                     bypass_document_validation)
        response = await self._executor.execute_write(self.database_name,
                                                      cmd)
        _check_write_command_response(response,
                                      self.write_concern.acknowledged)
        return response, inserted_id

    def _update_result(self, response):
        raw_result = dict(response)
        upserted = raw_result.get('upserted')
        if upserted:
            # One statement, so at most one upserted _id.
            raw_result['upserted'] = upserted[0]['_id']
        else:
            raw_result.pop('upserted', None)
        return UpdateResult(raw_result, self.write_concern.acknowledged)

    async def _find_and_modify(self, filter, projection, sort, upsert=None,
                               return_document=ReturnDocument.BEFORE,
                               update=None, remove=False, array_filters=None,
                               max_time_ms=None, collation=None, hint=None):
        if upsert is not None:
            validate_boolean('upsert', upsert)
        if array_filters is not None and not isinstance(array_filters, list):
            raise ClientArgumentError("array_filters must be a list")
        cmd = commands.find_and_modify_command(
            self.__namespace, self._encode_filter(filter), update=update,
            remove=remove, projection=projection, sort=sort, upsert=upsert,
            return_document=return_document, array_filters=array_filters,
            max_time_ms=max_time_ms,
            collation=validate_collation_or_none(collation), hint=hint,
            write_concern=self.write_concern)
        try:
            response = await self._executor.execute_write(self.database_name,
                                                          cmd)
        except ServerCommandError as exc:
            if exc.details and exc.details.get('errmsg') == _NO_OBJ_ERROR:
                return None
            raise
        _check_write_command_response(response,
                                      self.write_concern.acknowledged)

        value = response.get('value')
        if value is None:
            return None
        return self.codec.decode(value)


FRESH = 'fresh'
ACTIVE = 'active'
EXHAUSTED = 'exhausted'
CLOSED = 'closed'


class AgnosticCursor(object):
    __agnostic_class_name__ = 'Cursor'

    def __init__(self, collection, build, batch_size=0, limit=0,
                 read_preference=None, is_write=False,
                 unpack=commands.unpack_cursor_response, decode=None,
                 idle_timeout=CURSOR_IDLE_TIMEOUT):
        """Don't construct a cursor yourself, but acquire one from methods
        like :meth:`Collection.find` or :meth:`Collection.aggregate`.

        A cursor belongs to one consumer: iterate it from a single task.
        Iterating it to the end, :meth:`close`, leaving an ``async with``
        block, an error while fetching, or sitting idle for `idle_timeout`
        seconds all release the server cursor.
        """
        self.collection = collection
        self._executor = collection._executor
        self._namespace = collection.namespace
        self._build = build
        self._command = build(batch_size=batch_size)
        self._batch_size = batch_size
        self._limit = limit
        self._read_preference = read_preference
        self._is_write = is_write
        self._unpack = unpack
        self._decode = decode
        self._idle_timeout = idle_timeout

        self._state = FRESH
        self._cursor_id = None
        self._data = collections.deque()
        self._received = 0
        self._fetching = False
        self._idle_handle = None
        self._loop = None

    @property
    def state(self):
        """``'fresh'``, ``'active'``, ``'exhausted'`` or ``'closed'``."""
        return self._state

    @property
    def cursor_id(self):
        """The server cursor id: ``None`` before the first batch, 0 once the
        server has released it."""
        return self._cursor_id

    @property
    def namespace(self):
        return self._namespace

    @property
    def started(self):
        return self._state != FRESH

    @property
    def closed(self):
        return self._state == CLOSED

    @property
    def alive(self):
        """Does this cursor have the potential to return more data?"""
        if self._state == FRESH:
            return True
        if self._state == ACTIVE:
            return bool(self._data or self._cursor_id)
        return False

    def batch_size(self, batch_size):
        """Limit the documents per batch. Call before iterating."""
        validate_non_negative_integer('batch_size', batch_size)
        if self._state != FRESH:
            raise InvalidOperation("cannot set options after executing query")
        self._command = self._build(batch_size=batch_size)
        self._batch_size = batch_size
        return self

    # python.org/dev/peps/pep-0492/#api-design-and-implementation-revisions
    def __aiter__(self):
        return self

    async def next(self):
        """Advance the cursor."""
        self._check_open()
        while not self._data:
            if self._cursor_id != 0:
                await self._refresh()
            else:
                self._state = EXHAUSTED
                raise StopAsyncIteration
        return self._pop()

    __anext__ = next

    async def to_list(self, length=None):
        """Get a list of up to `length` documents, or all with ``None``.

        Returns fewer documents, possibly none, once the cursor runs out::

          cursor = collection.find(sort=[('_id', 1)])
          docs = await cursor.to_list(length=2)
          while docs:
              print(docs)
              docs = await cursor.to_list(length=2)
        """
        if length is not None:
            if not isinstance(length, int):
                raise TypeError('length must be an int, not %r' % length)
            elif length < 0:
                raise ValueError('length must be non-negative')

        self._check_open()
        the_list = []
        while length is None or len(the_list) < length:
            if self._data:
                the_list.append(self._pop())
            elif self._cursor_id != 0:
                await self._refresh()
            else:
                self._state = EXHAUSTED
                break
        return the_list

    async def close(self):
        """Explicitly kill this cursor on the server.

        Call like::

            await cursor.close()

        """
        self._die()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __enter__(self):
        raise RuntimeError('Use a cursor in "async with", not "with"')

    def __exit__(self, exc_type, exc_val, exc_tb):
        pass

    def _check_open(self):
        if self._state == CLOSED:
            raise CursorClosedError("cannot read from a closed cursor")

    def _pop(self):
        doc = self._data.popleft()
        if not self._data and not self._cursor_id:
            self._state = EXHAUSTED
        if self._decode is not None:
            return self._decode(doc)
        return doc

    def _next_batch_size(self):
        # The server enforces the limit itself; only a batch size the caller
        # asked for is sent, capped so no batch overshoots the limit.
        if not self._batch_size:
            return None
        if self._limit:
            return min(self._batch_size, self._limit - self._received)
        return self._batch_size

    async def _refresh(self):
        """Send the initial command or a getMore: one round trip."""
        if self._fetching:
            raise InvalidOperation(
                "cursor is already being iterated by another task")
        self._fetching = True
        self._cancel_idle_timer()
        try:
            if self._state == FRESH:
                self._state = ACTIVE
                response = await self._start()
            else:
                response = await self._executor.get_more(
                    self._namespace, self._cursor_id,
                    self._next_batch_size())
            cursor_id, namespace, batch = self._unpack(response,
                                                       self._namespace)
        except Exception as exc:
            if self._state == CLOSED:
                raise CursorClosedError(
                    "cursor was closed while a batch was in flight") from exc
            self._die()
            raise
        except BaseException:
            # Cancellation too: the server cursor must not leak.
            self._die()
            raise
        finally:
            self._fetching = False

        if self._state == CLOSED:
            # close() ran while the batch was in flight.
            if cursor_id:
                self._executor.kill_cursor(namespace, cursor_id)
            self._data.clear()
            raise CursorClosedError(
                "cursor was closed while a batch was in flight")

        self._cursor_id = cursor_id
        self._namespace = namespace
        if self._limit:
            batch = batch[:self._limit - self._received]
        self._received += len(batch)
        self._data.extend(batch)

        if self._limit and self._received >= self._limit and self._cursor_id:
            self._kill()
        if self._cursor_id:
            self._arm_idle_timer()
        elif not self._data:
            self._state = EXHAUSTED
        return len(batch)

    def _start(self):
        database_name = self._namespace.database
        if self._is_write:
            return self._executor.execute_write(database_name, self._command)
        return self._executor.execute_read(database_name, self._command,
                                           self._read_preference)

    def _kill(self):
        cursor_id, self._cursor_id = self._cursor_id, 0
        if cursor_id:
            self._executor.kill_cursor(self._namespace, cursor_id)

    def _die(self):
        """Release the server cursor, once, and close."""
        if self._state == CLOSED:
            return
        self._cancel_idle_timer()
        self._state = CLOSED
        self._data.clear()
        self._kill()

    def _arm_idle_timer(self):
        if self._idle_timeout is None:
            return
        self._loop = self._framework.get_event_loop()
        self._idle_handle = self._framework.call_later(
            self._loop, self._idle_timeout, self._idle_expired)

    def _cancel_idle_timer(self):
        if self._idle_handle is not None:
            self._framework.call_later_cancel(self._loop, self._idle_handle)
            self._idle_handle = None

    def _idle_expired(self):
        self._idle_handle = None
        _LOGGER.warning("Closing cursor %s on %s after %s seconds idle",
                        self._cursor_id, self._namespace, self._idle_timeout)
        self._die()
