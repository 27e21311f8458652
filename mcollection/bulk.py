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


"""Split bulk writes into batches, run them, and merge the results."""

import logging

from bson.objectid import ObjectId
from pymongo.results import BulkWriteResult

from . import commands
from .common import validate_ok_for_replace
from .errors import (BSON_OBJECT_TOO_LARGE,
                     BulkWriteError,
                     ClientArgumentError,
                     InvalidOperation)
from .operations import _DELETE, _INSERT, _UPDATE, WriteModel

_LOGGER = logging.getLogger(__name__)


def _new_result():
    return {
        'writeErrors': [],
        'writeConcernErrors': [],
        'nInserted': 0,
        'nUpserted': 0,
        'nMatched': 0,
        'nModified': 0,
        'nRemoved': 0,
        'upserted': [],
    }


class _Run(object):
    """Statements of a single type, remembering where each came from."""

    def __init__(self, op_type):
        self.op_type = op_type
        self.index_map = []
        self.ops = []

    def index(self, idx):
        """Map a position in this run to the position in the bulk write."""
        return self.index_map[idx]

    def add(self, original_index, operation):
        self.index_map.append(original_index)
        self.ops.append(operation)


def _merge_command(run, full_result, offset, result):
    """Merge one write command reply into the bulk result."""
    affected = result.get('n', 0)

    if run.op_type == _INSERT:
        full_result['nInserted'] += affected

    elif run.op_type == _DELETE:
        full_result['nRemoved'] += affected

    elif run.op_type == _UPDATE:
        upserted = result.get('upserted')
        if upserted:
            n_upserted = len(upserted)
            for doc in upserted:
                doc['index'] = run.index(doc['index'] + offset)
            full_result['upserted'].extend(upserted)
            full_result['nUpserted'] += n_upserted
            full_result['nMatched'] += (affected - n_upserted)
        else:
            full_result['nMatched'] += affected
        full_result['nModified'] += result.get('nModified', 0)

    write_errors = result.get('writeErrors')
    if write_errors:
        for doc in write_errors:
            # Leave the server's reply alone.
            replacement = dict(doc)
            idx = doc['index'] + offset
            replacement['index'] = run.index(idx)
            replacement['op'] = run.ops[idx]
            full_result['writeErrors'].append(replacement)

    wc_error = result.get('writeConcernError')
    if wc_error:
        full_result['writeConcernErrors'].append(wc_error)


def _encode_model(model, codec):
    """Encode a write model into (op type, statement, inserted _id).

    Encoding happens before anything is sent, so a document the codec
    rejects fails the whole write.
    """
    if not isinstance(model, WriteModel) or model.kind is None:
        raise ClientArgumentError('%r is not a valid write model' % (model,))
    kind = model.kind
    inserted_id = None

    if kind == 'insertOne':
        document = codec.encode(model.document)
        if '_id' not in document:
            # Keep _id first, the way the server stores it.
            document = dict([('_id', ObjectId())] + list(document.items()))
        inserted_id = document['_id']
        statement = commands.insert_statement(document)

    elif kind in ('updateOne', 'updateMany'):
        update = model.update
        if isinstance(update, list):
            update = [codec.encode_mapping(stage) for stage in update]
        else:
            update = codec.encode_mapping(update)
        statement = commands.update_statement(
            codec.encode_mapping(model.filter), update, multi=model.multi,
            upsert=model.upsert, collation=model.collation,
            array_filters=model.array_filters, hint=model.hint)

    elif kind == 'replaceOne':
        replacement = codec.encode(model.replacement)
        validate_ok_for_replace(replacement)
        statement = commands.update_statement(
            codec.encode_mapping(model.filter), replacement,
            upsert=model.upsert, collation=model.collation, hint=model.hint)

    elif kind in ('deleteOne', 'deleteMany'):
        statement = commands.delete_statement(
            codec.encode_mapping(model.filter), multi=model.multi,
            collation=model.collation, hint=model.hint)

    else:
        raise ClientArgumentError('unknown write model kind %r' % (kind,))

    return model.op_type, statement, inserted_id


class _Bulk(object):
    """The write models of one bulk write, encoded and ready to send."""

    def __init__(self, collection, ordered, bypass_document_validation=False):
        self.collection = collection
        self.ordered = ordered
        self.bypass_doc_val = bypass_document_validation
        self.ops = []
        self.inserted_ids = []
        self.executed = False

    def add_model(self, model):
        op_type, statement, inserted_id = _encode_model(
            model, self.collection.codec)
        if op_type == _INSERT:
            self.inserted_ids.append(inserted_id)
        self.ops.append((op_type, statement))

    def gen_ordered(self):
        """Consecutive statements of one type form a run, in input order."""
        run = None
        for idx, (op_type, operation) in enumerate(self.ops):
            if run is None:
                run = _Run(op_type)
            elif run.op_type != op_type:
                yield run
                run = _Run(op_type)
            run.add(idx, operation)
        yield run

    def gen_unordered(self):
        """One run per statement type, whatever the input order."""
        operations = [_Run(_INSERT), _Run(_UPDATE), _Run(_DELETE)]
        for idx, (op_type, operation) in enumerate(self.ops):
            operations[op_type].add(idx, operation)

        for run in operations:
            if run.ops:
                yield run

    async def execute(self, write_concern):
        """Run every batch and return a BulkWriteResult.

        Raises BulkWriteError if any statement failed or the write concern
        was not satisfied.
        """
        if not self.ops:
            raise ClientArgumentError('No operations to execute')
        if self.executed:
            raise InvalidOperation('Bulk operations can only be executed once.')
        self.executed = True

        if self.ordered:
            generator = self.gen_ordered()
        else:
            generator = self.gen_unordered()

        full_result = _new_result()
        for run in generator:
            keep_going = await self._execute_run(run, write_concern,
                                                 full_result)
            if not keep_going:
                _LOGGER.debug("Ordered bulk write on %s stopped at the "
                              "first write error",
                              self.collection.namespace)
                break

        if full_result['writeErrors']:
            full_result['writeErrors'].sort(key=lambda error: error['index'])

        acknowledged = write_concern.acknowledged
        if acknowledged and (full_result['writeErrors'] or
                             full_result['writeConcernErrors']):
            raise BulkWriteError(full_result,
                                 BulkWriteResult(full_result, acknowledged))
        return BulkWriteResult(full_result, acknowledged)

    async def _execute_run(self, run, write_concern, full_result):
        """Send a run in as many batches as the transport limits require.

        Returns False if an ordered bulk write must stop.
        """
        transport = self.collection._executor.transport
        codec = self.collection.codec
        max_count = transport.max_write_batch_size
        max_bytes = transport.max_message_size
        max_doc_size = transport.max_bson_size

        batch = []
        batch_bytes = 0
        offset = 0
        for idx, statement in enumerate(run.ops):
            size = codec.document_size(statement)
            if size > max_doc_size:
                if batch:
                    if not await self._send_batch(run, offset, batch,
                                                  write_concern, full_result):
                        return False
                    batch = []
                    batch_bytes = 0
                self._too_large(run, idx, size, max_doc_size, full_result)
                if self.ordered:
                    return False
                continue

            if batch and (len(batch) >= max_count or
                          batch_bytes + size > max_bytes):
                if not await self._send_batch(run, offset, batch,
                                              write_concern, full_result):
                    return False
                batch = []
                batch_bytes = 0

            if not batch:
                offset = idx
            batch.append(statement)
            batch_bytes += size

        if batch:
            return await self._send_batch(run, offset, batch, write_concern,
                                          full_result)
        return True

    async def _send_batch(self, run, offset, batch, write_concern,
                          full_result):
        collection = self.collection
        cmd = commands.write_command(
            run.op_type, collection.namespace, batch, self.ordered,
            write_concern, self.bypass_doc_val)
        result = await collection._executor.execute_write(
            collection.namespace.database, cmd)
        _merge_command(run, full_result, offset, result)
        return not (self.ordered and result.get('writeErrors'))

    def _too_large(self, run, idx, size, max_doc_size, full_result):
        _LOGGER.debug("Statement %d of bulk write on %s is %d bytes, "
                      "larger than the %d byte maximum",
                      run.index(idx), self.collection.namespace, size,
                      max_doc_size)
        full_result['writeErrors'].append({
            'index': run.index(idx),
            'code': BSON_OBJECT_TOO_LARGE,
            'codeName': 'BSONObjectTooLarge',
            'errmsg': 'statement is %d bytes, the maximum is %d'
                      % (size, max_doc_size),
            'op': run.ops[idx],
        })
