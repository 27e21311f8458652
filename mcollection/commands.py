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


"""Build command documents and unpack replies.

Everything here is a pure function of its arguments. Optional arguments
left at ``None`` (or the server default) are omitted from the command so
the server applies its own defaults.
"""

from collections import abc

from bson.son import SON

from .common import fields_list_to_dict, index_document, Namespace
from .errors import ClientArgumentError, ProtocolError
from .operations import _DELETE, _INSERT, _OP_NAMES, _UPDATE, ReturnDocument

_STATEMENT_FIELDS = {
    _INSERT: 'documents',
    _UPDATE: 'updates',
    _DELETE: 'deletes',
}

_WRITE_STAGES = ('$out', '$merge')


def _apply_common(cmd, max_time_ms=None, collation=None, comment=None,
                  hint=None):
    if max_time_ms is not None:
        cmd['maxTimeMS'] = max_time_ms
    if collation is not None:
        cmd['collation'] = collation
    if comment is not None:
        cmd['comment'] = comment
    if hint is not None:
        cmd['hint'] = hint if isinstance(hint, str) else index_document(hint)
    return cmd


def _apply_write_concern(cmd, write_concern):
    if write_concern is not None and not write_concern.is_server_default:
        cmd['writeConcern'] = write_concern.document
    return cmd


def find_command(namespace, filter, projection=None, skip=0, limit=0,
                 batch_size=0, sort=None, no_cursor_timeout=False,
                 allow_partial_results=False, max_time_ms=None, collation=None,
                 comment=None, hint=None):
    cmd = SON([('find', namespace.collection), ('filter', filter)])
    if projection is not None:
        cmd['projection'] = fields_list_to_dict(projection, 'projection')
    if sort is not None:
        cmd['sort'] = index_document(sort)
    if skip:
        cmd['skip'] = skip
    if limit:
        cmd['limit'] = limit
        if batch_size:
            batch_size = min(batch_size, limit)
    if batch_size:
        cmd['batchSize'] = batch_size
    if no_cursor_timeout:
        cmd['noCursorTimeout'] = True
    if allow_partial_results:
        cmd['allowPartialResults'] = True
    return _apply_common(cmd, max_time_ms, collation, comment, hint)


def has_write_stage(pipeline):
    """Does the pipeline end with a stage that writes its output?"""
    return bool(pipeline) and next(iter(pipeline[-1]), None) in _WRITE_STAGES


def aggregate_command(namespace, pipeline, batch_size=0, allow_disk_use=None,
                      max_time_ms=None, collation=None, comment=None,
                      hint=None, write_concern=None):
    if not isinstance(pipeline, list):
        raise ClientArgumentError("pipeline must be a list")
    for stage in pipeline:
        if not isinstance(stage, abc.Mapping) or len(stage) != 1:
            raise ClientArgumentError(
                "each pipeline stage must be a document with one key, "
                "not %r" % (stage,))

    cursor_opts = {}
    is_write = has_write_stage(pipeline)
    if batch_size and not is_write:
        cursor_opts['batchSize'] = batch_size
    cmd = SON([('aggregate', namespace.collection),
               ('pipeline', list(pipeline)),
               ('cursor', cursor_opts)])
    if allow_disk_use is not None:
        cmd['allowDiskUse'] = allow_disk_use
    _apply_common(cmd, max_time_ms, collation, comment, hint)
    if is_write:
        _apply_write_concern(cmd, write_concern)
    return cmd


def count_command(namespace, filter, skip=0, limit=0, max_time_ms=None,
                  collation=None, hint=None):
    cmd = SON([('count', namespace.collection), ('query', filter)])
    if skip:
        cmd['skip'] = skip
    if limit:
        cmd['limit'] = limit
    return _apply_common(cmd, max_time_ms, collation, hint=hint)


def distinct_command(namespace, key, filter=None, max_time_ms=None,
                     collation=None):
    if not isinstance(key, str):
        raise ClientArgumentError("key must be an instance of str")
    cmd = SON([('distinct', namespace.collection), ('key', key)])
    if filter is not None:
        cmd['query'] = filter
    return _apply_common(cmd, max_time_ms, collation)


def find_and_modify_command(namespace, filter, update=None, remove=False,
                            projection=None, sort=None, upsert=None,
                            return_document=ReturnDocument.BEFORE,
                            array_filters=None, max_time_ms=None,
                            collation=None, hint=None, write_concern=None):
    """Build a findAndModify command.

    Exactly one of `remove` or `update` is used; `update` is either a
    replacement document or an update specification, which the caller has
    already checked.
    """
    if remove and update is not None:
        raise ClientArgumentError(
            "findAndModify cannot both remove and update a document")
    if not remove and update is None:
        raise ClientArgumentError(
            "findAndModify needs either remove or an update")
    if remove and upsert:
        raise ClientArgumentError("cannot upsert while removing a document")
    if remove and array_filters is not None:
        raise ClientArgumentError("array_filters requires an update")
    if not isinstance(return_document, bool):
        raise ClientArgumentError(
            "return_document must be ReturnDocument.BEFORE or "
            "ReturnDocument.AFTER")

    cmd = SON([('findAndModify', namespace.collection), ('query', filter)])
    if remove:
        cmd['remove'] = True
    else:
        cmd['update'] = update
        if return_document:
            cmd['new'] = True
    if projection is not None:
        cmd['fields'] = fields_list_to_dict(projection, 'projection')
    if sort is not None:
        cmd['sort'] = index_document(sort)
    if upsert:
        cmd['upsert'] = True
    if array_filters is not None:
        cmd['arrayFilters'] = array_filters
    _apply_common(cmd, max_time_ms, collation, hint=hint)
    return _apply_write_concern(cmd, write_concern)


def insert_statement(document):
    return document


def update_statement(filter, update, multi=False, upsert=False,
                     collation=None, array_filters=None, hint=None):
    statement = SON([('q', filter), ('u', update)])
    if multi:
        statement['multi'] = True
    if upsert:
        statement['upsert'] = True
    if collation is not None:
        statement['collation'] = collation
    if array_filters is not None:
        statement['arrayFilters'] = array_filters
    if hint is not None:
        statement['hint'] = (
            hint if isinstance(hint, str) else index_document(hint))
    return statement


def delete_statement(filter, multi=False, collation=None, hint=None):
    statement = SON([('q', filter), ('limit', 0 if multi else 1)])
    if collation is not None:
        statement['collation'] = collation
    if hint is not None:
        statement['hint'] = (
            hint if isinstance(hint, str) else index_document(hint))
    return statement


def write_command(op_type, namespace, statements, ordered=True,
                  write_concern=None, bypass_document_validation=False):
    cmd = SON([(_OP_NAMES[op_type], namespace.collection),
               ('ordered', ordered)])
    _apply_write_concern(cmd, write_concern)
    if bypass_document_validation:
        cmd['bypassDocumentValidation'] = True
    cmd[_STATEMENT_FIELDS[op_type]] = list(statements)
    return cmd


def unpack_cursor_response(response, namespace):
    """Split a cursor reply into (cursor id, namespace, batch)."""
    try:
        cursor = response['cursor']
        cursor_id = cursor['id']
        if 'firstBatch' in cursor:
            batch = cursor['firstBatch']
        else:
            batch = cursor['nextBatch']
    except (KeyError, TypeError):
        raise ProtocolError(
            "malformed cursor reply: %r" % (response,)) from None
    if not isinstance(batch, list) or not isinstance(cursor_id, int):
        raise ProtocolError("malformed cursor reply: %r" % (response,))

    # Views and aggregations may report results from another namespace.
    ns = cursor.get('ns')
    if ns and ns != namespace.full_name:
        database, _, collection = ns.partition('.')
        try:
            namespace = Namespace(database, collection)
        except (ClientArgumentError, TypeError):
            raise ProtocolError(
                "malformed cursor namespace: %r" % (ns,)) from None
    return cursor_id, namespace, batch


def unpack_values_response(response, namespace):
    """Treat the reply to distinct as a cursor with one final batch."""
    values = response.get('values')
    if not isinstance(values, list):
        raise ProtocolError("malformed distinct reply: %r" % (response,))
    return 0, namespace, values
