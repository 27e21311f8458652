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


"""Test AsyncIOCursor."""

import asyncio
import unittest

from mcollection import mcollection_asyncio
from mcollection.common import Namespace
from mcollection.errors import (ClientArgumentError,
                                CursorClosedError,
                                InvalidOperation,
                                OperationCancelled,
                                ProtocolError,
                                ServerCommandError)
from test.asyncio_tests import asyncio_test, AsyncIOTestCase
from test.utils import one


class TestAsyncIOCursor(AsyncIOTestCase):
    def test_cursor(self):
        cursor = self.collection.find()
        self.assertTrue(isinstance(cursor, mcollection_asyncio.AsyncIOCursor))
        self.assertFalse(cursor.started, "Cursor shouldn't start immediately")
        self.assertEqual('fresh', cursor.state)
        self.assertIsNone(cursor.cursor_id)
        self.assertTrue(cursor.alive)
        self.assertEqual([], self.server.requests)

    def test_bad_arguments_fail_before_io(self):
        with self.assertRaises(ClientArgumentError):
            self.collection.find(limit=-1)
        with self.assertRaises(ClientArgumentError):
            self.collection.find(sort=5)
        with self.assertRaises(ClientArgumentError):
            self.collection.find('not a filter')
        self.assertEqual([], self.server.requests)

    @asyncio_test
    async def test_iterate(self):
        await self.make_test_data()
        cursor = self.collection.find({}, ['_id'], sort='_id').batch_size(75)

        i = 0
        async for doc in cursor:
            self.assertEqual({'_id': i}, doc)
            i += 1
            # With batch_size 75 and 200 results, the cursor should be
            # exhausted on the server by the third batch.
            if i <= 150:
                self.assertNotEqual(0, cursor.cursor_id)
            else:
                self.assertEqual(0, cursor.cursor_id)

        self.assertEqual(200, i)
        self.assertEqual('exhausted', cursor.state)
        self.assertFalse(cursor.alive)
        self.assertEqual(['find', 'getMore', 'getMore'],
                         self.server.request_names())
        self.assertEqual([], self.server.killed)

    @asyncio_test
    async def test_exhausted_cursor_stays_exhausted(self):
        cursor = self.collection.find({'foo': 'bar'})
        self.assertEqual([], await cursor.to_list(None))
        self.assertEqual(0, cursor.cursor_id)
        self.assertEqual('exhausted', cursor.state)

        with self.assertRaises(StopAsyncIteration):
            await cursor.next()
        self.assertEqual([], await cursor.to_list(10))
        self.assertEqual(1, self.server.round_trips)

    @asyncio_test
    async def test_limit_over_batches(self):
        await self.make_test_data(1000)
        cursor = self.collection.find({}, limit=250)
        docs = await cursor.to_list(None)

        self.assertEqual(250, len(docs))
        self.assertEqual(list(range(250)), [doc['_id'] for doc in docs])
        self.assertEqual(['find', 'getMore', 'getMore'],
                         self.server.request_names())
        self.assertEqual('exhausted', cursor.state)
        with self.assertRaises(StopAsyncIteration):
            await cursor.next()
        self.assertEqual(3, self.server.round_trips)

    @asyncio_test
    async def test_limit_caps_requested_batch_size(self):
        await self.make_test_data(1000)
        cursor = self.collection.find({}, limit=250, batch_size=101)
        self.assertEqual(250, len(await cursor.to_list(None)))

        self.assertEqual(101, self.server.requests[0].command['batchSize'])
        self.assertEqual([101, 48],
                         [request.command['batchSize']
                          for request in self.server.requests[1:]])

    @asyncio_test
    async def test_drain_matches_single_query(self):
        await self.make_test_data(333)
        batched = await self.collection.find(batch_size=7).to_list(None)
        whole = await self.collection.find(batch_size=1000).to_list(None)
        self.assertEqual(333, len(batched))
        self.assertEqual(sorted(doc['_id'] for doc in whole),
                         sorted(doc['_id'] for doc in batched))

    @asyncio_test
    async def test_limit_kills_open_server_cursor(self):
        ns = self.collection.namespace
        self.server.reply({'ok': 1, 'cursor': {
            'id': 77, 'ns': ns.full_name,
            'firstBatch': [{'_id': 1}, {'_id': 2}, {'_id': 3}]}})

        cursor = self.collection.find(limit=2)
        self.assertEqual([{'_id': 1}, {'_id': 2}], await cursor.to_list(5))
        self.assertEqual([(ns, 77)], self.server.killed)
        self.assertEqual('exhausted', cursor.state)
        self.assertEqual(0, cursor.cursor_id)

    @asyncio_test
    async def test_to_list_argument_checking(self):
        await self.make_test_data()
        cursor = self.collection.find()
        with self.assertRaises(ValueError):
            await cursor.to_list(-1)
        with self.assertRaises(TypeError):
            await cursor.to_list('foo')
        self.assertEqual([], await cursor.to_list(0))
        self.assertFalse(cursor.started)

    @asyncio_test
    async def test_to_list_in_chunks(self):
        await self.make_test_data()
        cursor = self.collection.find(sort=[('_id', 1)], batch_size=30)
        docs = await cursor.to_list(length=50)
        self.assertEqual(list(range(50)), [doc['_id'] for doc in docs])
        docs = await cursor.to_list(length=200)
        self.assertEqual(list(range(50, 200)), [doc['_id'] for doc in docs])
        self.assertEqual([], await cursor.to_list(length=50))

    @asyncio_test
    async def test_close(self):
        await self.make_test_data()
        cursor = self.collection.find(batch_size=10)
        await cursor.next()
        cursor_id = cursor.cursor_id
        self.assertNotEqual(0, cursor_id)

        await cursor.close()
        await cursor.close()
        self.assertEqual([(self.collection.namespace, cursor_id)],
                         self.server.killed)
        self.assertTrue(cursor.closed)
        self.assertFalse(cursor.alive)

        with self.assertRaises(CursorClosedError):
            await cursor.next()
        with self.assertRaises(CursorClosedError):
            await cursor.to_list(None)

    @asyncio_test
    async def test_close_during_first_batch(self):
        await self.make_test_data()
        self.server.delay = 0.05
        cursor = self.collection.find(batch_size=2)
        task = asyncio.ensure_future(cursor.to_list(10))
        await asyncio.sleep(0.01)
        await cursor.close()
        self.assertEqual([], self.server.killed)

        with self.assertRaises(CursorClosedError):
            await task

        # The server cursor the reply opened is released, once.
        namespace, cursor_id = one(self.server.killed)
        self.assertEqual(self.collection.namespace, namespace)
        self.assertNotEqual(0, cursor_id)
        self.assertEqual({}, self.server.cursors)
        self.assertTrue(cursor.closed)
        self.assertFalse(cursor.alive)
        self.assertEqual(0, cursor.cursor_id)

    @asyncio_test
    async def test_close_during_get_more(self):
        await self.make_test_data()
        cursor = self.collection.find(batch_size=2)
        await cursor.to_list(2)
        cursor_id = cursor.cursor_id

        self.server.delay = 0.05
        task = asyncio.ensure_future(cursor.next())
        await asyncio.sleep(0.01)
        await cursor.close()
        with self.assertRaises(CursorClosedError):
            await task
        self.assertEqual([(self.collection.namespace, cursor_id)],
                         self.server.killed)

    @asyncio_test
    async def test_close_exhausted_cursor(self):
        await self.make_test_data(5)
        cursor = self.collection.find()
        self.assertEqual(5, len(await cursor.to_list(None)))
        await cursor.close()
        self.assertEqual('closed', cursor.state)
        self.assertEqual([], self.server.killed)

    @asyncio_test
    async def test_async_with(self):
        await self.make_test_data()
        async with self.collection.find(batch_size=10) as cursor:
            await cursor.next()
            cursor_id = cursor.cursor_id
        self.assertTrue(cursor.closed)
        self.assertEqual([(self.collection.namespace, cursor_id)],
                         self.server.killed)

        with self.assertRaises(RuntimeError):
            with self.collection.find():
                pass

    @asyncio_test
    async def test_batch_size_after_start(self):
        await self.make_test_data()
        cursor = self.collection.find()
        await cursor.next()
        with self.assertRaises(InvalidOperation):
            cursor.batch_size(5)
        await cursor.close()

    @asyncio_test
    async def test_single_consumer(self):
        await self.make_test_data()
        self.server.delay = 0.05
        cursor = self.collection.find()
        results = await asyncio.gather(cursor.next(), cursor.next(),
                                       return_exceptions=True)
        self.assertEqual({'_id': 0}, results[0])
        self.assertIsInstance(results[1], InvalidOperation)
        self.assertEqual(1, self.server.round_trips)
        self.assertEqual({'_id': 1}, await cursor.next())
        await cursor.close()

    @asyncio_test
    async def test_cancel_during_get_more(self):
        await self.make_test_data()
        cursor = self.collection.find(batch_size=2)
        await cursor.to_list(2)
        cursor_id = cursor.cursor_id

        self.server.delay = 10
        task = asyncio.ensure_future(cursor.next())
        await asyncio.sleep(0.01)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

        self.assertTrue(cursor.closed)
        self.assertEqual([(self.collection.namespace, cursor_id)],
                         self.server.killed)

    @asyncio_test
    async def test_error_during_get_more(self):
        await self.make_test_data()
        cursor = self.collection.find(batch_size=2)
        await cursor.to_list(2)
        cursor_id = cursor.cursor_id

        self.server.reply({'ok': 0, 'errmsg': 'interrupted', 'code': 11601})
        with self.assertRaises(ServerCommandError) as context:
            await cursor.next()
        self.assertEqual(11601, context.exception.code)
        self.assertTrue(cursor.closed)
        self.assertEqual(cursor_id, one(self.server.killed)[1])

        with self.assertRaises(CursorClosedError):
            await cursor.next()

    @asyncio_test
    async def test_malformed_reply(self):
        self.server.reply({'ok': 1, 'cursor': {'firstBatch': []}})
        cursor = self.collection.find()
        with self.assertRaises(ProtocolError):
            await cursor.next()
        self.assertTrue(cursor.closed)
        self.assertEqual([], self.server.killed)

    @asyncio_test
    async def test_timeout(self):
        await self.make_test_data()
        collection = self.collection.with_options(timeout=0.01)
        self.server.delay = 1
        cursor = collection.find()
        with self.assertRaises(OperationCancelled):
            await cursor.next()
        self.assertTrue(cursor.closed)

    @asyncio_test
    async def test_idle_cursor_is_reaped(self):
        await self.make_test_data()
        cursor = self.collection.find(batch_size=2)
        cursor._idle_timeout = 0.05
        await cursor.to_list(2)
        cursor_id = cursor.cursor_id

        with self.assertLogs('mcollection.core', 'WARNING'):
            await asyncio.sleep(0.2)
        self.assertTrue(cursor.closed)
        self.assertEqual([(self.collection.namespace, cursor_id)],
                         self.server.killed)

    @asyncio_test
    async def test_idle_timer_reset_by_activity(self):
        await self.make_test_data()
        cursor = self.collection.find(batch_size=2)
        cursor._idle_timeout = 0.1
        for _ in range(4):
            await cursor.to_list(2)
            await asyncio.sleep(0.05)
        self.assertFalse(cursor.closed)
        self.assertEqual([], self.server.killed)
        await cursor.close()

    @asyncio_test
    async def test_namespace_from_reply(self):
        self.server.reply({'ok': 1, 'cursor': {
            'id': 9, 'ns': 'mcollection_test.view', 'firstBatch': [{}]}})
        cursor = self.collection.find()
        await cursor.next()
        self.assertEqual(Namespace('mcollection_test', 'view'),
                         cursor.namespace)
        await cursor.close()
        self.assertEqual([(Namespace('mcollection_test', 'view'), 9)],
                         self.server.killed)

    @asyncio_test
    async def test_decode_with_codec(self):
        await self.collection.insert_one({'_id': 1, 'a': {'b': 1}})
        doc = await self.collection.find().next()
        self.assertEqual({'_id': 1, 'a': {'b': 1}}, doc)


if __name__ == '__main__':
    unittest.main()
