# Copyright 2011-present MongoDB, Inc.
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


"""mcollection, an asynchronous MongoDB collection interface."""

version_tuple = (0, 1, 0)


def get_version_string():
    return '.'.join(map(str, version_tuple))


version = get_version_string()
"""Current version of mcollection."""

from .codec import DocumentCodec
from .mcollection_asyncio import AsyncIOCollection, AsyncIOCursor
from .operations import (DeleteMany,
                         DeleteOne,
                         InsertOne,
                         ReplaceOne,
                         ReturnDocument,
                         UpdateMany,
                         UpdateOne)
from .transport import Transport
