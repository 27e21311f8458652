# Copyright 2011-2015 MongoDB, Inc.
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


"""Asyncio support for mcollection."""

from . import core
from .frameworks import asyncio as asyncio_framework
from .metaprogramming import create_class_with_framework

__all__ = ['AsyncIOCollection', 'AsyncIOCursor']


def create_asyncio_class(cls):
    return create_class_with_framework(cls, asyncio_framework,
                                       'mcollection.mcollection_asyncio')


AsyncIOCollection = create_asyncio_class(core.AgnosticCollection)


AsyncIOCursor = create_asyncio_class(core.AgnosticCursor)
