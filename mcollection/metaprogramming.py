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

"""Dynamic class-creation for mcollection."""

_class_cache = {}


def create_class_with_framework(cls, framework, module_name):
    """Make a framework-specific class from an agnostic one.

    Given ``AgnosticCollection`` and the asyncio framework module, returns
    a class named ``AsyncIOCollection`` whose ``_framework`` is that module.
    Classes are cached, so each pair is created once.
    """
    class_name = framework.CLASS_PREFIX + cls.__agnostic_class_name__
    cache_key = (cls, class_name, framework)
    cached_class = _class_cache.get(cache_key)
    if cached_class:
        return cached_class

    attrs = dict((name, value) for name, value in cls.__dict__.items()
                 if name not in ('__dict__', '__weakref__'))
    new_class = type(str(class_name), cls.__bases__, attrs)
    new_class.__module__ = module_name
    new_class._framework = framework

    _class_cache[cache_key] = new_class
    return new_class
