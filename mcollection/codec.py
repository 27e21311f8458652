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


"""Conversion between application documents and wire documents."""

from collections import abc

import bson
from bson.codec_options import CodecOptions, DEFAULT_CODEC_OPTIONS
from bson.errors import BSONError

from .errors import CodecError

# Wire documents are always plain dicts, whatever the application uses.
_WIRE_CODEC_OPTIONS = CodecOptions(document_class=dict, tz_aware=True)


class DocumentCodec(object):
    """Encode application documents for the transport and decode replies.

    The default codec works on mappings. The wire form is what BSON can
    represent, so encoding round-trips through :func:`bson.encode`: a value
    BSON cannot hold fails here, before any request is sent. Custom types
    are handled with a :class:`~bson.codec_options.TypeRegistry` in
    `codec_options`; a codec for non-mapping types overrides
    :meth:`to_mapping` and :meth:`from_mapping`.

    :Parameters:
      - `codec_options` (optional): a
        :class:`~bson.codec_options.CodecOptions` controlling the decoded
        document class, timezone handling and custom type codecs.
    """

    def __init__(self, codec_options=None):
        if codec_options is None:
            codec_options = DEFAULT_CODEC_OPTIONS
        elif not isinstance(codec_options, CodecOptions):
            raise TypeError("codec_options must be an instance of "
                            "bson.codec_options.CodecOptions")
        self.__codec_options = codec_options

    @property
    def codec_options(self):
        return self.__codec_options

    def to_mapping(self, document):
        """Turn an application document into a mapping. Override me."""
        if not isinstance(document, abc.Mapping):
            raise CodecError("document must be a mapping, not %s"
                             % type(document).__name__)
        return document

    def from_mapping(self, document):
        """Turn a decoded mapping into an application document."""
        return document

    def encode(self, document):
        """Return the wire form of `document` as a new dict."""
        return self.encode_mapping(self.to_mapping(document))

    def encode_mapping(self, mapping):
        """Return the wire form of a filter, update or other mapping."""
        try:
            data = bson.encode(mapping, codec_options=self.__codec_options)
            return bson.decode(data, codec_options=_WIRE_CODEC_OPTIONS)
        except (BSONError, TypeError, ValueError, OverflowError) as exc:
            raise CodecError("cannot encode document: %s" % (exc,)) from exc

    def decode(self, document):
        """Return the application form of a wire document."""
        if not isinstance(document, abc.Mapping):
            raise CodecError("cannot decode %s, expected a document"
                             % type(document).__name__)
        try:
            data = bson.encode(document, codec_options=_WIRE_CODEC_OPTIONS)
            decoded = bson.decode(data, codec_options=self.__codec_options)
        except (BSONError, TypeError, ValueError, OverflowError) as exc:
            raise CodecError("cannot decode document: %s" % (exc,)) from exc
        return self.from_mapping(decoded)

    def document_size(self, document):
        """The encoded size in bytes of a wire document."""
        try:
            return len(bson.encode(document,
                                   codec_options=_WIRE_CODEC_OPTIONS))
        except (BSONError, TypeError, ValueError, OverflowError) as exc:
            raise CodecError("cannot encode document: %s" % (exc,)) from exc

    def __repr__(self):
        return '%s(%r)' % (self.__class__.__name__, self.__codec_options)
