# -*- test-case-name: qotdd.test.test_store -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Loading of the quote collection served by the daemon.

A quote file is UTF-8 text.  Quotes are separated by blank lines, or, if a
delimiter is given, by lines consisting of nothing but that delimiter (the
C{%} convention of fortune(6) files)::

    Quickness is the essence of the war.
    ~ Sun Tzu
    %
    meow.

Every quote is stripped of surrounding whitespace and truncated to the
maximum quote length.  The collection is loaded once and never changes.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List, Optional, Tuple, Union

import attr

from twisted.logger import Logger
from twisted.python.filepath import FilePath

from qotdd.error import LoadError

_log = Logger()

# RFC 865: "The quote may be just one or up to several lines, but it should
# be less than 512 characters."
MAX_LENGTH = 512

DEFAULT_QUOTES = (
    "Quickness is the essence of the war. ~ Sun Tzu",
    "Pretend inferiority and encourage his arrogance. ~ Sun Tzu",
    "meow. ~ wffl",
)


def _nonEmpty(instance, attribute, value):
    if not value:
        raise LoadError("the quote collection is empty")


@attr.s(frozen=True, auto_attribs=True)
class QuoteCollection:
    """
    An ordered, immutable and non-empty sequence of quotes.

    @ivar quotes: the quotes, each already encoded as UTF-8.
    """

    quotes: Tuple[bytes, ...] = attr.ib(converter=tuple, validator=_nonEmpty)

    def __len__(self) -> int:
        return len(self.quotes)

    def __getitem__(self, index: int) -> bytes:
        return self.quotes[index]

    def __iter__(self) -> Iterator[bytes]:
        return iter(self.quotes)


def truncate(quote: bytes, maxLength: int) -> bytes:
    """
    Shorten an encoded quote to at most C{maxLength} bytes without splitting
    a UTF-8 character.
    """
    if len(quote) <= maxLength:
        return quote
    return quote[:maxLength].decode("utf-8", "ignore").encode("utf-8")


def _records(text: str, delimiter: Optional[str]) -> Iterator[str]:
    """
    Split the contents of a quote file into raw records.
    """
    current: List[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if delimiter is None:
            separator = not stripped
        else:
            separator = stripped == delimiter
        if separator:
            if current:
                yield "\n".join(current)
            current = []
        else:
            current.append(line.rstrip())
    if current:
        yield "\n".join(current)


def _encodeAll(
    quotes: Iterable[str], maxLength: int, source: str
) -> QuoteCollection:
    if maxLength < 1:
        raise ValueError(f"maximum quote length must be positive, not {maxLength}")
    encoded = []
    for quote in quotes:
        quote = quote.strip()
        if not quote:
            continue
        data = quote.encode("utf-8")
        if len(data) > maxLength:
            _log.warn(
                "Quote {index} from {source} is longer than {maxLength} "
                "bytes; truncating it",
                index=len(encoded) + 1,
                source=source,
                maxLength=maxLength,
            )
            data = truncate(data, maxLength)
            if not data:
                _log.warn(
                    "Quote {index} from {source} is empty once truncated; "
                    "skipping it",
                    index=len(encoded) + 1,
                    source=source,
                )
                continue
        encoded.append(data)
    if not encoded:
        raise LoadError(f"{source} contains no quotes")
    return QuoteCollection(encoded)


def fromStrings(quotes: Iterable[str], maxLength: int = MAX_LENGTH) -> QuoteCollection:
    """
    Build a collection from quotes already in memory.

    @raise LoadError: if none of C{quotes} has any content.
    """
    return _encodeAll(quotes, maxLength, "<memory>")


def defaultCollection(maxLength: int = MAX_LENGTH) -> QuoteCollection:
    """
    The built-in collection, served when no quote file is configured.
    """
    return _encodeAll(DEFAULT_QUOTES, maxLength, "<built-in>")


def load(
    source: Union[str, FilePath],
    delimiter: Optional[str] = None,
    maxLength: int = MAX_LENGTH,
) -> QuoteCollection:
    """
    Load the quotes in a quote file.

    @param source: the path of the quote file.

    @param delimiter: the line separating quotes, or L{None} to separate
        quotes with blank lines.

    @param maxLength: the maximum length of an encoded quote, in bytes.

    @raise LoadError: if the file is missing, unreadable, not UTF-8 or
        holds no quotes.
    """
    if not isinstance(source, FilePath):
        source = FilePath(source)
    if delimiter is not None:
        delimiter = delimiter.strip()
        if not delimiter:
            raise ValueError("the quote delimiter must not be blank")
    try:
        text = source.getContent().decode("utf-8")
    except OSError as e:
        raise LoadError(f"cannot read {source.path}: {e.strerror or e}")
    except UnicodeDecodeError as e:
        raise LoadError(f"{source.path} is not UTF-8 text: {e}")
    collection = _encodeAll(_records(text, delimiter), maxLength, source.path)
    _log.info(
        "Loaded {count} quotes from {path}", count=len(collection), path=source.path
    )
    return collection


__all__ = [
    "MAX_LENGTH",
    "DEFAULT_QUOTES",
    "QuoteCollection",
    "truncate",
    "fromStrings",
    "defaultCollection",
    "load",
]
