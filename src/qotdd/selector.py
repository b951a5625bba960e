# -*- test-case-name: qotdd.test.test_selector -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Policies choosing which quote answers a request.
"""

from __future__ import annotations

import random as _random
from threading import Lock
from typing import Dict, Optional, Type

from zope.interface import Interface, implementer

from qotdd.store import QuoteCollection


class IQuoteSelector(Interface):
    """
    An object which picks the quote sent in response to a request.
    """

    def next() -> bytes:
        """
        Pick a quote.

        @return: one of the quotes of the selector's collection.
        """


@implementer(IQuoteSelector)
class RotatingSelector:
    """
    Hand out the quotes of a collection in order, starting over after the
    last one.

    @ivar quotes: the L{QuoteCollection} to choose from.
    """

    def __init__(self, quotes: QuoteCollection) -> None:
        self.quotes = quotes
        self._cursor = 0
        self._lock = Lock()

    def next(self) -> bytes:
        with self._lock:
            index = self._cursor
            self._cursor = (index + 1) % len(self.quotes)
        return self.quotes[index]


@implementer(IQuoteSelector)
class RandomSelector:
    """
    Pick a quote uniformly at random.

    @ivar quotes: the L{QuoteCollection} to choose from.
    """

    def __init__(
        self,
        quotes: QuoteCollection,
        seed: Optional[int] = None,
        random: Optional[_random.Random] = None,
    ) -> None:
        self.quotes = quotes
        if random is None:
            random = _random.Random(seed)
        self._random = random

    def next(self) -> bytes:
        return self.quotes[self._random.randrange(len(self.quotes))]


POLICIES: Dict[str, Type] = {
    "rotate": RotatingSelector,
    "random": RandomSelector,
}


def selectorForPolicy(
    policy: str, quotes: QuoteCollection, seed: Optional[int] = None
) -> IQuoteSelector:
    """
    Build the selector implementing a named policy.

    @param policy: one of the keys of L{POLICIES}.

    @param seed: the seed of the random policy; ignored by the others.

    @raise ValueError: if C{policy} is unknown.
    """
    try:
        selectorType = POLICIES[policy]
    except KeyError:
        raise ValueError(
            "Unknown selection policy {!r}; choose one of {}".format(
                policy, ", ".join(sorted(POLICIES))
            )
        )
    if selectorType is RandomSelector:
        return RandomSelector(quotes, seed=seed)
    return selectorType(quotes)


__all__ = [
    "IQuoteSelector",
    "RotatingSelector",
    "RandomSelector",
    "POLICIES",
    "selectorForPolicy",
]
