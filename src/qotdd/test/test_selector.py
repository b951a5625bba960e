# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Tests for L{qotdd.selector}.
"""

import random
from threading import Thread

from zope.interface.verify import verifyObject

from twisted.trial.unittest import SynchronousTestCase

from qotdd.selector import (
    IQuoteSelector,
    RandomSelector,
    RotatingSelector,
    selectorForPolicy,
)
from qotdd.store import QuoteCollection

QUOTES = QuoteCollection([b"A", b"B", b"C"])


class RotatingSelectorTests(SynchronousTestCase):
    """
    Tests for L{RotatingSelector}.
    """

    def test_interface(self):
        """
        L{RotatingSelector} provides L{IQuoteSelector}.
        """
        self.assertTrue(verifyObject(IQuoteSelector, RotatingSelector(QUOTES)))

    def test_order(self):
        """
        Quotes are returned in order, starting over after the last one.
        """
        selector = RotatingSelector(QUOTES)
        self.assertEqual(
            [selector.next() for _ in range(7)],
            [b"A", b"B", b"C", b"A", b"B", b"C", b"A"],
        )

    def test_fullCycle(self):
        """
        Every cycle of as many calls as there are quotes visits each quote
        exactly once.
        """
        quotes = QuoteCollection([b"%d" % (i,) for i in range(5)])
        selector = RotatingSelector(quotes)
        for _ in range(3):
            self.assertEqual(sorted(selector.next() for _ in range(5)), sorted(quotes))

    def test_single(self):
        """
        A collection of one quote always yields that quote.
        """
        selector = RotatingSelector(QuoteCollection([b"only"]))
        self.assertEqual({selector.next() for _ in range(4)}, {b"only"})

    def test_threads(self):
        """
        Calls from several threads never skip or repeat a position of the
        rotation: each quote is handed out the same number of times.
        """
        selector = RotatingSelector(QUOTES)
        results = []

        def draw():
            results.extend(selector.next() for _ in range(300))

        threads = [Thread(target=draw) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(results), 1200)
        self.assertEqual(
            {quote: results.count(quote) for quote in QUOTES},
            {b"A": 400, b"B": 400, b"C": 400},
        )


class RandomSelectorTests(SynchronousTestCase):
    """
    Tests for L{RandomSelector}.
    """

    def test_interface(self):
        """
        L{RandomSelector} provides L{IQuoteSelector}.
        """
        self.assertTrue(verifyObject(IQuoteSelector, RandomSelector(QUOTES)))

    def test_fromCollection(self):
        """
        Every quote returned belongs to the collection.
        """
        selector = RandomSelector(QUOTES)
        for _ in range(100):
            self.assertIn(selector.next(), QUOTES)

    def test_seed(self):
        """
        Two selectors with the same seed make the same choices.
        """
        first = RandomSelector(QUOTES, seed=1234)
        second = RandomSelector(QUOTES, seed=1234)
        self.assertEqual(
            [first.next() for _ in range(20)], [second.next() for _ in range(20)]
        )

    def test_random(self):
        """
        The index comes from the given L{random.Random}.
        """
        rng = random.Random(5)
        expected = [QUOTES[random.Random(5).randrange(3)]]
        self.assertEqual([RandomSelector(QUOTES, random=rng).next()], expected)


class SelectorForPolicyTests(SynchronousTestCase):
    """
    Tests for L{selectorForPolicy}.
    """

    def test_rotate(self):
        """
        The C{rotate} policy is implemented by L{RotatingSelector}.
        """
        self.assertIsInstance(selectorForPolicy("rotate", QUOTES), RotatingSelector)

    def test_random(self):
        """
        The C{random} policy is implemented by a seeded L{RandomSelector}.
        """
        selector = selectorForPolicy("random", QUOTES, seed=7)
        self.assertIsInstance(selector, RandomSelector)
        reference = RandomSelector(QUOTES, seed=7)
        self.assertEqual(
            [selector.next() for _ in range(10)],
            [reference.next() for _ in range(10)],
        )

    def test_unknown(self):
        """
        An unknown policy is rejected with L{ValueError}.
        """
        error = self.assertRaises(ValueError, selectorForPolicy, "fifo", QUOTES)
        self.assertIn("fifo", str(error))
