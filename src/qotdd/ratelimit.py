# -*- test-case-name: qotdd.test.test_ratelimit -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Per-client admission control.

A quote of the day server answers unauthenticated UDP datagrams with a
larger reply, which makes it a tool for traffic amplification against
spoofed addresses.  Every client host therefore gets a small budget of
requests which is refilled periodically.
"""

from __future__ import annotations

from typing import Dict

from twisted.logger import Logger


class RateLimiter:
    """
    Count requests per host.

    A host is served while its counter is below C{limit}.  Refused requests
    still count, so a host which keeps hammering the server stays refused
    until it backs off.  Every call to L{lower} lowers all counters by
    C{decay}.

    @ivar limit: the number of requests a host may make before being
        refused, or C{0} to serve everyone.
    @ivar decay: the amount by which L{lower} lowers each counter.
    """

    _log = Logger()

    def __init__(self, limit: int = 10, decay: int = 10) -> None:
        self.limit = limit
        self.decay = decay
        self._counts: Dict[str, int] = {}

    def accept(self, host: str) -> bool:
        """
        Record a request from C{host}.

        @return: whether the request may be served.
        """
        if self.limit <= 0:
            return True
        count = self._counts.get(host, 0)
        self._counts[host] = count + 1
        return count < self.limit

    def count(self, host: str) -> int:
        """
        The current counter of C{host}.
        """
        return self._counts.get(host, 0)

    def lower(self) -> None:
        """
        Lower every counter by C{decay}, forgetting hosts which reach zero.
        """
        self._counts = {
            host: count - self.decay
            for host, count in self._counts.items()
            if count > self.decay
        }
        self._log.debug(
            "Rate limits lowered; {hosts} hosts tracked", hosts=len(self._counts)
        )

    def __len__(self) -> int:
        return len(self._counts)


__all__ = ["RateLimiter"]
