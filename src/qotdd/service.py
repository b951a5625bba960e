# -*- test-case-name: qotdd.test.test_service -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
The service running a quote of the day server.
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence

from twisted.application.internet import StreamServerEndpointService, UDPServer
from twisted.application.service import IService, MultiService, Service
from twisted.internet import task
from twisted.internet.defer import Deferred
from twisted.internet.endpoints import serverFromString
from twisted.internet.error import CannotListenError
from twisted.logger import Logger

from qotdd.error import BindError
from qotdd.protocol import QuoteDatagramProtocol, QuoteFactory
from qotdd.ratelimit import RateLimiter
from qotdd.selector import IQuoteSelector

DEFAULT_PORT = "tcp:17"


class RateLimitDecayService(Service):
    """
    Periodically lower the counters of a L{RateLimiter}.

    @ivar limiter: the L{RateLimiter} to refill.
    @ivar interval: seconds between two calls to L{RateLimiter.lower}.
    """

    def __init__(self, limiter: RateLimiter, interval: float, clock) -> None:
        self.limiter = limiter
        self.interval = interval
        self.clock = clock
        self._loop: Optional[task.LoopingCall] = None

    def startService(self):
        Service.startService(self)
        self._loop = task.LoopingCall(self.limiter.lower)
        self._loop.clock = self.clock
        self._loop.start(self.interval, now=False)

    def stopService(self):
        Service.stopService(self)
        if self._loop is not None and self._loop.running:
            self._loop.stop()
        self._loop = None


class QuoteService(MultiService):
    """
    Serve quotes on a set of TCP endpoints and, optionally, a UDP port.

    Stopping the service stops accepting new clients, then gives the
    connections in progress C{gracePeriod} seconds to finish before aborting
    them.

    @ivar factory: the L{QuoteFactory} shared by every TCP endpoint.
    @ivar datagramProtocol: the L{QuoteDatagramProtocol} listening on the
        UDP port, or L{None}.
    @ivar gracePeriod: see above.
    """

    _log = Logger()

    def __init__(
        self,
        selector: IQuoteSelector,
        endpoints: Sequence[str] = (DEFAULT_PORT,),
        udpPort: Optional[int] = None,
        interface: str = "",
        limiter: Optional[RateLimiter] = None,
        rateWindow: float = 60.0,
        gracePeriod: float = 5.0,
        reactor=None,
    ) -> None:
        """
        @param selector: the L{IQuoteSelector} choosing quotes.

        @param endpoints: server endpoint descriptions, in the syntax of
            L{twisted.internet.endpoints.serverFromString}.

        @param udpPort: the UDP port to answer datagrams on, or L{None}.

        @param interface: the address the UDP port is bound to.

        @param limiter: the L{RateLimiter} admitting clients, or L{None} to
            serve everyone.

        @param rateWindow: seconds between two refills of C{limiter}.

        @param reactor: the reactor to listen with; the global reactor by
            default.
        """
        MultiService.__init__(self)
        if reactor is None:
            from twisted.internet import reactor
        self._reactor = reactor
        self.gracePeriod = gracePeriod
        self.factory = QuoteFactory(selector, limiter)
        self._descriptions: Dict[IService, str] = {}

        for description in endpoints:
            svc = StreamServerEndpointService(
                serverFromString(reactor, description), self.factory
            )
            svc._raiseSynchronously = True
            svc.setServiceParent(self)
            self._descriptions[svc] = description

        self.datagramProtocol = None
        if udpPort is not None:
            self.datagramProtocol = QuoteDatagramProtocol(selector, limiter)
            svc = UDPServer(
                udpPort, self.datagramProtocol, interface=interface, reactor=reactor
            )
            svc.setServiceParent(self)
            self._descriptions[svc] = f"udp:{udpPort}:interface={interface}"

        if limiter is not None and limiter.limit > 0:
            RateLimitDecayService(limiter, rateWindow, reactor).setServiceParent(self)

    def _startChildren(self, start: str) -> None:
        for svc in self:
            try:
                getattr(svc, start)()
            except CannotListenError as e:
                raise BindError(self._descriptions.get(svc, repr(svc)), e) from e

    def privilegedStartService(self):
        """
        Bind every listening port.

        @raise BindError: if a port cannot be bound.
        """
        Service.privilegedStartService(self)
        self._startChildren("privilegedStartService")

    def startService(self):
        """
        Start serving, binding the ports if L{privilegedStartService} has not
        already done it.

        @raise BindError: if a port cannot be bound.
        """
        Service.startService(self)
        self._startChildren("startService")
        self._log.info(
            "Serving quotes on {endpoints}",
            endpoints=", ".join(self._descriptions.values()),
        )

    def stopService(self) -> Deferred[None]:
        """
        Stop listening, then wait for the connections in progress.

        @return: a L{Deferred} which fires once every connection is closed.
        """
        d = MultiService.stopService(self)
        d.addCallback(lambda ignored: self._drain())
        return d

    def _drain(self) -> Optional[Deferred[None]]:
        count = len(self.factory.connections)
        if not count:
            return None
        self._log.info(
            "Waiting up to {grace} seconds for {count} connections to finish",
            grace=self.gracePeriod,
            count=count,
        )
        d = self.factory.waitForConnections()
        timeout = self._reactor.callLater(self.gracePeriod, self._abort)

        def cancelTimeout(result):
            if timeout.active():
                timeout.cancel()
            return result

        return d.addBoth(cancelTimeout)

    def _abort(self) -> None:
        self._log.warn(
            "Aborting {count} connections still open after {grace} seconds",
            count=len(self.factory.connections),
            grace=self.gracePeriod,
        )
        self.factory.abortConnections()


__all__ = ["DEFAULT_PORT", "RateLimitDecayService", "QuoteService"]
