# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Tests for L{qotdd.service}.
"""

from twisted.internet.address import IPv4Address
from twisted.internet.error import CannotListenError, ConnectionAborted, ConnectionDone
from twisted.python.failure import Failure
from twisted.trial.unittest import SynchronousTestCase

from qotdd.error import BindError
from qotdd.ratelimit import RateLimiter
from qotdd.selector import RotatingSelector
from qotdd.service import QuoteService, RateLimitDecayService
from qotdd.store import QuoteCollection
from qotdd.test.fakes import AbortableTransport, MemoryReactor


class _UnbindableReactor(MemoryReactor):
    """
    A reactor on which every port is already taken.
    """

    def listenTCP(self, port, factory, backlog=50, interface=""):
        raise CannotListenError(interface, port, OSError(98, "Address in use"))

    def listenUDP(self, port, protocol, interface="", maxPacketSize=8192):
        raise CannotListenError(interface, port, OSError(98, "Address in use"))


def _selector():
    return RotatingSelector(QuoteCollection([b"Hello, world."]))


class QuoteServiceTests(SynchronousTestCase):
    """
    Tests for L{QuoteService}.
    """

    def setUp(self):
        self.reactor = MemoryReactor()

    def start(self, service):
        service.privilegedStartService()
        service.startService()
        return service

    def connect(self, service):
        peer = IPv4Address("TCP", "10.0.0.1", 4321)
        protocol = service.factory.buildProtocol(peer)
        transport = AbortableTransport(peerAddress=peer)
        protocol.makeConnection(transport)
        return protocol, transport

    def test_defaultPort(self):
        """
        By default quotes are served on TCP port 17 only.
        """
        self.start(QuoteService(_selector(), reactor=self.reactor))
        self.assertEqual([s[0] for s in self.reactor.tcpServers], [17])
        self.assertEqual(self.reactor.udpServers, [])

    def test_endpoints(self):
        """
        Every TCP endpoint description is listened on with the same factory
        and the UDP port is bound to the given interface.
        """
        service = self.start(
            QuoteService(
                _selector(),
                ["tcp:1717:interface=127.0.0.1", "tcp:1718"],
                udpPort=1719,
                interface="127.0.0.1",
                reactor=self.reactor,
            )
        )
        tcp = self.reactor.tcpServers
        self.assertEqual([(s[0], s[3]) for s in tcp], [(1717, "127.0.0.1"), (1718, "")])
        self.assertIs(tcp[0][1], service.factory)
        self.assertIs(tcp[1][1], service.factory)

        [(port, protocol, interface, _)] = self.reactor.udpServers
        self.assertEqual((port, interface), (1719, "127.0.0.1"))
        self.assertIs(protocol, service.datagramProtocol)

    def test_invalidEndpoint(self):
        """
        An endpoint description which cannot be parsed is rejected when the
        service is created.
        """
        self.assertRaises(
            ValueError, QuoteService, _selector(), ["nonsense:17"], reactor=self.reactor
        )

    def test_bindErrorTCP(self):
        """
        A TCP port which cannot be bound makes startup fail with
        L{BindError} naming the endpoint.
        """
        service = QuoteService(_selector(), ["tcp:17"], reactor=_UnbindableReactor())
        error = self.assertRaises(BindError, service.privilegedStartService)
        self.assertEqual(error.description, "tcp:17")
        self.assertIsInstance(error.reason, CannotListenError)

    def test_bindErrorUDP(self):
        """
        A UDP port which cannot be bound makes startup fail with
        L{BindError}.
        """
        service = QuoteService(
            _selector(), [], udpPort=17, reactor=_UnbindableReactor()
        )
        self.assertRaises(BindError, service.startService)

    def test_rateLimitDecay(self):
        """
        The rate limiter's counters are lowered every C{rateWindow} seconds
        while the service runs.
        """
        limiter = RateLimiter(limit=1)
        service = self.start(
            QuoteService(
                _selector(), limiter=limiter, rateWindow=30, reactor=self.reactor
            )
        )
        limiter.accept("10.0.0.1")
        limiter.accept("10.0.0.1")
        self.reactor.advance(29)
        self.assertEqual(limiter.count("10.0.0.1"), 2)
        self.reactor.advance(1)
        self.assertEqual(limiter.count("10.0.0.1"), 0)

        service.stopService()
        limiter.accept("10.0.0.1")
        self.reactor.advance(60)
        self.assertEqual(limiter.count("10.0.0.1"), 1)

    def test_noDecayWithoutLimit(self):
        """
        Without a rate limiter nothing is scheduled.
        """
        service = QuoteService(_selector(), reactor=self.reactor)
        self.assertEqual(
            [s for s in service if isinstance(s, RateLimitDecayService)], []
        )

    def test_stopIdle(self):
        """
        Stopping a service without connections completes at once.
        """
        service = self.start(QuoteService(_selector(), reactor=self.reactor))
        self.assertIsNone(self.successResultOf(service.stopService()))
        self.assertFalse(service.running)

    def test_stopWaitsForConnections(self):
        """
        Stopping waits for the open connections to close.
        """
        service = self.start(QuoteService(_selector(), reactor=self.reactor))
        protocol, transport = self.connect(service)
        d = service.stopService()
        self.assertNoResult(d)
        protocol.connectionLost(Failure(ConnectionDone()))
        self.assertIsNone(self.successResultOf(d))
        self.assertFalse(transport.aborted)
        self.assertEqual(self.reactor.getDelayedCalls(), [])

    def test_stopAbortsAfterGracePeriod(self):
        """
        Connections still open when the grace period is over are aborted.
        """
        service = self.start(
            QuoteService(_selector(), gracePeriod=5, reactor=self.reactor)
        )
        protocol, transport = self.connect(service)
        d = service.stopService()
        self.reactor.advance(4.9)
        self.assertFalse(transport.aborted)
        self.reactor.advance(0.1)
        self.assertTrue(transport.aborted)
        self.assertNoResult(d)
        protocol.connectionLost(Failure(ConnectionAborted()))
        self.assertIsNone(self.successResultOf(d))
