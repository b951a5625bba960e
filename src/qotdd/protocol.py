# -*- test-case-name: qotdd.test.test_protocol -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
The Quote of the Day protocol (RFC 865), over TCP and UDP.

The server ignores whatever the client sends.  A TCP client is sent one
quote as soon as it connects and the connection is closed; a UDP client is
sent one quote in reply to each datagram.
"""

from __future__ import annotations

from typing import Optional, Set

from automat import MethodicalMachine

from twisted.internet.defer import Deferred, succeed
from twisted.internet.error import ConnectionDone, MessageLengthError
from twisted.internet.protocol import (
    DatagramProtocol,
    Protocol,
    ServerFactory,
    connectionDone,
)
from twisted.logger import Logger
from twisted.python.failure import Failure

from qotdd.error import ConnectionError
from qotdd.ratelimit import RateLimiter
from qotdd.selector import IQuoteSelector

TERMINATOR = b"\n"


def _hostOf(address) -> str:
    """
    The part of an address the rate limiter keys on.
    """
    return getattr(address, "host", None) or str(address)


def pickQuote(
    selector: IQuoteSelector, limiter: Optional[RateLimiter], host: str
) -> Optional[bytes]:
    """
    Choose the response to a request from C{host}.

    @return: the quote followed by L{TERMINATOR}, or L{None} if C{host} has
        exhausted its request budget.
    """
    if limiter is not None and not limiter.accept(host):
        return None
    return selector.next() + TERMINATOR


class QuoteProtocol(Protocol):
    """
    Send a quote to a TCP client and hang up (RFC 865).

    Each connection goes from I{accepted} to I{writing} once a quote has been
    handed to the transport, and to I{closed} when the connection is lost.
    A client which has been refused by the rate limiter goes straight from
    I{accepted} to I{closed}.
    """

    _log = Logger()
    _machine = MethodicalMachine()

    peer = None

    def connectionMade(self):
        self.peer = self.transport.getPeer()
        self.factory.protocolConnected(self)
        response = pickQuote(
            self.factory.selector, self.factory.limiter, _hostOf(self.peer)
        )
        if response is None:
            self._refused()
        else:
            self._admitted(response)

    def dataReceived(self, data):
        pass

    def connectionLost(self, reason: Failure = connectionDone) -> None:
        self._lost(reason)
        self.factory.protocolDisconnected(self)

    @_machine.state(initial=True)
    def _accepted(self):
        """
        The connection is open and nothing has been sent yet.
        """

    @_machine.state()
    def _writing(self):
        """
        A quote has been written and the connection is closing.
        """

    @_machine.state()
    def _closed(self):
        """
        The connection is gone.
        """

    @_machine.input()
    def _admitted(self, response):
        """
        The client may be sent C{response}.
        """

    @_machine.input()
    def _refused(self):
        """
        The client made too many requests.
        """

    @_machine.input()
    def _lost(self, reason):
        """
        The connection was lost.
        """

    @_machine.output()
    def _writeQuote(self, response):
        self._log.debug("Sending a quote to {peer}", peer=self.peer)
        self.transport.write(response)
        self.transport.loseConnection()

    @_machine.output()
    def _hangUp(self):
        self._log.debug("Refusing {peer}: rate limit exceeded", peer=self.peer)
        self.transport.loseConnection()

    @_machine.output()
    def _reportLoss(self, reason):
        if not reason.check(ConnectionDone):
            self._log.warn(
                "{error}",
                error=ConnectionError(self.peer, reason.getErrorMessage()),
            )

    _accepted.upon(_admitted, enter=_writing, outputs=[_writeQuote])
    _accepted.upon(_refused, enter=_closed, outputs=[_hangUp])
    _accepted.upon(_lost, enter=_closed, outputs=[])
    _writing.upon(_lost, enter=_closed, outputs=[_reportLoss])
    _closed.upon(_lost, enter=_closed, outputs=[])


class QuoteFactory(ServerFactory):
    """
    Build L{QuoteProtocol}s and keep track of the connections in progress.

    @ivar selector: the L{IQuoteSelector} choosing quotes.
    @ivar limiter: the L{RateLimiter} admitting clients, or L{None} to
        serve everyone.
    @ivar connections: the protocols of the open connections.
    """

    protocol = QuoteProtocol

    def __init__(
        self, selector: IQuoteSelector, limiter: Optional[RateLimiter] = None
    ) -> None:
        self.selector = selector
        self.limiter = limiter
        self.connections: Set[QuoteProtocol] = set()
        self._drained: list[Deferred[None]] = []

    def protocolConnected(self, protocol: QuoteProtocol) -> None:
        self.connections.add(protocol)

    def protocolDisconnected(self, protocol: QuoteProtocol) -> None:
        self.connections.discard(protocol)
        if not self.connections:
            drained, self._drained = self._drained, []
            for d in drained:
                d.callback(None)

    def waitForConnections(self) -> Deferred[None]:
        """
        @return: a L{Deferred} which fires once no connection is open.
        """
        if not self.connections:
            return succeed(None)
        d: Deferred[None] = Deferred()
        self._drained.append(d)
        return d

    def abortConnections(self) -> None:
        """
        Close every open connection without waiting for pending data.
        """
        for protocol in list(self.connections):
            protocol.transport.abortConnection()


class QuoteDatagramProtocol(DatagramProtocol):
    """
    Answer every datagram, whatever its content, with a quote (RFC 865).

    @ivar selector: the L{IQuoteSelector} choosing quotes.
    @ivar limiter: the L{RateLimiter} admitting clients, or L{None} to
        serve everyone.
    """

    _log = Logger()

    def __init__(
        self, selector: IQuoteSelector, limiter: Optional[RateLimiter] = None
    ) -> None:
        self.selector = selector
        self.limiter = limiter

    def datagramReceived(self, datagram, addr):
        response = pickQuote(self.selector, self.limiter, addr[0])
        if response is None:
            self._log.debug("Refusing {host}: rate limit exceeded", host=addr[0])
            return
        try:
            self.transport.write(response, addr)
        except (OSError, MessageLengthError) as e:
            self._log.warn("{error}", error=ConnectionError(addr, e))


__all__ = [
    "TERMINATOR",
    "pickQuote",
    "QuoteProtocol",
    "QuoteFactory",
    "QuoteDatagramProtocol",
]
