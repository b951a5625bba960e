# -*- test-case-name: qotdd.test.test_error -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Exceptions raised by the quote of the day daemon.

L{LoadError} and L{BindError} are fatal and only happen before the daemon
starts serving.  L{ConnectionError} describes a failure confined to a single
client and is only ever logged.
"""


class QuoteDaemonError(Exception):
    """An error occurred in the quote daemon"""

    def __str__(self) -> str:
        s = self.__doc__
        if self.args:
            s = "{}: {}".format(s, " ".join(str(arg) for arg in self.args))
        return s + "."


class LoadError(QuoteDaemonError):
    """Could not load any quotes"""


class BindError(QuoteDaemonError):
    """
    Could not listen on a configured endpoint.

    @ivar description: the endpoint description which could not be bound.
    @ivar reason: the underlying exception.
    """

    def __init__(self, description: str, reason: BaseException) -> None:
        QuoteDaemonError.__init__(self, description, reason)
        self.description = description
        self.reason = reason

    def __str__(self) -> str:
        return f"Couldn't listen on {self.description}: {self.reason}"


class ConnectionError(QuoteDaemonError):
    """Could not deliver a quote"""

    def __init__(self, peer: object, reason: object) -> None:
        QuoteDaemonError.__init__(self, peer, reason)
        self.peer = peer
        self.reason = reason

    def __str__(self) -> str:
        return f"Could not deliver a quote to {self.peer}: {self.reason}"


__all__ = ["QuoteDaemonError", "LoadError", "BindError", "ConnectionError"]
