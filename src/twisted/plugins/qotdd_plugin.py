# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
A twistd plugin running the quote of the day server::

  $ twistd -n qotd --quotes=/etc/quotes --port=tcp:1717
"""

from zope.interface import implementer

from twisted.application.service import IServiceMaker, MultiService
from twisted.plugin import IPlugin


class _ExitOnStartupError(MultiService):
    """
    Stop twistd with a message instead of a traceback when a child service
    fails to start with a L{qotdd.error.QuoteDaemonError}, such as a port
    which cannot be bound.
    """

    def _start(self, start):
        from qotdd.error import QuoteDaemonError

        try:
            start(self)
        except QuoteDaemonError as e:
            raise SystemExit(f"qotd: {e}")

    def privilegedStartService(self):
        self._start(MultiService.privilegedStartService)

    def startService(self):
        self._start(MultiService.startService)


@implementer(IPlugin, IServiceMaker)
class QuoteServiceMaker:
    """
    Build L{qotdd.service.QuoteService}s for twistd, turning quote loading
    and port binding errors into a message instead of a traceback.
    """

    tapname = "qotd"
    description = "A Quote of the Day (RFC 865) server."

    def options(self):
        from qotdd.tap import Options

        return Options()

    def makeService(self, options):
        from qotdd import tap
        from qotdd.error import QuoteDaemonError

        try:
            service = tap.makeService(options)
        except QuoteDaemonError as e:
            raise SystemExit(f"qotd: {e}")
        parent = _ExitOnStartupError()
        service.setServiceParent(parent)
        return parent


qotd = QuoteServiceMaker()
