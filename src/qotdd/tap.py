# -*- test-case-name: qotdd.test.test_tap -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
Support for running a quote of the day server with twistd.
"""

import os

from twisted.python import usage

from qotdd import store
from qotdd.ratelimit import RateLimiter
from qotdd.selector import POLICIES, selectorForPolicy
from qotdd.service import DEFAULT_PORT, QuoteService


def _positiveInt(value):
    value = int(value)
    if value < 1:
        raise ValueError(f"{value} is not a positive number")
    return value


_positiveInt.coerceDoc = "Must be a positive integer."


def _nonNegativeInt(value):
    value = int(value)
    if value < 0:
        raise ValueError(f"{value} is negative")
    return value


_nonNegativeInt.coerceDoc = "Must be zero or a positive integer."


def _seconds(value):
    value = float(value)
    if value < 0:
        raise ValueError(f"{value} is negative")
    return value


_seconds.coerceDoc = "Must be a number of seconds."


def _interval(value):
    value = float(value)
    if value <= 0:
        raise ValueError(f"{value} is not a positive number")
    return value


_interval.coerceDoc = "Must be a positive number of seconds."


def _portDescription(value):
    """
    Turn a bare port number into a TCP endpoint description.
    """
    if value.isdigit():
        return f"tcp:{usage.portCoerce(value)}"
    return value


class Options(usage.Options):
    """
    Command line options of the quote of the day server.

    Options which are not given on the command line fall back to the
    C{QOTDD_PORT}, C{QOTDD_UDP_PORT}, C{QOTDD_QUOTES} and C{QOTDD_POLICY}
    environment variables.

    @ivar environ: the environment consulted for defaults.
    """

    synopsis = "[options]"
    longdesc = """
    Serve a quote of the day (RFC 865) to every TCP client and in reply to
    every UDP datagram.

    Quotes are read from a UTF-8 file, one quote per paragraph, or from the
    lines between --delimiter lines.  Without --quotes a built-in list is
    served.
    """

    optParameters = [
        ["udp", "u", None, "UDP port to answer datagrams on.", usage.portCoerce],
        ["interface", "i", "", "Interface the UDP port is bound to."],
        ["quotes", "q", None, "File to read quotes from."],
        [
            "delimiter",
            "d",
            None,
            "Line separating quotes in the quote file (default: blank lines).",
        ],
        [
            "policy",
            None,
            None,
            "How quotes are chosen: {} (default: random).".format(
                ", ".join(sorted(POLICIES))
            ),
        ],
        ["seed", None, None, "Seed of the random policy.", int],
        [
            "max-length",
            None,
            store.MAX_LENGTH,
            "Longest quote in bytes; longer ones are truncated.",
            _positiveInt,
        ],
        [
            "rate-limit",
            None,
            10,
            "Requests a host may make per rate window (0 disables the limit).",
            _nonNegativeInt,
        ],
        [
            "rate-window",
            None,
            60.0,
            "Seconds after which rate limit counters are lowered.",
            _interval,
        ],
        [
            "grace-period",
            None,
            5.0,
            "Seconds to wait for open connections when shutting down.",
            _seconds,
        ],
    ]

    compData = usage.Completions(
        optActions={
            "quotes": usage.CompleteFiles(),
            "policy": usage.CompleteList(sorted(POLICIES)),
        }
    )

    environ = os.environ

    def __init__(self):
        usage.Options.__init__(self)
        self["port"] = []

    def opt_port(self, description):
        """
        Listen for TCP clients on the given strports description or port
        number.  May be given more than once. [default: tcp:17]
        """
        try:
            self["port"].append(_portDescription(description))
        except ValueError as e:
            raise usage.UsageError(f"Invalid port {description!r}: {e}")

    opt_p = opt_port

    def postOptions(self):
        """
        Fill in defaults from the environment and check the options.

        @raise usage.UsageError: if an option or environment variable is
            invalid.
        """
        if not self["port"]:
            port = self.environ.get("QOTDD_PORT")
            if port:
                try:
                    self["port"].append(_portDescription(port))
                except ValueError as e:
                    raise usage.UsageError(f"Invalid port in QOTDD_PORT: {e}")
            else:
                self["port"].append(DEFAULT_PORT)

        if self["udp"] is None and self.environ.get("QOTDD_UDP_PORT"):
            try:
                self["udp"] = usage.portCoerce(self.environ["QOTDD_UDP_PORT"])
            except ValueError as e:
                raise usage.UsageError(f"Invalid port in QOTDD_UDP_PORT: {e}")

        if self["quotes"] is None:
            self["quotes"] = self.environ.get("QOTDD_QUOTES") or None

        if self["policy"] is None:
            self["policy"] = self.environ.get("QOTDD_POLICY") or "random"
        if self["policy"] not in POLICIES:
            raise usage.UsageError(
                "Unknown policy {!r}; choose one of {}".format(
                    self["policy"], ", ".join(sorted(POLICIES))
                )
            )

        if self["delimiter"] is not None and not self["delimiter"].strip():
            raise usage.UsageError("The quote delimiter must not be blank")


def loadQuotes(config):
    """
    Load the quote collection described by C{config}.

    @raise qotdd.error.LoadError: if the quote file cannot be used.
    """
    if config["quotes"] is None:
        return store.defaultCollection(config["max-length"])
    return store.load(config["quotes"], config["delimiter"], config["max-length"])


def makeService(config, reactor=None):
    """
    Build a quote of the day server.

    The quotes are loaded before any port is set up, so a broken quote file
    stops the daemon before it listens.

    @type config: L{Options}
    @param config: the parsed options.

    @rtype: L{QuoteService}

    @raise qotdd.error.LoadError: if the quote file cannot be used.
    @raise usage.UsageError: if a port description is invalid.
    """
    quotes = loadQuotes(config)
    selector = selectorForPolicy(config["policy"], quotes, config["seed"])
    limiter = None
    if config["rate-limit"]:
        limiter = RateLimiter(config["rate-limit"], decay=config["rate-limit"])
    try:
        return QuoteService(
            selector,
            config["port"],
            udpPort=config["udp"],
            interface=config["interface"],
            limiter=limiter,
            rateWindow=config["rate-window"],
            gracePeriod=config["grace-period"],
            reactor=reactor,
        )
    except ValueError as e:
        raise usage.UsageError(f"Invalid port description: {e}")
