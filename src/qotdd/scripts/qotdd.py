# -*- test-case-name: qotdd.test.test_script -*-
# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
The stand-alone quote of the day daemon.

Runs in the foreground, logging to standard error, until it is interrupted.
"""

import sys
from textwrap import dedent

from twisted.internet import task
from twisted.internet.defer import Deferred
from twisted.logger import (
    FilteringLogObserver,
    InvalidLogLevelError,
    LogLevel,
    LogLevelFilterPredicate,
    globalLogBeginner,
    textFileLogObserver,
)
from twisted.python import usage

from qotdd import __version__, tap
from qotdd.error import QuoteDaemonError


class ScriptOptions(tap.Options):
    """
    Command line options of the C{qotdd} script.
    """

    defaultLogLevel = LogLevel.info

    def __init__(self):
        tap.Options.__init__(self)
        self["logLevel"] = self.defaultLogLevel
        self["logFile"] = sys.stderr

    def opt_version(self):
        """
        Print version and exit.
        """
        print(f"qotdd {__version__}")
        raise SystemExit(0)

    def opt_log_level(self, levelName):
        """
        Set default log level.
        (options: {options}; default: "{default}")
        """
        try:
            self["logLevel"] = LogLevel.levelWithName(levelName)
        except InvalidLogLevelError:
            raise usage.UsageError(f"Invalid log level: {levelName}")

    opt_log_level.__doc__ = dedent(opt_log_level.__doc__).format(
        options=", ".join(f'"{level.name}"' for level in LogLevel.iterconstants()),
        default=defaultLogLevel.name,
    )

    def opt_log_file(self, fileName):
        """
        Log to file. ("-" for stdout, "+" for stderr; default: "+")
        """
        if fileName == "-":
            self["logFile"] = sys.stdout
            return

        if fileName == "+":
            self["logFile"] = sys.stderr
            return

        try:
            self["logFile"] = open(fileName, "a")
        except OSError as e:
            raise usage.UsageError(f"Unable to open log file {fileName!r}: {e}")


def startLogging(config):
    """
    Send log events at or above the configured level to the log file.
    """
    observer = FilteringLogObserver(
        textFileLogObserver(config["logFile"]),
        [LogLevelFilterPredicate(defaultLogLevel=config["logLevel"])],
    )
    globalLogBeginner.beginLoggingTo([observer])


def main(reactor, config):
    """
    Start serving quotes.

    Nothing is bound unless the quotes load, and a port which cannot be
    bound stops the daemon before it serves anything.

    @raise SystemExit: if the daemon cannot start.

    @return: a L{Deferred} which never fires; the daemon runs until the
        reactor is stopped.
    """
    try:
        service = tap.makeService(config, reactor)
        service.privilegedStartService()
        service.startService()
    except (QuoteDaemonError, usage.UsageError) as e:
        raise SystemExit(f"qotdd: {e}")
    reactor.addSystemEventTrigger("before", "shutdown", service.stopService)
    return Deferred()


def run(argv=None, _reactor=None):
    """
    Parse the command line and run the daemon until it is interrupted.
    """
    if argv is None:
        argv = sys.argv[1:]
    config = ScriptOptions()
    try:
        config.parseOptions(argv)
    except usage.UsageError as e:
        print(config, file=sys.stderr)
        raise SystemExit(f"qotdd: {e}")
    startLogging(config)
    task.react(main, [config], _reactor=_reactor)


__all__ = ["ScriptOptions", "startLogging", "main", "run"]
