# -*- test-case-name: qotdd -*-

# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

"""
qotdd: a Quote of the Day (RFC 865) daemon.
"""

from qotdd._version import __version__ as version

__version__ = version.short()
