# Copyright (c) Twisted Matrix Laboratories.
# See LICENSE for details.

# Make the qotdd package executable, running the stand-alone daemon.

import sys

from qotdd.scripts.qotdd import run

if __name__ == "__main__":
    sys.exit(run())
