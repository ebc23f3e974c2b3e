"""svsh - Process supervision shell.

One interactive shell over daemontools, perp, s6 and runit service directories.
"""

__version__ = "0.1.0"
