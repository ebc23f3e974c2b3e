"""Error taxonomy for svsh.

Only ConfigurationError is fatal. Everything else is recovered at the
command boundary by the dispatcher and rendered as a failed result.
"""


class SvshError(Exception):
    """Base class for all svsh errors."""

    pass


class ConfigurationError(SvshError):
    """Bad or missing suite, base directory or config file."""

    pass


class UnknownSuite(ConfigurationError):
    """Suite name does not match any supported supervision suite."""

    pass


class UnsupportedOperation(SvshError):
    """The active suite does not provide this capability."""

    pass


class UnknownSignal(SvshError):
    """Signal name is not a recognized POSIX signal."""

    pass


class NoMatch(SvshError):
    """Service selection produced an empty set."""

    pass


class AdapterInvocationFailure(SvshError):
    """The suite's control tool reported a failure."""

    pass


class LogUnavailable(SvshError):
    """No log file could be located for a service."""

    pass
