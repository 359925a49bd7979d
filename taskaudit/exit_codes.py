"""
Process exit codes for taskaudit commands.

0 and 1 keep their usual meaning, 130 is SIGINT. The rest sit in the
64-113 range left free for applications.
"""

SUCCESS = 0
GENERAL_ERROR = 1

NO_REPOS_FOUND = 64      # nothing registered yet
CONFIG_ERROR = 66        # settings, task state file or credentials
NETWORK_ERROR = 68       # a remote could not be reached
DATA_ERROR = 70          # malformed state or version value
PARTIAL_SUCCESS = 71     # some repositories were not processed
NON_COMPLIANT = 72       # --strict and at least one task is not compliant
INTERRUPTED = 130

# Looked up along the exception's MRO, by class name, so errors.py does
# not have to be imported here.
EXCEPTION_EXIT_CODES = {
    'GitConnectionError': NETWORK_ERROR,
    'ConnectionError': NETWORK_ERROR,
    'ConfigError': CONFIG_ERROR,
    'ValueError': DATA_ERROR,
    'KeyError': DATA_ERROR,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: BaseException) -> int:
    """Exit code for exc, using the nearest mapped base class."""
    exit_code = getattr(exc, 'exit_code', None)
    if isinstance(exit_code, int):
        return exit_code
    for cls in type(exc).__mro__:
        if cls.__name__ in EXCEPTION_EXIT_CODES:
            return EXCEPTION_EXIT_CODES[cls.__name__]
    return GENERAL_ERROR


class CommandError(Exception):
    """Raised by a command to end with a specific exit code."""

    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class NoReposFoundError(CommandError):
    def __init__(self, message: str = "No repositories found"):
        super().__init__(message, NO_REPOS_FOUND)


class ConfigError(CommandError):
    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)


class PartialSuccessError(CommandError):
    """Some repositories succeeded and some failed."""

    def __init__(self, message: str, succeeded: int = 0, failed: int = 0):
        super().__init__(message, PARTIAL_SUCCESS)
        self.succeeded = succeeded
        self.failed = failed
