"""
Standard exit codes for autodeploy commands.

Following Unix/POSIX conventions for command-line tools.
"""

# Standard POSIX exit codes
SUCCESS = 0              # Successful termination
GENERAL_ERROR = 1        # General errors
USAGE_ERROR = 2          # Misuse of shell command (wrong arguments, etc.)

# Application-specific exit codes (64-113 are typically available)
API_ERROR = 65           # GitLab API call failed
CONFIG_ERROR = 66        # Configuration file error
DATA_ERROR = 70          # Version or lockfile data error
PARTIAL_SUCCESS = 71     # Some packagers succeeded, some failed
COMPONENT_ERROR = 72     # A component version could not be resolved
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)

# Exit code mappings for common exceptions
EXCEPTION_EXIT_CODES = {
    'ValueError': DATA_ERROR,
    'KeyError': DATA_ERROR,
    'VersionParseError': DATA_ERROR,
    'ComponentNotFoundError': COMPONENT_ERROR,
    'VersionNotFoundError': COMPONENT_ERROR,
    'RemoteError': API_ERROR,
    'RemoteNotFound': API_ERROR,
    'RemoteUnavailable': API_ERROR,
    'AlreadyExists': API_ERROR,
    'PipelineCancelled': INTERRUPTED,
    'ConfigError': CONFIG_ERROR,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: BaseException) -> int:
    """
    Get the appropriate exit code for an exception.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    exc_name = exc.__class__.__name__
    return EXCEPTION_EXIT_CODES.get(exc_name, GENERAL_ERROR)


class CommandError(Exception):
    """
    Exception that commands can raise to indicate specific exit codes.
    """
    def __init__(self, message: str, exit_code: int = GENERAL_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


class PartialSuccessError(CommandError):
    """Raised when some packagers succeed and some fail."""
    def __init__(self, message: str, succeeded: int = 0, failed: int = 0):
        super().__init__(message, PARTIAL_SUCCESS)
        self.succeeded = succeeded
        self.failed = failed


def exit_code_for_summary(completed: int, failed: int) -> int:
    """Map batch counts to an exit code; skipped items count as completed."""
    if failed == 0:
        return SUCCESS
    if completed > 0:
        return PARTIAL_SUCCESS
    return GENERAL_ERROR
