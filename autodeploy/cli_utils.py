"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import logging
import sys
from functools import wraps
from typing import Any, Generator, Optional

import click

from .config import ReleaseConfig, configure_logging
from .exit_codes import (
    SUCCESS, INTERRUPTED,
    get_exit_code_for_exception, CommandError
)

logger = logging.getLogger(__name__)


def standard_command(func):
    """
    Decorator that provides standard CLI behavior:
    - Clean JSON output on stdout
    - Errors reported as a JSON object and mapped to an exit code
    - Ctrl+C exits with INTERRUPTED

    The command may return a dict, a list/generator of dicts, or None when it
    handles its own output.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            result = func(*args, **kwargs)
            output_result(result)
            sys.exit(SUCCESS)

        except KeyboardInterrupt:
            logger.error("Interrupted by user")
            sys.exit(INTERRUPTED)
        except click.ClickException:
            # Click exceptions already have their exit code
            raise
        except CommandError as e:
            logger.error(str(e))
            error_obj = {
                "error": str(e),
                "type": type(e).__name__,
                "exit_code": e.exit_code
            }
            # Add extra fields for PartialSuccessError
            if hasattr(e, 'succeeded'):
                error_obj['succeeded'] = e.succeeded
                error_obj['failed'] = e.failed
            print(json.dumps(error_obj, ensure_ascii=False), flush=True)
            sys.exit(e.exit_code)
        except Exception as e:
            logger.error(f"Command failed: {e}")
            error_obj = {
                "error": str(e),
                "type": type(e).__name__
            }
            print(json.dumps(error_obj, ensure_ascii=False), flush=True)
            sys.exit(get_exit_code_for_exception(e))

    return wrapper


def output_result(result: Any):
    """
    Standard output handler for results.

    Args:
        result: The result to output (dict, list, or generator)
    """
    if isinstance(result, Generator):
        for item in result:
            print(json.dumps(item, ensure_ascii=False), flush=True)
    elif isinstance(result, (list, tuple)):
        for item in result:
            print(json.dumps(item, ensure_ascii=False), flush=True)
    elif isinstance(result, dict):
        print(json.dumps(result, ensure_ascii=False), flush=True)


def release_config(
    dry_run: Optional[bool] = None,
    security: Optional[bool] = None,
    verbose: bool = False,
) -> ReleaseConfig:
    """Load configuration, apply CLI flags and set up logging."""
    config = ReleaseConfig.load().with_overrides(
        dry_run=dry_run or None,
        security_release=security or None,
    )
    configure_logging(config, verbose=verbose)
    return config


# Standard options that many commands share
common_options = {
    'verbose': click.option('-v', '--verbose', is_flag=True,
                            help='Log debug output to stderr'),
    'dry_run': click.option('--dry-run', is_flag=True,
                            help='Log mutating calls instead of making them'),
    'security': click.option('--security', is_flag=True,
                             help='Work against the security mirrors'),
    'pretty': click.option('--pretty', is_flag=True,
                           help='Display with rich formatting'),
}


def add_common_options(*option_names):
    """
    Decorator to add common options to a command.

    Example:
        @add_common_options('verbose', 'dry_run')
        def my_command(verbose, dry_run):
            ...
    """
    def decorator(func):
        for name in reversed(option_names):
            if name in common_options:
                func = common_options[name](func)
        return func
    return decorator
