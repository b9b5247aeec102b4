"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import sys
from functools import wraps

import click

from .exit_codes import INTERRUPTED, CommandError, exit_code_for


def handle_errors(func):
    """
    Decorator that turns exceptions into exit codes:
    - CommandError subclasses exit with their own code
    - click exceptions pass through untouched
    - anything else exits with the code mapped for its type

    With `json_output=True` in the command's arguments the error is also
    printed to stdout as one JSON object.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        json_output = kwargs.get('json_output', False)
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            click.echo("Interrupted by user", err=True)
            sys.exit(INTERRUPTED)
        except click.ClickException:
            raise
        except CommandError as e:
            click.echo(f"Error: {e}", err=True)
            if json_output:
                error_obj = {
                    "error": str(e),
                    "type": type(e).__name__,
                    "exit_code": e.exit_code,
                }
                if hasattr(e, 'succeeded'):
                    error_obj['succeeded'] = e.succeeded
                    error_obj['failed'] = e.failed
                print(json.dumps(error_obj, ensure_ascii=False), flush=True)
            sys.exit(e.exit_code)
        except Exception as e:
            click.echo(f"Command failed: {e}", err=True)
            if json_output:
                print(json.dumps({"error": str(e), "type": type(e).__name__},
                                 ensure_ascii=False), flush=True)
            sys.exit(exit_code_for(e))

    return wrapper


common_options = {
    'json': click.option('--json', 'json_output', is_flag=True,
                         help='Output JSONL events on stdout'),
    'pretty': click.option('--pretty', is_flag=True,
                           help='Rich progress bar and summary table'),
    'debug': click.option('--debug', is_flag=True,
                          help='Enable debug logging'),
    'parallel': click.option('-p', '--parallel', type=int, default=None,
                             help='Number of repositories processed concurrently'),
    'exclude': click.option('--exclude', multiple=True,
                            help='Directory name to skip (repeatable)'),
}


def add_common_options(*option_names):
    """
    Decorator to add common options to a command.

    Example:
        @add_common_options('json', 'pretty')
        def my_command(json_output, pretty):
            ...
    """
    def decorator(func):
        for name in reversed(option_names):
            if name in common_options:
                func = common_options[name](func)
        return func
    return decorator
