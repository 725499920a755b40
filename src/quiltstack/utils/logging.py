"""Output and logging for quiltstack.

User-facing results go to stdout through ``cout``; diagnostics go to the
``quiltstack`` logger on stderr. Both take ``str.format`` templates, and the
template (not the arguments) is colorized when the stream is a terminal.
"""

import logging
import os
import sys

import colors  # type: ignore

_LOGGING_FORMAT = "%(asctime)s %(module)s %(levelname)s: %(message)s"

logger = logging.getLogger("quiltstack")

# Overridden by --color in main()
COLOR_STDOUT: bool = os.isatty(1)
COLOR_STDERR: bool = os.isatty(2)
# Interactive menus and editors need both ends
IS_TERMINAL: bool = os.isatty(0) and os.isatty(1)


def setup_logging(level: int = logging.INFO):
    logging.basicConfig(format=_LOGGING_FORMAT, level=level, force=True)


def set_color_mode(mode: str):
    """Apply --color: 'always' and 'never' override terminal detection."""
    global COLOR_STDOUT, COLOR_STDERR
    if mode == "auto":
        return
    COLOR_STDOUT = COLOR_STDERR = mode == "always"


def fmt(template: str, *args, color: bool = False, fg=None, bg=None, style=None, **kwargs) -> str:
    if color:
        template = colors.color(template, fg=fg, bg=bg, style=style)
    return template.format(*args, **kwargs)


def cout(*args, **kwargs):
    """Write a result line (or fragment) to stdout."""
    return sys.stdout.write(fmt(*args, color=COLOR_STDOUT, **kwargs))


def _log(level: int, fg: str, template: str, *args, **kwargs):
    if logger.isEnabledFor(level):
        logger.log(level, "%s", fmt(template, *args, color=COLOR_STDERR, fg=fg, **kwargs), stacklevel=3)


def debug(*args, **kwargs):
    _log(logging.DEBUG, "green", *args, **kwargs)


def info(*args, **kwargs):
    _log(logging.INFO, "green", *args, **kwargs)


def warning(*args, **kwargs):
    _log(logging.WARNING, "yellow", *args, **kwargs)


def error(*args, **kwargs):
    _log(logging.ERROR, "red", *args, **kwargs)


class ExitException(BaseException):
    """Raised when the current command cannot continue.

    The message is built with str.format from the constructor arguments, so
    callers can write ``ExitException("patch `{}` not found", name)``.
    ``main()`` reports the message and exits with ``exit_code``.
    """

    exit_code = 1

    def __init__(self, fmt, *args, **kwargs):
        super().__init__(fmt.format(*args, **kwargs))

    @property
    def message(self) -> str:
        return self.args[0]


def die(*args, **kwargs):
    """Abort the current command with a formatted message."""
    raise ExitException(*args, **kwargs)
