"""
QDAO Logging System
===================

A thread-safe logging utility for the governance ledger. It wires the standard
Python `logging` library to `rich` for console output and to a rotating file
for persistent records of every state mutation.

Usage:
    >>> from qdao.logger import get_logger
    >>> logger = get_logger(__name__)
    >>> logger.info("Proposal #1: Submission -> Discussion")
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_LEVEL,
    LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_MAX_FILE_SIZE,
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_FILE_OUTPUT,
)


PROJECT_ROOT = Path(__file__).parent.parent
LOG_FILE_PATH = PROJECT_ROOT / "logs" / "qdao.log"


class LogManager:
    """
    Manages logging configuration via the Singleton pattern.

    The first call to `configure()` installs the handlers on the root logger;
    subsequent calls are no-ops until `reset()` is called.

    Attributes:
        _instance (LogManager): The singleton instance.
        _lock (threading.Lock): Thread lock for atomic initialization.
    """

    _instance: Optional["LogManager"] = None
    _lock: threading.Lock = threading.Lock()


    def __new__(cls) -> "LogManager":
        """Creates or returns the existing singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance


    def __init__(self) -> None:
        if self._initialized:
            return
        self._configured = False
        self._initialized = True


    @staticmethod
    def validate_log_format(log_format: str) -> str:
        """
        Validates a logging format string by formatting a dummy record.

        Args:
            log_format (str): The logging format string.

        Returns:
            str: The validated format string, or the default `LOG_FORMAT` if validation fails.
        """
        default = str(LOG_FORMAT.default())
        if not log_format:
            return default

        log_format = str(log_format)
        format_specifier_pattern = r"\([a-zA-Z_][a-zA-Z0-9_]*\)[a-zA-Z]"

        try:
            for match in re.finditer(format_specifier_pattern, log_format):
                start_pos = match.start()
                if start_pos == 0 or log_format[start_pos - 1] != "%":
                    raise ValueError("Malformed format specifier.")

            formatter = logging.Formatter(fmt=log_format)
            record = logging.LogRecord(
                name="test", level=logging.INFO, pathname="", lineno=0,
                msg="test", args=(), exc_info=None,
            )
            formatted_output = formatter.format(record)
            if re.search(format_specifier_pattern, formatted_output):
                raise ValueError("Format specifiers not properly processed.")
        except (ValueError, KeyError, TypeError) as e:
            print(
                f"{time.strftime('%Y-%m-%d %H:%M:%S')} - qdao.logger - Validation Error: {e}. Using default.",
                file=sys.stderr,
            )
            return default

        return log_format


    @staticmethod
    def validate_date_format(date_format: str) -> str:
        """
        Validates a date format string against standard strftime directives.

        Args:
            date_format (str): The date format string (e.g., "%Y-%m-%d").

        Returns:
            str: The validated date format string, or default if validation fails.
        """
        default = str(LOG_DATE_FORMAT.default())
        if not date_format:
            return default

        date_format = str(date_format)
        date_format_pattern = re.compile(
            r"^(?=.*%[A-Za-z])(?:%%|%[A-Za-z]|[0-9 \t:\-\/\.,TZ+])+$"
        )
        if not date_format_pattern.match(date_format):
            print(
                f"{time.strftime(default)} - qdao.logger - Invalid date format. Using default.",
                file=sys.stderr,
            )
            return default

        return date_format


    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Configures the root logger with console and file handlers.

        Args:
            log_level (Optional[str]): Logging level (DEBUG, INFO, etc.). Defaults to env var.
            log_file (Optional[Path]): Path to log file. Defaults to `logs/qdao.log`.
            console_output (bool): Enable console logging. Defaults to True.
            file_output (Optional[bool]): Enable rotating file logging. Defaults to env var.
        """
        with self._lock:
            if self._configured:
                return

            level_str = log_level or LOG_LEVEL
            numeric_level = getattr(logging, str(level_str).upper(), logging.INFO)

            root_logger = logging.getLogger()
            root_logger.setLevel(numeric_level)
            root_logger.handlers.clear()

            log_format = self.validate_log_format(LOG_FORMAT)
            date_format = self.validate_date_format(LOG_DATE_FORMAT)

            # UTC keeps records comparable across hosts
            formatter = TerminalSafeFormatter(fmt=log_format, datefmt=date_format + " UTC")
            formatter.converter = time.gmtime

            if console_output:
                if LOG_CONSOLE_HIGHLIGHTING:
                    qdao_theme = Theme(
                        {
                            "qdao.arrow":          "bold yellow",
                            "qdao.level_critical": "bold red reverse",
                            "qdao.level_debug":    "bold dim",
                            "qdao.level_error":    "bold red",
                            "qdao.level_info":     "bold green",
                            "qdao.level_warning":  "bold yellow",
                            "qdao.logger_name":    "magenta",
                            "qdao.proposal":       "bold cyan",
                            "qdao.state_good":     "bold green",
                            "qdao.state_bad":      "bold red",
                            "qdao.phase":          "bold blue",
                            "qdao.error_code":     "bold red",
                            "qdao.height":         "cyan",
                            "qdao.timestamp":      "bold cyan",
                        }
                    )

                    console = Console(theme=qdao_theme, highlight=False)

                    rich_handler = RichHandler(
                        console=console,
                        highlighter=GovernanceLogHighlighter(),
                        keywords=[],
                        rich_tracebacks=True,
                        omit_repeated_times=False,
                        show_path=False,
                        show_time=False,
                        show_level=False,
                        markup=False,
                    )
                    rich_handler.setLevel(numeric_level)
                    rich_handler.setFormatter(formatter)
                    root_logger.addHandler(rich_handler)
                else:
                    console_handler = logging.StreamHandler(sys.stdout)
                    console_handler.setLevel(numeric_level)
                    console_handler.setFormatter(formatter)
                    root_logger.addHandler(console_handler)

            if file_output is None:
                file_output = bool(LOG_FILE_OUTPUT)

            if file_output:
                log_file_path = log_file or LOG_FILE_PATH
                log_file_path.parent.mkdir(parents=True, exist_ok=True)

                file_handler = logging.handlers.RotatingFileHandler(
                    filename=str(log_file_path),
                    maxBytes=LOG_MAX_FILE_SIZE,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                )
                file_handler.setLevel(numeric_level)
                file_handler.setFormatter(formatter)
                root_logger.addHandler(file_handler)

            self._configured = True


    def reset(self) -> None:
        """Drops the installed handlers so the next `configure()` call applies again."""
        with self._lock:
            root_logger = logging.getLogger()
            for handler in list(root_logger.handlers):
                root_logger.removeHandler(handler)
                handler.close()
            self._configured = False


    def get_logger(self, name: str) -> logging.Logger:
        """
        Retrieves a logger for a specific module, configuring logging on first use.

        Args:
            name (str): The name of the logger (typically `__name__`).
        """
        if not self._configured:
            self.configure()
        return logging.getLogger(name)


    @property
    def is_configured(self) -> bool:
        return self._configured


class TerminalSafeFormatter(logging.Formatter):
    """
    A formatter that strips ANSI escape sequences and control characters.

    Proposal titles, descriptions and identities are caller-supplied and end
    up in log lines verbatim, so they must not be able to drive the terminal.
    """

    _ansi_escape_re = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]"
        r"|\x1b[@-Z\\-_]"
    )
    # Control chars (0x00-0x1F) excluding Tab and Newline
    _control_chars_re = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
    _carriage_return_re = re.compile(r"\r")


    @classmethod
    def sanitize(cls, text: str) -> str:
        """Removes terminal escape sequences and control characters from *text*."""
        if not text:
            return text
        text = cls._ansi_escape_re.sub("", text)
        text = cls._carriage_return_re.sub("", text)
        text = cls._control_chars_re.sub("", text)
        return text


    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class GovernanceLogHighlighter(RegexHighlighter):
    """Rich highlighter for proposal ids, lifecycle states, phases and error codes."""

    base_style = "qdao."
    highlights = [
        r"(?P<arrow>(\-\->)|(<--)|(\s\->\s))",
        r"(?P<level_critical>\bCRITICAL\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<level_error>\bERROR\b)",
        r"(?P<level_info>\bINFO\b)",
        r"\-\s+\w+\s+-\s+(?P<logger_name>[\w.]+)(?=\s-\s)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<proposal>Proposal #\d+)",
        r"(?P<state_good>\b(PASSED|EXECUTED|ACTIVE)\b)",
        r"(?P<state_bad>\b(REJECTED|CANCELLED)\b)",
        r"(?P<phase>\b(SUBMISSION|DISCUSSION|VOTING|EXECUTION)\b)",
        r"(?P<error_code>\b[A-Z_]+\(\d{3}\))",
        r"(?P<height>@\d+)",
        r"(?P<timestamp>^(.*?)UTC)",
    ]


_manager = LogManager()

def get_logger(name: str) -> logging.Logger:
    """
    Public accessor of the logging system.
    Delegates to the Singleton LogManager, ensuring configuration is applied.
    """
    return _manager.get_logger(name)
