import copy
import logging
import sys
from pathlib import Path
from typing import Optional

from .colors import Colors
from .structured_logging import JSONFormatter
from ..modules.provider_template import SOURCE_LOG_MESSAGES


class LogFormatter(logging.Formatter):
    """Custom formatter for colored console output"""

    FORMATS = {
        logging.DEBUG:    f"{Colors.GREY}%(asctime)s{Colors.RESET} - {Colors.CYAN}%(name)s{Colors.RESET} - {Colors.GREY}%(levelname)s{Colors.RESET} - %(message)s",
        logging.INFO:     f"{Colors.GREY}%(asctime)s{Colors.RESET} - {Colors.CYAN}%(name)s{Colors.RESET} - {Colors.GREEN}%(levelname)s{Colors.RESET} - %(message)s",
        logging.WARNING:  f"{Colors.GREY}%(asctime)s{Colors.RESET} - {Colors.CYAN}%(name)s{Colors.RESET} - {Colors.YELLOW}%(levelname)s{Colors.RESET} - %(message)s",
        logging.ERROR:    f"{Colors.GREY}%(asctime)s{Colors.RESET} - {Colors.CYAN}%(name)s{Colors.RESET} - {Colors.RED}%(levelname)s{Colors.RESET} - %(message)s",
        logging.CRITICAL: f"{Colors.GREY}%(asctime)s{Colors.RESET} - {Colors.CYAN}%(name)s{Colors.RESET} - {Colors.BOLD}{Colors.RED}%(levelname)s{Colors.RESET} - %(message)s",
    }

    # Messages announcing which resolution source won get highlighted
    SOURCE_MARKERS = tuple(SOURCE_LOG_MESSAGES.values())

    def format(self, record):
        # Copy so file handlers sharing the record never see ANSI codes
        record = copy.copy(record)
        if isinstance(record.msg, str) and record.msg.startswith(self.SOURCE_MARKERS):
            record.msg = f"{Colors.MAGENTA}{record.msg}{Colors.RESET}"

        log_fmt = self.FORMATS.get(record.levelno, self.FORMATS[logging.INFO])
        formatter = logging.Formatter(log_fmt, datefmt="%Y-%m-%d %H:%M:%S")
        return formatter.format(record)


def setup_logging(level_name: str = "INFO", log_file: Optional[str] = None,
                  log_format: str = "text") -> None:
    """
    Configure root logging for the CLI.

    Args:
        level_name: Log level name, unknown names fall back to INFO
        log_file: Optional file receiving plain (uncolored) records
        log_format: "text" for colored console output, "json" for JSONFormatter
    """
    normalized = str(level_name).upper()
    level = logging._nameToLevel.get(normalized, logging.INFO)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(JSONFormatter() if log_format == "json" else LogFormatter())
    handlers = [console]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            JSONFormatter() if log_format == "json" else logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
        )
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    if normalized not in logging._nameToLevel:
        logging.getLogger(__name__).warning(
            "Invalid log level '%s'; defaulting to INFO", level_name
        )
