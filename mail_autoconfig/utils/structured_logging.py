"""
JSON log output, one object per line

Selected with ``LOG_FORMAT=json``. Context goes in through
``logger.info("msg", extra={"extra_fields": {...}})``; nested mappings such as
a whole settings dict are walked so credentials never reach the log.
"""

import json
import logging
from typing import Any, Dict, Mapping

REDACTED = "[REDACTED]"


class JSONFormatter(logging.Formatter):
    """Formats records as JSON with credential-looking keys masked"""

    SENSITIVE_FIELDS = frozenset({
        'password', 'token', 'secret', 'credential', 'code_verifier',
        'authorization', 'auth_code'
    })

    def format(self, record: logging.LogRecord) -> str:
        entry = self._base_entry(record)

        extra = getattr(record, "extra_fields", None)
        if isinstance(extra, Mapping):
            entry.update(self._redact(extra))

        return json.dumps(entry, default=str)

    def _base_entry(self, record: logging.LogRecord) -> Dict[str, Any]:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return entry

    def is_sensitive(self, key: str) -> bool:
        key_lower = key.lower()
        return any(sensitive in key_lower for sensitive in self.SENSITIVE_FIELDS)

    def _redact(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Copy ``fields`` replacing sensitive values with "[REDACTED]".

        Args:
            fields: Extra context attached to the record

        Returns:
            New dict; nested mappings are redacted the same way
        """
        redacted = {}
        for key, value in fields.items():
            if self.is_sensitive(str(key)):
                redacted[key] = REDACTED
            elif isinstance(value, Mapping):
                redacted[key] = self._redact(value)
            else:
                redacted[key] = value
        return redacted
