# persona_dispatch/logging_config.py
import logging
import re
import sys

from pythonjsonlogger import jsonlogger


class PersonaContextFilter(logging.Filter):
    def filter(self, record):
        record.persona_id = getattr(record, "persona_id", "N/A")
        return True


class RedactingFilter(logging.Filter):
    # User messages are logged on routing; founders paste credentials into chats.
    secret_patterns = [
        r"API_KEY=[^,\s]+",
        r"token\s*[:=]\s*[^\s]+",
        r"sk-[A-Za-z0-9]{32,}",
    ]

    def filter(self, record):
        if isinstance(record.msg, str):
            for pattern in self.secret_patterns:
                record.msg = re.sub(pattern, "***REDACTED***", record.msg)
        return True


def setup_structured_logging(log_level=logging.INFO):
    logger = logging.getLogger()
    if logger.handlers:
        return

    logger.setLevel(log_level)
    log_handler = logging.StreamHandler(sys.stdout)
    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(funcName)s %(lineno)d %(persona_id)s %(message)s",
        rename_fields={
            "asctime": "timestamp",
            "levelname": "level",
            "name": "logger_name",
            "funcName": "function",
            "lineno": "line_number",
        },
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    log_handler.setFormatter(formatter)
    log_handler.addFilter(PersonaContextFilter())
    log_handler.addFilter(RedactingFilter())
    logger.addHandler(log_handler)

    logger.info("Structured JSON logging configured successfully.")
