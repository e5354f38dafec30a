"""
Logging setup for storefront purchase automation
Format: YYYY-MM-DD HH:MM:SS - [Module] - [User] - Description
"""

import logging
from datetime import datetime

ROOT_LOGGER = "storefront_purchase"


class PurchaseFormatter(logging.Formatter):
    """Custom formatter with module and user context"""

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record):
        module = getattr(record, 'module_name', None) or record.name.rsplit('.', 1)[-1].upper()
        source = getattr(record, 'source', None) or getattr(record, 'user', None) or 'CORE'

        timestamp = datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S')

        colors = {
            'DEBUG': '\033[36m',    # Cyan
            'INFO': '\033[32m',     # Green
            'WARNING': '\033[33m',  # Yellow
            'ERROR': '\033[31m',    # Red
            'CRITICAL': '\033[35m'  # Magenta
        }
        reset = '\033[0m'

        formatted = f"{timestamp} - [{module}] - [{source}] - {record.getMessage()}"
        if record.exc_info:
            formatted = f"{formatted}\n{self.formatException(record.exc_info)}"

        if not self.use_color:
            return formatted
        color = colors.get(record.levelname, '')
        return f"{color}{formatted}{reset}"


def setup_logger(name=ROOT_LOGGER, level='INFO', use_color=True):
    """Setup logger with the purchase formatter"""
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(PurchaseFormatter(use_color=use_color))

    logger.addHandler(console_handler)
    logger.propagate = False

    return logger


class AttemptLogger(logging.LoggerAdapter):
    """Adapter that stamps every record with the identity it was made for"""

    def process(self, msg, kwargs):
        extra = dict(self.extra)
        extra.update(kwargs.get('extra') or {})
        kwargs['extra'] = extra
        return msg, kwargs


def get_attempt_logger(identity, name=ROOT_LOGGER):
    return AttemptLogger(logging.getLogger(name), {'user': identity})


def log(logger, level, message, module='SYSTEM', source='CORE'):
    """Helper function to log with module and source context"""
    extra = {'module_name': module, 'source': source}

    if level == 'debug':
        logger.debug(message, extra=extra)
    elif level == 'info':
        logger.info(message, extra=extra)
    elif level == 'warning':
        logger.warning(message, extra=extra)
    elif level == 'error':
        logger.error(message, extra=extra)
    elif level == 'critical':
        logger.critical(message, extra=extra)
