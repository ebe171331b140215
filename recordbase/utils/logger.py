import logging
import os
import sys
import time
from functools import wraps


class RecordbaseLogger:
    """
    Package logger for recordbase
    Level comes from RECORDBASE_LOG_LEVEL (default WARNING)
    """

    def __init__(self, level=None):
        self.level = level or os.getenv('RECORDBASE_LOG_LEVEL', 'WARNING')
        self.setup_logger()

    def setup_logger(self):
        """Attach a single stdout handler to the package logger"""
        self.logger = logging.getLogger('recordbase')

        # Avoid duplicate handlers
        if self.logger.handlers:
            return

        log_level = getattr(logging, self.level.upper(), logging.WARNING)
        self.logger.setLevel(log_level)

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(log_level)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        ))
        self.logger.addHandler(handler)

    def debug(self, msg, *args):
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug(msg, *args)

    def info(self, msg, *args):
        if self.logger.isEnabledFor(logging.INFO):
            self.logger.info(msg, *args)

    def warning(self, msg, *args):
        if self.logger.isEnabledFor(logging.WARNING):
            self.logger.warning(msg, *args)

    def error(self, msg, *args):
        if self.logger.isEnabledFor(logging.ERROR):
            self.logger.error(msg, *args)

    def performance(self, operation, duration_ms, details=None):
        """Performance monitoring logs"""
        msg = f"PERF: {operation} took {duration_ms:.2f}ms"
        if details:
            msg += f" - {details}"
        self.debug(msg)


# Global logger instance
logger = RecordbaseLogger()


def log_performance(operation_name):
    """Decorator to log how long a call took"""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not logger.logger.isEnabledFor(logging.DEBUG):
                return func(*args, **kwargs)

            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
                logger.performance(operation_name, (time.perf_counter() - start_time) * 1000)
                return result
            except Exception as e:
                logger.performance(f"{operation_name}_FAILED",
                                   (time.perf_counter() - start_time) * 1000, str(e))
                raise
        return wrapper
    return decorator
