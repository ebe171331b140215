from .logger import logger, log_performance, RecordbaseLogger

__all__ = ["logger", "log_performance", "RecordbaseLogger"]
