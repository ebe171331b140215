import shutil
import logging
import logging.config
from pathlib import Path
from datetime import datetime

logger = logging.getLogger(__name__)


def cleanup_old_logs(logs_dir: Path, max_folders: int = 5) -> None:
    """Keep at most `max_folders` dated log folders, oldest are removed first"""
    if not logs_dir.exists():
        return

    # Folder names are YYYYMMDD so name order is date order
    folders = sorted(f for f in logs_dir.iterdir() if f.is_dir())

    if len(folders) > max_folders:
        for folder in folders[:-max_folders]:
            try:
                shutil.rmtree(folder)
                logger.info(f"Removed old log folder: {folder.name}")
            except OSError as e:
                logger.warning(f"Could not remove log folder {folder.name}: {e}")


def setup_logging(base_dir: str = "logs", level: str = "INFO", max_folders: int = 5) -> Path:
    """Configure console + daily file logging for recordbase; returns the log folder"""
    # One folder per day, every process of that day shares it
    log_dir = Path(base_dir) / datetime.now().strftime("%Y%m%d")
    log_dir.mkdir(parents=True, exist_ok=True)

    cleanup_old_logs(Path(base_dir), max_folders=max_folders)

    config = {
        "version": 1,
        "disable_existing_loggers": False,

        # ---------- FORMATTERS ---------- #
        "formatters": {
            "simple": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
            "detailed": {
                "format": "%(asctime)s [%(process)d] %(name)s:%(lineno)d - %(levelname)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },

        # ---------- HANDLERS ---------- #
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "simple",
                "level": level,
                "stream": "ext://sys.stdout",
            },
            "file_main": {
                "class": "logging.FileHandler",
                "formatter": "detailed",
                "level": "DEBUG",
                "filename": str(log_dir / "recordbase.log"),
                "mode": "a",
                "encoding": "utf-8",
            },
            "file_store": {
                "class": "logging.FileHandler",
                "formatter": "detailed",
                "level": "DEBUG",
                "filename": str(log_dir / "store.log"),
                "mode": "a",
                "encoding": "utf-8",
            },
        },

        # ---------- LOGGERS ---------- #
        "loggers": {
            "recordbase": {
                "handlers": ["console", "file_main"],
                "level": level,
                "propagate": False,
            },
            "recordbase.database": {
                "handlers": ["console", "file_store"],
                "level": "DEBUG",
                "propagate": False,
            },
            "recordbase.database_manager": {
                "handlers": ["console", "file_store"],
                "level": "DEBUG",
                "propagate": False,
            },
        },

        # Fallback (root) -> only serious errors
        "root": {"level": "WARNING", "handlers": ["console"]},
    }

    logging.config.dictConfig(config)
    logger.info(f"Log files are written to {log_dir}")
    return log_dir
