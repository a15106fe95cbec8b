import logging
import logging.config
import os
from vibeledger.core.config import settings

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        },
        "detailed": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": settings.LOG_LEVEL,
            "formatter": "default",
            "stream": "ext://sys.stdout"
        },
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "INFO",
            "formatter": "detailed",
            "filename": os.path.join(settings.LOG_DIR, "app.log"),
            "maxBytes": 10485760,
            "backupCount": 5
        },
        "error_file": {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "ERROR",
            "formatter": "detailed",
            "filename": os.path.join(settings.LOG_DIR, "error.log"),
            "maxBytes": 10485760,
            "backupCount": 5
        }
    },
    "root": {
        "level": settings.LOG_LEVEL,
        "handlers": ["console", "file", "error_file"]
    },
    "loggers": {
        "vibeledger": {
            "level": settings.LOG_LEVEL,
            "handlers": ["console", "file"],
            "propagate": False
        },
        "vibeledger.middleware.logging": {
            "level": "INFO",
            "handlers": ["console", "file"],
            "propagate": False
        },
        "vibeledger.core.decorators": {
            "level": "DEBUG",
            "handlers": ["console", "file"],
            "propagate": False
        },
        "uvicorn.access": {
            "level": "WARNING",
            "handlers": ["console"],
            "propagate": False
        }
    }
}

def _without_file_handlers(config: dict) -> dict:
    file_handlers = {"file", "error_file"}
    config = {**config, "handlers": {k: v for k, v in config["handlers"].items() if k not in file_handlers}}
    config["root"] = {**config["root"], "handlers": [h for h in config["root"]["handlers"] if h not in file_handlers]}
    config["loggers"] = {
        name: {**logger_config, "handlers": [h for h in logger_config["handlers"] if h not in file_handlers]}
        for name, logger_config in config["loggers"].items()
    }
    return config

def configure_logging():
    if settings.LOG_TO_FILE:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        logging.config.dictConfig(LOGGING_CONFIG)
    else:
        logging.config.dictConfig(_without_file_handlers(LOGGING_CONFIG))
