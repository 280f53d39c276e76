import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "name": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "funcName": record.funcName,
            "lineNo": record.lineno
        }
        if hasattr(record, "lead_id"):
            log_record["lead_id"] = record.lead_id
        if hasattr(record, "action"):
            log_record["action"] = record.action

        return json.dumps(log_record, ensure_ascii=False)


def setup_logger(name="lead_swarm", log_file=None, level=logging.INFO):
    log_file = log_file or os.path.join(os.getenv("SWARM_LOG_DIR", "logs"), "swarm.log")
    os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers
    if not logger.handlers:
        # File Handler (Daily Rotation)
        file_handler = TimedRotatingFileHandler(log_file, when="midnight", interval=1, backupCount=30)
        file_handler.setFormatter(JSONFormatter())

        # Console Handler
        console_handler = logging.StreamHandler()
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - [%(levelname)s] - %(message)s')
        console_handler.setFormatter(console_formatter)

        logger.addHandler(file_handler)
        logger.addHandler(console_handler)

    return logger


_audit_logger = None


def get_audit_logger():
    global _audit_logger
    if _audit_logger is None:
        log_dir = os.getenv("SWARM_LOG_DIR", "logs")
        _audit_logger = setup_logger("lead_swarm_audit", os.path.join(log_dir, "audit.log"))
        _audit_logger.propagate = False
    return _audit_logger


def log_audit_action(lead_id, action, details):
    """Audit trail of every agent step, keyed by lead."""
    get_audit_logger().info(details, extra={"lead_id": lead_id, "action": action})
