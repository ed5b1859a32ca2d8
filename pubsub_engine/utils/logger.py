import logging
import os

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class Logger:
    """Centralized logging utilities for the load-test engine"""

    @staticmethod
    def log_scenario_result(scenario_id: str = "", steps: int = 0, duration_ms: float = 0.0, error: str = ""):
        """Log the outcome of one scenario run for monitoring"""
        logger = logging.getLogger("scenario")

        log_data = {
            "scenario_id": scenario_id[:8] if scenario_id else "unknown",
            "steps": steps,
            "duration_ms": round(duration_ms, 2),
            "has_error": bool(error)
        }

        if error:
            logger.error(f"Scenario Failed: {log_data} - Error: {error}")
        else:
            logger.info(f"Scenario Completed: {log_data}")


def configure_root_logger(level: str = "INFO") -> None:
    """Configure the root logger once for the whole application."""
    # Get log level from environment or use provided level
    log_level = os.environ.get("LOG_LEVEL", level).upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )
