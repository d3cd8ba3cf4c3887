import logging

logger = logging.getLogger("playbox")


def configure_logging(level_name: str = "INFO") -> None:
    level = getattr(logging, (level_name or "INFO").upper(), None)
    invalid = not isinstance(level, int)
    logging.basicConfig(
        level=logging.INFO if invalid else level,
        format="%(message)s",
    )
    if invalid:
        logger.warning(f"[DIAG_WARN] Invalid log level {level_name!r}; falling back to INFO")


class DiagnosticLogger:
    @staticmethod
    def warn(msg: str):
        logger.warning(f"[DIAG_WARN] {msg}")

    @staticmethod
    def debug(msg: str):
        logger.debug(f"[DIAG_DEBUG] {msg}")

    @staticmethod
    def error(msg: str):
        logger.error(f"[DIAG_ERROR] {msg}")

    @staticmethod
    def info(msg: str):
        logger.info(f"[DIAG_INFO] {msg}")

diagnostic_logger = DiagnosticLogger()

def log_extract_entry(name: str, is_dir: bool, mode: int):
    kind = "dir" if is_dir else "file"
    diagnostic_logger.debug(f"Extract {kind} {name} mode={oct(mode)}")

def log_extract_done(dest: str, count: int, duration_ms: float):
    diagnostic_logger.info(f"Extracted {count} entries into {dest} in {int(duration_ms)}ms")

def log_runner_rejected(command: str):
    diagnostic_logger.debug(f"Runner busy, rejected: {command}")

def log_runner_done(command: str, exit_code: int, duration_ms: float):
    diagnostic_logger.debug(f"Runner done: {command} exit={exit_code} durationMs={int(duration_ms)}")
