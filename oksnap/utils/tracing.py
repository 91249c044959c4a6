import logging


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **fields) -> None:
    """Emit a single-line trace event: `event key=value key=value`."""
    if not logger.isEnabledFor(level):
        return
    if fields:
        rendered = " ".join(f"{key}={value!r}" for key, value in fields.items())
        logger.log(level, "%s %s", event, rendered)
    else:
        logger.log(level, "%s", event)
