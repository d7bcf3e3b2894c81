import logging
import os
import sys

log = logging.getLogger("rttmap")

LOG_LEVEL_ENV = "RTTMAP_LOG_LEVEL"


def configure_logging() -> None:
    """
    Configure process-wide logging for the CLI and the viewer.

    Library modules only emit through `log`; entry points call this once.
    Respects RTTMAP_LOG_LEVEL (DEBUG, INFO, WARNING, ERROR, CRITICAL), default INFO.

        $ RTTMAP_LOG_LEVEL=DEBUG python -m rttmap render --csv country_country_rtt.csv
    """
    level_name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )
    log.debug("Logging configured: level=%s", logging.getLevelName(level))
