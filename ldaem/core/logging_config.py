import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s : %(levelname)s : %(name)s : %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Install the root handler once. LDA_LOG_LEVEL overrides the default level.
    """
    if level is None:
        from ldaem.core.config import get_settings

        level = get_settings().log_level
    logging.basicConfig(format=LOG_FORMAT, level=getattr(logging, str(level).upper(), logging.INFO))
