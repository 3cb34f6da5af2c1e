# AppCoder package init
import logging
import os


def _configure_logging() -> None:
    level_name = (os.getenv("APPCODER_LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logger = logging.getLogger("appcoder")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[APPCODER][%(levelname)s] %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level)

    # Frame-level decoder logs are noisy; they get their own knob.
    stream_level_name = (os.getenv("APPCODER_STREAM_LOG_LEVEL") or level_name).upper()
    stream_level = getattr(logging, stream_level_name, level)
    logging.getLogger("appcoder.stream").setLevel(stream_level)


_configure_logging()
