from __future__ import annotations

import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    """Route profile_timer and apscheduler logs to stderr. Call once at startup."""
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Job-skipped / missed-run notices from apscheduler are useful; its debug chatter is not.
    logging.getLogger("apscheduler").setLevel(max(root.level, logging.INFO))
