"""Centralized logging configuration.
Call setup_logging() once at application startup.
"""

from __future__ import annotations

import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    """Configure the root handler and formatter for the pipeline."""
    root = logging.getLogger()
    # Avoid duplicate handlers on repeated calls
    if root.handlers:
        return

    numeric = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(numeric)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root.addHandler(handler)

    # Quiet noisy libraries but keep our code at the requested level
    for name in ("httpx", "httpcore", "urllib3", "groq"):
        logging.getLogger(name).setLevel(logging.WARNING)
    for name in ("langchain", "langchain_core", "langchain_groq", "langgraph"):
        logging.getLogger(name).setLevel(logging.INFO)
