from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level for the `crm_scope` logger tree.

    Uvicorn installs the handlers; this only controls verbosity of our package.
    Use `CRM_LOG_LEVEL=DEBUG` to see per-request scope decisions.
    """

    normalized = level.upper()
    logging.getLogger("crm_scope").setLevel(normalized)
    logging.getLogger("crm_scope").propagate = True
