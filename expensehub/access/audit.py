# -*- coding: utf-8 -*-
"""
Audit trail writes for access mutations.

The audit row is written after the change itself has been committed. A failed
audit write is logged and does not undo or fail the change.
"""

import logging

from expensehub.access.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


def write_audit(store, action: str, **fields) -> bool:
    try:
        store.record_audit(action, **fields)
    except StoreUnavailableError as exc:
        logger.error(
            "Audit entry %s for user=%s company=%s subject=%s was not recorded: %s",
            action, fields.get("user_id"), fields.get("company_id"), fields.get("subject"), exc,
        )
        return False
    return True
