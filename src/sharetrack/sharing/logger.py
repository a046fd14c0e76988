"""Logging for share lifecycle operations.

Keeps log formatting out of the sharing engine.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

import loguru
from loguru import logger

from sharetrack.domain.types import ShareCorrection


class SharingLogger:
    """Handles all logging for the expense-sharing engine."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        """Initialize logger.

        Args:
            logger_instance: Logger instance to use (defaults to loguru.logger)
        """
        self._logger = logger_instance

    def shares_replaced(
        self,
        item_id: int,
        share_count: int,
        shared_amount: Decimal,
        item_amount: Decimal,
    ) -> None:
        self._logger.bind(
            item_id=item_id,
            shares=share_count,
            shared_amount=str(shared_amount),
        ).info(
            "Split item {} into {} shares ({} of {} shared)",
            item_id,
            share_count,
            shared_amount,
            item_amount,
        )

    def shares_removed(self, item_id: int, removed: int) -> None:
        self._logger.bind(item_id=item_id, removed=removed).info(
            "Removed {} shares from item {}", removed, item_id
        )

    def payment_updated(
        self,
        share_ids: Sequence[int],
        acting_user_id: int,
        *,
        paid: bool,
    ) -> None:
        """Log paid/unpaid status change of one or more shares."""
        self._logger.bind(
            share_ids=list(share_ids), acting_user_id=acting_user_id, paid=paid
        ).info(
            "User {} marked {} share(s) as {}",
            acting_user_id,
            len(share_ids),
            "paid" if paid else "unpaid",
        )

    def recalculation_complete(self, corrections: Sequence[ShareCorrection]) -> None:
        """Log the outcome of a recalculation sweep."""
        item_ids = {correction.item_id for correction in corrections}
        if not corrections:
            self._logger.info("Share recalculation complete: no drift found")
            return

        self._logger.bind(
            items=len(item_ids), shares=len(corrections)
        ).info(
            "Share recalculation complete: {} shares on {} items corrected",
            len(corrections),
            len(item_ids),
        )
        for correction in corrections:
            self._logger.bind(
                share_id=correction.share_id, item_id=correction.item_id
            ).debug(
                "  share {} on item {}: {} -> {}",
                correction.share_id,
                correction.item_id,
                correction.old_amount,
                correction.new_amount,
            )
