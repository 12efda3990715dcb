"""Ledger service - settlement report and atomic bill merge"""

import logging
import threading
import time
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from splitledger.config import settings
from splitledger.domain.exceptions import (
    BalanceInvariantViolation,
    ConcurrentMergeConflict,
    InputInconsistencyError,
)
from splitledger.domain.lifecycle import ensure_transition
from splitledger.domain.models import Bill, BillStatus, Currency, Settlement
from splitledger.domain.netting import MergePlan, MergeStrategy, plan_merge
from splitledger.domain.settlement import compute_settlements
from splitledger.infrastructure.database.repositories import BillRepository, UserRepository
from splitledger.infrastructure.observability.logging import log_merge, log_settlements
from splitledger.infrastructure.observability.metrics import (
    input_inconsistency_counter,
    merge_counter,
    record_merge_plan,
    record_settlements,
)

logger = logging.getLogger(__name__)

# Serializes merges inside this process; row locks and version checks cover other processes
_merge_lock = threading.Lock()


class LedgerService:
    """Entry points for the settlement calculator and the merge engine"""

    def __init__(self, db: Session, strategy: Optional[str] = None, request_id: Optional[str] = None):
        self.db = db
        self.users = UserRepository(db)
        self.bills = BillRepository(db)
        self.strategy = MergeStrategy(strategy or settings.merge_strategy)
        self.request_id = request_id

    def settlement_statuses(self) -> Tuple[BillStatus, ...]:
        if settings.include_completed_in_settlement:
            return (BillStatus.PENDING, BillStatus.COMPLETED)
        return (BillStatus.PENDING,)

    def compute_settlements(self) -> List[Settlement]:
        """
        Pure settlement report over a fresh snapshot.

        Reads bills and users, never writes. Errors from the repository
        propagate unchanged.
        """
        start_time = time.time()
        statuses = self.settlement_statuses()
        bills = self.bills.list_bills(statuses=statuses)
        users = self.users.list_users()

        try:
            settlements = compute_settlements(bills, users, statuses)
        except InputInconsistencyError as e:
            input_inconsistency_counter.inc(len(e.bill_ids))
            logger.warning(f"Inconsistent bills: {e}", extra={"request_id": self.request_id})
            raise
        except BalanceInvariantViolation as e:
            logger.error(f"Balance invariant violated: {e}", extra={"request_id": self.request_id})
            raise

        record_settlements(settlements)
        log_settlements(self.request_id, len(settlements), len(bills), (time.time() - start_time) * 1000)
        return settlements

    def merge_bills(self) -> Dict[Currency, List[Bill]]:
        """
        Merge PENDING bills per currency into one bill per creditor.

        The whole merge is one transaction: new bills are created and every
        contributing original is retired, or nothing changes. A conflicting
        concurrent write restarts the merge from a fresh snapshot, up to
        settings.merge_conflict_retries times.

        Returns:
            Newly created merged bills keyed by currency (currencies with
            nothing merged are omitted)
        """
        attempts = settings.merge_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return self._merge_once()
            except ConcurrentMergeConflict as e:
                merge_counter.labels(outcome="conflict").inc()
                if attempt >= attempts:
                    logger.error(f"Merge conflict, giving up: {e}", extra={"request_id": self.request_id})
                    raise
                logger.warning(
                    f"Merge conflict, retrying: {e}",
                    extra={"request_id": self.request_id, "attempt": attempt},
                )
        raise ConcurrentMergeConflict("Merge was not attempted")

    def _merge_once(self) -> Dict[Currency, List[Bill]]:
        if not _merge_lock.acquire(timeout=settings.merge_lock_timeout_seconds):
            raise ConcurrentMergeConflict("Another merge is in progress")

        start_time = time.time()
        try:
            try:
                plans, created = self._apply_merge()
                self.db.commit()
            except ConcurrentMergeConflict:
                self.db.rollback()
                raise
            except BalanceInvariantViolation as e:
                self.db.rollback()
                merge_counter.labels(outcome="failed").inc()
                logger.error(f"Balance invariant violated during merge: {e}", extra={"request_id": self.request_id})
                raise
            except Exception:
                self.db.rollback()
                merge_counter.labels(outcome="failed").inc()
                raise
        finally:
            _merge_lock.release()

        duration_ms = (time.time() - start_time) * 1000
        merge_counter.labels(outcome="merged" if plans else "noop").inc()
        for currency, plan in plans.items():
            record_merge_plan(plan)
            log_merge(
                self.request_id,
                currency.value,
                len(created.get(currency, [])),
                len(plan.retired),
                len(plan.completed),
                duration_ms,
            )
        return created

    def _apply_merge(self) -> Tuple[Dict[Currency, MergePlan], Dict[Currency, List[Bill]]]:
        """Read, plan and stage every write in the current transaction (no commit)"""
        pending = self.bills.list_bills(statuses=[BillStatus.PENDING], for_update=True)
        users = self.users.list_users()
        plans = plan_merge(pending, users, self.strategy)

        created: Dict[Currency, List[Bill]] = {}
        for currency, plan in plans.items():
            new_bills = [self.bills.create_bill(bill) for bill in plan.merged_bills]

            for bill in plan.retired:
                ensure_transition(bill.status, BillStatus.MERGED)
                self.bills.update_bill_status(bill.id, BillStatus.MERGED, expected_version=bill.version)

            for bill in plan.completed:
                ensure_transition(bill.status, BillStatus.COMPLETED)
                self.bills.update_bill_status(bill.id, BillStatus.COMPLETED, expected_version=bill.version)

            if new_bills:
                created[currency] = new_bills

        return plans, created
