# storefront/services/transaction_log.py
from sqlalchemy.orm import Session

from storefront.data.models.transaction import TransactionModel
from storefront.domain.checkout import TransactionEntry
from storefront.repos.transaction_repo import TransactionRepo
from storefront.utils.retry import db_retry
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class TransactionLog:
    """
    Audit trail of payment attempts.
    record() never raises: availability errors are retried, and if the log is
    still unreachable the entry is written to the application log instead.
    """

    def __init__(self, db: Session):
        self.repo = TransactionRepo(db)

    def record(self, entry: TransactionEntry) -> TransactionModel | None:
        try:
            return self._append(entry)
        except Exception as e:
            logger.error(
                f"RECONCILE transaction log unavailable, entry not stored: "
                f"{entry.model_dump_json()} ({e})"
            )
            return None

    @db_retry()
    def _append(self, entry: TransactionEntry) -> TransactionModel:
        try:
            record = self.repo.append(TransactionModel(**entry.model_dump()))
        except Exception:
            self.repo.rollback()
            raise

        logger.info(
            f"Transaction {record.id} [{entry.status}] checkout {entry.checkout_id} "
            f"attempt {entry.attempt}: {entry.amount} {entry.currency}"
        )
        return record

    def list_for_user(self, user_id: str) -> list[TransactionModel]:
        return self.repo.list_for_user(user_id)
