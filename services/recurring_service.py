"""
Service generating the transactions of recurring rules (subscriptions, salary, rent...)
"""
import os
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import crud
from database.models import RecurringTransactionModel, TransactionModel
from models.recurring import RecurringCreate, RecurringUpdate
from models.transaction import TransactionCreate
from services.errors import (
    InvalidCategoryError, InvalidStateError, NotFoundError, StoreFailureError
)
from services.schedule import advance

logger = logging.getLogger(__name__)

# Attempts at skipping a rule that keeps being moved by concurrent requests
SKIP_ATTEMPTS = 3

class RecurringService:
    """Materializes due occurrences of recurring transactions and manages the rules"""

    def __init__(self, max_occurrences: Optional[int] = None):
        # Upper bound of occurrences generated for one rule in one run
        if max_occurrences is None:
            max_occurrences = int(os.getenv('RECURRING_MAX_OCCURRENCES', '5000'))
        self.max_occurrences = max_occurrences

    def process_due(self, db: Session, user_id: int, now: Optional[datetime] = None) -> Dict:
        """
        Generate every missed occurrence of the user's due rules.

        Each rule is its own unit of work: its transactions and its new
        next_date are committed together, or rolled back together on failure.
        A rule advanced by a concurrent run in the meantime is left to that run.
        A failing rule is reported in `failures` and does not stop the others;
        database errors are reported as StoreFailureError.

        Returns:
            {'processed_count', 'generated_transactions', 'failures'}
        """
        now = now or datetime.now()
        rule_ids = crud.find_due_recurring(db, user_id, now)

        processed_count = 0
        generated: List[TransactionModel] = []
        failures = []

        for rule_id in rule_ids:
            try:
                transactions = self._process_rule(db, rule_id, user_id, now)
                if transactions is None:
                    db.rollback()
                    continue
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.exception(f"Store failure on recurring transaction {rule_id} for user {user_id}")
                failures.append(self._failure(rule_id, StoreFailureError(
                    f"Could not save recurring transaction {rule_id}: {e}"
                )))
                continue
            except Exception as e:
                db.rollback()
                logger.exception(f"Failed to process recurring transaction {rule_id} for user {user_id}")
                failures.append(self._failure(rule_id, e))
                continue

            processed_count += 1
            generated.extend(transactions)

        logger.info(
            f"Processed {processed_count} recurring transaction(s) for user {user_id}: "
            f"{len(generated)} generated, {len(failures)} failed"
        )
        return {
            'processed_count': processed_count,
            'generated_transactions': generated,
            'failures': failures
        }

    @staticmethod
    def _failure(rule_id: int, error: Exception) -> Dict:
        return {'recurring_id': rule_id, 'error': str(error), 'kind': type(error).__name__}

    def _process_rule(self, db: Session, rule_id: int, user_id: int, now: datetime) -> Optional[List[TransactionModel]]:
        # Fresh locked read: a concurrent run may already have advanced this rule
        rule = crud.get_recurring(db, rule_id, user_id, lock=True)
        if rule is None or not rule.is_active or rule.next_date > now:
            return None

        cursor = rule.next_date
        transactions = []
        while cursor <= now and (rule.end_date is None or cursor <= rule.end_date):
            if len(transactions) >= self.max_occurrences:
                raise InvalidStateError(
                    f"Recurring transaction {rule.id} exceeds {self.max_occurrences} occurrences "
                    f"(next date {rule.next_date.isoformat()})"
                )
            transactions.append(crud.create_transaction(
                db,
                rule.user_id,
                TransactionCreate(
                    amount=rule.amount,
                    type=rule.type,
                    category_id=rule.category_id,
                    description=self._occurrence_description(rule),
                    date=cursor
                ),
                commit=False
            ))
            cursor = advance(cursor, rule.frequency)

        fields = {'next_date': cursor, 'last_processed': now}
        if rule.end_date is not None and cursor > rule.end_date:
            fields['is_active'] = False

        # next_date only moves if nobody moved it since the read above
        if not crud.swap_recurring_next_date(db, rule.id, rule.next_date, fields):
            logger.warning(f"Recurring transaction {rule.id} of user {user_id} was advanced concurrently, skipped")
            return None
        if 'is_active' in fields:
            logger.warning(f"Recurring transaction {rule.id} of user {user_id} ended on {rule.end_date.date()}, deactivated")
        return transactions

    @staticmethod
    def _occurrence_description(rule: RecurringTransactionModel) -> str:
        if rule.description:
            return f"{rule.description} (Recurring)"
        return f"Recurring {rule.type}"

    def skip_next(self, db: Session, rule_id: int, user_id: int) -> RecurringTransactionModel:
        """Move next_date one period ahead without generating a transaction"""
        for _ in range(SKIP_ATTEMPTS):
            rule = crud.get_recurring(db, rule_id, user_id, lock=True)
            if not rule:
                raise NotFoundError("Recurring transaction not found.")
            next_date = advance(rule.next_date, rule.frequency)
            if crud.swap_recurring_next_date(db, rule.id, rule.next_date, {'next_date': next_date}):
                db.commit()
                db.refresh(rule)
                return rule
            db.rollback()
            logger.warning(f"Recurring transaction {rule_id} of user {user_id} changed while skipping, retrying")
        raise StoreFailureError(f"Recurring transaction {rule_id} kept changing, skip not applied.")

    def get_rule(self, db: Session, rule_id: int, user_id: int) -> RecurringTransactionModel:
        rule = crud.get_recurring(db, rule_id, user_id)
        if not rule:
            raise NotFoundError("Recurring transaction not found.")
        return rule

    def get_upcoming(self, db: Session, user_id: int, now: Optional[datetime] = None, days: int = 30):
        """Active rules falling due within the next `days` days"""
        now = now or datetime.now()
        return crud.get_upcoming_recurring(db, user_id, now, now + timedelta(days=days))

    def create_rule(self, db: Session, user_id: int, recurring: RecurringCreate) -> RecurringTransactionModel:
        if not crud.find_category(db, recurring.category_id):
            raise InvalidCategoryError("Invalid category.")
        return crud.create_recurring(db, user_id, recurring)

    def update_rule(self, db: Session, rule_id: int, user_id: int, update: RecurringUpdate) -> RecurringTransactionModel:
        rule = self.get_rule(db, rule_id, user_id)
        fields = update.model_dump(exclude_unset=True)
        if fields.get('category_id') is not None and not crud.find_category(db, fields['category_id']):
            raise InvalidCategoryError("Invalid category.")
        # Only the end date may be cleared explicitly
        fields = {k: v for k, v in fields.items() if v is not None or k == 'end_date'}
        return crud.update_recurring(db, rule.id, fields)

    def delete_rule(self, db: Session, rule_id: int, user_id: int) -> None:
        crud.delete_recurring(db, self.get_rule(db, rule_id, user_id))
