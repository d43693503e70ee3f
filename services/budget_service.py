"""
Budget status and budget validation
"""
import os
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from database import crud
from database.models import BudgetModel
from models.budget import BudgetCreate, BudgetUpdate
from services.errors import DuplicateBudgetError, InvalidCategoryError, NotFoundError
from services.schedule import period_window

logger = logging.getLogger(__name__)


def budget_status(spent: float, amount: float, alert_threshold: float) -> Dict:
    """
    Classify spending against a budget limit.

    The returned percentage is capped at 100 for display; the status is
    decided on the uncapped figures.
    """
    percentage = (spent / amount) * 100

    if spent >= amount:
        status = 'exceeded'
    elif spent >= amount * alert_threshold:
        status = 'warning'
    else:
        status = 'ok'

    return {
        'spent': spent,
        'remaining': amount - spent,
        'percentage': min(percentage, 100.0),
        'raw_percentage': percentage,
        'status': status
    }


def _whole_percent(percentage: float) -> Decimal:
    """Round half up, so 12.5 reads as 13"""
    return Decimal(str(percentage)).quantize(Decimal('1'), rounding=ROUND_HALF_UP)

class BudgetService:
    def __init__(self, default_alert_threshold: Optional[float] = None):
        if default_alert_threshold is None:
            default_alert_threshold = float(os.getenv('DEFAULT_ALERT_THRESHOLD', '0.8'))
        self.default_alert_threshold = default_alert_threshold

    def _status(self, db: Session, budget: BudgetModel, now: datetime) -> Dict:
        period_start, period_end = period_window(budget.period, now)
        spent = crud.sum_expenses(db, budget.user_id, budget.category_id, period_start, period_end)
        result = budget_status(spent, budget.amount, budget.alert_threshold)
        result['period_start'] = period_start
        result['period_end'] = period_end
        return result

    def compute_status(self, db: Session, budget: BudgetModel, now: Optional[datetime] = None) -> Dict:
        """
        Spending of a budget over its current period.

        Returns:
            {'spent', 'remaining', 'percentage', 'status', 'period_start', 'period_end'}
        """
        result = self._status(db, budget, now or datetime.now())
        del result['raw_percentage']
        return result

    def list_with_status(self, db: Session, user_id: int, now: Optional[datetime] = None) -> List[Dict]:
        """Every budget of the user paired with its current status"""
        now = now or datetime.now()
        return [
            {'budget': budget, **self.compute_status(db, budget, now)}
            for budget in crud.find_budgets(db, user_id)
        ]

    def list_alerts(self, db: Session, user_id: int, now: Optional[datetime] = None) -> List[Dict]:
        """Budgets in warning or exceeded state, with a message for the user"""
        now = now or datetime.now()
        alerts = []

        for budget in crud.find_budgets(db, user_id):
            status = self._status(db, budget, now)
            if status['status'] == 'ok':
                continue

            name = budget.category.name
            if status['status'] == 'exceeded':
                message = f"You've exceeded your {name} budget!"
            else:
                message = f"You've used {_whole_percent(status['raw_percentage'])}% of your {name} budget"

            alerts.append({
                'budget_id': budget.id,
                'category_name': name,
                'category_icon': budget.category.icon,
                'budget_amount': budget.amount,
                'spent': status['spent'],
                'percentage': status['percentage'],
                'status': status['status'],
                'message': message
            })

        return alerts

    def get_budget(self, db: Session, budget_id: int, user_id: int) -> BudgetModel:
        budget = crud.get_budget(db, budget_id, user_id)
        if not budget:
            raise NotFoundError("Budget not found.")
        return budget

    def _validate(self, db: Session, user_id: int, category_id: int, period: str, budget_id: Optional[int] = None):
        """Category must be an expense category; one budget per (user, category, period)"""
        category = crud.find_category(db, category_id)
        if not category:
            raise InvalidCategoryError("Invalid category.")
        if category.type != 'expense':
            raise InvalidCategoryError("Budgets can only be set for expense categories.")

        existing = crud.find_budget(db, user_id, category_id, period)
        if existing and existing.id != budget_id:
            raise DuplicateBudgetError(
                f"A {period} budget already exists for this category. Please edit the existing one."
            )

    def create_budget(self, db: Session, user_id: int, budget: BudgetCreate) -> BudgetModel:
        self._validate(db, user_id, budget.category_id, budget.period)
        alert_threshold = budget.alert_threshold
        if alert_threshold is None:
            alert_threshold = self.default_alert_threshold
        db_budget = crud.create_budget(
            db,
            user_id=user_id,
            category_id=budget.category_id,
            amount=budget.amount,
            period=budget.period,
            alert_threshold=alert_threshold
        )
        logger.info(f"Created {db_budget.period} budget {db_budget.id} for user {user_id}")
        return db_budget

    def update_budget(self, db: Session, budget_id: int, user_id: int, update: BudgetUpdate) -> BudgetModel:
        budget = self.get_budget(db, budget_id, user_id)
        fields = {k: v for k, v in update.model_dump(exclude_unset=True).items() if v is not None}

        category_id = fields.get('category_id', budget.category_id)
        period = fields.get('period', budget.period)
        if category_id != budget.category_id or period != budget.period:
            self._validate(db, user_id, category_id, period, budget_id=budget.id)

        return crud.update_budget(db, budget, fields)

    def delete_budget(self, db: Session, budget_id: int, user_id: int) -> None:
        crud.delete_budget(db, self.get_budget(db, budget_id, user_id))
