from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from database.models import (
    UserModel, CategoryModel, TransactionModel, BudgetModel, RecurringTransactionModel
)
from models.user import UserCreate
from models.category import CategoryCreate
from models.transaction import TransactionCreate
from models.recurring import RecurringCreate

DEFAULT_CATEGORIES = [
    # Expense categories
    {'name': 'Food', 'type': 'expense', 'icon': '🍔', 'color': '#ef4444'},
    {'name': 'Transport', 'type': 'expense', 'icon': '🚗', 'color': '#f97316'},
    {'name': 'Entertainment', 'type': 'expense', 'icon': '🎮', 'color': '#8b5cf6'},
    {'name': 'Shopping', 'type': 'expense', 'icon': '🛍️', 'color': '#ec4899'},
    {'name': 'Bills', 'type': 'expense', 'icon': '📄', 'color': '#6366f1'},
    {'name': 'Health', 'type': 'expense', 'icon': '💊', 'color': '#14b8a6'},
    {'name': 'Education', 'type': 'expense', 'icon': '📚', 'color': '#0ea5e9'},
    {'name': 'Other Expense', 'type': 'expense', 'icon': '📦', 'color': '#64748b'},
    # Income categories
    {'name': 'Salary', 'type': 'income', 'icon': '💼', 'color': '#22c55e'},
    {'name': 'Freelance', 'type': 'income', 'icon': '💻', 'color': '#10b981'},
    {'name': 'Investment', 'type': 'income', 'icon': '📈', 'color': '#06b6d4'},
    {'name': 'Other Income', 'type': 'income', 'icon': '💰', 'color': '#84cc16'},
]


def _save(db: Session, obj, commit: bool = True):
    """Commit and refresh, or only flush when the caller owns the transaction"""
    if commit:
        db.commit()
        db.refresh(obj)
    else:
        db.flush()
    return obj

# User functions
def create_user(db: Session, user: UserCreate):
    """Create a user, email stored lowercase"""
    db_user = UserModel(name=user.name.strip(), email=user.email.strip().lower())
    db.add(db_user)
    return _save(db, db_user)

def get_user(db: Session, user_id: int):
    """Fetch a user by id"""
    return db.query(UserModel).filter(UserModel.id == user_id).first()

def get_user_by_email(db: Session, email: str):
    """Fetch a user by email, case-insensitive"""
    return db.query(UserModel).filter(func.lower(UserModel.email) == email.strip().lower()).first()

# Category functions
def get_categories(db: Session, type: Optional[str] = None):
    """Every category, optionally filtered by type, ordered by name"""
    query = db.query(CategoryModel)
    if type:
        query = query.filter(CategoryModel.type == type)
    return query.order_by(CategoryModel.name.asc()).all()

def find_category(db: Session, category_id: int) -> Optional[CategoryModel]:
    """Fetch a category by id"""
    return db.query(CategoryModel).filter(CategoryModel.id == category_id).first()

def get_category_by_name(db: Session, name: str):
    """Fetch a category by its unique name"""
    return db.query(CategoryModel).filter(CategoryModel.name == name).first()

def create_category(db: Session, category: CategoryCreate):
    """Create a category"""
    db_category = CategoryModel(**category.model_dump())
    db.add(db_category)
    return _save(db, db_category)

def seed_categories(db: Session) -> List[CategoryModel]:
    """Insert the default categories that do not exist yet"""
    created = []
    for data in DEFAULT_CATEGORIES:
        if get_category_by_name(db, data['name']):
            continue
        category = CategoryModel(**data)
        db.add(category)
        created.append(category)
    db.commit()
    for category in created:
        db.refresh(category)
    return created

# Transaction functions
def create_transaction(db: Session, user_id: int, transaction: TransactionCreate, commit: bool = True):
    """Create a transaction for a user, dated now by default"""
    db_transaction = TransactionModel(
        user_id=user_id,
        category_id=transaction.category_id,
        type=transaction.type,
        amount=transaction.amount,
        description=transaction.description,
        date=transaction.date or datetime.now()
    )
    db.add(db_transaction)
    return _save(db, db_transaction, commit)

def get_transactions(
    db: Session,
    user_id: int,
    type: Optional[str] = None,
    category_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None
):
    """A user's transactions, newest first, with optional filters"""
    query = db.query(TransactionModel).filter(TransactionModel.user_id == user_id)
    if type:
        query = query.filter(TransactionModel.type == type)
    if category_id:
        query = query.filter(TransactionModel.category_id == category_id)
    if start_date:
        query = query.filter(TransactionModel.date >= start_date)
    if end_date:
        query = query.filter(TransactionModel.date <= end_date)
    return query.order_by(TransactionModel.date.desc(), TransactionModel.id.desc()).all()

def get_transaction(db: Session, transaction_id: int, user_id: int):
    """Fetch one of the user's transactions"""
    return db.query(TransactionModel).filter(
        TransactionModel.id == transaction_id,
        TransactionModel.user_id == user_id
    ).first()

def update_transaction(db: Session, transaction: TransactionModel, fields: dict):
    """Apply the given fields to a transaction"""
    for key, value in fields.items():
        setattr(transaction, key, value)
    return _save(db, transaction)

def delete_transaction(db: Session, transaction: TransactionModel):
    """Delete a transaction"""
    db.delete(transaction)
    db.commit()

def sum_expenses(db: Session, user_id: int, category_id: int, start: datetime, end: datetime) -> float:
    """Total expense amount of one category within [start, end]"""
    total = db.query(func.sum(TransactionModel.amount)).filter(
        TransactionModel.user_id == user_id,
        TransactionModel.category_id == category_id,
        TransactionModel.type == 'expense',
        TransactionModel.date >= start,
        TransactionModel.date <= end
    ).scalar()
    return total or 0.0

# Budget functions
def find_budgets(db: Session, user_id: int):
    """A user's budgets, newest first"""
    return db.query(BudgetModel).filter(
        BudgetModel.user_id == user_id
    ).order_by(BudgetModel.created_at.desc(), BudgetModel.id.desc()).all()

def get_budget(db: Session, budget_id: int, user_id: int):
    """Fetch one of the user's budgets"""
    return db.query(BudgetModel).filter(
        BudgetModel.id == budget_id,
        BudgetModel.user_id == user_id
    ).first()

def find_budget(db: Session, user_id: int, category_id: int, period: str):
    """The budget of a (user, category, period) triple, if any"""
    return db.query(BudgetModel).filter(
        BudgetModel.user_id == user_id,
        BudgetModel.category_id == category_id,
        BudgetModel.period == period
    ).first()

def create_budget(db: Session, user_id: int, category_id: int, amount: float, period: str, alert_threshold: float):
    """Create a budget"""
    db_budget = BudgetModel(
        user_id=user_id,
        category_id=category_id,
        amount=amount,
        period=period,
        alert_threshold=alert_threshold
    )
    db.add(db_budget)
    return _save(db, db_budget)

def update_budget(db: Session, budget: BudgetModel, fields: dict):
    """Apply the given fields to a budget"""
    for key, value in fields.items():
        setattr(budget, key, value)
    return _save(db, budget)

def delete_budget(db: Session, budget: BudgetModel):
    """Delete a budget"""
    db.delete(budget)
    db.commit()

# Recurring transaction functions
def get_all_recurring(db: Session, user_id: int):
    """A user's recurring transactions, next due first"""
    return db.query(RecurringTransactionModel).filter(
        RecurringTransactionModel.user_id == user_id
    ).order_by(RecurringTransactionModel.next_date.asc()).all()

def get_recurring(db: Session, recurring_id: int, user_id: int, lock: bool = False):
    """
    A user's recurring transaction.

    With lock=True the row is re-read from the database, overwriting the
    copy held by the session, and selected FOR UPDATE until the session
    commits or rolls back.
    """
    query = db.query(RecurringTransactionModel).filter(
        RecurringTransactionModel.id == recurring_id,
        RecurringTransactionModel.user_id == user_id
    )
    if lock:
        query = query.with_for_update().populate_existing()
    return query.first()

def get_upcoming_recurring(db: Session, user_id: int, start: datetime, end: datetime):
    """Active recurring transactions falling due within [start, end]"""
    return db.query(RecurringTransactionModel).filter(
        RecurringTransactionModel.user_id == user_id,
        RecurringTransactionModel.is_active.is_(True),
        RecurringTransactionModel.next_date >= start,
        RecurringTransactionModel.next_date <= end
    ).order_by(RecurringTransactionModel.next_date.asc()).all()

def find_due_recurring(db: Session, user_id: int, now: datetime) -> List[int]:
    """Ids of the active rules due at or before now whose end date has not passed"""
    rows = db.query(RecurringTransactionModel.id).filter(
        RecurringTransactionModel.user_id == user_id,
        RecurringTransactionModel.is_active.is_(True),
        RecurringTransactionModel.next_date <= now,
        or_(
            RecurringTransactionModel.end_date.is_(None),
            RecurringTransactionModel.end_date >= now
        )
    ).order_by(RecurringTransactionModel.id.asc()).all()
    return [row.id for row in rows]

def create_recurring(db: Session, user_id: int, recurring: RecurringCreate):
    """Create a recurring transaction, first due on its start date"""
    start = recurring.start_date or datetime.now()
    db_recurring = RecurringTransactionModel(
        user_id=user_id,
        category_id=recurring.category_id,
        type=recurring.type,
        amount=recurring.amount,
        description=recurring.description,
        frequency=recurring.frequency,
        start_date=start,
        next_date=start,
        end_date=recurring.end_date,
        is_active=True
    )
    db.add(db_recurring)
    return _save(db, db_recurring)

def update_recurring(db: Session, recurring_id: int, fields: dict):
    """Apply the given fields to a recurring transaction"""
    recurring = db.query(RecurringTransactionModel).filter(
        RecurringTransactionModel.id == recurring_id
    ).first()
    if not recurring:
        return None
    for key, value in fields.items():
        setattr(recurring, key, value)
    return _save(db, recurring)

def delete_recurring(db: Session, recurring: RecurringTransactionModel):
    """Delete a recurring transaction"""
    db.delete(recurring)
    db.commit()

def swap_recurring_next_date(db: Session, recurring_id: int, expected_next_date: datetime, fields: dict) -> bool:
    """
    Write `fields` only if next_date still equals `expected_next_date`.

    Returns False when another session moved next_date in the meantime.
    Nothing is committed.
    """
    updated = db.query(RecurringTransactionModel).filter(
        RecurringTransactionModel.id == recurring_id,
        RecurringTransactionModel.next_date == expected_next_date
    ).update(fields, synchronize_session=False)
    return updated == 1
