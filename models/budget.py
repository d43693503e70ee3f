from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal, Optional

from models.category import Category

BudgetPeriod = Literal["weekly", "monthly", "yearly"]
BudgetStatusName = Literal["ok", "warning", "exceeded"]

class BudgetBase(BaseModel):
    category_id: int
    amount: float = Field(..., gt=0)
    period: BudgetPeriod = "monthly"

class BudgetCreate(BudgetBase):
    # None means the configured default threshold
    alert_threshold: Optional[float] = Field(None, gt=0, le=1)

class BudgetUpdate(BaseModel):
    category_id: Optional[int] = None
    amount: Optional[float] = Field(None, gt=0)
    period: Optional[BudgetPeriod] = None
    alert_threshold: Optional[float] = Field(None, gt=0, le=1)

class Budget(BudgetBase):
    id: int
    user_id: int
    alert_threshold: float
    category: Optional[Category] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class BudgetWithStatus(Budget):
    spent: float
    remaining: float
    percentage: float
    status: BudgetStatusName
    period_start: datetime
    period_end: datetime

class BudgetAlert(BaseModel):
    budget_id: int
    category_name: str
    category_icon: Optional[str] = None
    budget_amount: float
    spent: float
    percentage: float
    status: BudgetStatusName
    message: str
