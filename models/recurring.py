from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal, Optional

from models.category import Category
from models.transaction import TransactionType

Frequency = Literal["daily", "weekly", "biweekly", "monthly", "yearly"]

class RecurringBase(BaseModel):
    amount: float = Field(..., gt=0)
    type: TransactionType
    category_id: int
    description: Optional[str] = None
    frequency: Frequency
    end_date: Optional[datetime] = None

class RecurringCreate(RecurringBase):
    start_date: Optional[datetime] = None  # defaults to now

class RecurringUpdate(BaseModel):
    amount: Optional[float] = Field(None, gt=0)
    type: Optional[TransactionType] = None
    category_id: Optional[int] = None
    description: Optional[str] = None
    frequency: Optional[Frequency] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None

class Recurring(RecurringBase):
    id: int
    user_id: int
    start_date: datetime
    next_date: datetime
    is_active: bool
    last_processed: Optional[datetime] = None
    category: Optional[Category] = None

    class Config:
        from_attributes = True
