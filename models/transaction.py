from pydantic import BaseModel, Field
from datetime import datetime
from typing import Literal, Optional

from models.category import Category

TransactionType = Literal["income", "expense"]

class TransactionBase(BaseModel):
    amount: float = Field(..., gt=0)
    type: TransactionType
    category_id: int
    description: Optional[str] = None

class TransactionCreate(TransactionBase):
    date: Optional[datetime] = None  # defaults to now

class TransactionUpdate(BaseModel):
    amount: Optional[float] = Field(None, gt=0)
    type: Optional[TransactionType] = None
    category_id: Optional[int] = None
    description: Optional[str] = None
    date: Optional[datetime] = None

class Transaction(TransactionBase):
    id: int
    user_id: int
    date: datetime
    category: Optional[Category] = None

    class Config:
        from_attributes = True
