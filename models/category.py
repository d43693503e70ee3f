from pydantic import BaseModel, Field
from typing import Literal, Optional

CategoryType = Literal["income", "expense"]

class CategoryBase(BaseModel):
    name: str = Field(..., min_length=1)
    type: CategoryType
    icon: Optional[str] = None
    color: Optional[str] = None

class CategoryCreate(CategoryBase):
    pass

class Category(CategoryBase):
    id: int

    class Config:
        from_attributes = True
