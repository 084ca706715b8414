from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class Condition(str, Enum):
    NEW = "New"
    USED = "Used"


class ListingCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    category: str = Field(min_length=1)
    condition: Condition = Condition.USED
    price: float = Field(ge=0)
    image_url: str = ""
    seller_name: str = Field(min_length=1)
    seller_phone: str = Field(min_length=1)
    # Checked against the caller by the insert policy, never filled in for them
    owner_id: Optional[str] = None


class ListingUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, min_length=1)
    condition: Optional[Condition] = None
    price: Optional[float] = Field(default=None, ge=0)
    image_url: Optional[str] = None
    seller_name: Optional[str] = Field(default=None, min_length=1)
    seller_phone: Optional[str] = Field(default=None, min_length=1)
    owner_id: Optional[str] = None


class ListingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    price: float
    condition: str
    category: str
    image_url: str
    seller_name: str
    seller_phone: str
    owner_id: Optional[str] = None
    created_at: datetime
