# lunaexecutor/schemas.py
"""
Pydantic models for request bodies and chat frames.

Field names are camelCase on the wire and snake_case in Python.
"""
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatFrame(WireModel):
    """Client → server chat frame: ``{userId, content, isAdmin}``."""
    user_id: Optional[int] = None
    content: str
    is_admin: Optional[bool] = None


class UserRegister(WireModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)


class UserLogin(WireModel):
    username: str
    password: str


class ProfileUpdate(WireModel):
    """Public profile edit. Anything else in the body, ``isAdmin`` included, is ignored."""
    username: Optional[str] = Field(None, min_length=3, max_length=50)
    email: Optional[EmailStr] = None


class ExecutionReport(WireModel):
    success: bool


class ProductCreate(WireModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ''
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = Field(None, max_length=500)
    version: Optional[str] = Field(None, max_length=50)
    download_url: Optional[str] = Field(None, max_length=500)
    badge: Optional[str] = Field(None, max_length=100)
    badge_variant: Optional[str] = Field(None, max_length=100)
    button_text: Optional[str] = Field(None, max_length=100)
    button_variant: Optional[str] = Field(None, max_length=100)
    features: List[str] = Field(default_factory=list)


class ProductUpdate(WireModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = Field(None, max_length=500)
    version: Optional[str] = Field(None, max_length=50)
    download_url: Optional[str] = Field(None, max_length=500)
    badge: Optional[str] = Field(None, max_length=100)
    badge_variant: Optional[str] = Field(None, max_length=100)
    button_text: Optional[str] = Field(None, max_length=100)
    button_variant: Optional[str] = Field(None, max_length=100)
    features: Optional[List[str]] = None


def first_error(exc: ValidationError) -> str:
    """Short human readable message for the first validation problem."""
    error = exc.errors()[0]
    location = '.'.join(str(part) for part in error.get('loc', ()))
    message = error.get('msg', 'Invalid input')
    return f"{location}: {message}" if location else message
