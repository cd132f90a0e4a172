"""
Validation schemas for User.
"""

from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from waypoint.validation import Email, Password, TrimmedStr


class UserCreate(BaseModel):
    name: TrimmedStr
    email: Email
    password: Password
    age: Union[int, float] = 18


class UserUpdate(BaseModel):
    name: Optional[TrimmedStr] = None
    email: Optional[Email] = None
    password: Optional[Password] = None
    age: Optional[Union[int, float]] = None


class UserQuery(BaseModel):
    page: Optional[int] = Field(default=None, ge=1)
    limit: Optional[int] = Field(default=None, ge=1, le=100)
    sortBy: Optional[Literal["name", "email", "password", "age", "createdAt", "updatedAt"]] = None
    sortOrder: Optional[Literal["asc", "desc"]] = None
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    age: Optional[Union[int, float]] = None


create = UserCreate
update = UserUpdate
query = UserQuery
