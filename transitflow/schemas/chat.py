from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ChatMessageCreate(BaseModel):
    text: str = Field(min_length=1, max_length=4000)


class ChatMessageResponse(BaseModel):
    id: str
    sender_id: str
    sender_name: Optional[str] = None
    text: str
    timestamp: datetime

    class Config:
        from_attributes = True


class TodoItemCreate(BaseModel):
    text: str = Field(min_length=1, max_length=1000)
    assigned_to_user_id: Optional[str] = None
    assigned_to_user_name: Optional[str] = None


class TodoItemUpdate(BaseModel):
    text: Optional[str] = None
    completed: Optional[bool] = None
    assigned_to_user_id: Optional[str] = None
    assigned_to_user_name: Optional[str] = None


class TodoItemResponse(BaseModel):
    id: str
    text: str
    assigned_to_user_id: Optional[str] = None
    assigned_to_user_name: Optional[str] = None
    completed: bool
    created_at: datetime
    created_by_user_id: str
    created_by_name: Optional[str] = None

    class Config:
        from_attributes = True
