from pydantic import BaseModel, Field
from typing import Any, Optional


# API Request/Response models

class AnalyzeRequest(BaseModel):
    message: str = Field(..., description="Message content to analyze")
    group_id: str = Field(..., description="Zalo GMF group id")
    author_id: Optional[str] = None
    author_name: Optional[str] = None
    original_message: Optional[str] = None
    message_id: Optional[str] = None
    user_id_by_app: Optional[str] = None
    app_id: Optional[str] = None
    oa_id: Optional[str] = None


class AnalyzeResponse(BaseModel):
    success: bool
    message: str
    data: Optional[dict[str, Any]] = None
    db_id: Optional[int] = None


class QueryRequest(BaseModel):
    question: str = Field(..., description="Question about the group's stored data")
    group_id: str = Field(..., description="Zalo GMF group id")
    author_id: Optional[str] = None
    author_name: Optional[str] = None


class QueryResponse(BaseModel):
    success: bool
    message: str
    messages_count: int = 0
    items_count: int = 0


class SendMessageRequest(BaseModel):
    group_id: str
    message: str


class CreateGroupRequest(BaseModel):
    group_name: str
    member_user_ids: list[str] = Field(default_factory=list)
    asset_id: Optional[str] = None
    group_description: str = ""


class GroupStats(BaseModel):
    total_messages: int = 0
    first_message: Optional[str] = None
    last_message: Optional[str] = None
    unique_authors: int = 0
    total_items: int = 0
    total_quantity: float = 0
