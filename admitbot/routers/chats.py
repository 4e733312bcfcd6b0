import logging
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from openai import APIStatusError, OpenAI, OpenAIError
from pydantic import BaseModel
from sqlalchemy import desc
from sqlalchemy.orm import Session

from ..clients import get_llm
from ..config import CHAT_HISTORY_LIMIT, LLM_MODEL
from ..database import get_db
from ..models import ChatMessage
from .auth import current_login_user

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/chat", tags=["chat"]
)


ADMISSIONS_SYSTEM = (
    "You are an admission assistant specialized in colleges in Gujarat, India. Your knowledge includes:\n"
    "- Detailed information about colleges across the districts of Gujarat\n"
    '- Prefer "https://gujacpc.admissions.nic.in/" for official admission information\n'
    "- Admission requirements and procedures for various programs\n"
    "- Entrance exams such as GUJCET, JEE and NEET for Gujarat colleges\n"
    "- College-specific cutoffs and merit criteria\n"
    "- Scholarship opportunities specific to Gujarat institutions\n"
    "- Fee structures and financial aid options\n"
    "- Campus facilities and infrastructure\n"
    "- Course offerings and specializations\n"
    "- Placement statistics and career opportunities\n"
    "- Important dates and deadlines for admissions\n"
    "\n"
    "Always provide accurate, up-to-date information about Gujarat colleges. If unsure about "
    "any specific detail, acknowledge the uncertainty and guide users to official sources. "
    "Be helpful, concise, and focus on Gujarat-specific educational information."
)


class SendBody(BaseModel):
    message: Optional[str] = None
    role: Literal["user", "assistant"] = "user"

class ChatMessageOut(BaseModel):
    id: int
    owner_id: int
    role: str
    content: str
    created_at: datetime
    class Config:
        from_attributes = True


chat_db = Annotated[Session, Depends(get_db)]
llm_client = Annotated[Optional[OpenAI], Depends(get_llm)]


def with_system_prompt(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if messages and isinstance(messages[0], dict) and messages[0].get("role") == "system":
        return messages
    return [{"role": "system", "content": ADMISSIONS_SYSTEM}, *messages]


@router.post("/completion")
def chat_completion(
    llm: llm_client,
    current_user: current_login_user,
    body: Annotated[Any, Body()] = None,
):
    # messages are forwarded as sent; only the leading system prompt is added
    raw = body.get("messages") if isinstance(body, dict) else None
    if not isinstance(raw, list):
        raise HTTPException(status_code=400, detail="Invalid request format")
    if llm is None:
        raise HTTPException(status_code=500, detail="LLM API key not configured")

    messages = with_system_prompt(raw)
    logger.info("Sending %d messages to LLM model %s for user id=%s", len(messages), LLM_MODEL, current_user.id)

    try:
        completion = llm.chat.completions.create(model=LLM_MODEL, messages=messages)
    except APIStatusError as e:
        logger.warning("LLM API returned %s: %s", e.status_code, e.body)
        raise HTTPException(
            status_code=e.status_code,
            detail={"message": "Error from LLM API", "error": e.body},
        )
    except OpenAIError as e:
        logger.exception("Error calling LLM API")
        raise HTTPException(
            status_code=500,
            detail={"message": "Failed to get AI response", "error": str(e)},
        )

    return completion.model_dump(exclude_unset=True)


@router.get("/history")
def chat_history(db: chat_db, current_user: current_login_user):
    msgs = (
        db.query(ChatMessage)
        .filter(ChatMessage.owner_id == current_user.id)
        .order_by(desc(ChatMessage.created_at), desc(ChatMessage.id))
        .limit(CHAT_HISTORY_LIMIT)
        .all()
    )
    return {"messages": [ChatMessageOut.model_validate(m) for m in msgs]}


@router.post("/send", response_model=ChatMessageOut, status_code=status.HTTP_201_CREATED)
def send_message(body: SendBody, db: chat_db, current_user: current_login_user):
    content = (body.message or "").strip()
    if not content:
        raise HTTPException(status_code=400, detail="Message is required")

    msg = ChatMessage(owner_id=current_user.id, role=body.role, content=content)
    db.add(msg)
    db.commit()
    db.refresh(msg)
    return msg


@router.delete("/{chat_id}")
def delete_message(chat_id: int, db: chat_db, current_user: current_login_user):
    msg = db.get(ChatMessage, chat_id)
    if msg is None:
        raise HTTPException(status_code=404, detail="Message not found")
    if msg.owner_id != current_user.id:
        raise HTTPException(status_code=403, detail="Not authorized to delete this message")

    db.delete(msg)
    db.commit()
    return {"message": "Message deleted successfully"}
