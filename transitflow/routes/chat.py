from typing import List, Optional

import anyio
import structlog
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session

from ..auth.security import identity_provider
from ..auth.session import SessionContext, get_session_context
from ..db import get_db
from ..models.models import ChatMessage, TodoItem
from ..schemas.chat import (
    ChatMessageCreate,
    ChatMessageResponse,
    TodoItemCreate,
    TodoItemResponse,
    TodoItemUpdate,
)
from ..services import store
from ..services.chat_hub import hub


logger = structlog.get_logger()

router = APIRouter(prefix="/chat", tags=["chat"])


def _serialize_message(msg: ChatMessage) -> dict:
    return ChatMessageResponse.model_validate(msg).model_dump(mode="json")


def _serialize_todo(todo: TodoItem) -> dict:
    return TodoItemResponse.model_validate(todo).model_dump(mode="json")


def _publish(event: str, payload: dict) -> None:
    # Sync handlers run in a worker thread; hop onto the event loop to push
    async def _broadcast():
        await hub.broadcast(event, payload)

    anyio.from_thread.run(_broadcast)


# =====================
# Messages
# =====================


@router.get("/messages", response_model=List[ChatMessageResponse])
def list_messages(
    limit: int = 100,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    """Most recent messages, oldest first"""
    recent = (
        db.query(ChatMessage)
        .order_by(ChatMessage.timestamp.desc())
        .limit(max(1, min(limit, 500)))
        .all()
    )
    return list(reversed(recent))


@router.post("/messages", response_model=ChatMessageResponse)
def post_message(
    body: ChatMessageCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    text = body.text.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Message cannot be empty")
    msg = store.chat_messages.add(db, {"sender_id": ctx.uid, "sender_name": ctx.display_name, "text": text})
    _publish("message_new", _serialize_message(msg))
    return msg


# =====================
# Todos
# =====================


@router.get("/todos", response_model=List[TodoItemResponse])
def list_todos(
    assigned_to_user_id: Optional[str] = None,
    completed: Optional[bool] = None,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    return store.todo_items.list(db, assigned_to_user_id=assigned_to_user_id, completed=completed)


@router.post("/todos", response_model=TodoItemResponse)
def create_todo(
    body: TodoItemCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    data = body.model_dump()
    data.update(created_by_user_id=ctx.uid, created_by_name=ctx.display_name, completed=False)
    todo = store.todo_items.add(db, data)
    _publish("todo_created", _serialize_todo(todo))
    return todo


@router.patch("/todos/{todo_id}", response_model=TodoItemResponse)
def update_todo(
    todo_id: str,
    body: TodoItemUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    if store.todo_items.get(db, todo_id) is None:
        raise HTTPException(status_code=404, detail="Todo not found")
    todo = store.todo_items.update(db, todo_id, body.model_dump(exclude_unset=True))
    _publish("todo_updated", _serialize_todo(todo))
    return todo


@router.delete("/todos/{todo_id}")
def delete_todo(
    todo_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    todo = store.todo_items.get(db, todo_id)
    if todo is None:
        raise HTTPException(status_code=404, detail="Todo not found")
    if not ctx.is_admin and todo.created_by_user_id != ctx.uid:
        raise HTTPException(status_code=403, detail="Only the creator can delete this todo")
    store.todo_items.delete(db, todo_id)
    _publish("todo_deleted", {"id": todo_id})
    return {"status": "deleted", "id": todo_id}


# =====================
# Live updates
# =====================


@router.websocket("/ws")
async def ws_chat(websocket: WebSocket, token: Optional[str] = None, db: Session = Depends(get_db)):
    if not token:
        await websocket.close(code=4401)
        return
    try:
        user = identity_provider.resolve(db, token)
    except HTTPException:
        await websocket.close(code=4401)
        return
    user_id = user.id

    await websocket.accept()
    await hub.connect(user_id, websocket)
    logger.info("chat_socket_connected", user_id=user_id)
    try:
        while True:
            data = await websocket.receive_text()
            if data and data.strip().lower() in {"ping", "keepalive"}:
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(user_id, websocket)
        logger.info("chat_socket_disconnected", user_id=user_id)
