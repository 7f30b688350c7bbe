from typing import Annotated, Optional
import secrets

import structlog
from fastapi import APIRouter, Cookie, Depends, File, Form, Header, HTTPException, Request, Response, UploadFile
from pydantic import BaseModel

from botter.domain.errors import InvalidInputError
from botter.domain.models.conversation import InlineData, TurnRequest
from botter.domain.orchestration.core.conversation_orchestrator import ConversationOrchestrator

logger = structlog.get_logger(__name__)

router = APIRouter()

SESSION_COOKIE_NAME = "sessionID"


class MessageResponse(BaseModel):
    """Reply delivered to the client"""
    response: str


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Service is starting")
    return orchestrator


def generate_session_id() -> str:
    return secrets.token_urlsafe(16)


@router.post("/message", response_model=MessageResponse)
async def post_message(
    response: Response,
    orchestrator: Annotated[ConversationOrchestrator, Depends(get_orchestrator)],
    message: Annotated[str, Form()] = "",
    image: Annotated[Optional[UploadFile], File()] = None,
    attachment: Annotated[Optional[UploadFile], File()] = None,
    x_user_id: Annotated[Optional[str], Header()] = None,
    session_cookie: Annotated[Optional[str], Cookie(alias=SESSION_COOKIE_NAME)] = None,
):
    """Handle one user message; the session comes from X-User-ID or the session cookie"""

    session_id = x_user_id or session_cookie
    if not session_id:
        session_id = generate_session_id()
        response.set_cookie(SESSION_COOKIE_NAME, session_id)

    attachment = image or attachment
    inline_data = None
    if attachment is not None:
        data = await attachment.read()
        if data:
            inline_data = InlineData(
                mime_type=attachment.content_type or "application/octet-stream",
                data=data
            )

    try:
        reply = await orchestrator.handle_turn(
            session_id,
            TurnRequest(message=message, attachment=inline_data)
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("Error in turn processing", error=str(e), session_id=session_id, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to handle message")

    return MessageResponse(response=reply)
