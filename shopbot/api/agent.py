"""
Chat endpoints.

    POST /chat               {message}  → {threadId, response}   new thread
    POST /chat/{thread_id}   {message}  → {threadId, response}   continue thread

Any agent failure → 500 {error: <user-facing message>}. Internal details stay
in the logs.
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from shopbot.agents.runner import AgentServices, call_agent, new_thread_id
from shopbot.core.errors import AgentFailed
from shopbot.core.logging import get_logger

log = get_logger(__name__)
router = APIRouter(prefix="/chat", tags=["chat"])


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)


class ChatResponse(BaseModel):
    threadId: str
    response: str


def _services(request: Request) -> AgentServices:
    return request.app.state.services


async def _respond(request: Request, thread_id: str, message: str):
    log.info("chat_message", thread_id=thread_id, message_length=len(message))
    try:
        response = await call_agent(_services(request), message, thread_id)
    except AgentFailed as exc:
        return JSONResponse(status_code=500, content={"error": exc.message})
    return ChatResponse(threadId=thread_id, response=response)


@router.post("", response_model=ChatResponse)
async def start_chat(req: ChatRequest, request: Request):
    """Start a new conversation; the server assigns the thread id."""
    return await _respond(request, new_thread_id(), req.message)


@router.post("/{thread_id}", response_model=ChatResponse)
async def continue_chat(thread_id: str, req: ChatRequest, request: Request):
    """Continue an existing conversation."""
    return await _respond(request, thread_id, req.message)
