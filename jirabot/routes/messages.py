"""
Chat message API routes

The chat transport posts every message it sees here and renders the
replies it gets back.
"""
from typing import List

from fastapi import APIRouter, Depends, Request

from jirabot.models.schemas import ChatMessage, ChatReply, MessageResponse
from jirabot.services.dispatcher import CommandDispatcher

router = APIRouter(prefix="/api/v1/messages", tags=["messages"])


def get_dispatcher(request: Request) -> CommandDispatcher:
    """Dispatcher built at startup (see main.lifespan)"""
    return request.app.state.dispatcher


@router.post("", response_model=MessageResponse)
async def receive_message(
    message: ChatMessage,
    dispatcher: CommandDispatcher = Depends(get_dispatcher)
) -> MessageResponse:
    """
    Run one inbound message through the dispatcher

    Replies are returned in completion order.
    """
    replies: List[ChatReply] = []

    async def collect(reply: ChatReply) -> None:
        replies.append(reply)

    await dispatcher.handle(message, collect)
    return MessageResponse(replies=replies)
