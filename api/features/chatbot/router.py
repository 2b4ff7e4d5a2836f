"""Router for the Chatbot feature."""
from typing import Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Header, HTTPException, Response

from api.features.chatbot.controller import ChatbotController
from api.features.chatbot.dtos import ChatRequest, ChatResponse
from api.features.conversation.dtos import (
    ClearConversationResponse,
    FeedbackRequest,
    FeedbackResponse,
    HistoryResponse,
)
from api.shared.dtos import HealthCheckResponse
from api.shared.response import ResponseModel
from di.container import ApplicationContainer as DependencyContainer
from nlq.types import CallerIdentity

router = APIRouter()


def get_caller_identity(
    x_user_id: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
) -> CallerIdentity:
    """Caller identity forwarded by the authentication layer."""
    return CallerIdentity(user_id=x_user_id, display_name=x_user_name)


@router.get("/health", response_model=ResponseModel[HealthCheckResponse])
@inject
async def health_check(
    controller: ChatbotController = Depends(
        Provide[DependencyContainer.controllers.chatbot_controller]
    ),
):
    result = await controller.health()
    return ResponseModel.success(data=result, message="Chatbot service status")


@router.post("/chat", response_model=ResponseModel[ChatResponse])
@inject
async def chat(
    request: ChatRequest,
    response: Response,
    identity: CallerIdentity = Depends(get_caller_identity),
    controller: ChatbotController = Depends(
        Provide[DependencyContainer.controllers.chatbot_controller]
    ),
):
    try:
        result = await controller.chat(request, identity)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not result.success:
        response.status_code = 500
        return ResponseModel.error(message=result.response, data=result)
    return ResponseModel.success(data=result, message="Answer generated")


@router.get("/history/{conversation_id}", response_model=ResponseModel[HistoryResponse])
@inject
async def get_history(
    conversation_id: str,
    controller: ChatbotController = Depends(
        Provide[DependencyContainer.controllers.chatbot_controller]
    ),
):
    result = await controller.get_history(conversation_id)
    return ResponseModel.success(data=result, message="History fetched")


@router.delete(
    "/conversation/{conversation_id}",
    response_model=ResponseModel[ClearConversationResponse],
)
@inject
async def clear_conversation(
    conversation_id: str,
    controller: ChatbotController = Depends(
        Provide[DependencyContainer.controllers.chatbot_controller]
    ),
):
    result = await controller.clear_conversation(conversation_id)
    return ResponseModel.success(data=result, message="Conversation cleared")


@router.post("/feedback", response_model=ResponseModel[FeedbackResponse])
@inject
async def submit_feedback(
    request: FeedbackRequest,
    controller: ChatbotController = Depends(
        Provide[DependencyContainer.controllers.chatbot_controller]
    ),
):
    result = await controller.submit_feedback(request)
    message = "Feedback submitted" if result.accepted else "Feedback already recorded or turn not found"
    return ResponseModel.success(data=result, message=message)
