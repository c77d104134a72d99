"""
Models package exports.
"""
from models.api_models import (
    ApiEndpoint,
    PromptTemplate,
    AskSettings,
    AskRequest,
    FollowUpRequest,
    TextRequest,
    ColorizeRequest,
    HighlightRequest,
    ContextRequest,
    UnhighlightRequest,
    CustomText,
    CustomTextRequest
)
from models.chat_models import ChatMessage, Session, StreamState, StreamEvent

__all__ = [
    'ApiEndpoint',
    'PromptTemplate',
    'AskSettings',
    'AskRequest',
    'FollowUpRequest',
    'TextRequest',
    'ColorizeRequest',
    'HighlightRequest',
    'ContextRequest',
    'UnhighlightRequest',
    'CustomText',
    'CustomTextRequest',
    'ChatMessage',
    'Session',
    'StreamState',
    'StreamEvent'
]
