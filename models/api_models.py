"""
Pydantic data models for settings, API requests and responses.
"""
from typing import List, Optional
from pydantic import BaseModel, Field

from utils.constants import DEFAULT_CUSTOM_TEXT, DEFAULT_CUSTOM_TEXT_NAME, DEFAULT_PROMPT_TEMPLATES


class ApiEndpoint(BaseModel):
    """OpenAI-compatible chat completion endpoint."""
    name: str = "New API"
    url: str = ""
    key: str = ""
    model: str = ""
    # Request policy for provider quirks
    default_model: Optional[str] = None
    min_request_interval: float = Field(0.0, ge=0.0, description="Seconds between two requests to this endpoint")

    @property
    def is_configured(self) -> bool:
        """Both url and key are required before a request is attempted."""
        return bool(self.url) and bool(self.key)


class PromptTemplate(BaseModel):
    """Named prompt template with {{selection}} / {{context}} placeholders."""
    name: str
    template: str


def _default_templates() -> List[PromptTemplate]:
    return [PromptTemplate(**t) for t in DEFAULT_PROMPT_TEMPLATES]


class AskSettings(BaseModel):
    """Persisted settings: endpoints, templates and their defaults."""
    apis: List[ApiEndpoint] = Field(default_factory=list)
    default_api_index: int = 0
    prompt_templates: List[PromptTemplate] = Field(default_factory=_default_templates)
    default_prompt_index: int = 0
    custom_text_name: str = DEFAULT_CUSTOM_TEXT_NAME
    custom_text_content: str = DEFAULT_CUSTOM_TEXT


class AskRequest(BaseModel):
    """First turn of a session: the selection and its surroundings."""
    selection: str = Field(..., min_length=1, max_length=20000)
    context: Optional[str] = None
    lines: Optional[List[str]] = None
    cursor_line: Optional[int] = Field(None, ge=0)
    template: Optional[str] = None
    template_index: Optional[int] = Field(None, ge=0)
    api_index: Optional[int] = Field(None, ge=0)


class FollowUpRequest(BaseModel):
    """Follow-up question typed by the user."""
    question: str = Field(..., min_length=1, max_length=20000)


class TextRequest(BaseModel):
    """Selection for a text tool."""
    text: str


class ColorizeRequest(BaseModel):
    """Selection to wrap in a colored span."""
    text: str
    color: str = Field(..., pattern=r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
    bg_color: str = Field(..., pattern=r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


class HighlightRequest(ColorizeRequest):
    """Whole-document highlight of every occurrence of `text`."""
    content: str


class ContextRequest(BaseModel):
    """Editor lines and cursor used to build the template context."""
    lines: List[str]
    cursor_line: int = Field(..., ge=0)
    radius: Optional[int] = Field(None, ge=0)


class UnhighlightRequest(BaseModel):
    """Whole-document removal of the highlights around `text`."""
    content: str
    text: str = Field(..., min_length=1)


class CustomText(BaseModel):
    """Snippet with {{selection}} / {{modelname}} placeholders inserted before an answer."""
    name: str = Field(..., min_length=1)
    content: str


class CustomTextRequest(BaseModel):
    """Render the custom text for a selection; `template` overrides the stored one."""
    selection: str = ""
    template: Optional[str] = None
    api_index: Optional[int] = Field(None, ge=0)
