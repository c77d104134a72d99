"""
Route handlers for selection text tools.
"""
from fastapi import APIRouter, HTTPException, status

from models.api_models import (
    ColorizeRequest,
    ContextRequest,
    CustomTextRequest,
    HighlightRequest,
    TextRequest,
    UnhighlightRequest
)
from services.settings_store import get_settings_store
from services.text_service import TextService

router = APIRouter()

TEXT_OPERATIONS = {
    "remove-html-tags": TextService.remove_html_tags,
    "remove-empty-lines": TextService.remove_empty_lines,
    "clear-format": TextService.clear_format,
    "demote-headings": TextService.demote_headings,
    "bold": TextService.wrap_bold,
    "underline": TextService.wrap_underline,
    "strikethrough": TextService.wrap_strikethrough,
}


@router.post("/text/context")
async def extract_context(request: ContextRequest):
    """Context string built from the lines around the cursor."""
    return {"context": TextService.extract_context(request.lines, request.cursor_line, request.radius)}


@router.post("/text/colorize")
async def colorize(request: ColorizeRequest):
    return {"text": TextService.colorize(request.text, request.color, request.bg_color)}


@router.post("/text/highlight")
async def highlight(request: HighlightRequest):
    """Highlight every unwrapped occurrence of the text in the document."""
    content, count = TextService.highlight_all(request.content, request.text, request.color, request.bg_color)
    return {"content": content, "replaced": count}


@router.post("/text/unhighlight")
async def unhighlight(request: UnhighlightRequest):
    """Remove every highlight wrapping exactly the text."""
    return {"content": TextService.remove_highlight(request.content, request.text)}


@router.post("/text/colors")
async def parse_colors(request: TextRequest):
    """Colors of the first styled span in the text, if any."""
    colors = TextService.parse_span_colors(request.text)
    if colors is None:
        return {"color": None, "bg_color": None}
    return {"color": colors[0], "bg_color": colors[1]}


@router.post("/text/custom")
async def custom_text(request: CustomTextRequest):
    """Custom text snippet filled for the selection and the chosen endpoint."""
    store = get_settings_store()
    settings = store.load()
    template = request.template if request.template is not None else settings.custom_text_content
    return {
        "name": settings.custom_text_name,
        "text": TextService.render_custom_text(template, request.selection, store.get_endpoint(request.api_index))
    }


@router.post("/text/{operation}")
async def transform_text(operation: str, request: TextRequest):
    """Apply one of the selection text tools."""
    transform = TEXT_OPERATIONS.get(operation)
    if transform is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown text operation '{operation}'. Available: {', '.join(sorted(TEXT_OPERATIONS))}"
        )
    return {"text": transform(request.text)}
