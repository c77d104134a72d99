"""
Route handlers for endpoint and prompt template settings.
"""
from fastapi import APIRouter, HTTPException, status

from models.api_models import ApiEndpoint, AskSettings, CustomText, PromptTemplate
from services.settings_store import get_settings_store

router = APIRouter()


def _public(settings: AskSettings) -> dict:
    """Settings with endpoint keys masked."""
    data = settings.model_dump()
    for api in data["apis"]:
        key = api.get("key") or ""
        api["key"] = f"...{key[-4:]}" if len(key) > 4 else ("***" if key else "")
    return data


@router.get("/settings")
async def get_settings():
    """Configured endpoints and templates."""
    return _public(get_settings_store().load())


@router.post("/settings/endpoints")
async def add_endpoint(endpoint: ApiEndpoint):
    return _public(get_settings_store().add_endpoint(endpoint))


@router.delete("/settings/endpoints/{index}")
async def remove_endpoint(index: int):
    try:
        settings = get_settings_store().remove_endpoint(index)
    except IndexError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return _public(settings)


@router.post("/settings/templates")
async def add_template(template: PromptTemplate):
    return _public(get_settings_store().add_template(template))


@router.delete("/settings/templates/{index}")
async def remove_template(index: int):
    try:
        settings = get_settings_store().remove_template(index)
    except IndexError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return _public(settings)


@router.put("/settings/custom-text")
async def set_custom_text(custom_text: CustomText):
    """Name and content of the custom text snippet."""
    return _public(get_settings_store().set_custom_text(custom_text.name, custom_text.content))
