"""
Settings persistence for endpoints and prompt templates.
Settings are stored as JSON and re-read on every call.
"""
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from config import Config
from models.api_models import ApiEndpoint, AskSettings, PromptTemplate
from utils.logger import app_logger


class SettingsStore:
    """JSON-file backed settings with built-in defaults."""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or Config.SETTINGS_PATH)

    def load(self) -> AskSettings:
        """Read settings; missing file or keys fall back to defaults."""
        if not self.path.exists():
            return AskSettings()

        try:
            return AskSettings.model_validate_json(self.path.read_text(encoding="utf-8"))
        except ValidationError as e:
            app_logger.error(f"Invalid settings file {self.path}, using defaults: {e}")
            return AskSettings()

    def save(self, settings: AskSettings) -> None:
        """Write to a temporary file next to the settings, then swap it in."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(settings.model_dump_json(indent=2))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    @staticmethod
    def _shift_default(default: int, removed: int, remaining: int) -> int:
        """Default index after a removal, still pointing at the same item when it survives."""
        if removed < default:
            default -= 1
        return default if 0 <= default < remaining else 0

    def get_endpoint(self, index: Optional[int] = None) -> Optional[ApiEndpoint]:
        """Endpoint at `index`, or the default one. None when it does not exist."""
        settings = self.load()
        if index is None:
            index = settings.default_api_index
        if 0 <= index < len(settings.apis):
            return settings.apis[index]
        return None

    def get_template(self, index: int) -> Optional[PromptTemplate]:
        settings = self.load()
        if 0 <= index < len(settings.prompt_templates):
            return settings.prompt_templates[index]
        return None

    def get_default_template(self) -> Optional[str]:
        """Text of the default template, falling back to the first one."""
        settings = self.load()
        if not settings.prompt_templates:
            return None
        template = self.get_template(settings.default_prompt_index) or settings.prompt_templates[0]
        return template.template

    def add_endpoint(self, endpoint: ApiEndpoint) -> AskSettings:
        settings = self.load()
        settings.apis.append(endpoint)
        self.save(settings)
        app_logger.info(f"Endpoint added: {endpoint.name}")
        return settings

    def remove_endpoint(self, index: int) -> AskSettings:
        """Delete an endpoint. The default follows its endpoint and resets to 0 when it falls out of range."""
        settings = self.load()
        if not 0 <= index < len(settings.apis):
            raise IndexError(f"No endpoint at index {index}")

        removed = settings.apis.pop(index)
        settings.default_api_index = self._shift_default(settings.default_api_index, index, len(settings.apis))
        self.save(settings)
        app_logger.info(f"Endpoint removed: {removed.name}")
        return settings

    def add_template(self, template: PromptTemplate) -> AskSettings:
        settings = self.load()
        settings.prompt_templates.append(template)
        self.save(settings)
        return settings

    def remove_template(self, index: int) -> AskSettings:
        settings = self.load()
        if not 0 <= index < len(settings.prompt_templates):
            raise IndexError(f"No template at index {index}")

        settings.prompt_templates.pop(index)
        settings.default_prompt_index = self._shift_default(
            settings.default_prompt_index, index, len(settings.prompt_templates)
        )
        self.save(settings)
        return settings

    def set_custom_text(self, name: str, content: str) -> AskSettings:
        settings = self.load()
        settings.custom_text_name = name
        settings.custom_text_content = content
        self.save(settings)
        return settings


def get_settings_store() -> SettingsStore:
    """Settings store at the configured path."""
    return SettingsStore(Config.SETTINGS_PATH)
