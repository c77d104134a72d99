"""
Prompt template resolution.
Substitutes the selection and its surrounding context into a template.
"""
import re
from typing import Optional

from utils.constants import SELECTION_PLACEHOLDER, Patterns


class TemplateResolver:
    """Builds the first-turn prompt from a template."""

    @staticmethod
    def resolve(template: str, selection: str, context: Optional[str] = "") -> str:
        """
        Replace every {{selection}} and {{context}} token in a single pass.

        Replacement text is inserted literally, so a selection that itself
        contains a placeholder is left untouched. When the template has no
        {{selection}} token the non-empty selection is appended on a new line.
        """
        values = {"selection": selection, "context": context or ""}
        prompt = re.sub(Patterns.PLACEHOLDER, lambda match: values[match.group(1)], template)

        if SELECTION_PLACEHOLDER not in template and selection:
            prompt += "\n" + selection

        return prompt

    @staticmethod
    def choose(explicit: Optional[str], default: Optional[str]) -> Optional[str]:
        """An explicitly chosen template wins over the configured default."""
        if explicit:
            return explicit
        return default

    @staticmethod
    def build_prompt(selection: str, context: str, explicit: Optional[str], default: Optional[str]) -> str:
        """First-turn prompt; with no template at all the selection is sent as-is."""
        template = TemplateResolver.choose(explicit, default)
        if template is None:
            return selection
        return TemplateResolver.resolve(template, selection, context)
