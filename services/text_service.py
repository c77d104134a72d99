"""
Text tools applied to the editor selection.
Formatting cleanup, heading demotion, wrapping and colored highlights.
"""
import re
from typing import List, Optional, Tuple

from config import Config
from models.api_models import ApiEndpoint
from utils.constants import CUSTOM_TEXT_PREVIEW_LENGTH, Patterns

SPAN_BLOCK = re.compile(r'(<span[^>]*>.*?</span>)', re.IGNORECASE | re.DOTALL)


class TextService:
    """Plain-string operations; the host applies the result to its editor."""

    @staticmethod
    def extract_context(lines: List[str], cursor_line: int, radius: Optional[int] = None) -> str:
        """Lines around the cursor (radius before and after), joined and trimmed."""
        if not lines:
            return ""
        if radius is None:
            radius = Config.CONTEXT_RADIUS

        cursor_line = min(cursor_line, len(lines) - 1)
        start = max(0, cursor_line - radius)
        end = min(len(lines) - 1, cursor_line + radius)
        return "\n".join(lines[start:end + 1]).strip()

    @staticmethod
    def remove_html_tags(text: str) -> str:
        return re.sub(Patterns.HTML_TAG, '', text)

    @staticmethod
    def remove_empty_lines(text: str) -> str:
        """Drop lines that are empty or whitespace only."""
        return "\n".join(line for line in text.split("\n") if line.strip())

    @staticmethod
    def clear_format(text: str) -> str:
        """Strip bold, italic, strikethrough, inline code, headings, rules and list markers."""
        for pattern, replacement in Patterns.FORMAT_CLEANUP:
            text = re.sub(pattern, replacement, text, flags=re.MULTILINE)
        return text

    @staticmethod
    def demote_headings(text: str) -> str:
        """Push every heading of level 1-5 one level down."""
        def demote(line: str) -> str:
            match = re.match(Patterns.HEADING, line)
            if match:
                return f"#{match.group(1)} {match.group(2)}"
            return line

        return "\n".join(demote(line) for line in text.split("\n"))

    @staticmethod
    def wrap_bold(text: str) -> str:
        return f"**{text}**"

    @staticmethod
    def wrap_underline(text: str) -> str:
        return f"<u>{text}</u>"

    @staticmethod
    def wrap_strikethrough(text: str) -> str:
        return f"<s>{text}</s>"

    @staticmethod
    def colorize(text: str, color: str, bg_color: str) -> str:
        return f'<span style="color: {color}; background-color: {bg_color};">{text}</span>'

    @staticmethod
    def parse_span_colors(html: str) -> Optional[Tuple[str, str]]:
        """(color, background) of the first styled span, attribute order independent."""
        span = re.search(Patterns.SPAN_STYLE, html, flags=re.IGNORECASE)
        if not span:
            return None

        style = span.group(1)
        color = re.search(Patterns.STYLE_COLOR, style, flags=re.IGNORECASE)
        background = re.search(Patterns.STYLE_BACKGROUND, style, flags=re.IGNORECASE)
        if not color or not background:
            return None
        return color.group(1), background.group(1)

    @staticmethod
    def highlight_all(content: str, text: str, color: str, bg_color: str) -> Tuple[str, int]:
        """
        Wrap every occurrence of `text` that is not already inside a span.

        Returns:
            Tuple of (new_content, occurrences_wrapped)
        """
        if not text:
            return content, 0

        wrapped = 0
        parts = SPAN_BLOCK.split(content)
        for i, part in enumerate(parts):
            # odd indexes are existing span blocks
            if i % 2 == 1 or text not in part:
                continue
            wrapped += part.count(text)
            parts[i] = part.replace(text, TextService.colorize(text, color, bg_color))

        return "".join(parts), wrapped

    @staticmethod
    def remove_highlight(content: str, text: str) -> str:
        """Unwrap every span that contains exactly `text`."""
        pattern = re.compile(rf'<span[^>]*>\s*{re.escape(text)}\s*</span>', re.IGNORECASE)
        return pattern.sub(lambda _: text, content)

    @staticmethod
    def render_custom_text(template: str, selection: str, endpoint: Optional[ApiEndpoint] = None) -> str:
        """
        Fill the custom text snippet.

        {{selection}} becomes the first characters of the selection followed by
        "..." when it is longer; {{modelname}} becomes the endpoint's model,
        else its name, else nothing.
        """
        preview = selection
        if len(preview) > CUSTOM_TEXT_PREVIEW_LENGTH:
            preview = preview[:CUSTOM_TEXT_PREVIEW_LENGTH] + "..."

        model_name = ""
        if endpoint is not None:
            model_name = endpoint.model or endpoint.name or ""

        values = {"selection": preview, "modelname": model_name}
        return re.sub(Patterns.CUSTOM_TEXT_PLACEHOLDER, lambda m: values[m.group(1)], template)
