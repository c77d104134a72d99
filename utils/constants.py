"""
Constants and built-in prompt templates for the Ask AI Bridge application.
"""

SELECTION_PLACEHOLDER = "{{selection}}"

DEFAULT_TRANSLATE_TEMPLATE = """Work on the selection below as instructed. selection:
{{selection}}

Instructions:
- If the selection is a single English word, **only translate it and give its etymology, ignore the other instructions**
- If the selection is an English passage, give both a literal and a natural translation, and explain the key words and phrases;
- If the selection is a Chinese passage, explain its meaning in plain language;
- If there is context, use it in the explanation,
**only translate the selection**.

Context: {{context}}"""

DEFAULT_PROMPT_TEMPLATES = [
    {"name": "Default translation", "template": DEFAULT_TRANSLATE_TEMPLATE},
    {"name": "English translation", "template": "Translate the following English text into Chinese:\n{{selection}}"},
    {"name": "Plain explanation", "template": "Explain the following in plain words:\n{{selection}}"},
]

# Snippet inserted before the answer; {{selection}} is shortened to a preview
DEFAULT_CUSTOM_TEXT_NAME = "Custom text"
DEFAULT_CUSTOM_TEXT = ">[!{{selection}}]\n"
CUSTOM_TEXT_PREVIEW_LENGTH = 10

# Diagnostics written to the sink
CONFIG_ERROR_MESSAGE = "\n❌ API configuration incomplete"
TRANSPORT_ERROR_MESSAGE = "\n❌ Request failed: HTTP {status}"
NETWORK_ERROR_MESSAGE = "\n❌ Request failed: {error}"


class StreamEventType:
    """Stream event identifiers."""
    DELTA, DONE, ABORTED, FAILED = "delta", "done", "aborted", "failed"


class CallState:
    """States of a single chat call."""
    IDLE, REQUESTING, STREAMING = "idle", "requesting", "streaming"
    COMPLETED, ABORTED, FAILED = "completed", "aborted", "failed"


class SSEFormat:
    """Wire constants of the OpenAI-compatible streaming body."""
    RECORD_SEPARATOR = "\n\n"
    DATA_PREFIX = "data: "
    DONE_SENTINEL = "[DONE]"


class Patterns:
    """Regular expression patterns for templates and text tools."""
    PLACEHOLDER = r"\{\{(selection|context)\}\}"
    CUSTOM_TEXT_PLACEHOLDER = r"\{\{(selection|modelname)\}\}"
    HTML_TAG = r'<[^>]*>'
    HEADING = r'^(#{1,5})\s+(.*)$'
    SPAN_STYLE = r'<span[^>]+style="([^"]*)"[^>]*>'
    STYLE_COLOR = r'(?<![-\w])color:\s*(#[0-9a-fA-F]{6}|#[0-9a-fA-F]{3})\b'
    STYLE_BACKGROUND = r'background-color:\s*(#[0-9a-fA-F]{6}|#[0-9a-fA-F]{3})\b'

    # Applied in order by clear_format
    FORMAT_CLEANUP = [
        (r'\*\*(.*?)\*\*', r'\1'),
        (r'\*(.*?)\*', r'\1'),
        (r'~~(.*?)~~', r'\1'),
        (r'`(.*?)`', r'\1'),
        (r'^#+\s+', ''),
        (r'^-{3,}$', ''),
        (r'^(\d+)\.\s*', r'\1 '),
        (r'^\s*(\d+)\.\s*', r'\1 '),
        (r'^\s*\*\s*', ''),
    ]
