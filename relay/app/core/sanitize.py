"""Markup sanitizers shared by the relay and the stream consumer.

Explanations are eventually rendered as markup, so source code is stripped of
HTML comments and script blocks before it is embedded in a prompt, and every
streamed delta is stripped of script blocks and ``javascript:`` URI prefixes
before it is appended to the displayed output.
"""

import re

HTML_COMMENT_RE = re.compile(r"<!--[\s\S]*?-->")
SCRIPT_BLOCK_RE = re.compile(
    r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE
)
JAVASCRIPT_URI_RE = re.compile(r"javascript:", re.IGNORECASE)


def strip_html_comments(text: str) -> str:
    return HTML_COMMENT_RE.sub("", text)


def strip_script_blocks(text: str) -> str:
    return SCRIPT_BLOCK_RE.sub("", text)


def sanitize_code(code: str) -> str:
    """Sanitized copy of ``code`` safe to embed in the outbound prompt."""
    return strip_script_blocks(strip_html_comments(code))


def sanitize_delta(content: str) -> str:
    """Sanitized copy of one streamed text delta."""
    return JAVASCRIPT_URI_RE.sub("", strip_script_blocks(content))
