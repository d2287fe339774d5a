"""Markdown to WhatsApp text converter.

WhatsApp renders a small inline syntax of its own:
  *bold*, _italic_, ~strikethrough~, ```monospace```

LLM output arrives as common markdown, so it is rewritten here before
sending. Long replies are split to stay under the message size limit.
"""

import re

WHATSAPP_MAX_LENGTH = 4000


def markdown_to_whatsapp(text: str) -> str:
    """Convert markdown-formatted text to WhatsApp formatting.

    Handles:
    - **bold** / __bold__ → *bold*
    - *italic* → _italic_
    - ~~strikethrough~~ → ~strikethrough~
    - [text](url) → text (url)
    - # Header → *Header*
    - ```code blocks``` are left untouched
    """
    if not text:
        return text

    result = []
    in_code = False
    for line in text.split('\n'):
        if line.strip().startswith('```'):
            in_code = not in_code
            result.append(line)
            continue
        if in_code:
            result.append(line)
            continue
        result.append(_format_line(line))

    return '\n'.join(result)


def _format_line(line: str) -> str:
    # Protect inline code spans
    segments = re.split(r'(`[^`]+`)', line)
    parts = []
    for seg in segments:
        if seg.startswith('`') and seg.endswith('`') and len(seg) > 1:
            parts.append(seg)
        else:
            parts.append(_format_text_segment(seg))
    return ''.join(parts)


def _format_text_segment(text: str) -> str:
    # Links first so their brackets don't confuse the rest
    text = re.sub(r'\[([^\]]+)\]\(([^)]+)\)', r'\1 (\2)', text)

    # Italic *x* → _x_ (must run before bold is rewritten to single stars)
    text = re.sub(r'(?<![\w*])\*(?!\*)([^*]+?)(?<!\*)\*(?![\w*])', r'_\1_', text)

    # Bold
    text = re.sub(r'\*\*(.+?)\*\*', r'*\1*', text)
    text = re.sub(r'__(.+?)__', r'*\1*', text)

    # Strikethrough
    text = re.sub(r'~~(.+?)~~', r'~\1~', text)

    # Headers
    text = re.sub(r'^#{1,6}\s+(.+)$', r'*\1*', text)

    # Bullets: "* item" reads oddly once stars mean bold
    text = re.sub(r'^(\s*)[*-]\s+', r'\1• ', text)

    return text


def split_message(text: str, max_length: int = WHATSAPP_MAX_LENGTH) -> list[str]:
    """Split a long message into chunks respecting the length limit.

    Tries to split at newlines first, then spaces, then hard-cuts.
    """
    if len(text) <= max_length:
        return [text]

    chunks = []
    remaining = text

    while remaining:
        if len(remaining) <= max_length:
            chunks.append(remaining)
            break

        split_at = remaining.rfind("\n", 0, max_length)
        if split_at == -1:
            split_at = remaining.rfind(" ", 0, max_length)
        if split_at == -1:
            split_at = max_length

        chunks.append(remaining[:split_at])
        remaining = remaining[split_at:].lstrip()

    return chunks
