"""
Markdown to speakable text, plus a rough listening-time estimate.

The output feeds the browser's speech synthesis, so markdown syntax has to go
and paragraph breaks become spoken pauses.
"""

import re
from typing import List, Pattern, Tuple

WORDS_PER_MINUTE = 150

# Applied in this order; later rules assume earlier ones already ran.
MARKDOWN_RULES: List[Tuple[Pattern, str]] = [
    (re.compile(r'#{1,6}\s'), ''),
    (re.compile(r'\*\*(.*?)\*\*'), r'\1'),
    (re.compile(r'\*(.*?)\*'), r'\1'),
    (re.compile(r'`(.*?)`'), r'\1'),
    (re.compile(r'\[(.*?)\]\(.*?\)'), r'\1'),
    (re.compile(r'^\s*(?:[-*+]\s+)+', re.MULTILINE), ''),
    (re.compile(r'^\s*(?:\d+\.\s+)+', re.MULTILINE), ''),
    (re.compile(r'\n{2,}'), '. '),
    (re.compile(r'\n'), ' '),
    (re.compile(r'\s{2,}'), ' '),
]

SPECIAL_CHARACTERS = re.compile(r'[^\w\s.,!?;:()\-]')
SENTENCE_BOUNDARY = re.compile(r'([.!?])\s*([A-Z])')


def _single_pass(text: str, strip_special_characters: bool) -> str:
    for pattern, replacement in MARKDOWN_RULES:
        text = pattern.sub(replacement, text)
    if strip_special_characters:
        text = SPECIAL_CHARACTERS.sub('', text)
    text = SENTENCE_BOUNDARY.sub(r'\1 \2', text)
    return text.strip()


def prepare_for_speech(markdown: str, strip_special_characters: bool = True) -> str:
    """
    Convert markdown into plain text suitable for speech synthesis.

    The rule pipeline is re-applied until the text stops changing, so nested
    markers such as ``- - item`` are fully removed and a second call is a no-op.

    Args:
        markdown: Markdown source, typically a generated study guide
        strip_special_characters: Drop anything outside word characters,
            whitespace and ``.,!?;:()-`` (server-side behaviour)

    Returns:
        Plain text
    """
    text = markdown
    while True:
        cleaned = _single_pass(text, strip_special_characters)
        if cleaned == text:
            return text
        text = cleaned


def estimate_duration_seconds(text: str, speed: float = 1.0) -> int:
    """
    Estimate listening time at ~150 words per minute scaled by ``speed``.

    This is an approximation, not measured audio.
    """
    if speed <= 0:
        raise ValueError("Speed must be greater than 0")
    words = len(text.split())
    minutes = words / (WORDS_PER_MINUTE * speed)
    return round(minutes * 60)
