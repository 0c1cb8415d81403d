from __future__ import annotations

MASK_TOKEN = "********"
PARAGRAPH_SEPARATOR = "\n\n"


def mask_definition(word: str, definition: str) -> str:
    """Turn a stored definition into a question that does not leak ``word``.

    先頭段落は見出し語の繰り返しとみなして除き（段落が複数ある場合のみ）、
    残りの本文中の見出し語をすべて伏せ字にする。
    """

    paragraphs = definition.split(PARAGRAPH_SEPARATOR)
    if len(paragraphs) > 1:
        definition = PARAGRAPH_SEPARATOR.join(paragraphs[1:])
    if not word:
        return definition
    return definition.replace(word, MASK_TOKEN)
