"""
Retrieval context for the AI chat feature: formats search hits into a
bounded prompt section.
"""

from typing import List

from ..vector.types import SearchHit

DEFAULT_MAX_CONTEXT_LENGTH = 3000
# Below this much free space a truncated block is not worth adding
MIN_TRUNCATED_SPACE = 200
HEADER_ALLOWANCE = 50
BLOCK_SEPARATOR = "\n---\n"

CONTEXT_INSTRUCTIONS = """You have access to the user's personal journal entries. Use this context to provide personalized and relevant responses. The relevance scores indicate how closely each piece of content matches the current query.

CONTEXT:
{context}

INSTRUCTIONS:
1. Reference specific entries when directly relevant to the query
2. Identify patterns and themes across the user's writing
3. Be empathetic and understanding of their unique journey
4. Maintain complete privacy and confidentiality
5. If the context doesn't relate to the query, say so and give general helpful advice"""


def _source_label(hit: SearchHit) -> str:
    return f"Journal Entry: {hit.document_name or hit.document_id}"


def _block(label: str, score: float, text: str) -> str:
    return f"[{label} - Relevance: {score * 100:.1f}%]\n{text.strip()}\n"


def build_context(hits: List[SearchHit], max_length: int = DEFAULT_MAX_CONTEXT_LENGTH) -> str:
    """
    Format hits as labelled blocks, best first, within max_length characters.

    When the next block does not fit, a truncated copy ending in "..." is
    added if more than MIN_TRUNCATED_SPACE characters remain, and assembly
    stops there.
    """
    if not hits:
        return ""

    parts = []
    total_length = 0
    for hit in hits:
        label = _source_label(hit)
        block = _block(label, hit.score, hit.text)

        if total_length + len(block) > max_length:
            remaining = max_length - total_length
            if remaining > MIN_TRUNCATED_SPACE:
                keep = max(0, min(len(hit.text), remaining - len(label) - HEADER_ALLOWANCE))
                parts.append(_block(label, hit.score, hit.text[:keep].strip() + "..."))
            break

        parts.append(block)
        total_length += len(block)

    return BLOCK_SEPARATOR.join(parts)


def build_system_prompt(base_prompt: str, context: str) -> str:
    """Append retrieved context and usage instructions to a system prompt."""
    if not context:
        return base_prompt
    return f"{base_prompt}\n\n{CONTEXT_INSTRUCTIONS.format(context=context)}"
