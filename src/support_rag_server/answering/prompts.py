"""
Prompt templates for support answering.
"""

from typing import Iterable

from ..search.models import SearchResult

SYSTEM_PROMPT_TEMPLATE = """You are an AI customer support assistant for {company}, a financial services company. You help customers with questions about loans, payments, account management, and other financial services.

Guidelines:
- Always be helpful, professional, and friendly
- Use the provided context from {company}'s support documents to answer questions accurately
- If you don't have enough information in the context, politely say so and suggest contacting customer support
- For financial advice or complex situations, recommend speaking with a financial advisor
- Keep responses concise but comprehensive
- When referencing specific procedures or policies, cite the relevant information from the context

Context from {company}'s knowledge base will be provided below. Use this information to answer the user's question."""

CONTEXT_HEADER_TEMPLATE = "Relevant context from {company}'s knowledge base:"

FALLBACK_ANSWER = "I apologize, but I was unable to generate a response. Please try again."

DEFAULT_CATEGORY = "General"


def system_prompt(company: str, context: str = "") -> str:
    prompt = SYSTEM_PROMPT_TEMPLATE.format(company=company)
    if not context:
        return prompt
    header = CONTEXT_HEADER_TEMPLATE.format(company=company)
    return f"{prompt}\n\n{header}\n\n{context}"


def format_context(results: Iterable[SearchResult], max_chars: int) -> str:
    """
    One labelled block per hit, joined by blank lines and cut at
    `max_chars` characters.
    """
    parts = [
        f"[Context {i} - {r.category or DEFAULT_CATEGORY} (relevance: {r.score:.3f})]:\n{r.text}"
        for i, r in enumerate(results, start=1)
    ]
    return "\n\n".join(parts)[:max_chars]
