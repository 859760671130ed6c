"""Prompt builders for persona generation, summaries and follow-ups."""

from __future__ import annotations

SUMMARY_INSTRUCTIONS = (
    "You are a concise summarizer. Given a tax analysis response, provide a 1-2 "
    "sentence TL;DR that captures the core stance and key takeaway. Be direct and "
    "punchy. No fluff."
)


def build_persona_instructions(instructions: str, context_text: str) -> str:
    if not context_text:
        return instructions
    return (
        f"{instructions}\n\nREFERENCE MATERIAL FROM WEB SEARCH:\n{context_text}\n\n"
        "Use the above reference material to inform your analysis where relevant. "
        "Cite specific sources when applicable."
    )


def build_user_query(topic: str) -> str:
    return f"Analyze this Singapore tax matter: {topic}"


def build_followup_instructions(persona_context: str | None) -> str:
    instructions = (
        "You are a Singapore tax expert assistant. The user has highlighted a specific "
        "passage from a tax analysis and wants clarification.\n\n"
        "Be concise and direct - aim for 2-4 sentences unless the question requires "
        "more detail. Focus specifically on what was asked about the highlighted text."
    )
    if persona_context:
        instructions += (
            f"\n\nContext about the source: This was from \"{persona_context}\" "
            "persona's analysis."
        )
    return instructions


def build_followup_input(highlighted_text: str, question: str) -> str:
    return f'HIGHLIGHTED TEXT:\n"{highlighted_text}"\n\nUSER\'S QUESTION:\n{question}'
