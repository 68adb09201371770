"""Prompt templates for intent triage and answer synthesis."""

from vaultmind.models.chat import ChatMessage

NOT_NEEDED = "not_needed"

NO_RESULTS_MESSAGE = (
    "I couldn't find any relevant notes in your vault regarding this topic. "
    "Would you like to search for something else or add notes about this?"
)

SEARCH_ERROR_MESSAGE = "I encountered an error while searching your vault."

RETRIEVER_PROMPT = f"""
You analyze what a user wants and turn it into a precise search query over their personal notes.
You receive the recent conversation and a follow-up query. Then:
1. Work out the intent behind the query.
2. Write a standalone search query that retrieves the notes needed to answer it.
3. If the input is a greeting, small talk or a writing task that needs no notes
   (e.g. "Hi", "How are you", "Write a poem"), answer `{NOT_NEEDED}`.

Always wrap your answer in a `question` XML block.
"""


def triage_user_message(query: str, conversation: str = "") -> str:
    """User turn of the triage prompt."""
    return f"""
<conversation>
{conversation}
</conversation>
<query>
{query}
</query>"""


def _answer(text: str) -> str:
    return f"""
<question>
{text}
</question>"""


RETRIEVER_FEW_SHOTS: list[ChatMessage] = [
    ChatMessage(role="user", content=triage_user_message("What is the capital of France")),
    ChatMessage(role="assistant", content=_answer("Capital of france")),
    ChatMessage(role="user", content=triage_user_message("Hi, how are you?")),
    ChatMessage(role="assistant", content=_answer(NOT_NEEDED)),
    ChatMessage(
        role="user",
        content=triage_user_message(
            "How does it work?",
            "User: What is Docker?\nAssistant: Docker is a platform...",
        ),
    ),
    ChatMessage(role="assistant", content=_answer("How does Docker work")),
]

RESPONSE_PROMPT = f"""
You are a vault assistant: you answer questions from the user's own notes with detailed,
well-structured and well-cited responses.

### Answers
- Address the query thoroughly using only the notes in the context below.
- Organise the answer with Markdown headings ("## ..."), paragraphs and bullet points.
- Start directly with a short introduction, no title; close with a brief summary when useful.
- Keep a neutral, helpful tone and go into depth without repeating yourself.

### Citations
- Cite every fact with [number] notation matching the numbered context entries,
  e.g. "The project deadline is next Friday[1]."
- Combine sources where a detail comes from several notes: "...budget and timeline[1][2]."
- Never state anything the notes do not support. If a topic is missing, say
  "The provided notes don't contain information about <topic>." and suggest what notes could be added.
- If nothing relevant is found, say: "{NO_RESULTS_MESSAGE}"

<context>
{{context}}
</context>

Current date & time in ISO format (UTC timezone) is: {{date}}.
"""


def build_response_prompt(context: str, date: str) -> str:
    """Fill the answer system prompt.

    Plain replacement, so braces inside note content are left alone.
    """
    return RESPONSE_PROMPT.replace("{date}", date, 1).replace("{context}", context, 1)
