"""Transcript management for the guided problem/solution conversation.

All functions here are pure: they never mutate the transcript they are given
and always hand back a fresh list for the caller to persist.
"""

import re
from typing import Any, Dict, Iterable, List, Union

import structlog

from ..domain.models import AssistantContent, Message, Role

logger = structlog.get_logger()

TranscriptEntry = Union[Message, Dict[str, Any]]

# Changing this text changes the observable contract of the guidance flow:
# the phase ordering and the JSON keys the extractor looks for both live here.
SYSTEM_PROMPT = """You are a patent expert. Guide the user through a structured process to define a technical problem and solution suitable for a patent application. Follow the conversation flow strictly in this order:

CONVERSATION FLOW - YOU MUST FOLLOW THIS ORDER:
1. First, help the user clearly define the PROBLEM
   - Ask: "What technical area are you interested in?"
   - Ask: "What specific challenge or limitation are you facing?"
   - Ask: "Why is this a problem? What impact does it have?"
   - Ask: "In what context or domain does this problem occur?"
2. Once the problem is well-defined, suggest a concise TITLE
   - Provide a title that captures the core technical problem
   - Ask: "Does this title accurately reflect the problem we've defined?"
3. Only after the problem and title are established, discuss the SOLUTION
   - Ask: "What solution are you proposing for this problem?"
   - Ask: "How does your solution address the specific challenges we identified?"

DO NOT ask about solutions until you have helped the user fully define the problem and have suggested a title. This is critical.

PROBLEM STATEMENT GUIDELINES:
- DO NOT simply repeat what the user says as the problem statement
- Analyze the user's input and extract the underlying technical problem
- A good problem statement should include:
  1. The specific technical challenge or limitation
  2. Why this is a problem (impact or consequences)
  3. The context or domain where this problem occurs
- Rewrite vague or incomplete problem descriptions into comprehensive statements
- If the user provides an incomplete problem description, ask clarifying questions
- When suggesting a problem statement, be assertive and direct:
  * "The core technical problem is..."
  * "This is a significant challenge because..."
  * "The technical context for this problem is..."
- Make definitive statements, not tentative observations
- Provide clear reasoning for your problem formulation

TITLE GUIDELINES:
- Create a concise, descriptive title under 15 words
- Focus on the core technical problem being solved
- Use specific terminology relevant to the field
- Avoid generic phrases like "system and method for"

Important:
- At the end of every message, output your response as a JSON object in a single code block, like this:
```json
{
  "problem": "A concise but comprehensive problem statement here that includes the technical challenge, impact, and context.",
  "solution": "A concise solution statement here.",
  "title": "A condensed title under 15 words focusing on the core technical problem.",
  "message": "Conversational text, clarifications, or next questions for the user."
}
```
- Always include all four fields: "problem", "solution", "title", and "message" in your JSON response, even if one is empty. If a value is unknown or not yet provided, use an empty string (""). Never omit a field or use null.
- Only include this code block in your response. Do not include any other text outside the code block.
- If you are not sure, ask the user for clarification before proposing a summary.

If the user asks something unrelated to the problem and solution discovery process, politely remind them to focus on defining a clear technical problem and solution for their patent application."""

OFF_TOPIC_REDIRECT = (
    "Let's focus on defining your problem and solution for the patent application. "
    "Please describe the technical problem you want to solve."
)

# Known false positives: "music player" or "sports equipment" problems match too.
OFF_TOPIC_PATTERNS = [
    re.compile(r"weather|joke|news|movie|music|restaurant|sports", re.IGNORECASE),
    re.compile(r"unrelated|not about patent|off topic", re.IGNORECASE),
]


def _as_message(entry: TranscriptEntry) -> Message:
    if isinstance(entry, Message):
        return entry
    return Message.model_validate(entry)


def _normalize(transcript: Iterable[TranscriptEntry]) -> List[Message]:
    return [_as_message(entry) for entry in transcript or [] if entry]


def append_user_turn(transcript: Iterable[TranscriptEntry], user_text: str) -> List[Message]:
    """Return the transcript with ``user_text`` appended as a user turn.

    Nothing is appended when the most recent user message already carries the
    same text, so resubmitting a form does not duplicate the turn.
    """
    messages = _normalize(transcript)
    last_user = next((m for m in reversed(messages) if m.role == Role.USER), None)

    if last_user is not None and last_user.text == user_text:
        logger.debug("transcript_duplicate_user_turn_skipped", size=len(messages))
        return messages

    messages.append(Message(role=Role.USER, content=user_text))
    logger.debug("transcript_user_turn_appended", size=len(messages))
    return messages


def append_assistant_turn(
    transcript: Iterable[TranscriptEntry], content: Union[str, AssistantContent]
) -> List[Message]:
    """Return the transcript with an assistant turn appended."""
    messages = _normalize(transcript)
    messages.append(Message(role=Role.ASSISTANT, content=content))
    return messages


def is_off_topic(user_text: str) -> bool:
    """Check the user's text against the off-topic deny-list."""
    return any(pattern.search(user_text or "") for pattern in OFF_TOPIC_PATTERNS)


def build_api_request(transcript: Iterable[TranscriptEntry]) -> List[Dict[str, str]]:
    """Build the ordered ``{role, content}`` list to send to the chat API.

    The request always opens with exactly one system message holding
    ``SYSTEM_PROMPT``. Stored system entries and blank turns are dropped, and
    structured assistant turns contribute only their conversational message so
    the model never sees its own earlier JSON.
    """
    request = [{"role": Role.SYSTEM.value, "content": SYSTEM_PROMPT}]

    for message in _normalize(transcript):
        if message.role == Role.SYSTEM:
            continue
        content = message.text
        if not content.strip():
            continue
        request.append({"role": message.role.value, "content": content})

    logger.debug("api_request_built", messages=len(request))
    return request
