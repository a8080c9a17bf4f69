"""Guided problem/solution discovery for patent applications."""

from typing import Iterable, Optional

import structlog

from .. import config
from ..domain.models import AssistantContent, GuidanceResult
from .extraction import extract
from .llm import ChatClient
from .transcript import (
    OFF_TOPIC_REDIRECT,
    TranscriptEntry,
    append_assistant_turn,
    append_user_turn,
    build_api_request,
    is_off_topic,
)

logger = structlog.get_logger()


def _accept(update: bool, suggestion: Optional[str], current: Optional[str]) -> Optional[str]:
    return suggestion if update and suggestion else current


class PatentGuidanceService:
    """Runs one turn of the scripted problem -> title -> solution conversation."""

    def __init__(
        self,
        chat_client: ChatClient,
        temperature: float = config.CHAT_TEMPERATURE,
        max_tokens: int = config.CHAT_MAX_TOKENS,
    ):
        self.chat_client = chat_client
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def guide_problem_solution(
        self,
        transcript: Iterable[TranscriptEntry],
        user_input: str,
        current_problem: Optional[str] = None,
        current_solution: Optional[str] = None,
        current_title: Optional[str] = None,
        update_problem: bool = False,
        update_solution: bool = False,
        update_title: bool = False,
    ) -> GuidanceResult:
        """Add the user's turn, ask the model, and read back its suggestions.

        Suggestions only replace the current problem, solution or title when
        the matching ``update_*`` flag is set. Off-topic input is answered
        with a fixed redirect and never reaches the model. Errors from the
        chat client propagate to the caller.
        """
        messages = append_user_turn(transcript, user_input)
        logger.debug("guidance_turn_started", history_size=len(messages))

        if is_off_topic(user_input):
            messages = append_assistant_turn(messages, AssistantContent(message=OFF_TOPIC_REDIRECT))
            logger.info("guidance_off_topic_redirect")
            return GuidanceResult(
                transcript=messages,
                problem=current_problem,
                solution=current_solution,
                title=current_title,
                display_message=OFF_TOPIC_REDIRECT,
                off_topic=True,
            )

        request = build_api_request(messages)
        raw_response = await self.chat_client.chat(
            request, temperature=self.temperature, max_tokens=self.max_tokens
        )

        extracted = extract(raw_response)
        messages = append_assistant_turn(
            messages,
            AssistantContent(
                problem=extracted.suggested_problem or "",
                solution=extracted.suggested_solution or "",
                title=extracted.suggested_title or "",
                message=extracted.display_message,
            ),
        )

        logger.info(
            "guidance_turn_completed",
            history_size=len(messages),
            suggested_problem=bool(extracted.suggested_problem),
            suggested_solution=bool(extracted.suggested_solution),
            suggested_title=bool(extracted.suggested_title),
        )

        return GuidanceResult(
            transcript=messages,
            problem=_accept(update_problem, extracted.suggested_problem, current_problem),
            solution=_accept(update_solution, extracted.suggested_solution, current_solution),
            title=_accept(update_title, extracted.suggested_title, current_title),
            display_message=extracted.display_message,
            suggested_problem=extracted.suggested_problem,
            suggested_solution=extracted.suggested_solution,
            suggested_title=extracted.suggested_title,
            raw_response=raw_response,
        )
