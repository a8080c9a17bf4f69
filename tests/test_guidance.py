"""Tests for the guided conversation turn."""

import json

import pytest

from conftest import FakeChatClient
from patent_guide.domain.models import AssistantContent, Message, Role
from patent_guide.services.guidance import PatentGuidanceService
from patent_guide.services.transcript import OFF_TOPIC_REDIRECT, SYSTEM_PROMPT

HYDRATION_REPLY = "```json\n" + json.dumps({
    "problem": "Users forget to drink water",
    "solution": "",
    "title": "Hydration Reminder",
    "message": "What time of day...",
}) + "\n```"


@pytest.mark.asyncio
async def test_first_turn_builds_two_entry_transcript():
    client = FakeChatClient(replies=[HYDRATION_REPLY])
    service = PatentGuidanceService(client)

    result = await service.guide_problem_solution([], "I want to help people drink more water.")

    assert [m.role for m in result.transcript] == [Role.USER, Role.ASSISTANT]
    assert result.suggested_problem == "Users forget to drink water"
    assert result.suggested_solution == ""
    assert result.suggested_title == "Hydration Reminder"
    assert result.display_message == "What time of day..."
    assert result.raw_response == HYDRATION_REPLY
    assert not result.off_topic

    stored = result.transcript[-1].content
    assert stored == AssistantContent(
        problem="Users forget to drink water",
        solution="",
        title="Hydration Reminder",
        message="What time of day...",
    )

    request = client.requests[0]
    assert request[0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert request[1:] == [{"role": "user", "content": "I want to help people drink more water."}]
    assert client.options[0] == {"temperature": 0.6, "max_tokens": 500}


@pytest.mark.asyncio
async def test_suggestions_are_not_adopted_without_flags():
    service = PatentGuidanceService(FakeChatClient(replies=[HYDRATION_REPLY]))
    result = await service.guide_problem_solution(
        [], "drinking water", current_problem="old problem", current_title="old title"
    )
    assert result.problem == "old problem"
    assert result.solution is None
    assert result.title == "old title"


@pytest.mark.asyncio
async def test_flags_adopt_non_empty_suggestions_only():
    service = PatentGuidanceService(FakeChatClient(replies=[HYDRATION_REPLY]))
    result = await service.guide_problem_solution(
        [],
        "drinking water",
        current_problem="old problem",
        current_solution="old solution",
        update_problem=True,
        update_solution=True,
        update_title=True,
    )
    assert result.problem == "Users forget to drink water"
    assert result.solution == "old solution"
    assert result.title == "Hydration Reminder"


@pytest.mark.asyncio
async def test_off_topic_turn_skips_the_model():
    client = FakeChatClient(replies=[HYDRATION_REPLY])
    service = PatentGuidanceService(client)

    result = await service.guide_problem_solution(
        [], "Tell me a joke about cats.", current_problem="kept"
    )

    assert client.requests == []
    assert result.off_topic
    assert result.display_message == OFF_TOPIC_REDIRECT
    assert result.suggested_problem is None
    assert result.suggested_solution is None
    assert result.suggested_title is None
    assert result.raw_response is None
    assert result.problem == "kept"
    assert [m.role for m in result.transcript] == [Role.USER, Role.ASSISTANT]
    assert result.transcript[-1].text == OFF_TOPIC_REDIRECT


@pytest.mark.asyncio
async def test_retry_of_same_input_does_not_duplicate_user_turn():
    client = FakeChatClient(replies=["first answer", "second answer"])
    service = PatentGuidanceService(client)

    first = await service.guide_problem_solution([], "my drone overheats")
    second = await service.guide_problem_solution(first.transcript, "my drone overheats")

    users = [m for m in second.transcript if m.role == Role.USER]
    assert len(users) == 1
    assert client.requests[1] == [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": "my drone overheats"},
        {"role": "assistant", "content": "first answer"},
    ]


@pytest.mark.asyncio
async def test_history_sent_back_without_prior_json():
    history = [
        Message(role=Role.USER, content="batteries overheat"),
        Message(
            role=Role.ASSISTANT,
            content=AssistantContent(problem="Thermal runaway", title="Battery Cooling", message="Where?"),
        ),
    ]
    client = FakeChatClient(replies=["In drones."])
    service = PatentGuidanceService(client)

    result = await service.guide_problem_solution(history, "In delivery drones")

    assert client.requests[0][1:] == [
        {"role": "user", "content": "batteries overheat"},
        {"role": "assistant", "content": "Where?"},
        {"role": "user", "content": "In delivery drones"},
    ]
    assert len(history) == 2
    assert len(result.transcript) == 4
    assert result.display_message == "In drones."


@pytest.mark.asyncio
async def test_chat_client_errors_propagate():
    service = PatentGuidanceService(FakeChatClient(error=ConnectionError("boom")))
    with pytest.raises(ConnectionError):
        await service.guide_problem_solution([], "my drone overheats")


@pytest.mark.asyncio
async def test_generation_options_are_forwarded():
    client = FakeChatClient(replies=["ok"])
    service = PatentGuidanceService(client, temperature=0.2, max_tokens=100)
    await service.guide_problem_solution([], "my drone overheats")
    assert client.options == [{"temperature": 0.2, "max_tokens": 100}]


@pytest.mark.asyncio
async def test_reply_without_message_stays_in_next_request():
    reply = '```json\n{"problem":"P","solution":"","title":"T","message":""}\n```'
    client = FakeChatClient(replies=[reply, "next"])
    service = PatentGuidanceService(client)

    first = await service.guide_problem_solution([], "my drone overheats")
    assert first.display_message
    await service.guide_problem_solution(first.transcript, "in hot climates")

    assert [m["role"] for m in client.requests[1]] == ["system", "user", "assistant", "user"]
