"""Command classifier — keyword rules, forced tool call, caching."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from adapters import LLMResponse
from adapters.base import ToolCall
from apps.api.models.version import CommandType
from generation import CommandClassifier, extract_entities, keyword_classify, should_create_new_version


@pytest.mark.parametrize(
    "prompt, expected",
    [
        ("Create a new component for the header", CommandType.CREATE_FILE),
        ("Update the existing function in utils.ts", CommandType.MODIFY_FILE),
        ("Delete the file old-page.tsx", CommandType.DELETE_FILE),
        ("Refactor this mess", CommandType.REFACTOR_CODE),
        ("Build an API for a todo list", CommandType.GENERATE_API),
        ("Make it pop", None),
    ],
)
def test_keyword_classify(prompt, expected):
    assert keyword_classify(prompt) == expected


def test_extract_entities_dedupes_files_and_quotes():
    prompt = 'Rename "Sign up" in header.tsx and header.tsx'
    assert extract_entities(prompt) == ["header.tsx", "Sign up"]


def test_only_deletions_skip_a_new_version():
    assert should_create_new_version(CommandType.CREATE_FILE)
    assert not should_create_new_version(CommandType.DELETE_FILE)


def _adapter_calling_tool(arguments: dict) -> MagicMock:
    adapter = MagicMock()
    adapter.complete = AsyncMock(
        return_value=LLMResponse(
            content="",
            model="test-model",
            provider="test",
            tool_calls=[ToolCall(id="call_1", name="classify_command", arguments=arguments)],
            finish_reason="tool_calls",
        )
    )
    return adapter


@pytest.mark.asyncio
async def test_keyword_match_skips_the_model():
    adapter = _adapter_calling_tool({})
    classifier = CommandClassifier(adapter)

    result = await classifier.classify("Delete the file old-page.tsx")

    assert result.type == CommandType.DELETE_FILE
    assert result.confidence == 85
    assert result.entities == ["old-page.tsx"]
    adapter.complete.assert_not_called()


@pytest.mark.asyncio
async def test_ambiguous_prompt_uses_forced_tool_call():
    adapter = _adapter_calling_tool({
        "command_type": "MODIFY_FILE",
        "confidence": 72,
        "should_create_new_version": True,
        "entities": ["hero"],
        "reasoning": "Styling change to an existing section",
    })
    classifier = CommandClassifier(adapter)

    result = await classifier.classify("Make it pop", current_files=["app/page.tsx"])

    assert result.type == CommandType.MODIFY_FILE
    assert result.confidence == 72
    kwargs = adapter.complete.await_args.kwargs
    assert kwargs["tool_choice"] == "classify_command"
    assert "app/page.tsx" in kwargs["messages"][0].content
    assert result.to_dict() == {
        "type": "MODIFY_FILE",
        "confidence": 72.0,
        "shouldCreateNewVersion": True,
        "entities": ["hero"],
        "reasoning": "Styling change to an existing section",
    }


@pytest.mark.asyncio
async def test_no_adapter_falls_back_to_generate_api():
    result = await CommandClassifier().classify("Make it pop")
    assert result.type == CommandType.GENERATE_API
    assert result.confidence == 50
    assert result.reasoning == "Fallback classification due to error"


@pytest.mark.asyncio
async def test_response_without_tool_call_falls_back():
    adapter = MagicMock()
    adapter.complete = AsyncMock(return_value=LLMResponse(content="MODIFY", model="m", provider="p"))
    result = await CommandClassifier(adapter).classify("Make it pop")
    assert result.type == CommandType.GENERATE_API


@pytest.mark.asyncio
async def test_results_are_cached_per_normalised_prompt():
    adapter = _adapter_calling_tool({"command_type": "CREATE_FILE", "confidence": 90})
    classifier = CommandClassifier(adapter)

    await classifier.classify("Make it pop")
    await classifier.classify("  MAKE IT POP ")

    adapter.complete.assert_awaited_once()
    assert classifier.cache_size == 1
    classifier.clear_cache()
    assert classifier.cache_size == 0


@pytest.mark.asyncio
async def test_cache_evicts_oldest_entry():
    classifier = CommandClassifier(max_cache_size=2)
    await classifier.classify("Create a new file")
    await classifier.classify("Delete the file a.ts")
    await classifier.classify("Refactor everything")

    assert classifier.cache_size == 2
    assert "create a new file" not in classifier._cache
