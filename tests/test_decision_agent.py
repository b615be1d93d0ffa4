"""Decision agent — plan parsing and keyword fallback; mocked LLM only."""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from adapters import LLMResponse
from generation import DecisionAgent, DecisionResult, fallback_classification


def _llm_returning(content: str) -> MagicMock:
    adapter = MagicMock()
    adapter.complete = AsyncMock(
        return_value=LLMResponse(content=content, model="test-model", provider="test")
    )
    return adapter


@pytest.mark.asyncio
async def test_analyze_parses_model_plan():
    plan = {
        "intent": "CREATE_AND_LINK",
        "confidence": 0.92,
        "summary": "Create a signup dialog and open it from the hero button",
        "mode": "link_mode",
        "tasks": ["1. Create dialog", "2. Link from hero"],
        "criticalReminders": ["Modify the parent"],
        "fileTargets": {"modify": ["app/page.tsx"]},
    }
    agent = DecisionAgent(_llm_returning(json.dumps(plan)))

    decision = await agent.analyze("Add a signup dialog to the hero button", existing_files=["app/page.tsx"])

    assert decision.intent == "CREATE_AND_LINK"
    assert decision.mode == "link_mode"
    assert decision.tasks == ["1. Create dialog", "2. Link from hero"]
    assert decision.critical_reminders == ["Modify the parent"]
    assert decision.file_targets == {"modify": ["app/page.tsx"]}


@pytest.mark.asyncio
async def test_analyze_sends_context_and_asks_for_json():
    adapter = _llm_returning(json.dumps({"intent": "QUESTION", "summary": "q"}))
    agent = DecisionAgent(adapter)

    await agent.analyze("What does this page do?", existing_files=["app/page.tsx"])

    kwargs = adapter.complete.call_args.kwargs
    assert kwargs["json_mode"] is True
    user_message = kwargs["messages"][1].content
    assert "Existing Files: app/page.tsx" in user_message
    assert user_message.endswith("User Request: What does this page do?")


@pytest.mark.asyncio
async def test_missing_mode_is_derived_from_intent():
    agent = DecisionAgent(_llm_returning(json.dumps({"intent": "fix_error", "summary": "fix"})))
    decision = await agent.analyze("Fix the crash on submit")
    assert decision.intent == "FIX_ERROR"
    assert decision.mode == "error_fix_mode"


@pytest.mark.asyncio
async def test_invalid_json_falls_back_to_keywords():
    agent = DecisionAgent(_llm_returning("this is not json"))
    decision = await agent.analyze("Why is the navbar sticky?")
    assert decision.intent == "QUESTION"
    assert decision.mode == "question_mode"


@pytest.mark.asyncio
async def test_model_error_falls_back_to_keywords():
    adapter = MagicMock()
    adapter.complete = AsyncMock(side_effect=RuntimeError("provider down"))
    decision = await DecisionAgent(adapter).analyze("Fix the bug in the footer")
    assert decision.intent == "FIX_ERROR"


def test_unknown_intent_is_rejected():
    with pytest.raises(ValueError, match="Unknown intent"):
        DecisionResult.from_dict({"intent": "DANCE"})


def test_to_dict_uses_camel_case_keys():
    d = fallback_classification("Build a pricing page").to_dict()
    assert "criticalReminders" in d
    assert "fileTargets" in d


@pytest.mark.parametrize(
    "prompt,intent",
    [
        ("Create a modal and link it to the login button", "CREATE_AND_LINK"),
        ("There is an error in the form", "FIX_ERROR"),
        ("How does routing work here?", "QUESTION"),
        ("Update the header colors", "MODIFY"),
        ("Build a pricing page", "CREATE"),
    ],
)
def test_fallback_classification(prompt, intent):
    assert fallback_classification(prompt).intent == intent


def test_build_context_limits_files_and_history():
    files = [f"components/c{i}.tsx" for i in range(25)]
    history = [{"role": "user", "content": f"message {i}"} for i in range(5)]

    context = DecisionAgent.build_context(history, files, "Next.js")

    assert "components/c19.tsx" in context
    assert "components/c20.tsx" not in context
    assert "... and 5 more files" in context
    assert "message 1" not in context
    assert "user: message 4" in context


def test_build_context_for_new_project():
    assert "New project (no files yet)" in DecisionAgent.build_context([], [], "Next.js")
