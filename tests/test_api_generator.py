"""One-shot API generation — output parsing and file layout."""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from adapters import LLMResponse
from generation import APIGenerator, api_files, parse_api_output, strip_code_fence
from generation.api_generator import PARSE_ERROR_MARKER

GENERATED = {
    "openapi_spec": {"openapi": "3.0.0", "paths": {"/todos": {}}},
    "server_code": "from fastapi import FastAPI\napp = FastAPI()\n",
    "requirements": ["fastapi", "uvicorn"],
    "tests": "def test_ok():\n    assert True\n",
    "deployment": {"dockerfile": "FROM python:3.12-slim\n"},
}


def test_strip_code_fence():
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence('  {"a": 1}  ') == '{"a": 1}'


def test_parse_fenced_output():
    result = parse_api_output("```json\n" + json.dumps(GENERATED) + "\n```")
    assert result["server_code"].startswith("from fastapi")
    assert result["requirements"] == ["fastapi", "uvicorn"]
    assert "generated_at" in result


def test_unparsable_output_becomes_error_marker():
    result = parse_api_output("Sorry, I cannot help with that.")
    assert result["server_code"] == PARSE_ERROR_MARKER
    assert result["openapi_spec"] == {}


def test_fastapi_layout():
    files = api_files(GENERATED, "fastapi")
    assert set(files) == {"main.py", "test_main.py", "requirements.txt", "openapi.json", "Dockerfile"}
    assert files["requirements.txt"] == "fastapi\nuvicorn"
    assert json.loads(files["openapi.json"])["openapi"] == "3.0.0"


def test_express_layout_drops_empty_files():
    result = {**GENERATED, "tests": "", "deployment": {}}
    files = api_files(result, "express")
    assert set(files) == {"index.js", "dependencies.txt", "openapi.json"}


@pytest.mark.asyncio
async def test_generate_api_calls_model_with_framework():
    adapter = MagicMock()
    adapter.complete = AsyncMock(
        return_value=LLMResponse(content=json.dumps(GENERATED), model="test-model", provider="test")
    )

    result = await APIGenerator(adapter).generate_api("todo list with auth", framework="express")

    user_message = adapter.complete.await_args.kwargs["messages"][1].content
    assert "using express" in user_message
    assert "todo list with auth" in user_message
    assert result["openapi_spec"]["paths"] == {"/todos": {}}


@pytest.mark.asyncio
async def test_generate_api_raises_on_model_error():
    adapter = MagicMock()
    adapter.complete = AsyncMock(side_effect=ConnectionError("timeout"))
    with pytest.raises(RuntimeError, match="API generation failed: timeout"):
        await APIGenerator(adapter).generate_api("todos")


@pytest.mark.asyncio
async def test_generate_api_raises_on_empty_content():
    adapter = MagicMock()
    adapter.complete = AsyncMock(return_value=LLMResponse(content="", model="m", provider="p"))
    with pytest.raises(RuntimeError, match="empty response"):
        await APIGenerator(adapter).generate_api("todos")
