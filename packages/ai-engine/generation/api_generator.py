"""One-shot API generation: prompt → OpenAPI spec, server code, tests."""

import json
import logging
import re
from datetime import datetime, timezone

from adapters import BaseLLMAdapter, Message

from .prompt_loader import load_prompt_file

logger = logging.getLogger(__name__)

CODE_FENCE_RE = re.compile(r"^```(?:json|javascript|js)?\s*\n?([\s\S]*?)\n?```\s*$")

PARSE_ERROR_MARKER = "// Error: Failed to parse AI response"

FRAMEWORK_LAYOUT = {
    "fastapi": {
        "server": "main.py",
        "tests": "test_main.py",
        "requirements": "requirements.txt",
    },
    "express": {
        "server": "index.js",
        "tests": "index.test.js",
        "requirements": "dependencies.txt",
    },
}


def fallback_result() -> dict:
    return {
        "openapi_spec": {},
        "server_code": PARSE_ERROR_MARKER,
        "requirements": [],
        "tests": PARSE_ERROR_MARKER,
        "deployment": {},
    }


def strip_code_fence(output: str) -> str:
    """Remove one outer ```json / ```javascript / ```js wrapper, if present."""
    output = output.strip()
    match = CODE_FENCE_RE.match(output)
    return match.group(1).strip() if match else output


def parse_api_output(output: str) -> dict:
    """Normalise the model's JSON; unparsable output becomes the fallback structure."""
    cleaned = strip_code_fence(output)
    if not cleaned.startswith(("{", "[")):
        logger.warning("API output does not look like JSON: %.100s", cleaned)

    try:
        parsed = json.loads(cleaned)
        if not isinstance(parsed, dict):
            raise ValueError("API output is not a JSON object")
    except ValueError as e:
        logger.error("Failed to parse API output: %s", e)
        parsed = fallback_result()

    return {
        "openapi_spec": parsed.get("openapi_spec") or {},
        "server_code": parsed.get("server_code") or "",
        "requirements": parsed.get("requirements") or [],
        "tests": parsed.get("tests") or "",
        "deployment": parsed.get("deployment") or {},
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }


def api_files(result: dict, framework: str) -> dict[str, str]:
    """Lay a generated API out as project files ({path: content})."""
    layout = FRAMEWORK_LAYOUT.get(framework, FRAMEWORK_LAYOUT["fastapi"])
    requirements = result.get("requirements") or []
    if isinstance(requirements, list):
        requirements = "\n".join(str(r) for r in requirements)

    files = {
        layout["server"]: result.get("server_code", ""),
        layout["tests"]: result.get("tests", ""),
        layout["requirements"]: str(requirements),
        "openapi.json": json.dumps(result.get("openapi_spec") or {}, indent=2),
    }
    dockerfile = (result.get("deployment") or {}).get("dockerfile")
    if dockerfile:
        files["Dockerfile"] = dockerfile
    return {path: content for path, content in files.items() if content}


class APIGenerator:
    def __init__(self, adapter: BaseLLMAdapter, temperature: float = 0.7, max_tokens: int = 4000):
        self.adapter = adapter
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def generate_api(self, prompt: str, framework: str = "fastapi") -> dict:
        """Generate an API; raises RuntimeError when the model call fails or returns nothing."""
        try:
            response = await self.adapter.complete(
                messages=[
                    Message(role="system", content=load_prompt_file("api-generator.txt")),
                    Message(
                        role="user",
                        content=(
                            f"Generate a production-ready REST API using {framework} "
                            f"based on this requirement: {prompt}"
                        ),
                    ),
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            raise RuntimeError(f"API generation failed: {e}") from e

        if not response.content:
            raise RuntimeError("API generation failed: empty response from model")

        logger.info("API generation produced %d characters", len(response.content))
        return parse_api_output(response.content)
