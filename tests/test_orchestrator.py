"""Two-agent orchestrator — planning, streaming, reconciliation of generated files."""
import json
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from adapters import LLMResponse
from generation import (
    DecisionResult,
    TwoAgentOrchestrator,
    analyze_project_patterns,
    detect_framework,
    detect_project_type,
    fallback_classification,
    to_kebab_case,
)
from generation.context_builder import SmartContext
from generation.orchestrator import normalize_path, post_process

EXISTING = {
    "package.json": '{"dependencies": {"next": "14.0.0"}}',
    "next.config.js": "module.exports = {};",
    "app/page.tsx": 'import { Hero } from "@/components/hero-section";\nexport default function Home() {\n  return <Hero />;\n}\n',
    "components/hero-section.tsx": 'export function Hero() {\n  return <section className="py-20">Hi</section>;\n}\n',
}


def _context(files=None) -> SmartContext:
    return SmartContext(project_id=uuid.uuid4(), previous_files=dict(EXISTING if files is None else files))


def _decision_agent(decision: DecisionResult) -> MagicMock:
    agent = MagicMock()
    agent.analyze = AsyncMock(return_value=decision)
    return agent


def _streaming_adapter(chunks: list[str], fail_after: int | None = None, fallback: str = "") -> MagicMock:
    adapter = MagicMock()

    async def stream(messages, **kwargs):
        for i, chunk in enumerate(chunks):
            if fail_after is not None and i == fail_after:
                raise RuntimeError("connection reset")
            yield chunk

    adapter.stream = MagicMock(side_effect=stream)
    adapter.complete = AsyncMock(
        return_value=LLMResponse(content=fallback, model="test-model", provider="test")
    )
    return adapter


def _split(text: str, parts: int) -> list[str]:
    size = max(1, len(text) // parts)
    return [text[i:i + size] for i in range(0, len(text), size)]


@pytest.mark.asyncio
async def test_execute_streams_code_and_reports_progress():
    payload = {
        "description": "Added a pricing page",
        "newFiles": {"app/pricing/page.tsx": "export default function Pricing() {\n  return <Button>Buy</Button>;\n}\n"},
        "modifiedFiles": {},
        "deletedFiles": [],
    }
    adapter = _streaming_adapter(_split(json.dumps(payload), 6))
    orchestrator = TwoAgentOrchestrator(_decision_agent(fallback_classification("Build a pricing page")), adapter)
    stages = []

    async def on_progress(stage, message):
        stages.append(stage)

    result = await orchestrator.execute("Build a pricing page", _context(), project_id="p1", on_progress=on_progress)

    assert result.description == "Added a pricing page"
    assert result.decision.intent == "CREATE"
    assert list(result.new_files) == ["app/pricing/page.tsx"]
    # Validator added the missing shadcn import
    assert 'from "@/components/ui/button"' in result.new_files["app/pricing/page.tsx"]
    assert stages[:3] == ["Planning", "Generating", "Streaming"]
    assert stages[-1] == "Complete"
    adapter.complete.assert_not_called()


@pytest.mark.asyncio
async def test_stream_failure_falls_back_to_single_completion():
    payload = {"description": "Tweaked hero", "modifiedFiles": {"components/hero-section.tsx": "export function Hero() {}\n"}}
    adapter = _streaming_adapter(["{", '"desc'], fail_after=1, fallback="Sure!\n" + json.dumps(payload) + "\nDone.")
    orchestrator = TwoAgentOrchestrator(_decision_agent(fallback_classification("Update the hero")), adapter)
    stages = []

    async def on_progress(stage, message):
        stages.append(stage)

    result = await orchestrator.execute("Update the hero", _context(), project_id="p1", on_progress=on_progress)

    assert "Retrying" in stages
    adapter.complete.assert_awaited_once()
    assert result.modified_files == {"components/hero-section.tsx": "export function Hero() {}\n"}


@pytest.mark.asyncio
async def test_question_mode_answers_without_files():
    adapter = _streaming_adapter([])
    adapter.complete.return_value = LLMResponse(
        content=json.dumps({"answer": "The hero lives in components/hero-section.tsx", "description": "Explained hero"}),
        model="test-model",
        provider="test",
    )
    orchestrator = TwoAgentOrchestrator(_decision_agent(fallback_classification("Where is the hero?")), adapter)

    result = await orchestrator.execute("Where is the hero?", _context(), project_id="p1")

    assert result.is_answer
    assert result.answer.startswith("The hero lives")
    assert result.all_files == {}
    adapter.stream.assert_not_called()
    assert adapter.complete.await_args.kwargs["json_mode"] is True


@pytest.mark.asyncio
async def test_github_projects_get_strict_block():
    adapter = _streaming_adapter(['{"modifiedFiles": {}}'])
    orchestrator = TwoAgentOrchestrator(_decision_agent(fallback_classification("Update the hero")), adapter)

    await orchestrator.execute(
        "Update the hero", _context(), project_id="p1", is_github_project=True, repo_full_name="octo/site"
    )

    system_prompt = adapter.stream.call_args.args[0][0].content
    assert "GITHUB PROJECT - ULTRA STRICT MODE" in system_prompt
    assert "(octo/site)" in system_prompt


def test_new_file_on_existing_path_becomes_modification():
    data = {
        "newFiles": {
            "app/page.tsx": "export default function Home() {\n  return null;\n}\n",
            "components/HeroSection.tsx": "export function Hero() {\n  return null;\n}\n",
            "components/footer.tsx": "export function Footer() {\n  return null;\n}\n",
        }
    }
    result = post_process(data, _context(), fallback_classification("Update the hero"))

    assert set(result.modified_files) == {"app/page.tsx", "components/hero-section.tsx"}
    assert list(result.new_files) == ["components/footer.tsx"]


def test_link_mode_extracts_inlined_component():
    page = (
        "export default function Home() {\n"
        "  return <SignupDialog />;\n"
        "}\n"
        "\n"
        "function SignupDialog() {\n"
        "  return <div>Sign up</div>;\n"
        "}\n"
    )
    decision = fallback_classification("Create a signup dialog and link it to the hero button")
    assert decision.mode == "link_mode"

    result = post_process({"modifiedFiles": {"app/page.tsx": page}}, _context(), decision)

    component = result.new_files["components/signup-dialog.tsx"]
    assert "export function SignupDialog()" in component
    parent = result.modified_files["app/page.tsx"]
    assert parent.startswith('import { SignupDialog } from "@/components/signup-dialog";')
    assert "function SignupDialog()" not in parent


def test_to_kebab_case():
    assert to_kebab_case("SignupDialog") == "signup-dialog"
    assert to_kebab_case("HTMLPreview") == "html-preview"


def test_normalize_path_matches_aliases():
    assert normalize_path("components/HeroSection.tsx") == normalize_path("components/hero-section.tsx")
    assert normalize_path("components/hero_section.tsx") == "components/herosection.tsx"


def test_project_detection():
    assert detect_project_type({"vite.config.ts": ""}) == "React (Vite)"
    assert detect_project_type({}) == "Next.js"
    assert detect_framework({"pages/index.tsx": ""}) == "Next.js Pages Router"
    assert detect_framework({"app/about/page.tsx": ""}) == "Next.js App Router"


def test_analyze_project_patterns():
    files = {
        "components/card.tsx": 'import { Card } from "@/components/ui/card";\nexport const C = () => <Card className="p-4" />;',
        "lib/store.ts": 'import { create } from "zustand";',
    }
    patterns = analyze_project_patterns(files)

    assert patterns["ui_library"] == "shadcn/ui"
    assert patterns["styling"] == "Tailwind CSS"
    assert patterns["state_management"] == "Zustand"
    assert patterns["common_components"] == ["components/card.tsx"]
    assert patterns["import_patterns"] == ["@/components/ui/card"]
