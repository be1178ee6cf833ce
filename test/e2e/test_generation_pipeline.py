"""
End-to-end test: five-pass quiz generation pipeline.
These tests drive generate_quiz_iteratively through the real structured client
(offline fallbacks or a patched LLM factory), so no API key is required. The
goal is to verify the wiring: pass ordering, prompt construction, metadata
resolution, sizing and failure propagation.
"""

import sys
import os
import json
import pytest

BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", "backend"))
sys.path.insert(0, BACKEND_DIR)

os.environ.setdefault("LLM_OFFLINE", "1")

from quizsmith.core.exceptions import EmptySourceError, QuizGenerationError
from quizsmith.services.quiz.generator import (
    DEFAULT_DESCRIPTION,
    DEFAULT_TOPIC,
    PASS_STAGES,
    build_fallback_quiz,
    generate_quiz_iteratively,
    render_focus_guidance,
)
from quizsmith.services.quiz.sources import Source


def _source(length: int = 500) -> Source:
    return Source(origin="markdown", title="notes.md", content=("Indexes speed up reads. " * 100)[:length])


# ── Live LLM payloads, one per pass ───────────────────────────────────────────

METADATA = {"title": "Indexing Deep Dive", "topic": "Database Indexes", "description": "How indexes work."}
COVERAGE = {
    "topic": "Database Indexes",
    "learningGoals": ["Choose an index type"],
    "concepts": ["B-tree", "Hash index", "Write amplification"],
    "misconceptions": ["Indexes are free"],
}
DRAFT = {
    "title": "Draft",
    "questions": [
        {"type": "multiple_choice", "prompt": "Which is ordered?", "choices": ["Hash", "B-tree"], "correctChoiceIndex": 1},
        {"type": "open_ended", "prompt": "Why are writes slower?", "expectedAnswer": "Index maintenance.", "rubric": "Mentions maintenance."},
    ],
}
CRITIQUE = {"issues": ["Too easy"], "strengths": ["Clear"], "revisions": ["Add a range-query question"]}
FINAL = {
    "title": "LLM Title",
    "topic": "LLM Topic",
    "summary": "LLM summary",
    "questions": [
        {"type": "multiple_choice", "prompt": "Which is ordered?", "choices": ["Hash", "B-tree"], "correctChoiceIndex": 1, "explanation": "B-trees keep keys sorted."},
        {"type": "open_ended", "prompt": "Why are writes slower?", "expectedAnswer": "Index maintenance.", "rubric": "Mentions maintenance.", "explanation": "Each index is updated."},
    ],
}
LIVE_RESPONSES = [json.dumps(p) for p in (METADATA, COVERAGE, DRAFT, CRITIQUE, FINAL)]


# ────────────────────────────────────────────────────────────────────────────
# Offline pipeline
# ────────────────────────────────────────────────────────────────────────────

class TestOfflinePipeline:

    @pytest.mark.asyncio
    async def test_small_source_yields_six_alternating_questions(self, offline_client):
        result = await generate_quiz_iteratively({"sources": [_source(500)]}, client=offline_client)
        types = [q.type for q in result.quiz.questions]
        assert types == ["multiple_choice", "open_ended"] * 3
        assert result.metadata.resolved_metadata.question_count == 6
        assert result.metadata.resolved_metadata.auto_question_count is True
        assert result.metadata.generation_mode == "offline"

    @pytest.mark.asyncio
    async def test_defaults_when_nothing_supplied(self, offline_client):
        result = await generate_quiz_iteratively({"sources": [_source()]}, client=offline_client)
        assert result.quiz.topic == DEFAULT_TOPIC
        assert result.quiz.title == f"{DEFAULT_TOPIC} Quiz"
        assert result.quiz.summary == DEFAULT_DESCRIPTION

    @pytest.mark.asyncio
    async def test_explicit_metadata_wins(self, offline_client):
        result = await generate_quiz_iteratively({
            "sources": [_source()],
            "title": "  My Quiz ",
            "topic": "Indexes",
            "description": "Custom.",
        }, client=offline_client)
        assert result.quiz.title == "My Quiz"
        assert result.quiz.topic == "Indexes"
        assert result.quiz.summary == "Custom."

    @pytest.mark.asyncio
    async def test_auto_metadata_uses_generated_values(self, offline_client):
        result = await generate_quiz_iteratively(
            {"sources": [_source()], "autoMetadata": True}, client=offline_client
        )
        assert result.quiz.topic == "Self-Learning"
        assert result.quiz.title == "Self-Learning Quiz"

    @pytest.mark.parametrize("requested,expected", [(2, 4), (9.5, 10), (50, 20)])
    @pytest.mark.asyncio
    async def test_explicit_count_is_clamped(self, offline_client, requested, expected):
        result = await generate_quiz_iteratively(
            {"sources": [_source()], "questionCount": requested}, client=offline_client
        )
        assert result.metadata.resolved_metadata.question_count == expected
        assert len(result.quiz.questions) == expected
        assert result.metadata.resolved_metadata.auto_question_count is False

    @pytest.mark.asyncio
    async def test_empty_sources_raise_before_any_call(self, recording_client):
        with pytest.raises(EmptySourceError):
            await generate_quiz_iteratively({"sources": []}, client=recording_client)
        assert recording_client.calls == []


# ────────────────────────────────────────────────────────────────────────────
# Prompt wiring
# ────────────────────────────────────────────────────────────────────────────

class TestPromptWiring:

    @pytest.mark.asyncio
    async def test_passes_run_in_order(self, recording_client):
        await generate_quiz_iteratively({"sources": [_source()]}, client=recording_client)
        assert [name for name, _ in recording_client.calls] == [
            "QuizMetadata", "CoverageBlueprint", "QuizDraft", "Critique", "FinalQuiz",
        ]
        assert [stage.name for stage in PASS_STAGES] == ["metadata", "coverage", "draft", "critique", "final"]

    @pytest.mark.asyncio
    async def test_focus_prompts_reach_every_pass_and_are_limited(self, recording_client):
        prompts = [f"Struggled prompt {i:02d}" for i in range(15)]
        result = await generate_quiz_iteratively(
            {"sources": [_source()], "focusPrompts": prompts}, client=recording_client
        )
        user_prompts = recording_client.user_prompts()
        assert len(user_prompts) == 5
        for prompt in user_prompts:
            assert "Priority focus areas" in prompt
            assert "Struggled prompt 11" in prompt
            assert "Struggled prompt 12" not in prompt
        assert len(result.metadata.resolved_metadata.focused_trouble_prompts) == 12

    @pytest.mark.asyncio
    async def test_focus_prompts_are_coerced(self, recording_client):
        result = await generate_quiz_iteratively(
            {"sources": [_source()], "focusPrompts": ["  a  ", {"text": "b"}, "", 3]}, client=recording_client
        )
        assert result.metadata.resolved_metadata.focused_trouble_prompts == ["a", "b", "3"]

    @pytest.mark.asyncio
    async def test_no_focus_section_without_focus_prompts(self, recording_client):
        await generate_quiz_iteratively({"sources": [_source()]}, client=recording_client)
        assert not any("Priority focus areas" in p for p in recording_client.user_prompts())

    @pytest.mark.asyncio
    async def test_source_packet_in_metadata_and_coverage(self, recording_client):
        await generate_quiz_iteratively({"sources": [_source()]}, client=recording_client)
        metadata_prompt, coverage_prompt = recording_client.user_prompts()[:2]
        for prompt in (metadata_prompt, coverage_prompt):
            assert "Source 1\nOrigin: markdown\nTitle: notes.md\nContent:\n" in prompt

    def test_render_focus_guidance(self):
        assert render_focus_guidance([]) == ""
        assert render_focus_guidance(["a", "b"]) == (
            "\nPriority focus areas (questions the learner has struggled with):\n- a\n- b"
        )


# ────────────────────────────────────────────────────────────────────────────
# Live pipeline (patched LLM)
# ────────────────────────────────────────────────────────────────────────────

class TestLivePipeline:

    @pytest.mark.asyncio
    async def test_resolved_metadata_overrides_final_pass(self, live_client, patch_llm):
        patch_llm(*LIVE_RESPONSES)
        result = await generate_quiz_iteratively(
            {"sources": [_source()], "title": "Chosen Title", "autoMetadata": True}, client=live_client
        )
        assert result.quiz.title == "Chosen Title"
        assert result.quiz.topic == "Database Indexes"
        assert result.quiz.summary == "How indexes work."
        assert result.quiz.questions[0].explanation == "B-trees keep keys sorted."
        assert result.metadata.generation_mode == "live"
        assert result.metadata.critique.revisions == ["Add a range-query question"]

    @pytest.mark.asyncio
    async def test_generated_metadata_ignored_without_auto_flag(self, live_client, patch_llm):
        patch_llm(*LIVE_RESPONSES)
        result = await generate_quiz_iteratively({"sources": [_source()]}, client=live_client)
        assert result.quiz.topic == DEFAULT_TOPIC
        assert result.metadata.generated_metadata.title == "Indexing Deep Dive"

    @pytest.mark.asyncio
    async def test_pass_outputs_feed_later_prompts(self, live_client, patch_llm):
        llm = patch_llm(*LIVE_RESPONSES)
        await generate_quiz_iteratively({"sources": [_source()]}, client=live_client)
        human = [call.args[0][1][1] for call in llm.ainvoke.call_args_list]
        assert '"concepts":["B-tree","Hash index","Write amplification"]' in human[2]
        assert '"title":"Draft"' in human[3]
        assert 'Apply revisions: ["Add a range-query question"]' in human[4]

    @pytest.mark.asyncio
    async def test_invalid_coverage_aborts_with_pass_name(self, live_client, patch_llm):
        bad_coverage = json.dumps({**COVERAGE, "concepts": ["only one"]})
        llm = patch_llm(LIVE_RESPONSES[0], bad_coverage, *LIVE_RESPONSES[2:])
        with pytest.raises(QuizGenerationError) as exc_info:
            await generate_quiz_iteratively({"sources": [_source()]}, client=live_client)
        assert exc_info.value.pass_name == "coverage"
        assert not exc_info.value.provider_unavailable
        assert llm.ainvoke.call_count == 2

    @pytest.mark.asyncio
    async def test_provider_failure_is_flagged(self, live_client, patch_llm):
        patch_llm(Exception("Connection refused"))
        with pytest.raises(QuizGenerationError) as exc_info:
            await generate_quiz_iteratively({"sources": [_source()]}, client=live_client)
        assert exc_info.value.pass_name == "metadata"
        assert exc_info.value.provider_unavailable


class TestFallbackQuiz:

    def test_minimum_four_questions(self):
        quiz = build_fallback_quiz("Indexes", "Indexes Quiz", 1)
        assert len(quiz.questions) == 4

    def test_question_shapes(self):
        quiz = build_fallback_quiz("Indexes", "Indexes Quiz", 4)
        first, second = quiz.questions[:2]
        assert first.prompt == "Which statement best reflects concept #1 in Indexes?"
        assert first.choices == ["Option A", "Option B", "Option C", "Option D"]
        assert first.correct_choice_index == 0
        assert second.prompt == "Explain concept #2 from Indexes in your own words."
        assert quiz.summary == "Fallback quiz generated when the LLM is not available."
