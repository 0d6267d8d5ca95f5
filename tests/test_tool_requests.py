"""Tests for tool request parsing, screened text and stored columns."""
import pytest
from pydantic import ValidationError

from edify.services.tools.registry import TOOLS, get_tool
from edify.schemas.tools import (
    ContentEditRequest,
    LessonPlanEvaluationRequest,
    PeelRequest,
    PerspectiveChallengeRequest,
    PromptRefinementRequest,
    QuizRequest,
    RubricRequest,
    ToolRequest,
)


def test_registry_covers_every_tool():
    assert set(TOOLS) == {
        "quiz-generator", "rubric-generator", "sow-generator", "report-generator", "prompt-generator",
        "peel-generator", "perspective-challenge", "long-qa-generator", "lesson-plan-evaluator",
    }
    assert get_tool("chat") is None
    for tool in TOOLS.values():
        assert tool.result_model.__tablename__


def test_quiz_request_accepts_camel_case_and_strips_whitespace():
    request = QuizRequest.model_validate({
        "topic": "  Photosynthesis  ",
        "questionCount": 5,
        "questionTypes": ["multiple_choice", "fill_in_blanks"],
        "keyStage": "KS3",
    })
    assert request.topic == "Photosynthesis"
    assert request.screened_text() == "Photosynthesis"
    assert request.content_columns()["question_types"] == ["multiple_choice", "fill_in_blanks"]
    assert request.content_columns()["key_stage"] == "KS3"


@pytest.mark.parametrize(
    "body",
    [
        {"topic": ""},
        {"topic": "Cells", "questionCount": 0},
        {"topic": "Cells", "questionTypes": []},
        {"topic": "Cells", "questionTypes": ["essay"]},
    ],
)
def test_quiz_request_rejects_bad_input(body):
    with pytest.raises(ValidationError):
        QuizRequest.model_validate(body)


def test_rubric_screens_every_free_text_field():
    request = RubricRequest.model_validate({
        "topic": "Persuasive writing",
        "keyStage": "KS2",
        "assignmentType": "essay",
        "criteria": [{"name": "Structure"}, {"name": "Vocabulary", "description": "Ambitious words"}],
        "additionalInstructions": "Year 6 set 2",
    })
    text = request.screened_text()
    for fragment in ("Persuasive writing", "essay", "Structure", "Vocabulary", "Year 6 set 2"):
        assert fragment in text


def test_peel_word_count_range_is_validated_and_stored_as_text():
    request = PeelRequest.model_validate({"topic": "Climate", "wordCountRange": {"min": 100, "max": 200}})
    assert request.content_columns()["word_count_range"] == "100-200"

    with pytest.raises(ValidationError):
        PeelRequest.model_validate({"topic": "Climate", "wordCountRange": {"min": 300, "max": 200}})
    with pytest.raises(ValidationError):
        PeelRequest.model_validate({"topic": "Climate", "wordCountRange": {"min": 10, "max": 200}})


def test_column_names_differ_from_request_fields_where_tables_do():
    assert PromptRefinementRequest(original_prompt="Make a quiz").content_columns()["input_original_prompt"] == (
        "Make a quiz"
    )
    assert PerspectiveChallengeRequest(input="Homework is pointless").content_columns()["input_text"] == (
        "Homework is pointless"
    )
    plan = LessonPlanEvaluationRequest(name="Fractions", lesson_plan="Starter: ...")
    assert plan.content_columns()["lesson_plan_text"] == "Starter: ..."
    assert plan.screened_text() == "Fractions\nStarter: ..."


def test_every_tool_builds_json_prompts():
    samples = {
        "quiz-generator": {"topic": "Volcanoes"},
        "rubric-generator": {"topic": "Volcanoes", "keyStage": "KS3", "assignmentType": "poster",
                             "criteria": [{"name": "Accuracy"}]},
        "sow-generator": {"subject": "Geography", "topic": "Volcanoes"},
        "report-generator": {"studentName": "Sam", "subject": "Geography", "strengths": "Curious"},
        "prompt-generator": {"originalPrompt": "Volcano lesson ideas"},
        "peel-generator": {"topic": "Volcanoes"},
        "perspective-challenge": {"input": "Volcanoes are only dangerous"},
        "long-qa-generator": {"topic": "Volcanoes"},
        "lesson-plan-evaluator": {"name": "Volcanoes", "lessonPlan": "Starter, main, plenary"},
    }
    for slug, body in samples.items():
        tool = get_tool(slug)
        request = tool.request_model.model_validate(body)
        system, user = tool.build_prompts(request)
        assert "JSON" in system
        assert "Volcano" in user or "Sam" in user
        assert request.content_columns()


def test_tool_request_base_cannot_be_used_directly():
    with pytest.raises(TypeError):
        ToolRequest()

    class Incomplete(ToolRequest):
        def screened_text(self) -> str:
            return ""

    with pytest.raises(TypeError):
        Incomplete()


@pytest.mark.parametrize("ai_response", [{"questions": []}, ["point"], "Edited text"])
def test_content_edit_accepts_json_or_text(ai_response):
    assert ContentEditRequest.model_validate({"aiResponse": ai_response}).ai_response == ai_response


@pytest.mark.parametrize("body", [{}, {"aiResponse": ""}, {"aiResponse": "   "}, {"aiResponse": {}}])
def test_content_edit_rejects_empty_content(body):
    with pytest.raises(ValidationError):
        ContentEditRequest.model_validate(body)
