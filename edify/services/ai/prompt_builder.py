"""
Prompt construction for the AI content tools.

Each builder takes a validated tool request and returns the system and user
messages for a JSON-mode chat completion.
"""

from edify.schemas.tools import (
    QuizRequest,
    RubricRequest,
    SchemeOfWorkRequest,
    ReportRequest,
    PromptRefinementRequest,
    PeelRequest,
    PerspectiveChallengeRequest,
    LongQARequest,
    LessonPlanEvaluationRequest,
)

UK_STYLE = "Write in UK English for teachers in UK schools, avoiding convoluted language."


def _optional(label: str, value) -> str:
    return f"\n{label}: {value}" if value else ""


def build_quiz_prompt(request: QuizRequest) -> tuple[str, str]:
    """
    Build the quiz generation prompt.

    Only the requested question types may appear; fill-in-the-blanks questions
    mark gaps as ___(1)___, ___(2)___ and list the answers in ``blanks``.
    """
    system = f"""You are an educational assessment expert who creates engaging quizzes. {UK_STYLE}
For short answer questions, always include a correct answer and acceptable alternative answers.
For fill in the blanks questions, mark blanks as ___(1)___, ___(2)___ and give the correct word for each blank.
IMPORTANT: Only generate questions of the types specifically requested.
Respond with a JSON object: {{"metadata": {{"title", "difficulty", "bloomsLevel", "totalPoints"}},
"instructions": [string], "questions": [{{"questionText", "questionType", "difficulty", "points",
"options": [{{"text", "isCorrect", "explanation"}}], "correctAnswer", "blanks", "explanation",
"acceptableAnswers"}}]}}"""
    user = (
        f"Generate a quiz with:\nTopic: {request.topic}"
        f"\nNumber of Questions: {request.question_count}"
        f"\nDifficulty Level: {request.difficulty}"
        f"\nQuestion Types: ONLY generate questions of these types: {', '.join(request.question_types)}"
        f"\nBloom's Taxonomy Levels: {', '.join(request.blooms_levels) or 'understand'}"
        + _optional("Key Stage", request.key_stage)
        + _optional("Year Group", request.year_group)
        + "\nDistribute the questions evenly among the selected types."
    )
    return system, user


def build_rubric_prompt(request: RubricRequest) -> tuple[str, str]:
    assignment = request.custom_assignment_type or request.assignment_type
    criteria = "\n".join(
        f"- {c.name}" + (f": {c.description}" if c.description else "") for c in request.criteria
    )
    system = f"""You are an expert teacher who writes clear assessment rubrics aligned to the UK curriculum. {UK_STYLE}
Respond with a JSON object: {{"title": string, "criteria": [{{"name": string,
"levels": [{{"level": string, "score": number, "description": string}}]}}], "guidance": string}}"""
    user = (
        f"Create a rubric for:\n- Type: {assignment}\n- Topic: {request.topic}"
        f"\n- Key Stage: {request.key_stage}"
        + _optional("- Year Group", request.year_group)
        + _optional("- Assessment Type", request.assessment_type)
        + f"\nAssess these criteria:\n{criteria}"
        + _optional("Additional instructions", request.additional_instructions)
    )
    return system, user


def build_sow_prompt(request: SchemeOfWorkRequest) -> tuple[str, str]:
    total_lessons = request.duration_weeks * request.lessons_per_week
    system = f"""You are a curriculum planning expert who creates schemes of work. {UK_STYLE}
Respond with a JSON object: {{"overview": {{"subject", "topic", "yearGroup", "totalLessons"}},
"lessons": [{{"week": number, "title": string, "learningObjectives": [string], "activities": [string],
"assessment": string, "resources": [string]}}]}}"""
    user = (
        f"Create a scheme of work for:\nSubject: {request.subject}\nTopic: {request.topic}"
        + _optional("Key Stage", request.key_stage)
        + _optional("Year Group", request.year_group)
        + f"\nDuration: {request.duration_weeks} weeks, {request.lessons_per_week} lesson(s) per week"
        f" ({total_lessons} lessons in total)"
        + _optional("Additional notes", request.additional_notes)
    )
    return system, user


def build_report_prompt(request: ReportRequest) -> tuple[str, str]:
    system = f"""You are an experienced teacher writing end-of-term student reports. {UK_STYLE}
Keep the report specific, balanced and constructive. Use the student's name as given.
Respond with a JSON object: {{"report": string, "summary": string}}"""
    user = (
        f"Write a {request.tone or 'neutral'} report for {request.student_name} in {request.subject}."
        + _optional("Year Group", request.year_group)
        + f"\nStrengths: {request.strengths}"
        + _optional("Areas for improvement", request.areas_for_improvement)
    )
    return system, user


def build_prompt_refinement_prompt(request: PromptRefinementRequest) -> tuple[str, str]:
    system = f"""You help teachers turn rough ideas into precise prompts for AI assistants. {UK_STYLE}
Respond with a JSON object: {{"refinedPrompts": [{{"prompt": string, "explanation": string}}]}}
containing three refined alternatives."""
    user = (
        f"Original prompt: {request.original_prompt}"
        + _optional("Core purpose", request.core_purpose)
        + _optional("Focus areas", ", ".join(request.focus_areas))
        + _optional("Grade level", request.grade_level)
    )
    return system, user


def build_peel_prompt(request: PeelRequest) -> tuple[str, str]:
    target = None
    if request.word_count_range:
        target = (request.word_count_range.min + request.word_count_range.max) // 2
    system = f"""You write model PEEL paragraphs (Point, Evidence, Explanation, Link) for students. {UK_STYLE}
Respond with a JSON object: {{"point": string, "evidence": string, "explanation": string, "link": string,
"feedback": {{"strengths": [string], "improvements": [string]}}}}"""
    user = (
        f"Write a PEEL paragraph on: {request.topic}"
        + _optional("Subject", request.subject)
        + _optional("Complexity", request.complexity)
        + _optional("Tone", request.tone)
        + _optional("Target word count", target)
    )
    return system, user


def build_perspective_prompt(request: PerspectiveChallengeRequest) -> tuple[str, str]:
    system = f"""You help students think critically by offering alternative perspectives on a statement. {UK_STYLE}
Respond with a JSON object: {{"analysis": {{"mainPoints": [string], "alternativePerspectives": [string],
"recommendations": [string]}}}}"""
    user = f"Challenge this perspective: {request.input}" + _optional("Focus on", request.focus_point)
    return system, user


def build_long_qa_prompt(request: LongQARequest) -> tuple[str, str]:
    system = f"""You are an examiner writing long-answer questions with mark schemes. {UK_STYLE}
Respond with a JSON object: {{"questions": [{{"question": string, "marks": number,
"markScheme": [string], "modelAnswer": string}}]}}"""
    user = (
        f"Write {request.question_count} long-answer questions on: {request.topic}"
        + _optional("Subject", request.subject)
        + _optional("Year Group", request.year_group)
    )
    return system, user


def build_lesson_plan_evaluation_prompt(request: LessonPlanEvaluationRequest) -> tuple[str, str]:
    system = f"""You are an experienced head of department reviewing a colleague's lesson plan. {UK_STYLE}
Respond with a JSON object: {{"overallScore": number, "strengths": [string], "areasForImprovement": [string],
"recommendations": [string]}}"""
    user = (
        f"Evaluate the lesson plan \"{request.name}\""
        + _optional("Subject", request.subject)
        + _optional("Year Group", request.year_group)
        + f"\n\n{request.lesson_plan}"
    )
    return system, user
