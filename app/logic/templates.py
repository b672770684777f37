"""Default entities and the sample assessment template."""

from __future__ import annotations

from typing import Any, Dict, List

from app.logic.identifiers import generate_id
from app.logic.order_sequences import renumber
from app.models.assessment import Assessment, Question, Section, ValidationRule, utc_now_iso
from app.models.question_types import QuestionType, has_options

DEFAULT_OPTIONS = ["Option 1", "Option 2"]
DEFAULT_DESCRIPTION = "Complete this assessment to proceed with your application."


def create_empty_section() -> Section:
    return Section(id=generate_id(), title="New Section", description="", questions=[], order=0)


def create_empty_question(question_type: str = QuestionType.SHORT_TEXT) -> Question:
    return Question(
        id=generate_id(),
        type=question_type,
        text="New Question",
        description="",
        options=list(DEFAULT_OPTIONS) if has_options(question_type) else None,
        validation=ValidationRule(required=False),
        order=0,
    )


def create_empty_assessment(job_id: str, job_title: str) -> Assessment:
    now = utc_now_iso()
    return Assessment(
        id=generate_id(),
        job_id=job_id,
        title=f"{job_title} Assessment",
        description=DEFAULT_DESCRIPTION,
        sections=[create_empty_section()],
        created_at=now,
        updated_at=now,
        is_active=True,
    )


# Sample template: (section title, section description, questions)
_SAMPLE: List[Dict[str, Any]] = [
    {
        "title": "Technical Skills",
        "description": "Questions about your technical background and experience",
        "questions": [
            {
                "type": QuestionType.SINGLE_CHOICE,
                "text": "What is your experience level with the primary technologies for this role?",
                "description": "Select the option that best describes your experience level",
                "options": [
                    "Beginner (0-1 years)",
                    "Intermediate (1-3 years)",
                    "Advanced (3-5 years)",
                    "Expert (5+ years)",
                ],
                "validation": {"required": True},
            },
            {
                "type": QuestionType.MULTI_CHOICE,
                "text": "Which of the following technologies/tools are you familiar with?",
                "description": "Select all that apply to your experience",
                "options": ["React", "TypeScript", "Node.js", "Python", "AWS", "Docker", "Git", "Agile/Scrum"],
                "validation": {"required": True, "min_length": 2},
            },
            {
                "type": QuestionType.SHORT_TEXT,
                "text": "Describe your experience with version control systems",
                "description": "Briefly explain your familiarity with Git or other version control tools",
                "validation": {"required": True, "max_length": 150},
            },
            {
                "type": QuestionType.LONG_TEXT,
                "text": "Explain a challenging technical problem you solved recently",
                "description": "Provide details about the problem, your approach, and the solution",
                "validation": {"required": True, "min_length": 100},
            },
            {
                "type": QuestionType.NUMERIC,
                "text": "How many years of professional experience do you have in this field?",
                "description": "Enter the number of years",
                "validation": {"required": True, "min": 0, "max": 20},
            },
        ],
    },
    {
        "title": "Problem Solving & Critical Thinking",
        "description": "Scenario-based questions to assess your problem-solving approach",
        "questions": [
            {
                "type": QuestionType.SINGLE_CHOICE,
                "text": "How do you typically approach debugging a complex issue?",
                "description": "Select your preferred debugging methodology",
                "options": [
                    "Start with logging statements and work through the code",
                    "Use a debugger and set breakpoints",
                    "Write unit tests to isolate the problem",
                    "Ask team members for help immediately",
                ],
                "validation": {"required": True},
            },
            {
                "type": QuestionType.LONG_TEXT,
                "text": "Describe a time when you had to learn a new technology quickly for a project",
                "description": "Explain your learning process and how you applied the new knowledge",
                "validation": {"required": True, "min_length": 120},
            },
            {
                "type": QuestionType.SINGLE_CHOICE,
                "text": "When working on a team project, how do you prefer to handle code reviews?",
                "description": "Select your preferred approach to code collaboration",
                "options": [
                    "Submit small, frequent pull requests for quick feedback",
                    "Complete large features before requesting review",
                    "Pair program with team members",
                    "Use automated testing to validate changes",
                ],
                "validation": {"required": True},
            },
        ],
    },
    {
        "title": "Communication & Collaboration",
        "description": "Questions about your communication style and teamwork experience",
        "questions": [
            {
                "type": QuestionType.LONG_TEXT,
                "text": "Describe your experience working in a team environment",
                "description": "Include examples of successful collaboration and any challenges you faced",
                "validation": {"required": True, "min_length": 100},
            },
            {
                "type": QuestionType.SHORT_TEXT,
                "text": "How do you prefer to communicate technical concepts to non-technical stakeholders?",
                "description": "Briefly describe your approach to technical communication",
                "validation": {"required": True, "max_length": 200},
            },
            {
                "type": QuestionType.FILE_UPLOAD,
                "text": "Upload your portfolio, GitHub profile, or any relevant work samples",
                "description": "Upload a PDF, link to your GitHub, or other relevant materials",
                "validation": {"required": False},
            },
        ],
    },
]


def create_sample_assessment(job_id: str, job_title: str) -> Assessment:
    """Build the three-section sample assessment with fresh ids."""
    now = utc_now_iso()
    sections: List[Section] = []
    for blueprint in _SAMPLE:
        questions = [Question(id=generate_id(), **q) for q in blueprint["questions"]]
        sections.append(
            Section(
                id=generate_id(),
                title=blueprint["title"],
                description=blueprint["description"],
                questions=renumber(questions),
            )
        )
    return Assessment(
        id=generate_id(),
        job_id=job_id,
        title=f"{job_title} Assessment",
        description=(
            "Complete this comprehensive assessment to demonstrate your skills "
            "and qualifications for this position."
        ),
        sections=renumber(sections),
        created_at=now,
        updated_at=now,
        is_active=True,
    )


__all__ = [
    "DEFAULT_OPTIONS",
    "create_empty_section",
    "create_empty_question",
    "create_empty_assessment",
    "create_sample_assessment",
]
