"""Assessment builder state manager.

Holds one editable Assessment plus the presentation-only fields of the
editor (selection, preview toggle, unsaved flag). Every structural operation
returns a new Assessment value and replaces the held one; nothing mutates a
model in place.

Structural edits go through ``OrderedArena`` so ``order`` is renumbered to a
dense 0..n-1 sequence after every add/remove/move. Operations that name an
unknown section or question are no-ops: the editor only ever offers ids that
exist, so a stale id is logged and ignored.

Draft persistence uses an injected KeyValueStore keyed by job id; saving
the definition goes through an AssessmentRepository.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from app.logic import events
from app.logic.identifiers import generate_id
from app.logic.kv_store import KeyValueStore
from app.logic.order_sequences import OrderedArena, clamp_index
from app.logic.repository_assessments import AssessmentRepository
from app.logic.templates import (
    DEFAULT_OPTIONS,
    create_empty_assessment,
    create_empty_question,
    create_empty_section,
    create_sample_assessment,
)
from app.models.assessment import (
    Assessment,
    CamelModel,
    ConditionalRule,
    Question,
    Section,
    sanitize_validation,
    utc_now_iso,
)
from app.models.question_types import CONDITIONAL_OPERATORS, QuestionType, has_options

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "builder:"

_ASSESSMENT_LOCKED = frozenset({"id", "job_id", "sections", "created_at", "updated_at"})
_SECTION_LOCKED = frozenset({"id", "questions", "order"})
_QUESTION_LOCKED = frozenset({"id", "order"})


class BuilderState(CamelModel):
    assessment: Assessment
    selected_section: Optional[str] = None
    selected_question: Optional[str] = None
    preview_mode: bool = False
    unsaved_changes: bool = False


def flattened_questions(assessment: Assessment) -> List[Question]:
    return [q for _s, q in assessment.iter_questions()]


def find_broken_conditionals(assessment: Assessment) -> List[str]:
    """Return ids of questions whose conditional does not point backwards.

    Structural edits (moves, deletes) can leave a rule referencing a question
    that is now later in the flattened order or no longer exists. Such rules
    evaluate as hidden at runtime; the editor surfaces them with this list.
    """
    seen: set[str] = set()
    broken: List[str] = []
    for question in flattened_questions(assessment):
        rule = question.conditional
        if rule is not None and rule.question_id not in seen:
            broken.append(question.id)
        seen.add(question.id)
    return broken


def _strip_locked(updates: Dict[str, Any], locked: frozenset, scope: str) -> Dict[str, Any]:
    ignored = sorted(k for k in updates if k in locked)
    if ignored:
        logger.info("builder_update_ignored_fields scope=%s fields=%s", scope, ignored)
    return {k: v for k, v in updates.items() if k not in locked}


class AssessmentBuilder:
    def __init__(
        self,
        assessment: Assessment,
        *,
        store: KeyValueStore | None = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self.state = BuilderState(assessment=assessment)
        self._store = store
        self._key_prefix = key_prefix
        self._clock = clock

    # Construction ------------------------------------------------------

    @classmethod
    def from_template(
        cls,
        job_id: str,
        job_title: str,
        *,
        sample: bool = True,
        **kwargs: Any,
    ) -> "AssessmentBuilder":
        """Start from the sample template, or from a blank single-section assessment."""
        factory = create_sample_assessment if sample else create_empty_assessment
        return cls(factory(job_id, job_title), **kwargs)

    @classmethod
    def load_draft(
        cls,
        store: KeyValueStore,
        job_id: str,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        clock: Callable[[], str] = utc_now_iso,
    ) -> Optional["AssessmentBuilder"]:
        """Restore a builder from its saved draft.

        Returns None when the draft is absent, unreadable or saved for another
        job.
        """
        data = store.get(f"{key_prefix}{job_id}")
        if data is None:
            return None
        try:
            state = BuilderState.from_storage(data)
        except ValueError:
            logger.warning("builder_draft_unreadable job_id=%s", job_id, exc_info=True)
            return None
        if state.assessment.job_id != job_id:
            logger.warning(
                "builder_draft_job_mismatch job_id=%s draft_job_id=%s",
                job_id,
                state.assessment.job_id,
            )
            return None
        builder = cls(state.assessment, store=store, key_prefix=key_prefix, clock=clock)
        builder.state = state
        return builder

    @property
    def assessment(self) -> Assessment:
        return self.state.assessment

    @property
    def draft_key(self) -> str:
        return f"{self._key_prefix}{self.assessment.job_id}"

    # Internal helpers --------------------------------------------------

    def _commit(self, assessment: Assessment) -> Assessment:
        updated = assessment.model_copy(update={"updated_at": self._clock()})
        self.state = self.state.model_copy(update={"assessment": updated, "unsaved_changes": True})
        return updated

    def _noop(self, op: str, **ids: Any) -> Assessment:
        logger.info("builder_noop op=%s ids=%s", op, ids)
        return self.assessment

    def _with_sections(self, sections: List[Section]) -> Assessment:
        return self._commit(self.assessment.model_copy(update={"sections": sections}))

    def _with_questions(self, section: Section, questions: List[Question]) -> Section:
        return section.model_copy(update={"questions": questions})

    # Sections ----------------------------------------------------------

    def add_section(self) -> Assessment:
        arena = OrderedArena(self.assessment.sections)
        section = create_empty_section()
        arena.append(section)
        self.state = self.state.model_copy(update={"selected_section": section.id})
        return self._with_sections(arena.to_list())

    def delete_section(self, section_id: str) -> Assessment:
        arena = OrderedArena(self.assessment.sections)
        if arena.remove(section_id) is None:
            return self._noop("delete_section", section_id=section_id)
        if self.state.selected_section == section_id:
            self.state = self.state.model_copy(update={"selected_section": None})
        return self._with_sections(arena.to_list())

    def update_section(self, section_id: str, **updates: Any) -> Assessment:
        arena = OrderedArena(self.assessment.sections)
        section = arena.get(section_id)
        if section is None:
            return self._noop("update_section", section_id=section_id)
        changes = _strip_locked(updates, _SECTION_LOCKED, "section")
        merged = Section.model_validate({**section.model_dump(), **changes})
        arena.replace(section_id, merged)
        return self._with_sections(arena.to_list())

    def reorder_sections(self, from_index: int, to_index: int) -> Assessment:
        arena = OrderedArena(self.assessment.sections)
        ids = arena.ids()
        if not 0 <= from_index < len(ids):
            return self._noop("reorder_sections", from_index=from_index)
        arena.move(ids[from_index], clamp_index(to_index, len(ids) - 1))
        return self._with_sections(arena.to_list())

    # Questions ---------------------------------------------------------

    def add_question(self, section_id: str, question_type: str = QuestionType.SHORT_TEXT) -> Assessment:
        if question_type not in QuestionType.ALL:
            return self._noop("add_question", section_id=section_id, question_type=question_type)
        sections = OrderedArena(self.assessment.sections)
        section = sections.get(section_id)
        if section is None:
            return self._noop("add_question", section_id=section_id)
        questions = OrderedArena(section.questions)
        question = create_empty_question(question_type)
        questions.append(question)
        sections.replace(section_id, self._with_questions(section, questions.to_list()))
        self.state = self.state.model_copy(update={"selected_question": question.id})
        return self._with_sections(sections.to_list())

    def delete_question(self, section_id: str, question_id: str) -> Assessment:
        sections = OrderedArena(self.assessment.sections)
        section = sections.get(section_id)
        if section is None:
            return self._noop("delete_question", section_id=section_id, question_id=question_id)
        questions = OrderedArena(section.questions)
        if questions.remove(question_id) is None:
            return self._noop("delete_question", section_id=section_id, question_id=question_id)
        sections.replace(section_id, self._with_questions(section, questions.to_list()))
        if self.state.selected_question == question_id:
            self.state = self.state.model_copy(update={"selected_question": None})
        return self._with_sections(sections.to_list())

    def duplicate_question(self, section_id: str, question_id: str) -> Assessment:
        """Append a copy with a new id and " (Copy)" appended to its text."""
        sections = OrderedArena(self.assessment.sections)
        section = sections.get(section_id)
        if section is None:
            return self._noop("duplicate_question", section_id=section_id, question_id=question_id)
        questions = OrderedArena(section.questions)
        original = questions.get(question_id)
        if original is None:
            return self._noop("duplicate_question", section_id=section_id, question_id=question_id)
        copy = original.model_copy(
            update={"id": generate_id(), "text": f"{original.text} (Copy)"},
            deep=True,
        )
        questions.append(copy)
        sections.replace(section_id, self._with_questions(section, questions.to_list()))
        return self._with_sections(sections.to_list())

    def move_question(self, from_section_id: str, to_section_id: str, question_id: str) -> Assessment:
        """Remove a question from one section and append it to another.

        Moving within the same section sends the question to the end.
        """
        sections = OrderedArena(self.assessment.sections)
        source = sections.get(from_section_id)
        target = sections.get(to_section_id)
        if source is None or target is None:
            return self._noop(
                "move_question",
                from_section_id=from_section_id,
                to_section_id=to_section_id,
                question_id=question_id,
            )
        source_questions = OrderedArena(source.questions)
        if question_id not in source_questions:
            return self._noop("move_question", from_section_id=from_section_id, question_id=question_id)

        if from_section_id == to_section_id:
            source_questions.move(question_id, len(source_questions))
            sections.replace(from_section_id, self._with_questions(source, source_questions.to_list()))
            return self._with_sections(sections.to_list())

        question = source_questions.remove(question_id)
        target_questions = OrderedArena(target.questions)
        target_questions.append(question)
        sections.replace(from_section_id, self._with_questions(source, source_questions.to_list()))
        sections.replace(to_section_id, self._with_questions(target, target_questions.to_list()))
        moved = self._with_sections(sections.to_list())
        broken = find_broken_conditionals(moved)
        if broken:
            logger.info("builder_move_left_broken_conditionals question_ids=%s", broken)
        return moved

    def reorder_questions(self, section_id: str, from_index: int, to_index: int) -> Assessment:
        sections = OrderedArena(self.assessment.sections)
        section = sections.get(section_id)
        if section is None:
            return self._noop("reorder_questions", section_id=section_id)
        questions = OrderedArena(section.questions)
        ids = questions.ids()
        if not 0 <= from_index < len(ids):
            return self._noop("reorder_questions", section_id=section_id, from_index=from_index)
        questions.move(ids[from_index], clamp_index(to_index, len(ids) - 1))
        sections.replace(section_id, self._with_questions(section, questions.to_list()))
        return self._with_sections(sections.to_list())

    def available_condition_sources(self, question_id: str) -> List[Question]:
        """Questions strictly before ``question_id`` in flattened order."""
        earlier: List[Question] = []
        for question in flattened_questions(self.assessment):
            if question.id == question_id:
                return earlier
            earlier.append(question)
        return []

    def _conditional_allowed(self, question_id: str, rule: ConditionalRule) -> bool:
        return rule.question_id in {q.id for q in self.available_condition_sources(question_id)}

    def update_question(self, section_id: str, question_id: str, **updates: Any) -> Assessment:
        """Shallow-merge field updates into a question.

        Changing ``type`` seeds placeholder options for choice types, drops
        options otherwise, and clears validation fields the new type does not
        support. A ``conditional`` that does not reference an earlier question
        is dropped from the update.
        """
        sections = OrderedArena(self.assessment.sections)
        section = sections.get(section_id)
        if section is None:
            return self._noop("update_question", section_id=section_id, question_id=question_id)
        questions = OrderedArena(section.questions)
        question = questions.get(question_id)
        if question is None:
            return self._noop("update_question", section_id=section_id, question_id=question_id)

        changes = _strip_locked(updates, _QUESTION_LOCKED, "question")
        if changes.get("conditional") is not None:
            rule = ConditionalRule.model_validate(changes["conditional"])
            if self._conditional_allowed(question_id, rule):
                changes["conditional"] = rule
            else:
                logger.warning(
                    "builder_conditional_rejected question_id=%s prerequisite=%s operator=%s",
                    question_id,
                    rule.question_id,
                    CONDITIONAL_OPERATORS.get(rule.operator, {}).get("label", rule.operator),
                )
                changes.pop("conditional")

        merged: Dict[str, Any] = {**question.model_dump(), **changes}
        new_type = merged.get("type", question.type)
        if new_type != question.type:
            if has_options(new_type) and not merged.get("options"):
                merged["options"] = list(DEFAULT_OPTIONS)
            elif not has_options(new_type):
                merged["options"] = None
        candidate = Question.model_validate(merged)
        candidate = candidate.model_copy(
            update={"validation": sanitize_validation(candidate.type, candidate.validation)}
        )
        questions.replace(question_id, candidate)
        sections.replace(section_id, self._with_questions(section, questions.to_list()))
        return self._with_sections(sections.to_list())

    def set_conditional(
        self,
        section_id: str,
        question_id: str,
        rule: ConditionalRule | Dict[str, Any] | None,
    ) -> Assessment:
        """Attach, replace or (with None) remove a question's conditional rule."""
        if rule is None:
            section = self.assessment.find_section(section_id)
            if section is None or all(q.id != question_id for q in section.questions):
                return self._noop("set_conditional", section_id=section_id, question_id=question_id)
            sections = OrderedArena(self.assessment.sections)
            questions = OrderedArena(section.questions)
            cleared = questions.get(question_id).model_copy(update={"conditional": None})
            questions.replace(question_id, cleared)
            sections.replace(section_id, self._with_questions(section, questions.to_list()))
            return self._with_sections(sections.to_list())
        return self.update_question(section_id, question_id, conditional=rule)

    # Assessment-level --------------------------------------------------

    def update_assessment(self, **updates: Any) -> Assessment:
        changes = _strip_locked(updates, _ASSESSMENT_LOCKED, "assessment")
        merged = Assessment.model_validate({**self.assessment.model_dump(), **changes})
        return self._commit(merged)

    def reset_to_sample(self, job_title: str) -> Assessment:
        sample = create_sample_assessment(self.assessment.job_id, job_title)
        self.state = BuilderState(assessment=sample, unsaved_changes=True)
        return sample

    # Presentation state ------------------------------------------------

    def select_section(self, section_id: Optional[str]) -> None:
        self.state = self.state.model_copy(update={"selected_section": section_id})

    def select_question(self, question_id: Optional[str]) -> None:
        self.state = self.state.model_copy(update={"selected_question": question_id})

    def toggle_preview(self) -> bool:
        self.state = self.state.model_copy(update={"preview_mode": not self.state.preview_mode})
        return self.state.preview_mode

    # Persistence -------------------------------------------------------

    def save_draft(self) -> bool:
        """Write the full builder state to the draft store.

        Returns False when no store was injected. PersistenceError from the
        store propagates; builder state is unchanged either way.
        """
        if self._store is None:
            logger.info("builder_draft_skipped_no_store job_id=%s", self.assessment.job_id)
            return False
        self._store.set(self.draft_key, self.state.to_storage())
        events.publish(events.DRAFT_SAVED, {"scope": "builder", "key": self.draft_key})
        return True

    def clear_draft(self) -> None:
        if self._store is not None:
            self._store.clear(self.draft_key)

    def save(self, repository: AssessmentRepository) -> Assessment:
        """Persist the definition, replacing any prior one for the same job.

        On success the stored assessment replaces the held one, the unsaved
        flag is cleared and the draft is removed. On failure PersistenceError
        propagates and the builder keeps its edits for a retry.
        """
        stored, created = repository.put_assessment(self.assessment.job_id, self.assessment)
        self.state = self.state.model_copy(update={"assessment": stored, "unsaved_changes": False})
        self.clear_draft()
        events.publish(
            events.ASSESSMENT_SAVED,
            {"job_id": stored.job_id, "assessment_id": stored.id, "created": created},
        )
        return stored


__all__ = [
    "BuilderState",
    "AssessmentBuilder",
    "flattened_questions",
    "find_broken_conditionals",
]
