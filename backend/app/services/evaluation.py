"""Per-question correctness rules.

Each question type maps onto exactly one answer-key shape; `evaluate` dispatches
on that shape. Nothing here touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from app.models.quiz import QuestionType


@dataclass(frozen=True)
class SingleChoiceKey:
    """multiple_choice and true_false: one option compared case-insensitively."""

    correct_option: str


@dataclass(frozen=True)
class TextAnswerKey:
    """fill_in_blank and short_answer: every submitted string must match an accepted answer.

    A submission also matches when it contains an accepted answer as a substring.
    """

    accepted: tuple[str, ...]


@dataclass(frozen=True)
class MultiSelectKey:
    """multi_select: the submitted set must equal the accepted set, order-independent."""

    accepted: tuple[str, ...]


AnswerKey = Union[SingleChoiceKey, TextAnswerKey, MultiSelectKey]


@dataclass(frozen=True)
class Response:
    selected_option: str | None = None
    selected_options: list[str] | None = None


@dataclass(frozen=True)
class Evaluation:
    is_correct: bool
    selected_option: str | None
    selected_options: list[str] | None


def _norm(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def _clean_list(values: Any) -> list[str]:
    if not isinstance(values, (list, tuple)):
        return []
    out: list[str] = []
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if s:
            out.append(s)
    return out


def _submitted_list(values: Any) -> list[str]:
    # Blank entries stay in: they must still match and they count toward the size.
    if not isinstance(values, (list, tuple)):
        return []
    return ["" if v is None else str(v).strip() for v in values]


def answer_key(
    question_type: QuestionType | str,
    *,
    correct_option: str | None = None,
    correct_answers: Any = None,
) -> AnswerKey:
    qtype = QuestionType(getattr(question_type, "value", question_type))

    if qtype in (QuestionType.multiple_choice, QuestionType.true_false):
        return SingleChoiceKey(correct_option=_norm(correct_option))
    if qtype in (QuestionType.fill_in_blank, QuestionType.short_answer):
        return TextAnswerKey(accepted=tuple(_norm(a) for a in _clean_list(correct_answers)))
    if qtype == QuestionType.multi_select:
        return MultiSelectKey(accepted=tuple(_norm(a) for a in _clean_list(correct_answers)))

    raise ValueError(f"unsupported question type: {qtype}")


def evaluate(key: AnswerKey, response: Response | None) -> Evaluation:
    # A missing response is simply wrong.
    if response is None:
        return Evaluation(is_correct=False, selected_option=None, selected_options=None)

    raw_option = response.selected_option.strip() if response.selected_option is not None else None
    raw_options = _submitted_list(response.selected_options) if response.selected_options is not None else None

    if isinstance(key, SingleChoiceKey):
        chosen = raw_option if raw_option else (raw_options[0] if raw_options else "")
        ok = bool(key.correct_option) and _norm(chosen) == key.correct_option
        return Evaluation(is_correct=ok, selected_option=raw_option, selected_options=raw_options)

    if isinstance(key, TextAnswerKey):
        answers = raw_options if raw_options else ([raw_option] if raw_option else [])
        candidates = [_norm(a) for a in answers]
        ok = bool(candidates) and all(
            any(c == accepted or accepted in c for accepted in key.accepted) for c in candidates
        )
        return Evaluation(is_correct=ok, selected_option=raw_option, selected_options=answers)

    if isinstance(key, MultiSelectKey):
        selection = raw_options if raw_options else ([raw_option] if raw_option else [])
        chosen = [_norm(s) for s in selection]
        ok = (
            len(key.accepted) > 0
            and len(key.accepted) == len(chosen)
            and all(a in chosen for a in key.accepted)
        )
        return Evaluation(is_correct=ok, selected_option=raw_option, selected_options=raw_options)

    raise TypeError(f"unknown answer key: {type(key).__name__}")


def evaluate_question(question, response: Response | None) -> Evaluation:
    """Evaluate a `Question` row against a response."""

    key = answer_key(
        question.question_type,
        correct_option=question.correct_option,
        correct_answers=question.correct_answers,
    )
    return evaluate(key, response)
