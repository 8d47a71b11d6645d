import logging
from typing import Any, FrozenSet, Optional

from quiz_engine.models.orm import Question, QuestionType

logger = logging.getLogger(__name__)

SINGLE_ANSWER_TYPES = (QuestionType.SINGLE_CHOICE, QuestionType.TRUE_FALSE)

def correct_option_ids(question: Question) -> FrozenSet[str]:
    return frozenset(o.id for o in question.options if o.is_correct)

def _as_id_set(answer: Any) -> Optional[FrozenSet[str]]:
    if isinstance(answer, str):
        return frozenset([answer])
    if isinstance(answer, (list, tuple, set, frozenset)) and all(isinstance(a, str) for a in answer):
        return frozenset(answer)
    return None

def grade(question: Question, answer_given: Any) -> bool:
    """Grade one answer against the stored question. Unknown or malformed answers are wrong, never errors."""
    correct = correct_option_ids(question)
    if question.question_type in SINGLE_ANSWER_TYPES:
        if len(correct) != 1:
            logger.warning("Question %s has %d correct options; expected exactly one", question.id, len(correct))
            return False
        return isinstance(answer_given, str) and answer_given in correct
    if question.question_type == QuestionType.MULTI_SELECT:
        given = _as_id_set(answer_given)
        return given is not None and bool(correct) and given == correct
    logger.warning("Question %s has unsupported type %r", question.id, question.question_type)
    return False

def correct_answer_text(question: Question) -> str:
    return ", ".join(o.text for o in question.options if o.is_correct)

def answer_text(question: Question, answer_given: Any) -> str:
    """Render a stored answer with option texts; ids that match nothing are shown verbatim."""
    given = _as_id_set(answer_given)
    if not given:
        return ""
    by_id = {o.id: o.text for o in question.options}
    ordered = [o.id for o in question.options if o.id in given] + sorted(given - by_id.keys())
    return ", ".join(by_id.get(i, i) for i in ordered)
