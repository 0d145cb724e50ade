"""Codecs for the JSON payloads carried by quiz and mind-map nodes.

Payloads are stored verbatim on their nodes and only decoded here, when a
node is consumed. Decoding problems are reported as MalformedPayload and,
through load_quiz / load_mindmap, confined to the owning node as a failed
Result.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from ..errors import MalformedPayload, Result
from .models import DocumentNode
from .registry import NodeKind

logger = logging.getLogger(__name__)


def _too_deep(payload_type: str, label: str) -> MalformedPayload:
    return MalformedPayload(
        f"{label} payload is nested too deeply",
        payload_type=payload_type,
        reason="too_deep",
    )


def _parse_json(data: str, payload_type: str, label: str) -> Any:
    """Decode a payload's JSON text, reporting failures as MalformedPayload."""
    try:
        return json.loads(data)
    except RecursionError as e:
        raise _too_deep(payload_type, label) from e
    except (TypeError, ValueError) as e:
        raise MalformedPayload(
            f"{label} payload is not valid JSON: {e}",
            payload_type=payload_type,
            reason="invalid_json",
            excerpt=data if isinstance(data, str) else None,
        ) from e


# =============================================================================
# Quiz
# =============================================================================


@dataclass(frozen=True)
class QuizOption:
    """One answer option."""

    id: str
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text}


@dataclass(frozen=True)
class QuizPayload:
    """A normalized quiz.

    ``correct_answers`` keeps the order it was given in; grading treats it
    as a set.
    """

    question: str
    options: tuple[QuizOption, ...]
    correct_answers: tuple[Any, ...]
    explanation: str = ""
    is_multiple: bool = False

    @property
    def option_ids(self) -> list[str]:
        return [option.id for option in self.options]

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON wire shape."""
        data: dict[str, Any] = {
            "question": self.question,
            "options": [option.to_dict() for option in self.options],
            "correctAnswers": list(self.correct_answers),
            "isMultiple": self.is_multiple,
        }
        if self.explanation:
            data["explanation"] = self.explanation
        return data


def _option_from_raw(raw: Any, index: int) -> QuizOption:
    if isinstance(raw, dict):
        option_id = raw.get("id")
        text = raw.get("text")
        return QuizOption(
            id=str(index) if option_id is None else str(option_id),
            text="" if text is None else str(text),
        )
    if isinstance(raw, str):
        return QuizOption(id=str(index), text=raw)
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return QuizOption(id=str(index), text=str(raw))
    raise MalformedPayload(
        f"Quiz option {index} must be a string or an object",
        payload_type="quiz",
        reason="bad_option",
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _resolve_correct_answer(value: Any, options: tuple[QuizOption, ...]) -> Any:
    """Resolve a singular ``correctAnswer`` to an option id.

    Tries, in order: exact match on option text or id, a number read as a
    positional index, then the raw value as a literal id.
    """
    for option in options:
        if option.text == value or option.id == value:
            return option.id
    if _is_number(value):
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return str(value)
    return value


def normalize_quiz(raw: Any) -> QuizPayload:
    """Normalize a loosely shaped quiz object.

    Raises:
        MalformedPayload: If the payload is not an object, has no
            ``question`` string or no ``options`` list, or if a correct
            answer is a list or an object.
    """
    if not isinstance(raw, dict):
        raise MalformedPayload(
            "Quiz payload must be an object",
            payload_type="quiz",
            reason="not_object",
        )
    question = raw.get("question")
    if not isinstance(question, str) or not question.strip():
        raise MalformedPayload(
            "Quiz payload needs a question",
            payload_type="quiz",
            reason="missing_question",
        )
    raw_options = raw.get("options")
    if not isinstance(raw_options, list):
        raise MalformedPayload(
            "Quiz payload needs an options list",
            payload_type="quiz",
            reason="missing_options",
        )

    options = tuple(_option_from_raw(item, index) for index, item in enumerate(raw_options))

    correct: list[Any] = []
    if isinstance(raw.get("correctAnswers"), list):
        correct = list(raw["correctAnswers"])
    elif raw.get("correctAnswer") is not None:
        correct = [_resolve_correct_answer(raw["correctAnswer"], options)]
    for answer in correct:
        if isinstance(answer, (dict, list)):
            raise MalformedPayload(
                "Quiz correct answers must be option ids",
                payload_type="quiz",
                reason="bad_answer",
            )

    explicit = raw.get("isMultiple")
    is_multiple = explicit if isinstance(explicit, bool) else len(correct) > 1

    explanation = raw.get("explanation")
    return QuizPayload(
        question=question,
        options=options,
        correct_answers=tuple(correct),
        explanation=explanation if isinstance(explanation, str) else "",
        is_multiple=is_multiple,
    )


def decode_quiz(data: str) -> QuizPayload:
    """Decode and normalize a quiz node's JSON payload.

    Raises:
        MalformedPayload: If the JSON is invalid or fails normalization.
    """
    raw = _parse_json(data, "quiz", "Quiz")
    try:
        return normalize_quiz(raw)
    except RecursionError as e:
        raise _too_deep("quiz", "Quiz") from e


def encode_quiz(quiz: QuizPayload, *, indent: int | None = 2) -> str:
    """Encode a quiz to the JSON string stored on a quiz node."""
    return json.dumps(quiz.to_dict(), ensure_ascii=False, indent=indent)


def grade_quiz(selected: Iterable[Any], quiz: QuizPayload) -> bool:
    """Grade a selection: it must be exactly the correct set.

    The size comparison is kept as its own check alongside the two
    containment checks.
    """
    chosen = set(selected)
    correct = set(quiz.correct_answers)
    all_correct_selected = all(answer in chosen for answer in correct)
    no_incorrect_selected = all(answer in correct for answer in chosen)
    same_size = len(chosen) == len(correct)
    return all_correct_selected and no_incorrect_selected and same_size


def quiz_warnings(quiz: QuizPayload) -> list[str]:
    """Problems that do not stop a quiz from loading but make it ungradable."""
    warnings: list[str] = []
    ids = quiz.option_ids
    duplicates = sorted({option_id for option_id in ids if ids.count(option_id) > 1})
    if duplicates:
        warnings.append(f"duplicate option ids: {', '.join(duplicates)}")
    if not quiz.correct_answers:
        warnings.append("quiz has no correct answers")
    unresolved = [answer for answer in quiz.correct_answers if answer not in ids]
    if unresolved:
        warnings.append(
            "correct answers not among the options: "
            + ", ".join(str(answer) for answer in unresolved)
        )
    return warnings


def load_quiz(node: DocumentNode) -> Result[QuizPayload]:
    """Decode a quiz node's payload without raising.

    A failed Result is the node's error state; other nodes are unaffected.
    """
    if node.kind is not NodeKind.QUIZ:
        return Result.fail(
            MalformedPayload(
                f"Expected a quiz node, got {node.kind.value}",
                payload_type="quiz",
                reason="wrong_node",
            )
        )
    try:
        quiz = decode_quiz(node.attrs.get("data", ""))
    except MalformedPayload as e:
        logger.info("Quiz payload rejected: %s", e.message)
        return Result.fail(e)
    for warning in quiz_warnings(quiz):
        logger.warning("Quiz %r: %s", quiz.question[:40], warning)
    return Result.ok(quiz)


# =============================================================================
# Mind map
# =============================================================================


@dataclass(frozen=True)
class MindMapNode:
    """One topic of a mind map."""

    id: str
    text: str
    children: tuple[MindMapNode, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "children": [child.to_dict() for child in self.children],
        }

    def walk(self) -> Iterable[MindMapNode]:
        yield self
        for child in self.children:
            yield from child.walk()


def _mindmap_from_raw(raw: Any, path: str, depth: int) -> MindMapNode:
    if not isinstance(raw, dict):
        raise MalformedPayload(
            f"Mind map node {path} must be an object",
            payload_type="mindmap",
            reason="not_object",
        )
    if depth > 256:
        raise MalformedPayload(
            "Mind map is nested too deeply",
            payload_type="mindmap",
            reason="too_deep",
        )
    children_raw = raw.get("children", [])
    if children_raw is None:
        children_raw = []
    if not isinstance(children_raw, list):
        raise MalformedPayload(
            f"Mind map node {path} has non-list children",
            payload_type="mindmap",
            reason="bad_children",
        )
    node_id = raw.get("id")
    text = raw.get("text")
    return MindMapNode(
        id=path if node_id is None else str(node_id),
        text="" if text is None else str(text),
        children=tuple(
            _mindmap_from_raw(child, f"{path}.{index}", depth + 1)
            for index, child in enumerate(children_raw)
        ),
    )


def decode_mindmap(data: str) -> MindMapNode:
    """Decode a mind-map node's JSON payload.

    Nodes without an id get their path (``0``, ``0.1``, ...) as id.

    Raises:
        MalformedPayload: If the JSON is invalid or not a node tree.
    """
    raw = _parse_json(data, "mindmap", "Mind map")
    try:
        return _mindmap_from_raw(raw, "0", 0)
    except RecursionError as e:
        raise _too_deep("mindmap", "Mind map") from e


def encode_mindmap(root: MindMapNode, *, indent: int | None = 2) -> str:
    return json.dumps(root.to_dict(), ensure_ascii=False, indent=indent)


def load_mindmap(node: DocumentNode) -> Result[MindMapNode]:
    """Decode a mind-map node's payload without raising."""
    if node.kind is not NodeKind.MINDMAP:
        return Result.fail(
            MalformedPayload(
                f"Expected a mindmap node, got {node.kind.value}",
                payload_type="mindmap",
                reason="wrong_node",
            )
        )
    try:
        return Result.ok(decode_mindmap(node.attrs.get("data", "")))
    except MalformedPayload as e:
        logger.info("Mind map payload rejected: %s", e.message)
        return Result.fail(e)
