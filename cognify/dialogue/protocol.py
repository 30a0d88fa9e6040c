"""Dialogue protocol layered on the free-text model channel.

A tutor reply is prose optionally followed by two trailing markers:

    <prose> [EVAL:correct|incorrect] [REC: <first> | <second>]

Only tokens at the very end of the reply are markers. The same text in the
middle of a sentence is ordinary prose.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from cognify.store.models import Role

EVAL_CORRECT = "[EVAL:correct]"
EVAL_INCORRECT = "[EVAL:incorrect]"
SUGGESTION_DELIMITER = "|"

NO_DOCUMENT_PLACEHOLDER = "No document has been uploaded yet."
APOLOGY_TEXT = "Sorry, I couldn't reach the tutor service. Please try again."

_TRAILING_MARKER_RE = re.compile(r"\[(EVAL|REC):([^\[\]]*)\]\s*$")

TUTOR_PROMPT = """You are Cognify, a friendly voice tutor helping a student study their material.
Your reply is read aloud, so:
- Speak naturally in a few short sentences.
- Do not use markdown, bullet points, numbered lists, emojis or any other formatting.
- Ask at most one comprehension question at a time, based on the document when there is one.

Evaluation:
- If your previous message asked a comprehension question and the student's new message answers it, judge the answer.
- Then append {correct} if the answer is correct, or {incorrect} if it is not.
- Append no evaluation marker when there was no question to answer.

Suggestions:
- Always end your reply with exactly two short things the student could say next, written as [REC: first suggestion {delimiter} second suggestion].
- The suggestions marker is the very last thing in your reply, after any evaluation marker.

DOCUMENT:
{document}

CONVERSATION SO FAR:
{history}

STUDENT: {utterance}
TUTOR:"""


class Evaluation(str, Enum):
    correct = "correct"
    incorrect = "incorrect"
    none = "none"


@dataclass(frozen=True)
class DialogueReply:
    """A tutor reply split into spoken text and protocol markers."""

    display_text: str
    evaluation: Evaluation = Evaluation.none
    suggestions: tuple[str, str] | None = None

    @property
    def evaluated(self) -> bool:
        return self.evaluation is not Evaluation.none


def _parse_suggestions(body: str) -> tuple[str, str] | None:
    parts = [p.strip() for p in body.split(SUGGESTION_DELIMITER)]
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


def _parse_evaluation(body: str) -> Evaluation:
    value = body.strip()
    if value == Evaluation.correct.value:
        return Evaluation.correct
    if value == Evaluation.incorrect.value:
        return Evaluation.incorrect
    return Evaluation.none


def decompose_reply(raw: str) -> DialogueReply:
    """Split a model reply into display text, evaluation and suggestions.

    Total over any input: malformed or missing markers are reported as
    absent. Trailing marker tokens are removed from the display text even
    when malformed, so they are never spoken. Evaluation markers come
    first and the suggestions marker last; an evaluation marker after the
    suggestions marker is out of order and ignored. When several evaluation
    markers trail the prose, the first valid one wins.
    """
    text = raw if isinstance(raw, str) else ""
    text = text.rstrip()

    trailing: list[tuple[str, str]] = []
    while True:
        match = _TRAILING_MARKER_RE.search(text)
        if match is None:
            break
        trailing.insert(0, (match.group(1), match.group(2)))
        text = text[: match.start()].rstrip()

    # evaluation markers, then at most one suggestions marker as the last token
    evaluation = Evaluation.none
    suggestions = None
    seen_suggestions = False
    for position, (kind, body) in enumerate(trailing):
        if kind == "REC":
            seen_suggestions = True
            if position == len(trailing) - 1:
                suggestions = _parse_suggestions(body)
        elif not seen_suggestions and evaluation is Evaluation.none:
            evaluation = _parse_evaluation(body)

    return DialogueReply(
        display_text=text, evaluation=evaluation, suggestions=suggestions
    )


def format_reply(
    prose: str,
    evaluation: Evaluation = Evaluation.none,
    suggestions: tuple[str, str] | None = None,
) -> str:
    """Render a reply in canonical marker form (inverse of decompose_reply)."""
    text = prose
    if evaluation is Evaluation.correct:
        text += EVAL_CORRECT
    elif evaluation is Evaluation.incorrect:
        text += EVAL_INCORRECT
    if suggestions is not None:
        text += f"[REC: {suggestions[0]} {SUGGESTION_DELIMITER} {suggestions[1]}]"
    return text


def format_history(history: Iterable[tuple[Role, str]]) -> str:
    lines = []
    for role, text in history:
        speaker = "STUDENT" if role == Role.learner else "TUTOR"
        lines.append(f"{speaker}: {text}")
    return "\n".join(lines) if lines else "(no previous messages)"


def format_document(
    document_text: str | None,
    char_budget: int,
    file_name: str | None = None,
    chapter_index: list[str] | None = None,
) -> str:
    if not document_text:
        return NO_DOCUMENT_PLACEHOLDER

    header = []
    if file_name:
        header.append(f"File: {file_name}")
    if chapter_index:
        header.append("Study index: " + "; ".join(chapter_index))
    body = document_text[:char_budget]
    if len(document_text) > char_budget:
        body += "\n[TRUNCATED]"
    return "\n".join([*header, body])


def build_dialogue_prompt(
    utterance: str,
    history: Iterable[tuple[Role, str]],
    document: str,
) -> str:
    """Return the full prompt for one learner utterance.

    Args:
        utterance: What the learner just said.
        history: Recent (role, text) pairs, oldest first.
        document: Formatted document context or the no-document placeholder.
    """
    return TUTOR_PROMPT.format(
        correct=EVAL_CORRECT,
        incorrect=EVAL_INCORRECT,
        delimiter=SUGGESTION_DELIMITER,
        document=document,
        history=format_history(history),
        utterance=utterance,
    )


def derive_title(transcript: str, max_chars: int = 40) -> str:
    """Return a session title from the first learner utterance."""
    title = " ".join(transcript.split())
    if len(title) <= max_chars:
        return title
    return title[:max_chars].rstrip() + "..."
