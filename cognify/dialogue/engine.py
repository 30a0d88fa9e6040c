"""Turn-taking conversation engine.

One learner utterance flows through capture, prompt assembly, a single
model call, reply decomposition and persistence, then playback. The engine
runs at most one turn at a time; submissions that arrive while a turn is
waiting for the model are dropped.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Optional

from cognify.config import AppConfig
from cognify.dialogue.protocol import (
    APOLOGY_TEXT,
    DialogueReply,
    Evaluation,
    build_dialogue_prompt,
    decompose_reply,
    derive_title,
    format_document,
)
from cognify.dialogue.state import EnginePhase, EngineState
from cognify.errors import (
    CapabilityUnavailableError,
    ExtractionFailedError,
    ModelUnavailableError,
    StorageUnavailableError,
)
from cognify.features.document_indexer import DocumentIndexer, IndexMemo
from cognify.features.extract import extract_text
from cognify.features.llm_api import complete
from cognify.features.progress import Mastery, ProgressTracker
from cognify.store.base import AbstractSessionStore
from cognify.store.models import DEFAULT_FILE_NAME, DocumentArtifact, Role, Turn
from cognify.util.logs import get_logger
from cognify.voice.adapter import AbstractVoiceAdapter, VoiceEvent

logger = get_logger(__name__)


@dataclass(frozen=True)
class TurnResult:
    """What one completed turn persisted and produced."""

    learner_turn: Turn
    tutor_turn: Turn
    reply: DialogueReply
    utterance_id: Optional[int] = None


class ConversationEngine:
    """Drives a study session: turns, uploads, evaluation and playback."""

    def __init__(
        self,
        store: AbstractSessionStore,
        voice: Optional[AbstractVoiceAdapter] = None,
        indexer: Optional[DocumentIndexer] = None,
        complete_fn: Optional[Callable[[str], str]] = None,
        config: Optional[AppConfig] = None,
    ):
        """Initialize the engine.

        Args:
            store: Where sessions, turns and artifacts are persisted.
            voice: Voice adapter; None runs the engine in text-only mode.
            indexer: Study index generator; built from the config by default.
            complete_fn: Model call, prompt in and completion out. Defaults to
                ``llm_api.complete`` with the configured model.
            config: Application configuration.
        """
        self.store = store
        self.voice = voice
        self.config = config or AppConfig()
        self._complete_fn = complete_fn
        self.indexer = indexer or DocumentIndexer(
            complete=self._call_index_model,
            char_budget=self.config.index.char_budget,
            sentinel_label=self.config.index.sentinel_label,
            memo=IndexMemo(self.config.index.memo_size),
        )
        self.progress = ProgressTracker(store)

        self._state = EngineState()
        self._state_lock = threading.Lock()
        self._turn_lock = threading.Lock()
        self._generation = 0
        self._speaking_id: Optional[int] = None

    # -- model calls ---------------------------------------------------------

    def _call_model(self, prompt: str) -> str:
        if self._complete_fn is not None:
            return self._complete_fn(prompt)
        return complete(
            prompt,
            model=self.config.model.text_model,
            temperature=self.config.model.temperature,
        )

    def _call_index_model(self, prompt: str) -> str:
        if self._complete_fn is not None:
            return self._complete_fn(prompt)
        return complete(prompt, model=self.config.model.text_model)

    # -- state helpers -------------------------------------------------------

    def _set(self, **changes) -> None:
        with self._state_lock:
            self._state = self._state.with_changes(**changes)

    def _move(self, phase: EnginePhase) -> None:
        with self._state_lock:
            self._state = self._state.moved_to(phase)
        logger.debug(f"Engine phase: {phase.value}")

    def _reset_phase(self) -> None:
        with self._state_lock:
            self._state = self._state.with_changes(phase=EnginePhase.IDLE)

    def _move_if_current(self, generation: int, phase: EnginePhase) -> bool:
        with self._state_lock:
            if generation != self._generation:
                return False
            self._state = self._state.moved_to(phase)
        logger.debug(f"Engine phase: {phase.value}")
        return True

    def _set_if_current(self, session_id: str, **changes) -> None:
        with self._state_lock:
            if self._state.session_id == session_id:
                self._state = self._state.with_changes(**changes)

    def _ensure_session(self) -> str:
        if self._state.session_id is None:
            self.open_session()
        return self._state.session_id

    # -- sessions ------------------------------------------------------------

    def open_session(self, session_id: Optional[str] = None) -> EngineState:
        """Make `session_id` the current session, creating one when needed.

        Unknown ids start a fresh session. A reply still pending for the
        previous session is discarded when it arrives.
        """
        session = self.store.load_session(session_id) if session_id else None
        if session is None:
            if session_id:
                logger.warning(f"Session {session_id} not found, starting a new one")
            session = self.store.load_session(self.store.create_session())

        if self.voice is not None:
            self.voice.cancel()

        for artifact in self.store.list_artifacts(session.id):
            self.indexer.remember(artifact.extracted_text, artifact.chapter_index)

        with self._state_lock:
            self._generation += 1
            self._speaking_id = None
            self._state = EngineState(
                session_id=session.id,
                title=session.title,
                turns=tuple(self.store.list_turns(session.id)),
                mastery=Mastery.of(session),
            )
        logger.info(f"Opened session {session.id} ({session.title!r})")
        return self._state

    def delete_session(self, session_id: str) -> None:
        """Delete a session; the engine forgets it when it is the current one."""
        self.store.delete_session(session_id)
        with self._state_lock:
            if self._state.session_id == session_id:
                self._generation += 1
                self._state = EngineState()

    def snapshot(self) -> EngineState:
        return self._state

    def summaries(self):
        return self.store.list_sessions_summary()

    # -- turns ---------------------------------------------------------------

    def submit_text(self, text: str, via_voice: bool = False) -> Optional[TurnResult]:
        """Run one turn for a typed or pre-supplied utterance.

        Returns None when the utterance is empty, a turn is already in
        progress, or the session changed before the reply arrived.
        """
        text = text.strip()
        if not text:
            return None
        if not self._turn_lock.acquire(blocking=False):
            logger.info("A turn is already in progress, submission ignored")
            return None
        try:
            return self._run_turn(text, via_voice)
        finally:
            self._turn_lock.release()

    def choose_suggestion(self, index: int) -> Optional[TurnResult]:
        """Submit one of the current suggested replies as the learner's turn."""
        suggestions = self._state.suggestions
        if not 0 <= index < len(suggestions):
            logger.warning(f"No suggestion at position {index}")
            return None
        return self.submit_text(suggestions[index])

    def listen(self) -> Optional[TurnResult]:
        """Capture one spoken utterance and run a turn for it.

        Playing speech is interrupted first. When the platform cannot
        capture speech, a notice is stored and the engine stays idle.
        """
        if self.voice is None:
            self._set(notice="Voice input is not configured; type your answer instead.")
            return None
        if not self._turn_lock.acquire(blocking=False):
            logger.info("A turn is already in progress, capture ignored")
            return None
        try:
            self._ensure_session()
            if self._state.phase is EnginePhase.RESPONDING:
                self.voice.cancel()
            self._move(EnginePhase.CAPTURING)

            try:
                transcript = self.voice.capture().strip()
            except CapabilityUnavailableError as e:
                logger.warning(f"[{e.code}] {e}")
                self._set(notice=str(e))
                self._move(EnginePhase.IDLE)
                return None
            except Exception:
                self._reset_phase()
                raise

            if not transcript:
                self._move(EnginePhase.IDLE)
                return None
            return self._run_turn(transcript, via_voice=True)
        finally:
            self._turn_lock.release()

    def _history(self, turns: list[Turn]) -> list[tuple[Role, str]]:
        window = turns[-self.config.dialogue.history_window :]
        prefix = self.config.dialogue.voice_turn_prefix
        history = []
        for turn in window:
            text = turn.text
            if turn.role == Role.learner and prefix and text.startswith(prefix):
                text = text[len(prefix) :]
            history.append((turn.role, text))
        return history

    def _document_context(self, session_id: str) -> str:
        artifact = self.store.active_artifact(session_id)
        if artifact is None:
            return format_document(None, self.config.dialogue.document_char_budget)
        return format_document(
            artifact.extracted_text,
            self.config.dialogue.document_char_budget,
            file_name=artifact.file_name,
            chapter_index=artifact.chapter_index,
        )

    def _run_turn(self, text: str, via_voice: bool) -> Optional[TurnResult]:
        session_id = self._ensure_session()
        generation = self._generation

        if self.voice is not None and self._state.phase is EnginePhase.RESPONDING:
            self.voice.cancel()
        self._set(suggestions=(), notice="")
        self._move(EnginePhase.REASONING)

        try:
            previous = self.store.list_turns(session_id)
            prompt = build_dialogue_prompt(
                utterance=text,
                history=self._history(previous),
                document=self._document_context(session_id),
            )

            try:
                raw = self._call_model(prompt)
            except ModelUnavailableError as e:
                logger.warning(f"[{e.code}] {e}")
                raw = APOLOGY_TEXT
            reply = decompose_reply(raw)

            if generation != self._generation:
                logger.info("Session changed while the tutor was thinking, reply discarded")
                return None

            return self._commit_turn(
                generation, session_id, text, via_voice, previous, reply
            )
        except StorageUnavailableError:
            if generation == self._generation:
                self._reset_phase()
            raise

    def _commit_turn(
        self,
        generation: int,
        session_id: str,
        text: str,
        via_voice: bool,
        previous: list[Turn],
        reply: DialogueReply,
    ) -> Optional[TurnResult]:
        """Persist the turn, then publish it if the session is still current.

        Writes already made for the old session are kept when the session
        changes midway, but nothing reaches the new session's state or
        the speaker.
        """
        dialogue_config = self.config.dialogue
        learner_text = f"{dialogue_config.voice_turn_prefix}{text}" if via_voice else text
        learner_turn = self.store.append_turn(session_id, Role.learner, learner_text)

        title = self._state.title
        if not any(turn.role == Role.learner for turn in previous):
            title = derive_title(text, dialogue_config.title_max_chars)
            self.store.rename_session(session_id, title)

        mastery = self._state.mastery
        if reply.evaluated:
            self._move_if_current(generation, EnginePhase.EVALUATING)
            mastery = self.progress.record(
                session_id, reply.evaluation is Evaluation.correct
            )

        tutor_turn = self.store.append_turn(session_id, Role.tutor, reply.display_text)

        speak = self.voice is not None and bool(reply.display_text)
        with self._state_lock:
            if generation != self._generation:
                logger.info("Session changed while the turn was being saved, reply discarded")
                return None
            self._state = self._state.with_changes(
                title=title,
                turns=self._state.turns + (learner_turn, tutor_turn),
                suggestions=reply.suggestions or (),
                mastery=mastery,
            ).moved_to(EnginePhase.RESPONDING if speak else EnginePhase.IDLE)

        utterance_id = None
        if speak:
            utterance_id = self.voice.speak(reply.display_text)
            with self._state_lock:
                current = generation == self._generation
                if current:
                    self._speaking_id = utterance_id
            if not current:
                self.voice.cancel()
                return None

        return TurnResult(
            learner_turn=learner_turn,
            tutor_turn=tutor_turn,
            reply=reply,
            utterance_id=utterance_id,
        )

    # -- playback ------------------------------------------------------------

    def pump_events(self) -> list[VoiceEvent]:
        """Drain pending voice events and return to idle when speech ended."""
        if self.voice is None:
            return []

        events = []
        while not self.voice.events.empty():
            event = self.voice.events.get_nowait()
            events.append(event)
            if event.kind == "speak_ended" and event.utterance_id == self._speaking_id:
                self._speaking_id = None
                with self._state_lock:
                    if self._state.phase is EnginePhase.RESPONDING:
                        self._state = self._state.moved_to(EnginePhase.IDLE)
        return events

    def wait_until_spoken(self) -> None:
        """Block until the current reply finished playing."""
        if self.voice is None:
            return
        self.voice.wait()
        self.pump_events()

    # -- documents -----------------------------------------------------------

    def upload_document(self, file_name: str, data: bytes) -> Optional[DocumentArtifact]:
        """Extract, index and attach a document to the current session.

        Returns the stored artifact, or None when no text could be extracted.
        The session stays usable either way.
        """
        session_id = self._ensure_session()
        file_name = file_name or DEFAULT_FILE_NAME

        self._set_if_current(session_id, upload_status=f"Reading {file_name}...")
        try:
            text = extract_text(file_name, data)
        except ExtractionFailedError as e:
            logger.warning(f"[{e.code}] {e}")
            self._set_if_current(session_id, upload_status=f"Could not read {file_name}.")
            return None

        self._set_if_current(
            session_id, upload_status=f"Building study index for {file_name}..."
        )
        labels = self.indexer.generate_index(text)
        artifact = self.store.add_artifact(session_id, file_name, text, labels)

        n_topics = 0 if self.indexer.is_sentinel(labels) else len(labels)
        self._set_if_current(
            session_id, upload_status=f"Ready: {file_name} ({n_topics} topics)"
        )
        logger.info(f"Attached {file_name!r} to session {session_id}")
        return artifact
