"""Study index generation for uploaded documents.

The index is a short ordered list of topic or chapter labels produced by a
single model call over a bounded prefix of the document. Generation is best
effort: any failure yields a one-element list holding the sentinel label so
the caller can tell "attempted and failed" from "not attempted" (empty).
"""

import json
import re
import threading
from collections import OrderedDict
from typing import Callable

from cognify.errors import (
    IndexGenerationFailedError,
    MalformedModelResponseError,
    ModelUnavailableError,
)
from cognify.features import llm_api
from cognify.store.models import text_digest
from cognify.util.logs import get_logger

logger = get_logger(__name__)

DEFAULT_CHAR_BUDGET = 8_000
DEFAULT_MEMO_SIZE = 128
SENTINEL_LABEL = "Index unavailable"

INDEX_PROMPT = """Below is the beginning of a study document.
List its main chapters or topics in reading order, as short labels of at most eight words.

Return ONLY a JSON array of strings, for example ["Introduction", "Cell structure"].
Do not add any explanation, heading or markdown formatting.

DOCUMENT:
{document}
"""

_FENCE_RE = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\n?(.*?)\s*```", re.DOTALL)


def build_index_prompt(document_text: str, char_budget: int = DEFAULT_CHAR_BUDGET) -> str:
    """Return the index request for the first ``char_budget`` characters."""
    return INDEX_PROMPT.format(document=document_text[:char_budget])


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence, if present."""
    match = _FENCE_RE.search(text)
    return match.group(1) if match else text


def parse_index(raw: str) -> list[str]:
    """Parse a model reply into a list of labels.

    Raises:
        MalformedModelResponseError: If the reply is not a non-empty JSON
            array of non-empty strings.
    """
    body = strip_code_fence(raw or "").strip()
    try:
        data = json.loads(body)
    except ValueError as e:
        raise MalformedModelResponseError(f"Index reply is not JSON: {e}") from e

    if not isinstance(data, list) or not data:
        raise MalformedModelResponseError("Index reply is not a non-empty array")
    if not all(isinstance(item, str) for item in data):
        raise MalformedModelResponseError("Index reply holds non-string items")

    labels = [item.strip() for item in data if item.strip()]
    if not labels:
        raise MalformedModelResponseError("Index reply holds only blank labels")
    return labels


class IndexMemo:
    """Thread-safe LRU cache of generated indexes keyed by document content hash."""

    def __init__(self, max_entries: int = DEFAULT_MEMO_SIZE):
        self.max_entries = max_entries
        self._entries: OrderedDict[str, list[str]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, document_text: str) -> list[str] | None:
        key = text_digest(document_text)
        with self._lock:
            labels = self._entries.get(key)
            if labels is None:
                return None
            self._entries.move_to_end(key)
            return list(labels)

    def put(self, document_text: str, labels: list[str]) -> None:
        key = text_digest(document_text)
        with self._lock:
            self._entries[key] = list(labels)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DocumentIndexer:
    """Builds study indexes, reusing earlier results for identical text."""

    def __init__(
        self,
        complete: Callable[[str], str] | None = None,
        char_budget: int = DEFAULT_CHAR_BUDGET,
        sentinel_label: str = SENTINEL_LABEL,
        memo: IndexMemo | None = None,
    ):
        """Initialize the indexer.

        Args:
            complete: Model call, prompt in and completion out. Defaults to
                ``llm_api.complete``.
            char_budget: Characters of the document sent to the model.
            sentinel_label: Label returned when generation fails.
            memo: Cache shared between indexers; a private one by default.
        """
        self._complete = complete
        self.char_budget = char_budget
        self.sentinel_label = sentinel_label
        self.memo = memo if memo is not None else IndexMemo()

    def is_sentinel(self, labels: list[str]) -> bool:
        return labels == [self.sentinel_label]

    def remember(self, document_text: str, labels: list[str]) -> None:
        """Seed the memo with an index generated earlier (e.g. persisted)."""
        if labels and not self.is_sentinel(labels):
            self.memo.put(document_text, labels)

    def _request_index(self, document_text: str) -> list[str]:
        complete = self._complete or llm_api.complete
        prompt = build_index_prompt(document_text, self.char_budget)
        try:
            raw = complete(prompt)
        except ModelUnavailableError as e:
            raise IndexGenerationFailedError(f"Model unavailable: {e}") from e
        try:
            return parse_index(raw)
        except MalformedModelResponseError as e:
            raise IndexGenerationFailedError(str(e)) from e

    def generate_index(self, document_text: str) -> list[str]:
        """Return the study index for ``document_text``.

        Never raises for model or parsing failures; those produce the
        single sentinel label instead.
        """
        cached = self.memo.get(document_text)
        if cached is not None:
            logger.debug("Reusing memoized study index")
            return cached

        try:
            labels = self._request_index(document_text)
        except IndexGenerationFailedError as e:
            logger.warning(f"[{e.code}] {e}")
            return [self.sentinel_label]

        self.memo.put(document_text, labels)
        logger.info(f"Generated study index with {len(labels)} entries")
        return labels
