from unittest.mock import MagicMock, patch

import pytest

from cognify.config import AppConfig, IndexConfig
from cognify.dialogue.engine import ConversationEngine
from cognify.errors import MalformedModelResponseError, ModelUnavailableError
from cognify.features.document_indexer import (
    SENTINEL_LABEL,
    DocumentIndexer,
    IndexMemo,
    build_index_prompt,
    parse_index,
    strip_code_fence,
)
from cognify.store import InMemorySessionStore


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('["Intro", "Cells"]', ["Intro", "Cells"]),
        ('```json\n["Intro", "Cells"]\n```', ["Intro", "Cells"]),
        ('```\n["Intro"]```', ["Intro"]),
        ('Here you go:\n```json\n["A", "B"]\n```\nGood luck!', ["A", "B"]),
        ('  [" Padded ", "", "Kept"]  ', ["Padded", "Kept"]),
    ],
)
def test_parse_index_valid(raw, expected):
    assert parse_index(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "Chapter 1, Chapter 2",
        "[]",
        '{"chapters": ["A"]}',
        '["A", 2]',
        '["", "   "]',
        "```json\nnot json\n```",
        None,
    ],
)
def test_parse_index_rejects_malformed(raw):
    with pytest.raises(MalformedModelResponseError):
        parse_index(raw)


def test_strip_code_fence_leaves_plain_text():
    assert strip_code_fence('["A"]') == '["A"]'


def test_build_index_prompt_truncates_document():
    prompt = build_index_prompt("x" * 100 + "TAIL", char_budget=100)
    assert "x" * 100 in prompt
    assert "TAIL" not in prompt
    assert "JSON array" in prompt


def test_generate_index_success_is_memoized():
    complete = MagicMock(return_value='["Light reactions", "Calvin cycle"]')
    indexer = DocumentIndexer(complete=complete)

    assert indexer.generate_index("photosynthesis text") == [
        "Light reactions",
        "Calvin cycle",
    ]
    assert indexer.generate_index("photosynthesis text") == [
        "Light reactions",
        "Calvin cycle",
    ]
    assert complete.call_count == 1


@pytest.mark.parametrize(
    "complete",
    [
        MagicMock(return_value="I could not find any chapters."),
        MagicMock(side_effect=ModelUnavailableError("offline")),
    ],
)
def test_generate_index_failure_returns_sentinel_and_is_not_memoized(complete):
    indexer = DocumentIndexer(complete=complete)

    assert indexer.generate_index("text") == [SENTINEL_LABEL]
    assert indexer.generate_index("text") == [SENTINEL_LABEL]
    assert complete.call_count == 2
    assert len(indexer.memo) == 0


def test_generate_index_uses_char_budget():
    complete = MagicMock(return_value='["A"]')
    indexer = DocumentIndexer(complete=complete, char_budget=10)

    indexer.generate_index("0123456789SHOULD-NOT-BE-SENT")

    assert "SHOULD-NOT-BE-SENT" not in complete.call_args.args[0]


@patch("cognify.features.document_indexer.llm_api.complete")
def test_generate_index_defaults_to_llm_api(mock_complete):
    mock_complete.return_value = '["Only topic"]'

    assert DocumentIndexer().generate_index("doc") == ["Only topic"]
    mock_complete.assert_called_once()


def test_remember_seeds_memo_but_skips_sentinel():
    complete = MagicMock(return_value='["Fresh"]')
    indexer = DocumentIndexer(complete=complete)

    indexer.remember("known", ["Stored topic"])
    indexer.remember("failed before", [SENTINEL_LABEL])
    indexer.remember("never indexed", [])

    assert indexer.generate_index("known") == ["Stored topic"]
    assert indexer.generate_index("failed before") == ["Fresh"]
    assert complete.call_count == 1


def test_memo_returns_copies():
    memo = IndexMemo()
    memo.put("text", ["A"])
    memo.get("text").append("B")
    assert memo.get("text") == ["A"]
    assert memo.get("other") is None


def test_memo_evicts_least_recently_used():
    memo = IndexMemo(max_entries=2)
    memo.put("first", ["A"])
    memo.put("second", ["B"])
    assert memo.get("first") == ["A"]  # now most recent

    memo.put("third", ["C"])

    assert len(memo) == 2
    assert memo.get("second") is None
    assert memo.get("first") == ["A"]
    assert memo.get("third") == ["C"]


def test_engine_memo_size_comes_from_config():
    config = AppConfig(index=IndexConfig(memo_size=3))
    engine = ConversationEngine(InMemorySessionStore(), config=config)
    assert engine.indexer.memo.max_entries == 3
