"""Tests for shared text helpers."""

from __future__ import annotations

import pytest

from groundcheck.text import (
    identifier_candidates,
    is_valid_term,
    split_query,
    tokenize,
    truncate,
)


def test_split_query_drops_stopwords_and_punctuation() -> None:
    assert split_query("where is UserService.get_user(id) defined") == [
        "UserService.get_user", "id", "defined",
    ]


def test_split_query_empty() -> None:
    assert split_query("") == []
    assert split_query("how is the") == []


def test_tokenize() -> None:
    assert tokenize("foo.bar(baz_1) + 2") == ["foo", "bar", "baz_1"]


@pytest.mark.parametrize(
    ("term", "valid"),
    [("a", False), ("self", False), ("Repo", True), ("x" * 51, False), ("id", True)],
)
def test_is_valid_term(term: str, valid: bool) -> None:
    assert is_valid_term(term) is valid


def test_identifier_candidates() -> None:
    text = "Call `repo.get()` from UserService via load_users and getUser"
    assert identifier_candidates(text) == [
        "repo", "get", "UserService", "getUser", "load_users",
    ]


def test_truncate() -> None:
    assert truncate("abcdef", 3) == "abc..."
    assert truncate("abc", 3) == "abc"
