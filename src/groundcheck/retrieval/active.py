"""Confidence-triggered (FLARE-style) retrieval decisions.

The generator produces tokens with confidences; this module decides
where generation should pause to fetch evidence, what to ask for, and
how to splice the evidence back into the text. It never generates
tokens itself.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from groundcheck.config import Settings
from groundcheck.constants import MAX_FALLBACK_KEYWORDS, MAX_GENERATED_QUERY_CHARS
from groundcheck.retrieval.retrieval_config import ActiveRetrievalConfig
from groundcheck.retrieval.schemas import ConfidenceSignal
from groundcheck.text import QUERY_STOPWORDS, identifier_candidates, is_valid_term

logger = logging.getLogger(__name__)

_CALL_NAME_RE = re.compile(r"\b([a-z_][A-Za-z0-9_]*)\s*\(")
_WORD_RE = re.compile(r"[A-Za-z][A-Za-z0-9_]*")


class ActiveRetriever:
    def __init__(
        self,
        config: ActiveRetrievalConfig | None = None,
        *,
        settings: Settings | None = None,
    ) -> None:
        self._config = config or (settings or Settings()).active_config()

    @property
    def config(self) -> ActiveRetrievalConfig:
        return self._config

    def needs_retrieval(self, confidence: float) -> bool:
        """Strictly below threshold triggers; NaN fails every comparison and triggers."""
        return not confidence >= self._config.confidence_threshold

    def analyze_confidence(
        self,
        tokens: Sequence[str],
        confidences: Sequence[float],
        last_retrieval_position: int | None = None,
    ) -> list[ConfidenceSignal]:
        """One signal per position, over the shorter of the two inputs."""
        n = min(len(tokens), len(confidences))
        if len(tokens) != len(confidences):
            logger.debug(
                "event=length_mismatch tokens=%d confidences=%d using=%d",
                len(tokens), len(confidences), n,
            )
        return [
            ConfidenceSignal(
                position=i,
                token=tokens[i],
                confidence=confidences[i],
                needs_retrieval=self.needs_retrieval(confidences[i]),
                last_retrieval_position=last_retrieval_position,
            )
            for i in range(n)
        ]

    def should_retrieve(
        self,
        signals: Sequence[ConfidenceSignal],
        position: int,
        last_retrieval_position: int | None = None,
    ) -> bool:
        """Whether to retrieve at *position*.

        True when any signal in ``[position, position + window_size]``
        needs retrieval and at least ``min_retrieval_gap`` positions have
        passed since the last retrieval. Out-of-range positions are False.
        """
        if not signals or position < 0 or position >= len(signals):
            return False
        if last_retrieval_position is not None:
            if position - last_retrieval_position < self._config.min_retrieval_gap:
                return False
        end = min(position + max(self._config.window_size, 0), len(signals) - 1)
        return any(signals[i].needs_retrieval for i in range(position, end + 1))

    def generate_query(self, context: str, low_confidence_span: str) -> str:
        """Short search query from the identifiers around a shaky span.

        Falls back to plain keywords when neither input names an
        identifier; returns "" only when both inputs are empty.
        """
        terms: list[str] = []
        for text in (context, low_confidence_span):
            terms.extend(identifier_candidates(text))
            terms.extend(
                m.group(1)
                for m in _CALL_NAME_RE.finditer(text)
                if is_valid_term(m.group(1))
            )
        if not terms:
            terms = [
                w for w in _WORD_RE.findall(f"{context} {low_confidence_span}")
                if len(w) > 2 and w.lower() not in QUERY_STOPWORDS
            ][:MAX_FALLBACK_KEYWORDS]

        query = " ".join(dict.fromkeys(terms))
        if len(query) > MAX_GENERATED_QUERY_CHARS:
            query = query[:MAX_GENERATED_QUERY_CHARS]
            last_space = query.rfind(" ")
            if last_space > 0:
                query = query[:last_space]
        return query.strip()

    def integrate_retrieval(self, original: str, retrieved: str, position: int) -> str:
        """Splice *retrieved* into *original* at *position* (clamped).

        Adds a single separating space only where the neighbouring text
        does not already end or start with whitespace.
        """
        if not retrieved or not retrieved.strip():
            return original
        snippet = retrieved.strip()
        if not original:
            return snippet

        pos = max(0, min(position, len(original)))
        before, after = original[:pos], original[pos:]
        parts = [before]
        if before and not before[-1].isspace():
            parts.append(" ")
        parts.append(snippet)
        if after and not after[0].isspace():
            parts.append(" ")
        parts.append(after)
        return "".join(parts)

    def find_trigger_positions(
        self, signals: Sequence[ConfidenceSignal]
    ) -> list[int]:
        """Positions where a generation loop would retrieve, honouring the gap."""
        triggers: list[int] = []
        last: int | None = None
        for signal in signals:
            if not signal.needs_retrieval:
                continue
            if self.should_retrieve(signals, signal.position, last):
                triggers.append(signal.position)
                last = signal.position
        return triggers
