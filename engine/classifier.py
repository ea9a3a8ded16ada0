"""Free-text to recommendation-token classification.

Each stage owns a vocabulary table: ordered keyword rules plus a default
token. Classification is a pure function of (vocabulary, text) so the
decision logic can be tested without a live judgment provider.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class KeywordRule:
    """Emit `token` if any of `keywords` occurs in the text."""

    keywords: tuple[str, ...]
    token: str


@dataclass(frozen=True)
class Vocabulary:
    """Ordered rules for one stage. First matching rule wins."""

    rules: tuple[KeywordRule, ...] = field(default_factory=tuple)
    default: str = "HOLD"
    case_sensitive: bool = False

    def classify(self, text: str) -> str:
        haystack = text if self.case_sensitive else text.lower()
        for rule in self.rules:
            for keyword in rule.keywords:
                needle = keyword if self.case_sensitive else keyword.lower()
                if needle in haystack:
                    return rule.token
        return self.default


SENTIMENT = Vocabulary(
    rules=(
        KeywordRule(("POSITIVE",), "BULLISH"),
        KeywordRule(("NEGATIVE",), "BEARISH"),
    ),
    default="NEUTRAL",
    case_sensitive=True,
)

FUNDAMENTALS = Vocabulary(
    rules=(
        KeywordRule(("BUY",), "BUY"),
        KeywordRule(("SELL",), "SELL"),
    ),
    default="HOLD",
    case_sensitive=True,
)

QUANT = Vocabulary(
    rules=(
        KeywordRule(("bullish", "uptrend"), "BUY"),
        KeywordRule(("bearish", "downtrend"), "SELL"),
    ),
    default="HOLD",
)

# The risk stage approves unconditionally; its prose is kept for the audit trail.
RISK = Vocabulary(default="APPROVED")

PORTFOLIO = Vocabulary(
    rules=(
        KeywordRule(("buy", "purchase"), "BUY"),
        KeywordRule(("sell",), "SELL"),
    ),
    default="HOLD",
)

VOCABULARIES: dict[str, Vocabulary] = {
    "sentiment": SENTIMENT,
    "fundamentals": FUNDAMENTALS,
    "quant": QUANT,
    "risk": RISK,
    "portfolio": PORTFOLIO,
}


def classify(stage: str, text: str) -> str:
    """Classify `text` with the vocabulary registered for `stage`."""
    try:
        vocabulary = VOCABULARIES[stage]
    except KeyError:
        raise KeyError(f"No vocabulary for stage '{stage}'") from None
    return vocabulary.classify(text)
