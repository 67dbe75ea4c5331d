"""Keyword-based sentiment tagging for AI news content."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class Sentiment(Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


@dataclass
class SentimentResult:
    sentiment: Sentiment
    score: float  # 0.0 most negative, 0.5 neutral, 1.0 most positive


POSITIVE_THRESHOLD = 0.6
NEGATIVE_THRESHOLD = 0.4


class KeywordSentimentAnalyzer:
    """Counts positive and negative keywords in the title and description."""

    POSITIVE: List[str] = [
        # Achievement
        "breakthrough", "milestone", "achieves", "achieved", "surpasses", "outperforms",
        "state-of-the-art", "sota", "record-breaking", "best-in-class",
        # Improvement
        "improves", "improved", "faster", "efficient", "upgrade", "enhanced",
        "advances", "advancing", "innovation", "innovative", "revolutionary",
        "impressive", "remarkable", "significant", "powerful",
        # Releases
        "launches", "launched", "releases", "released", "introduces", "introduced",
        "unveils", "unveiled", "announces", "open-source", "open source",
        "free", "available", "accessible", "democratize",
        # Outcomes
        "success", "successful", "wins", "won", "award", "leading",
        "exciting", "promising", "optimistic", "confident",
        "growth", "funding", "investment", "partnership", "collaboration",
    ]

    NEGATIVE: List[str] = [
        # Risk
        "risk", "danger", "dangerous", "threat", "threatens", "harmful",
        "concern", "concerning", "worried", "warning", "warns", "alarming",
        # Failure
        "fails", "failed", "failure", "bug", "vulnerability", "exploit",
        "broken", "crashes", "crash", "error", "flaw", "flawed",
        "decline", "declining", "worse", "worst", "downturn",
        # Restrictions and fallout
        "bans", "banned", "blocks", "blocked", "restricts", "restricted",
        "layoffs", "layoff", "fired", "shutdown", "shuts down", "sued",
        "lawsuit", "controversy", "controversial", "backlash", "criticism",
        # Safety and ethics
        "bias", "biased", "hallucination", "hallucinations", "misinformation",
        "deepfake", "deepfakes", "surveillance", "privacy violation",
        "misuse", "abuse", "leak", "leaked", "breach",
    ]

    def __init__(self):
        self._compile_patterns()

    def _compile_patterns(self):
        """Compile one whole-word pattern per keyword."""
        self.positive = [re.compile(rf"\b{re.escape(k)}\b", re.IGNORECASE) for k in self.POSITIVE]
        self.negative = [re.compile(rf"\b{re.escape(k)}\b", re.IGNORECASE) for k in self.NEGATIVE]

    def analyze(self, title: str, description: Optional[str] = None) -> SentimentResult:
        """Each keyword counts once, however often it appears."""
        text = f"{title} {description or ''}"
        positive = sum(1 for p in self.positive if p.search(text))
        negative = sum(1 for p in self.negative if p.search(text))

        total = positive + negative
        if total == 0:
            return SentimentResult(sentiment=Sentiment.NEUTRAL, score=0.5)

        score = positive / total
        if score >= POSITIVE_THRESHOLD:
            sentiment = Sentiment.POSITIVE
        elif score <= NEGATIVE_THRESHOLD:
            sentiment = Sentiment.NEGATIVE
        else:
            sentiment = Sentiment.NEUTRAL
        return SentimentResult(sentiment=sentiment, score=score)


_analyzer = KeywordSentimentAnalyzer()


def analyze_sentiment(title: str, description: Optional[str] = None) -> SentimentResult:
    return _analyzer.analyze(title, description)
