"""Word-frequency heuristics over question text.

Categories are not stored anywhere; they are the most frequent meaningful
words across titles and the start of each question's content.
"""
from collections import Counter
from typing import Iterable, List, Optional, Sequence

from services.shared.records import QuestionRecord

TOP_CATEGORIES = 15
CONTENT_TOKEN_LIMIT = 100
MIN_TOKEN_LENGTH = 4

STOP_WORDS = frozenset({
    "the", "a", "an", "is", "are", "how", "what", "why", "when", "where",
    "to", "in", "on", "at", "for", "with", "by", "about", "like", "through",
    "and", "or", "but", "if", "because", "as", "until", "while", "of", "from",
    "up", "down", "out", "off", "over", "under", "again", "further",
    "then", "once", "here", "there", "all", "any",
    "both", "each", "few", "more", "most", "other", "some", "such", "no", "nor",
    "not", "only", "own", "same", "so", "than", "too", "very", "can", "will",
    "just", "should", "now", "i", "me", "my", "we", "our", "you", "your",
    "he", "him", "his", "she", "her", "it", "its", "they", "them", "their",
})

# Relevance weights
TITLE_WEIGHT = 3
CONTENT_WEIGHT = 2
ANSWERED_BONUS = 1


def tokenize(text: Optional[str], limit: Optional[int] = None) -> List[str]:
    """Lower-cased whitespace tokens, optionally only the first ``limit``."""
    tokens = (text or "").lower().split()
    return tokens[:limit] if limit is not None else tokens


def is_category_token(token: str) -> bool:
    return len(token) >= MIN_TOKEN_LENGTH and token not in STOP_WORDS


def capitalize_first(word: str) -> str:
    if not word:
        return word
    return word[0].upper() + word[1:]


def question_tokens(question: QuestionRecord) -> List[str]:
    """Qualifying tokens of the whole title and the first 100 content tokens."""
    tokens = [t for t in tokenize(question.title) if is_category_token(t)]
    tokens.extend(t for t in tokenize(question.content, CONTENT_TOKEN_LIMIT) if is_category_token(t))
    return tokens


def rank_tokens(tokens: Iterable[str], top_n: int) -> List[str]:
    """Most frequent tokens first; equal counts keep first-seen order."""
    counts = Counter()
    for token in tokens:
        counts[token] += 1
    # Counter preserves insertion order and sorted() is stable
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [token for token, _ in ranked[:top_n]]


def extract_categories(questions: Sequence[QuestionRecord], top_n: int = TOP_CATEGORIES) -> List[str]:
    """Top ``top_n`` category labels across ``questions``."""
    tokens: List[str] = []
    for question in questions:
        tokens.extend(question_tokens(question))
    return [capitalize_first(token) for token in rank_tokens(tokens, top_n)]


def infer_category(question: QuestionRecord, categories: Optional[Sequence[str]] = None) -> Optional[str]:
    """Transient category label for a single question.

    With known ``categories``, the first one whose lower-cased form appears in
    the title or content wins. Otherwise, or when none match, the question's
    own most frequent qualifying token is used. ``None`` when the question has
    no qualifying tokens.
    """
    haystack = f"{question.title} {question.content}".lower()
    for category in categories or ():
        if category and category.lower() in haystack:
            return category

    own = rank_tokens(question_tokens(question), 1)
    return capitalize_first(own[0]) if own else None


def split_query(query: Optional[str]) -> List[str]:
    """Lower-cased space separated query terms."""
    return tokenize(query)


def score_question(question: QuestionRecord, terms: Sequence[str]) -> int:
    """3 per term in the title, 2 per term in the content, 1 if answered."""
    title = question.title.lower()
    content = question.content.lower()
    title_hits = sum(1 for term in terms if term in title)
    content_hits = sum(1 for term in terms if term in content)
    bonus = ANSWERED_BONUS if question.has_answers else 0
    return TITLE_WEIGHT * title_hits + CONTENT_WEIGHT * content_hits + bonus
