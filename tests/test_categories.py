"""Tests for category extraction and relevance scoring."""
from datetime import datetime

from services.categories import (
    extract_categories,
    infer_category,
    rank_tokens,
    score_question,
    split_query,
    tokenize,
)
from services.shared.records import AnswerRecord, QuestionRecord

WHEN = datetime(2024, 3, 1, 12, 0, 0)


def make_record(title, content, answers=0, question_id=None):
    return QuestionRecord(
        title=title,
        content=content,
        created_by="alice",
        created_at=WHEN,
        id=question_id,
        answers=tuple(AnswerRecord(question_id=question_id or 0, content="answer", created_by="bob",
                                   created_at=WHEN) for _ in range(answers)),
    )


class TestExtractCategories:

    def test_ranked_by_pooled_frequency(self):
        questions = [
            make_record("Password reset", "reset password for email"),
            make_record("VPN access", "vpn password"),
        ]
        assert extract_categories(questions) == ["Password", "Reset", "Email", "Access"]

    def test_stop_words_and_short_tokens_are_ignored(self):
        questions = [make_record("How to do it", "the and")]
        assert extract_categories(questions) == []

    def test_deterministic(self):
        questions = [
            make_record("Printer jammed", "printer shows paper error"),
            make_record("Laptop battery", "battery drains fast"),
        ]
        assert extract_categories(questions) == extract_categories(list(questions))

    def test_ties_keep_first_occurrence(self):
        questions = [make_record("zebra apple", "mango")]
        assert extract_categories(questions) == ["Zebra", "Apple", "Mango"]

    def test_only_first_hundred_content_tokens_count(self):
        content = " ".join(["filler"] * 100 + ["zebra"])
        assert "Zebra" not in extract_categories([make_record("Title here", content)])

    def test_top_n(self):
        questions = [make_record("alpha bravo charlie delta", "")]
        assert extract_categories(questions, top_n=2) == ["Alpha", "Bravo"]

    def test_empty(self):
        assert extract_categories([]) == []


class TestInferCategory:

    def test_first_known_category_found_in_text(self):
        question = make_record("VPN keeps dropping", "connection issue")
        assert infer_category(question, ["Password", "Connection"]) == "Connection"

    def test_falls_back_to_own_top_token(self):
        question = make_record("Printer jammed", "printer again")
        assert infer_category(question, ["Payroll"]) == "Printer"
        assert infer_category(question) == "Printer"

    def test_no_qualifying_tokens(self):
        assert infer_category(make_record("How to", "do it")) is None


class TestScoring:

    def test_weighted_score(self):
        question = make_record("Password reset", "I forgot my password and need a password reset", answers=1)
        assert score_question(question, ["password", "reset"]) == 11

    def test_content_only_unanswered(self):
        question = make_record("Other", "password here")
        assert score_question(question, ["password"]) == 2

    def test_each_term_counts_once_per_field(self):
        question = make_record("password password", "nothing")
        assert score_question(question, ["password"]) == 3

    def test_no_match_answered(self):
        assert score_question(make_record("Other", "Nothing", answers=2), ["vpn"]) == 1


class TestTokenizing:

    def test_split_query(self):
        assert split_query("Password  Reset") == ["password", "reset"]
        assert split_query(None) == []

    def test_tokenize_limit(self):
        assert tokenize("a b c", limit=2) == ["a", "b"]

    def test_rank_tokens(self):
        assert rank_tokens(["b", "a", "a", "c", "b"], 2) == ["b", "a"]
