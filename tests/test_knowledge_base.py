"""Tests for knowledge base analysis and statistics."""
from datetime import timedelta
from unittest.mock import patch

import pytest

from services.knowledge_base import answer_rate, average_answers, week_label


class TestRelevantQuestions:

    def test_ranked_by_score(self, knowledge_base, make_question):
        best = make_question("Password reset", "I forgot my password and need a password reset",
                             answers=["Use the self-service portal"])
        partial = make_question("Email password", "Cannot log in")
        make_question("Holiday calendar", "When are the holidays")

        results = knowledge_base.get_relevant_questions("password reset")

        assert [q.id for q in results] == [best, partial]

    def test_equal_scores_keep_store_order(self, knowledge_base, make_question):
        first = make_question("VPN drops", "Disconnects")
        second = make_question("VPN slow", "Very slow")

        assert [q.id for q in knowledge_base.get_relevant_questions("vpn")] == [first, second]

    def test_blank_query_returns_most_recent(self, knowledge_base, make_question, clock):
        ids = []
        for i in range(12):
            ids.append(make_question(f"Question {i}", "Some content", created_at=clock.now() + timedelta(hours=i)))

        results = knowledge_base.get_relevant_questions("   ")

        assert len(results) == 10
        assert [q.id for q in results] == list(reversed(ids))[:10]

    def test_failure_returns_empty(self, knowledge_base, kb_repository):
        with patch.object(kb_repository, "get_questions_by_search_terms", side_effect=RuntimeError("boom")):
            assert knowledge_base.get_relevant_questions("vpn") == []


class TestStatistics:

    def test_zero_guards(self):
        assert answer_rate(0, 0) == 0.0
        assert average_answers(5, 0) == 0.0
        assert answer_rate(1, 4) == pytest.approx(25.0)
        assert average_answers(6, 3) == pytest.approx(2.0)

    def test_empty_knowledge_base(self, knowledge_base):
        analysis = knowledge_base.analyze_knowledge_base()

        assert analysis.total_questions == 0
        assert analysis.answer_rate == 0.0
        assert analysis.average_answers_per_question == 0.0
        assert analysis.popular_categories == []
        assert knowledge_base.get_answer_rate() == 0.0

    def test_analysis(self, knowledge_base, make_question):
        make_question("VPN drops", "The vpn disconnects", answers=["Reinstall"])
        make_question("VPN slow", "Very slow vpn", answers=["Switch server", "Use cable", "Restart"])
        make_question("Expense report", "Where do I file expenses")

        analysis = knowledge_base.analyze_knowledge_base()

        assert analysis.total_questions == 3
        assert analysis.answered_questions == 2
        assert analysis.unanswered_questions == 1
        assert analysis.answer_rate == pytest.approx(200 / 3)
        assert analysis.average_answers_per_question == pytest.approx(2.0)
        assert knowledge_base.get_answer_rate() == pytest.approx(200 / 3)
        assert len(analysis.recent_activity) == 4

    def test_analysis_for_category(self, knowledge_base, make_question):
        make_question("VPN drops", "Disconnects", answers=["Reinstall"])
        make_question("Expense report", "Where do I file it")

        analysis = knowledge_base.analyze_knowledge_base("vpn")

        assert analysis.total_questions == 1
        assert analysis.answer_rate == pytest.approx(100.0)

    def test_category_statistics(self, knowledge_base, make_question):
        make_question("Printer jammed", "printer paper")
        make_question("Printer offline", "network error")

        stats = knowledge_base.get_category_statistics()

        assert stats["Printer"] == 2
        assert stats["Network"] == 1
        assert len(stats) <= 10

    def test_unanswered_most_recent_first(self, knowledge_base, make_question, clock):
        older = make_question("Old question", "Nobody answered", created_at=clock.now() - timedelta(days=2))
        newer = make_question("New question", "Still open")
        make_question("Answered question", "Done", answers=["Yes"])

        assert [q.id for q in knowledge_base.get_unanswered_questions()] == [newer, older]

    def test_to_dict(self, knowledge_base, make_question):
        make_question("VPN drops", "Disconnects", answers=["Reinstall"])

        data = knowledge_base.analyze_knowledge_base().to_dict()

        assert data["total_questions"] == 1
        assert isinstance(data["recent_activity"][0]["start"], str)


class TestRecentActivity:

    def test_buckets_are_half_open_and_oldest_first(self, knowledge_base, make_question, clock):
        now = clock.now()
        make_question("At now", "Excluded", created_at=now)
        make_question("One week ago", "Latest bucket", answers=["a"], created_at=now - timedelta(days=7))
        make_question("Two weeks ago", "Third bucket", created_at=now - timedelta(days=14))
        make_question("Four weeks ago", "Oldest bucket", answers=["a", "b"], created_at=now - timedelta(days=28))
        make_question("Too old", "Outside", created_at=now - timedelta(days=28, seconds=1))

        activity = knowledge_base.get_recent_activity()

        assert [a.questions_count for a in activity] == [1, 0, 1, 1]
        assert [a.answers_count for a in activity] == [2, 0, 0, 1]
        assert activity[0].start == now - timedelta(days=28)
        assert activity[-1].end == now

    def test_labels(self, knowledge_base, clock):
        activity = knowledge_base.get_recent_activity()

        assert activity[-1].period == "Feb 23 - Mar 01"
        assert week_label(activity[0].start, activity[0].end) == activity[0].period

    def test_failure_is_isolated(self, knowledge_base, kb_repository, make_question):
        make_question("VPN drops", "Disconnects", answers=["Reinstall"])

        with patch.object(kb_repository, "get_questions_count_by_date_range", side_effect=RuntimeError("boom")):
            analysis = knowledge_base.analyze_knowledge_base()

        assert analysis.recent_activity == []
        assert analysis.total_questions == 1
        assert analysis.answer_rate == pytest.approx(100.0)

    def test_basic_statistics_failure_is_isolated(self, knowledge_base, kb_repository, make_question):
        make_question("Printer jammed", "printer paper")

        with patch.object(kb_repository, "get_questions_with_answers", side_effect=RuntimeError("boom")):
            analysis = knowledge_base.analyze_knowledge_base()

        assert analysis.total_questions == 0
        assert analysis.category_stats == {"Printer": 1, "Jammed": 1, "Paper": 1}
        assert len(analysis.recent_activity) == 4
