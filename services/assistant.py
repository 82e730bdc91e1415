"""Manager assistant: answers, summaries and insights over the knowledge base.

Text generation is delegated to an external provider when one is configured.
Whenever the provider is missing, fails or returns nothing, a rule-based
response built from the knowledge base is used instead.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import requests

from services.categories import infer_category
from services.knowledge_base import KnowledgeBaseAnalysis, KnowledgeBaseService, answer_rate
from services.shared.clock import Clock, SystemClock
from services.shared.records import QuestionRecord

logger = logging.getLogger(__name__)

SOURCE_AI = "AI"
SOURCE_RULE_BASED = "Rule-Based"

RELATED_IDS_LIMIT = 5
KEY_TOPICS_LIMIT = 3
TOPIC_STOP_WORDS = frozenset({"the", "a", "an", "is", "are", "how", "what", "why", "when", "where"})

COMPANY_TOPICS = [
    "Password", "VPN", "Finance", "HR", "IT", "Software", "Hardware",
    "Network", "Email", "Benefits", "Onboarding", "Expense", "Travel",
]


class SummaryProvider(Protocol):
    """Summarizes a question thread. Returns None on failure."""

    def summarize(self, title: str, content: str, answers: Sequence[str]) -> Optional[str]:
        ...


class AnswerProvider(Protocol):
    """Generates a free-text answer for a prompt. Returns None on failure."""

    def generate(self, prompt: str) -> Optional[str]:
        ...


class TextProvider(SummaryProvider, AnswerProvider, Protocol):
    pass


class HuggingFaceClient:
    """Client for the HuggingFace inference API."""

    def __init__(self,
                 api_key: Optional[str],
                 summary_model_url: str,
                 assistant_model_url: str,
                 timeout_seconds: float = 15,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.summary_model_url = summary_model_url
        self.assistant_model_url = assistant_model_url
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> 'HuggingFaceClient':
        return cls(
            api_key=settings.get('api_key'),
            summary_model_url=settings['summary_model_url'],
            assistant_model_url=settings['assistant_model_url'],
            timeout_seconds=settings.get('timeout_seconds', 15),
        )

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _post(self, url: str, payload: Dict[str, Any], result_field: str) -> Optional[str]:
        if not self.enabled:
            return None
        try:
            response = self.session.post(
                url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout_seconds,
            )
            if response.status_code != 200:
                logger.warning(f"Inference API returned {response.status_code}: {response.text[:200]}")
                return None
            results = response.json()
            if isinstance(results, list) and results and isinstance(results[0], dict):
                text = results[0].get(result_field)
                return text.strip() if text and text.strip() else None
            logger.warning(f"Unexpected inference API payload: {str(results)[:200]}")
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Inference API call failed, using fallback: {e}")
        return None

    def summarize(self, title: str, content: str, answers: Sequence[str]) -> Optional[str]:
        text = f"{title}. {content}"
        if answers:
            text += " Answers: " + " ".join(answers)
        payload = {
            "inputs": text,
            "parameters": {"max_length": 150, "min_length": 40, "do_sample": False},
        }
        return self._post(self.summary_model_url, payload, "summary_text")

    def generate(self, prompt: str) -> Optional[str]:
        payload = {
            "inputs": prompt,
            "parameters": {"max_length": 300, "min_length": 50, "temperature": 0.7, "do_sample": True},
        }
        return self._post(self.assistant_model_url, payload, "generated_text")


@dataclass
class AssistantResponse:
    response: str
    related_question_ids: List[int] = field(default_factory=list)
    source: str = SOURCE_RULE_BASED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'response': self.response,
            'related_question_ids': self.related_question_ids,
            'source': self.source,
        }


# ----- rule-based text helpers -----

def extract_key_topics(text: str, limit: int = KEY_TOPICS_LIMIT) -> List[str]:
    """First distinct words longer than three characters."""
    topics: List[str] = []
    for word in text.lower().split():
        if len(word) > 3 and word not in TOPIC_STOP_WORDS and word not in topics:
            topics.append(word)
            if len(topics) == limit:
                break
    return topics


def summarize_answer(answer: str) -> str:
    """First reasonably long sentence, or the first 100 characters."""
    for sentence in answer.split('.'):
        if len(sentence.strip()) > 20:
            return sentence.strip() + "."
    if len(answer) <= 100:
        return answer
    return answer[:100] + "..."


def main_points(answers: Sequence[str]) -> str:
    return "; ".join(f"{i}) {summarize_answer(a)}" for i, a in enumerate(answers[:3], start=1))


def rule_based_summary(title: str, content: str, answers: Sequence[str]) -> str:
    topics = extract_key_topics(f"{title} {content}")
    summary = f"This discussion focuses on {', '.join(topics)}. "
    if not answers:
        summary += "The question has not received any answers yet."
    elif len(answers) == 1:
        summary += f"One solution was provided: {summarize_answer(answers[0])}"
    else:
        summary += f"Among {len(answers)} responses, key suggestions include: {main_points(answers)}"
    return summary


def query_topics(query: str) -> List[str]:
    query_lower = query.lower()
    return [topic for topic in COMPANY_TOPICS if topic.lower() in query_lower]


def build_context(questions: Sequence[QuestionRecord]) -> str:
    lines = ["Knowledge Base Context:", ""]
    for question in questions[:5]:
        lines.append(f"Q: {question.title}")
        lines.append(f"A: {question.answers[0].content if question.has_answers else 'No answers yet'}")
        lines.append("")
    return "\n".join(lines)


def build_prompt(query: str, context: str) -> str:
    return (
        "You are a helpful AI assistant for a company knowledge base. Use the following context "
        "from existing questions and answers to respond helpfully.\n\n"
        f"{context}\n\n"
        f"User Question: {query}\n\n"
        "Please provide a helpful response based on the knowledge base context. If the context "
        "doesn't contain relevant information, suggest asking the community. Keep your response "
        "concise and practical."
    )


def knowledge_base_insights(analysis: KnowledgeBaseAnalysis) -> str:
    insights = []

    if analysis.answer_rate > 70:
        insights.append("Excellent community engagement with high answer rate")
    elif analysis.answer_rate > 50:
        insights.append("Good community participation with moderate answer rate")
    else:
        insights.append("Opportunity to improve community engagement")

    if analysis.total_questions > 100:
        insights.append("Comprehensive knowledge base with extensive coverage")
    elif analysis.total_questions > 50:
        insights.append("Growing knowledge base with good content diversity")
    else:
        insights.append("Knowledge base is developing, consider adding more content")

    if analysis.popular_categories:
        insights.append(f"Top topics include: {', '.join(analysis.popular_categories[:3])}")

    return ". ".join(insights) + "."


def _group_by_category(questions: Sequence[QuestionRecord],
                       categories: Sequence[str]) -> List[Tuple[str, List[QuestionRecord]]]:
    """Questions grouped by inferred category, largest group first."""
    groups: Dict[str, List[QuestionRecord]] = {}
    for question in questions:
        category = infer_category(question, categories)
        if category:
            groups.setdefault(category, []).append(question)
    return sorted(groups.items(), key=lambda item: -len(item[1]))


class AssistantService:
    """Answers manager queries, preferring the external provider."""

    def __init__(self,
                 knowledge_base: KnowledgeBaseService,
                 provider: Optional[TextProvider] = None,
                 clock: Optional[Clock] = None):
        self.knowledge_base = knowledge_base
        self.provider = provider
        self.clock = clock or SystemClock()

    def generate_summary(self, title: str, content: str, answers: Sequence[str]) -> Tuple[str, str]:
        """Summary text and its source."""
        if self.provider is not None:
            try:
                summary = self.provider.summarize(title, content, answers)
            except Exception as e:
                logger.warning(f"Summary provider failed, using fallback: {e}")
                summary = None
            if summary:
                return summary, SOURCE_AI
        return rule_based_summary(title, content, answers), SOURCE_RULE_BASED

    def ask(self, query: str) -> AssistantResponse:
        logger.info(f"Assistant request: {query}")
        relevant = self.knowledge_base.get_relevant_questions(query)
        related_ids = [q.id for q in relevant[:RELATED_IDS_LIMIT]]

        if self.provider is not None:
            try:
                generated = self.provider.generate(build_prompt(query, build_context(relevant)))
            except Exception as e:
                logger.warning(f"Assistant provider failed, using fallback: {e}")
                generated = None
            if generated:
                return AssistantResponse(generated, related_ids, SOURCE_AI)

        return AssistantResponse(self.rule_based_response(query, relevant), related_ids, SOURCE_RULE_BASED)

    def rule_based_response(self, query: str, questions: Sequence[QuestionRecord]) -> str:
        query_lower = query.lower()
        topics = query_topics(query)

        if any(word in query_lower for word in ("common", "frequent", "often")):
            body = self._common_issues(questions, topics)
        elif any(phrase in query_lower for phrase in ("how to", "how do i", "how can i")):
            body = self._how_to(questions)
        elif any(word in query_lower for word in ("trend", "pattern", "analysis")):
            body = self._trend_analysis(questions)
        else:
            body = self._general(questions, query, topics)

        if questions:
            body += f"\n\nI found {len(questions)} related questions in our knowledge base."
        else:
            body += "\n\nNo specific matches found in our knowledge base. Consider asking this question to the community."
        return body

    def analyze(self, category: Optional[str] = None) -> Dict[str, Any]:
        analysis = self.knowledge_base.analyze_knowledge_base(category)
        return {
            'insights': knowledge_base_insights(analysis),
            'statistics': analysis.to_dict(),
            'popular_categories': analysis.popular_categories,
            'generated_at': self.clock.now().isoformat(),
        }

    def categories(self) -> List[str]:
        return self.knowledge_base.extract_categories_from_questions()

    # ----- response builders -----

    def _known_categories(self) -> List[str]:
        return self.knowledge_base.extract_categories_from_questions()

    def _common_issues(self, questions: Sequence[QuestionRecord], topics: Sequence[str]) -> str:
        if topics:
            lines = [f"Based on questions about {', '.join(topics)}, here are common topics:", ""]
        else:
            lines = ["Based on our knowledge base, here are common discussion topics:", ""]

        groups = _group_by_category(questions, self._known_categories())[:3]
        if groups:
            for category, members in groups:
                lines.append(f"• **{category}**: {len(members)} questions (e.g., \"{members[0].title}\")")
        else:
            lines.append("• IT Support: Various technical issues")
            lines.append("• HR Processes: Employee-related questions")
            lines.append("• Finance: Expense and reimbursement topics")
        return "\n".join(lines)

    def _how_to(self, questions: Sequence[QuestionRecord]) -> str:
        if not questions:
            return ("I can help with procedural questions. Based on your query, here are some common "
                    "how-to topics in our knowledge base: IT procedures, HR processes, and finance guidelines.")

        lines = ["Here are some solutions from our knowledge base:", ""]
        answered = [q for q in questions if q.has_answers][:3]
        if answered:
            for question in answered:
                best = max(question.answers, key=lambda a: len(a.content))
                lines.append(f"• **{question.title}**: {summarize_answer(best.content)}")
        else:
            lines.append("• Check our IT documentation for technical procedures")
            lines.append("• Review HR guidelines for employee-related processes")
            lines.append("• Consult finance department for expense-related questions")
        return "\n".join(lines)

    def _trend_analysis(self, questions: Sequence[QuestionRecord]) -> str:
        if not questions:
            return ("I can analyze trends in our knowledge base. Currently, there's not enough data "
                    "for a comprehensive analysis.")

        month_ago = self.clock.now() - timedelta(days=30)
        recent = [q for q in questions if q.created_at >= month_ago]
        groups = _group_by_category(questions, self._known_categories())[:5]

        lines = ["**Knowledge Base Trends Analysis**", ""]
        lines.append(f"• Recent activity: {len(recent)} questions in the last month")
        if groups:
            lines.append(f"• Most discussed topics: {', '.join(category for category, _ in groups)}")
        answered = sum(1 for q in questions if q.has_answers)
        if answered:
            lines.append(f"• Answer rate: {answer_rate(answered, len(questions)):.1f}% of questions have answers")
        return "\n".join(lines)

    def _general(self, questions: Sequence[QuestionRecord], query: str, topics: Sequence[str]) -> str:
        if not questions:
            return (f"I understand you're asking about \"{query}\". While I don't have specific information "
                    "on this topic in our knowledge base yet, this would be a great question to ask our community.")

        if topics:
            lines = [f"Based on your question about {', '.join(topics)}, I found relevant information:", ""]
        else:
            lines = [f"Based on your question about \"{query}\", I found relevant information in our knowledge base:", ""]

        categories = self._known_categories()
        for question in questions[:3]:
            lines.append(f"• **{question.title}**")
            if question.has_answers:
                lines.append(f"  - {question.answer_count} answers available")
            category = infer_category(question, categories)
            if category:
                lines.append(f"  - Category: {category}")
            lines.append("")
        return "\n".join(lines)
