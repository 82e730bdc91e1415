"""Domain errors raised by the write paths."""


class KnowledgeBaseError(Exception):
    """Base class for knowledge base errors."""


class EntityValidationError(KnowledgeBaseError):
    """Input violates the stored field bounds or is blank."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class QuestionNotFoundError(KnowledgeBaseError):
    """An answer referenced a question that does not exist."""

    def __init__(self, question_id: int):
        super().__init__(f"Question {question_id} does not exist")
        self.question_id = question_id


class StoreUnavailableError(KnowledgeBaseError):
    """A write could not be committed to the store."""
