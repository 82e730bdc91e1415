"""Question, knowledge base and assistant services."""
