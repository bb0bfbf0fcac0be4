"""Question drafting for assessment authors."""
from .chat_client import ChatCompletionsClient, ChatConfig
from .question_generator import GeneratedQuestion, QuestionGenerator, extract_json_object, fallback_question

__all__ = [
    "ChatCompletionsClient",
    "ChatConfig",
    "GeneratedQuestion",
    "QuestionGenerator",
    "extract_json_object",
    "fallback_question",
]
