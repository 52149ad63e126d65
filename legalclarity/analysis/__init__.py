from .client import AnalysisClient, TGIAnalysisClient
from .parser import AnalysisResponseError, ResponseParser
from .prompts import PromptBuilder
from .schemas import (
    AnswerQuestionOutput,
    AnswerQuestionRequest,
    ConversationTurn,
    HumanizeOutput,
    HumanizeRequest,
    SummarizeOutput,
    SummarizeRequest,
)

__all__ = [
    "AnalysisClient",
    "AnalysisResponseError",
    "AnswerQuestionOutput",
    "AnswerQuestionRequest",
    "ConversationTurn",
    "HumanizeOutput",
    "HumanizeRequest",
    "PromptBuilder",
    "ResponseParser",
    "SummarizeOutput",
    "SummarizeRequest",
    "TGIAnalysisClient",
]
