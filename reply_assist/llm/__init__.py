from reply_assist.llm.client import LLMClient
from reply_assist.llm.loader import PromptTemplate, load_prompt
from reply_assist.llm.parsing import parse_suggestions

__all__ = [
    "LLMClient",
    "PromptTemplate",
    "load_prompt",
    "parse_suggestions",
]
