"""LLM client abstraction for running prompts against Gemini or Claude."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from reply_assist.config import get_api_key

logger = logging.getLogger(__name__)

DEFAULT_MODELS = {
    "gemini": "gemini-2.5-flash",
    "claude": "claude-haiku-4-5-20251001",
}

MAX_OUTPUT_TOKENS = 2048


def strip_code_fences(raw: str) -> str:
    """Remove ```json fences that models like to wrap JSON in."""
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [line for line in lines if not line.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned


class LLMClient:
    """Unified interface for calling Gemini or Claude APIs."""

    def __init__(
        self,
        provider: str = "gemini",
        model: Optional[str] = None,
        timeout: float = 60,
    ):
        self.provider = provider.lower()
        self.timeout = timeout

        if self.provider not in DEFAULT_MODELS:
            raise ValueError(f"Unsupported provider: {provider}. Use 'gemini' or 'claude'.")

        self.model = model or DEFAULT_MODELS[self.provider]
        if self.provider == "gemini":
            self._init_gemini()
        else:
            self._init_claude()

    def _init_gemini(self):
        from google import genai
        from google.genai import types

        api_key = get_api_key("GEMINI_API_KEY", "gemini")
        if not api_key:
            raise ValueError(
                "GEMINI_API_KEY not found. Either:\n"
                "  • Run: reply-assist set-key gemini\n"
                "  • Or:  export GEMINI_API_KEY='your-key'"
            )
        self._gemini_client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(self.timeout * 1000)),
        )

    def _init_claude(self):
        import anthropic

        api_key = get_api_key("ANTHROPIC_API_KEY", "claude")
        if not api_key:
            raise ValueError(
                "ANTHROPIC_API_KEY not found. Either:\n"
                "  • Run: reply-assist set-key claude\n"
                "  • Or:  export ANTHROPIC_API_KEY='sk-ant-...'"
            )
        self._claude_client = anthropic.Anthropic(api_key=api_key, timeout=self.timeout)

    def run(
        self,
        system_prompt: str,
        user_message: str,
        temperature: Optional[float] = None,
        json_mode: bool = False,
    ) -> str:
        """Send system + user message to the LLM and return the text response."""
        if self.provider == "gemini":
            return self._run_gemini(system_prompt, user_message, temperature, json_mode)
        return self._run_claude(system_prompt, user_message, temperature)

    def _run_gemini(
        self,
        system_prompt: str,
        user_message: str,
        temperature: Optional[float],
        json_mode: bool,
    ) -> str:
        from google.genai import types

        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            max_output_tokens=MAX_OUTPUT_TOKENS,
            temperature=temperature,
            response_mime_type="application/json" if json_mode else None,
        )

        response = self._gemini_client.models.generate_content(
            model=self.model,
            contents=user_message,
            config=config,
        )

        # Extract text from response parts (skip thinking parts)
        text_parts = []
        if response.candidates and response.candidates[0].content:
            for part in response.candidates[0].content.parts or []:
                if part.text and not getattr(part, "thought", False):
                    text_parts.append(part.text)

        return "".join(text_parts)

    def _run_claude(
        self,
        system_prompt: str,
        user_message: str,
        temperature: Optional[float],
    ) -> str:
        kwargs: dict[str, Any] = {}
        if temperature is not None:
            kwargs["temperature"] = temperature
        response = self._claude_client.messages.create(
            model=self.model,
            max_tokens=MAX_OUTPUT_TOKENS,
            system=system_prompt,
            messages=[{"role": "user", "content": user_message}],
            **kwargs,
        )
        return "".join(block.text for block in response.content if getattr(block, "text", None))

    def run_json(
        self,
        system_prompt: str,
        user_message: str,
        temperature: Optional[float] = None,
    ) -> Any:
        """Run and parse the response as JSON.

        Raises json.JSONDecodeError (a ValueError) when the model's reply
        isn't valid JSON.
        """
        raw = self.run(system_prompt, user_message, temperature=temperature, json_mode=True)

        try:
            return json.loads(strip_code_fences(raw))
        except json.JSONDecodeError as e:
            logger.warning("Failed to parse LLM response as JSON: %s", e)
            logger.debug("Raw LLM response:\n%s", raw)
            raise
