"""
OpenAI chat provider on LangChain's ChatOpenAI.

generate() serves the free-text prompts (candidate verification, bakeoff);
generate_structured() serves the schema-bound ones (proposition
classification and extraction, agentic search steps). Each call reports one
usage record to the active cost collector, counting tokens locally when the
response carries no usage metadata.
"""

from __future__ import annotations

import time
from typing import Any, NamedTuple, TypeVar

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel

from dice_kg.config.pricing import estimate_cost_usd
from dice_kg.providers.base import LLMProvider
from dice_kg.types.telemetry import CostUsageRecord
from dice_kg.utils.cost_telemetry import current_stage, record_usage
from dice_kg.utils.token_count import count_chat_tokens, count_text_tokens

T = TypeVar("T", bound=BaseModel)

# (input key, output key) spellings seen across LangChain versions
_USAGE_KEYS = (("input_tokens", "output_tokens"), ("prompt_tokens", "completion_tokens"))


class _Usage(NamedTuple):
    input_tokens: int | None
    output_tokens: int | None


def _to_int(value: Any) -> int | None:
    try:
        return None if value is None else int(value)
    except (TypeError, ValueError):
        return None


def _usage_mapping(response: Any) -> dict[str, Any] | None:
    usage = getattr(response, "usage_metadata", None)
    if isinstance(usage, dict) and usage:
        return usage
    metadata = getattr(response, "response_metadata", None)
    if isinstance(metadata, dict):
        nested = metadata.get("token_usage") or metadata.get("usage")
        if isinstance(nested, dict):
            return nested
    return None


def _extract_token_usage(response: Any) -> _Usage:
    """Token counts reported by the provider, None where it reported nothing."""
    usage = _usage_mapping(response) if response is not None else None
    if usage is None:
        return _Usage(None, None)
    for input_key, output_key in _USAGE_KEYS:
        found = _Usage(_to_int(usage.get(input_key)), _to_int(usage.get(output_key)))
        if found != (None, None):
            return found
    return _Usage(None, None)


class OpenAILLMProvider(LLMProvider):
    """
    Chat completions through ChatOpenAI.

    Args:
        api_key: Falls back to OPENAI_API_KEY when None
        model: Chat model name (default: "gpt-5-mini")
    """

    def __init__(self, api_key: str | None = None, model: str = "gpt-5-mini") -> None:
        self._api_key = api_key
        self._model = model

    @property
    def model_name(self) -> str:
        return self._model

    def with_model(self, model: str) -> OpenAILLMProvider:
        """Same credentials, different model."""
        return OpenAILLMProvider(api_key=self._api_key, model=model)

    def _chat(self, temperature: float = 0.0) -> ChatOpenAI:
        options: dict[str, Any] = {"model": self._model, "temperature": temperature}
        if self._api_key:
            options["api_key"] = self._api_key
        return ChatOpenAI(**options)

    @staticmethod
    def _messages(prompt: str, system: str | None) -> list[BaseMessage]:
        head: list[BaseMessage] = [SystemMessage(content=system)] if system else []
        return [*head, HumanMessage(content=prompt)]

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 4096,
    ) -> str:
        started = time.perf_counter_ns()
        chat = self._chat(temperature).bind(max_tokens=max_tokens)
        response = await chat.ainvoke(self._messages(prompt, system))
        text = str(response.content)

        self._report(
            "generate",
            request=[system, prompt],
            output_text=text,
            response=response,
            started_ns=started,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return text

    async def generate_structured(
        self,
        prompt: str,
        schema: type[T],
        *,
        system: str | None = None,
    ) -> T:
        """
        Parse the reply into schema via with_structured_output.

        Raises:
            ValueError: The model reply did not validate against schema
        """
        started = time.perf_counter_ns()
        chat = self._chat().with_structured_output(schema, include_raw=True)
        reply = await chat.ainvoke(self._messages(prompt, system))

        # include_raw=True yields {"raw", "parsed", "parsing_error"}
        raw: Any = None
        if isinstance(reply, dict) and "parsed" in reply:
            error = reply.get("parsing_error")
            if error is not None:
                raise ValueError(f"Structured output parsing failed for {schema.__name__}: {error}")
            parsed, raw = reply["parsed"], reply.get("raw")
        else:
            parsed = reply

        self._report(
            "generate_structured",
            request=[system, prompt],
            output_text=parsed.model_dump_json(),
            response=raw,
            started_ns=started,
            schema=schema.__name__,
        )
        return parsed

    def _report(
        self,
        operation: str,
        *,
        request: list[str | None],
        output_text: str,
        response: Any,
        started_ns: int,
        **metadata: Any,
    ) -> None:
        reported = _extract_token_usage(response)
        input_tokens = reported.input_tokens
        if input_tokens is None:
            input_tokens = count_chat_tokens([m for m in request if m], self._model)
        output_tokens = reported.output_tokens
        if output_tokens is None:
            output_tokens = count_text_tokens(output_text, self._model)

        cost, priced = estimate_cost_usd(
            self._model, input_tokens=input_tokens, output_tokens=output_tokens
        )
        record_usage(
            CostUsageRecord(
                provider="openai",
                model=self._model,
                operation=operation,
                stage=current_stage(),
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
                estimated_cost_usd=cost,
                latency_ms=(time.perf_counter_ns() - started_ns) // 1_000_000,
                estimated=None in reported,
                metadata={**metadata, "pricing_found": priced},
            )
        )
