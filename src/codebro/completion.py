from __future__ import annotations

from typing import TYPE_CHECKING, Any

import openai
from openai import OpenAI

from codebro.config import API_KEY_ENV_VARS, Message
from codebro.exceptions import CompletionError, MissingApiKeyError
from codebro.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from codebro.settings import Settings


def build_system_message(model: str, context_hint: str = "") -> Message:
    """Short system instruction prepended to every request; it is paid for on each call."""
    context = f" Context: {context_hint}." if context_hint else ""
    return Message(
        role="system",
        content=f"You are {model}, an expert AI developer.{context} Provide expert-level code solutions using markdown.",
    )


class CompletionClient:
    """Text-in, text-out access to an OpenAI-compatible chat completion API.

    Failures are reported once, as a `CompletionError` with a readable
    message. The SDK's own retries are disabled.
    """

    def __init__(self, settings: Settings, client: Any = None) -> None:  # noqa: ANN401
        self.settings = settings
        if client is None:
            if not settings.api_key:
                raise MissingApiKeyError(env_vars=API_KEY_ENV_VARS)
            client = OpenAI(base_url=settings.api_base_url, api_key=settings.api_key, max_retries=0)
        self._client = client

    def send(self, history: Sequence[Message], context_hint: str = "") -> str:
        """Send the conversation and return the assistant's reply.

        Args:
            history (Sequence[Message]): the conversation so far, oldest first
            context_hint (str): short description of the request, added to the system message

        Raises:
            CompletionError: on transport failure, an error status, an empty
                answer or a content-filtered answer.

        Returns:
            str: the reply text
        """
        messages = [build_system_message(self.settings.model, context_hint), *history]
        payload = [m.model_dump() for m in messages]
        logger.info("completion_request", model=self.settings.model, messages=len(payload))

        try:
            response = self._client.chat.completions.create(
                model=self.settings.model,
                messages=payload,
                temperature=self.settings.temperature,
                stream=False,
            )
        except openai.APIStatusError as e:
            raise CompletionError(message=_status_error_message(e)) from e
        except openai.APIConnectionError as e:
            raise CompletionError(message=f"A connection error occurred while talking to the API: {e}") from e
        except openai.OpenAIError as e:
            raise CompletionError(message=str(e) or type(e).__name__) from e

        choices = getattr(response, "choices", None)
        if not choices:
            raise CompletionError(message="API returned success but 'choices' was empty.")

        choice = choices[0]
        if getattr(choice, "finish_reason", None) == "content_filter":
            raise CompletionError(message="The response was omitted due to content filters.")

        message = getattr(choice, "message", None)
        content = getattr(message, "content", None)
        if content is None:
            raise CompletionError(message="The API returned success but message content was missing.")

        usage = getattr(response, "usage", None)
        logger.info(
            "completion_response",
            chars=len(content),
            prompt_tokens=getattr(usage, "prompt_tokens", None),
            completion_tokens=getattr(usage, "completion_tokens", None),
        )
        return content


def _status_error_message(error: openai.APIStatusError) -> str:
    body = error.body if isinstance(error.body, dict) else {}
    detail = body.get("error", body)
    if isinstance(detail, dict) and detail.get("message"):
        return str(detail["message"])
    return f"API Error: {error.status_code} {error.message}"
