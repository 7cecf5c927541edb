"""
Chat model for the generation step, routed by LITELLM_MODE:

  proxy   → ChatOpenAI against the LiteLLM proxy (any provider the proxy maps,
            Gemini by default)
  library → ChatLiteLLM calling litellm in-process

Temperature defaults to 0 so tool-call decisions are stable for a fixed
history. Client-side retries are off (max_retries=0); a 429 surfaces as an
exception with status_code 429 and is retried by shopbot.core.retry only.
"""

from langchain_core.language_models.chat_models import BaseChatModel

from shopbot.core.config import Settings, get_settings


def get_chat_model(
    settings: Settings | None = None,
    *,
    model: str | None = None,
    temperature: float | None = None,
) -> BaseChatModel:
    """
    Return a configured chat model.

    Args:
        settings:    Settings to read from. Defaults to get_settings().
        model:       Override the model name. Defaults to settings.primary_model.
        temperature: Sampling temperature. Defaults to settings.temperature (0).
    """
    settings = settings or get_settings()
    model_name = model or settings.primary_model
    if temperature is None:
        temperature = settings.temperature

    if settings.litellm_mode == "library":
        from langchain_community.chat_models import ChatLiteLLM

        return ChatLiteLLM(
            model=model_name,
            temperature=temperature,
            max_retries=0,
        )
    else:
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            base_url=settings.litellm_base_url,
            api_key=settings.litellm_master_key,
            model=model_name,
            temperature=temperature,
            max_retries=0,
        )
