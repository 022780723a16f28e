"""
LLM access for price estimation.
Wraps the LangChain chat models behind a small pricing-client interface.
"""

import asyncio
import json
from typing import Optional

from langchain_openai import ChatOpenAI
from langchain_google_genai import ChatGoogleGenerativeAI

from prpo.utils.logging import setup_logging
from prpo.config import get_config


logger = setup_logging(__name__)
config = get_config()


def get_llm(model_name: str = None):
    """Get LLM instance based on provider."""
    model = model_name or config.LLM_MODEL

    if config.LLM_PROVIDER == "gemini":
        return ChatGoogleGenerativeAI(
            model=model,
            google_api_key=config.GOOGLE_API_KEY,
            temperature=config.LLM_TEMPERATURE,
            max_output_tokens=config.LLM_MAX_TOKENS,
        )
    else:
        return ChatOpenAI(
            model=model,
            api_key=config.LLM_API_KEY,
            base_url=config.LLM_API_BASE,
            temperature=config.LLM_TEMPERATURE,
            max_tokens=config.LLM_MAX_TOKENS,
        )


def get_llm_response_text(response) -> str:
    """
    Extract textual content from a chat model response.

    Gemini can return content as a list of parts; those are joined.
    """
    if isinstance(response, str):
        return response

    content = getattr(response, "content", None)
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, dict):
                parts.append(str(part.get("text", "")))
            else:
                parts.append(str(part))
        content = "".join(parts)

    if content and str(content).strip():
        return str(content)

    preview = str(response)
    if len(preview) > 500:
        preview = preview[:500] + "..."
    raise ValueError(f"Could not extract text content from LLM response: {preview}")


MOCK_RESPONSE_TEMPLATE = """```json
{body}
```"""


class PricingClient:
    """Something that turns a pricing prompt into raw model text."""

    async def estimate(self, prompt: str) -> Optional[str]:
        raise NotImplementedError


class LLMPricingClient(PricingClient):
    """
    Pricing client backed by a LangChain chat model.

    Errors and timeouts propagate; the price estimator decides what a failed
    call means for the run.
    """

    def __init__(self, llm=None, timeout: float = None, mock: bool = None):
        if mock is None:
            mock = config.LLM_MOCK_MODE or config.LLM_PROVIDER == "mock"
        self.mock = mock
        self.timeout = timeout if timeout is not None else config.LLM_TIMEOUT
        self._llm = llm

    @property
    def llm(self):
        if self._llm is None:
            self._llm = get_llm()
        return self._llm

    async def estimate(self, prompt: str) -> Optional[str]:
        if self.mock:
            logger.info("Mock mode enabled - returning sample price estimate")
            body = json.dumps({
                "estimated_unit_price": config.LLM_MOCK_UNIT_PRICE,
                "rationale": "Mock mode - not a real estimate",
                "confidence": "medium",
            })
            return MOCK_RESPONSE_TEMPLATE.format(body=body)

        response = await asyncio.wait_for(self.llm.ainvoke(prompt), timeout=self.timeout)
        return get_llm_response_text(response).strip()


def get_pricing_client() -> Optional[PricingClient]:
    """Build the configured pricing client, or None when no credentials exist."""
    if not config.pricing_enabled:
        logger.info("No LLM credentials configured - external price estimation disabled")
        return None
    return LLMPricingClient()
