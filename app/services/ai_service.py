import logging
from typing import Optional
import httpx

from app.config import settings
from app.errors import AnalysisProviderError
from app.schemas.preferences import ProviderType, UserSettings

logger = logging.getLogger(__name__)


class AnalysisClient:
    """Sends a prompt to the configured text-generation provider and returns its text."""

    def __init__(
        self,
        provider_type: ProviderType,
        model: str,
        endpoint_url: str = "",
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        max_tokens: int = 500,
        temperature: float = 0.7,
    ):
        self.provider_type = ProviderType(provider_type)
        self.model = model
        if self.provider_type == ProviderType.LOCAL_MODEL:
            self.endpoint_url = endpoint_url or settings.local_model_url
        else:
            self.endpoint_url = endpoint_url or settings.openai_url
        self.api_key = api_key
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature

    @classmethod
    def from_user_settings(cls, user_settings: UserSettings) -> "AnalysisClient":
        return cls(
            provider_type=user_settings.provider_type,
            model=user_settings.model,
            endpoint_url=user_settings.endpoint_url,
            api_key=user_settings.api_key,
            timeout=settings.ai_timeout_seconds,
            max_tokens=settings.ai_max_tokens,
            temperature=settings.ai_temperature,
        )

    async def generate(self, prompt: str) -> str:
        """Return the model's text, raising AnalysisProviderError when it has none."""
        logger.info("Sending prompt to %s model %s", self.provider_type.value, self.model)
        try:
            if self.provider_type == ProviderType.LOCAL_MODEL:
                text = await self._call_ollama(prompt)
            else:
                text = await self._call_openai_compatible(prompt)
        except httpx.HTTPError as e:
            raise AnalysisProviderError(
                f"Error calling {self.provider_type.value} model {self.model}: {e}"
            ) from e

        if not text or not text.strip():
            raise AnalysisProviderError(f"No response from model {self.model}")
        logger.debug("AI response: %s", text[:100])
        return text

    async def _call_ollama(self, prompt: str) -> Optional[str]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self.endpoint_url,
                json={
                    "model": self.model,
                    "prompt": prompt,
                    "stream": False,
                    "options": {"temperature": self.temperature}
                }
            )
            response.raise_for_status()
            try:
                return response.json().get("response", "")
            except (ValueError, AttributeError) as e:
                raise AnalysisProviderError(f"Unreadable local model response: {e}") from e

    async def _call_openai_compatible(self, prompt: str) -> Optional[str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self.endpoint_url,
                headers=headers,
                json={
                    "model": self.model,
                    "messages": [{"role": "user", "content": prompt}],
                    "max_tokens": self.max_tokens,
                    "temperature": self.temperature,
                }
            )
            response.raise_for_status()
            try:
                choices = response.json().get("choices") or []
                return choices[0]["message"]["content"]
            except (ValueError, AttributeError, IndexError, KeyError, TypeError) as e:
                raise AnalysisProviderError(f"Unexpected response shape from {self.endpoint_url}") from e

    async def check_available(self) -> bool:
        """True when the local model server answers its tag listing."""
        if self.provider_type != ProviderType.LOCAL_MODEL:
            return bool(self.endpoint_url)
        base = self.endpoint_url.split("/api/")[0]
        try:
            async with httpx.AsyncClient(timeout=2.0) as client:
                response = await client.get(f"{base}/api/tags")
            return response.status_code == 200
        except httpx.HTTPError:
            return False
