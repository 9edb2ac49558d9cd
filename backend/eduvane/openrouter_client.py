from __future__ import annotations
import base64
import httpx
from typing import Any, Dict, List, Optional
from .adapters import ApiKeyLoader, GenerationRequest, credential_loader
from .errors import AdapterTransportError, ConfigurationError
from .settings import Settings, settings

# Keys only the Gemini schema dialect understands
_GEMINI_ONLY_KEYS = {"propertyOrdering", "nullable"}


def to_json_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
	out: Dict[str, Any] = {}
	for key, value in schema.items():
		if key in _GEMINI_ONLY_KEYS:
			continue
		if key == "properties" and isinstance(value, dict):
			out[key] = {name: to_json_schema(sub) for name, sub in value.items()}
		elif key == "items" and isinstance(value, dict):
			out[key] = to_json_schema(value)
		else:
			out[key] = value
	return out


def object_root(schema: Dict[str, Any], wrapper: str = "questions") -> Dict[str, Any]:
	# Structured outputs on OpenAI-family models need an object at the root
	if schema.get("type") == "object":
		return schema
	return {
		"type": "object",
		"properties": {wrapper: schema},
		"required": [wrapper],
		"additionalProperties": False,
	}


class OpenRouterClient:
	"""Chat-completions adapter for OpenRouter-hosted models."""

	provider_name = "openrouter"

	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		model: Optional[str] = None,
		cfg: Optional[Settings] = None,
		api_key_loader: Optional[ApiKeyLoader] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
		timeout: float = 30,
	) -> None:
		cfg = cfg or settings
		self._api_key = api_key
		self._api_key_loader = api_key_loader or credential_loader("openrouter_api_key")
		self.model = model or cfg.openrouter_model_fast
		self.base_url = cfg.openrouter_base_url
		self._static_headers = {
			"Content-Type": "application/json",
			"HTTP-Referer": cfg.openrouter_referer,
			"X-Title": cfg.openrouter_title,
		}
		self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

	def _headers(self) -> Dict[str, str]:
		key = self._api_key or self._api_key_loader()
		if not key:
			raise ConfigurationError("OPENROUTER_API_KEY is not configured")
		headers = {k: v for k, v in self._static_headers.items() if v}
		headers["Authorization"] = f"Bearer {key}"
		return headers

	def build_payload(self, request: GenerationRequest) -> Dict[str, Any]:
		content: List[Dict[str, Any]] = []
		if request.image is not None:
			encoded = base64.b64encode(request.image.data).decode("ascii")
			content.append({
				"type": "image_url",
				"image_url": {"url": f"data:{request.image.mime_type};base64,{encoded}"},
			})
		content.append({"type": "text", "text": request.prompt})
		payload: Dict[str, Any] = {
			"model": self.model,
			"messages": [{"role": "user", "content": content}],
		}
		if request.response_schema is not None:
			payload["response_format"] = {
				"type": "json_schema",
				"json_schema": {"name": "response", "strict": False, "schema": object_root(to_json_schema(request.response_schema))},
			}
		if request.thinking_budget:
			payload["reasoning"] = {"max_tokens": int(request.thinking_budget)}
		return payload

	async def generate(self, request: GenerationRequest) -> str:
		headers = self._headers()
		kwargs: Dict[str, Any] = {"headers": headers, "json": self.build_payload(request)}
		if request.timeout is not None:
			kwargs["timeout"] = request.timeout
		try:
			r = await self._client.post(self.base_url, **kwargs)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			status = http_err.response.status_code
			raise AdapterTransportError(
				f"OpenRouter returned HTTP {status}: {http_err.response.text[:300]}",
				status_code=status,
				provider=self.provider_name,
			) from None
		except httpx.TimeoutException:
			raise AdapterTransportError(f"OpenRouter call timed out (model={self.model})", provider=self.provider_name) from None
		except httpx.RequestError as net_err:
			raise AdapterTransportError(
				f"OpenRouter request failed: {type(net_err).__name__}", provider=self.provider_name
			) from None
		try:
			data = r.json()
			content = data["choices"][0]["message"]["content"]
		except (ValueError, KeyError, IndexError, TypeError):
			raise AdapterTransportError(
				f"Unexpected OpenRouter response: {r.text[:300]}", provider=self.provider_name
			) from None
		return content or ""

	async def aclose(self) -> None:
		await self._client.aclose()
