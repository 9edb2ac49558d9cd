from __future__ import annotations
import base64
import logging
import httpx
from typing import Any, Dict, List, Optional
from .adapters import ApiKeyLoader, GenerationRequest, credential_loader
from .errors import AdapterTransportError, ConfigurationError
from .settings import Settings, settings

logger = logging.getLogger(__name__)


def to_gemini_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
	"""Translate a JSON-schema style dict to the Gemini `responseSchema` dialect (upper-case types)."""
	out: Dict[str, Any] = {}
	for key, value in schema.items():
		if key == "type" and isinstance(value, str):
			out[key] = value.upper()
		elif key == "properties" and isinstance(value, dict):
			out[key] = {name: to_gemini_schema(sub) for name, sub in value.items()}
		elif key == "items" and isinstance(value, dict):
			out[key] = to_gemini_schema(value)
		else:
			out[key] = value
	return out


class GeminiClient:
	provider_name = "gemini"

	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		cfg: Optional[Settings] = None,
		api_key_loader: Optional[ApiKeyLoader] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
		timeout: float = 30,
	) -> None:
		cfg = cfg or settings
		# An explicit key pins the credential; otherwise it is re-read on every call
		self._api_key = api_key
		self._api_key_loader = api_key_loader or credential_loader("gemini_api_key")
		self.model = model or cfg.gemini_model_fast
		self.provider = cfg.gemini_provider
		if self.provider == "vertex":
			region = cfg.vertex_region
			project = cfg.vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

	def _resolve_api_key(self) -> str:
		key = self._api_key or self._api_key_loader()
		if not key:
			raise ConfigurationError("GEMINI_API_KEY is not configured")
		return key

	def build_payload(self, request: GenerationRequest) -> Dict[str, Any]:
		parts: List[Dict[str, Any]] = []
		if request.image is not None:
			parts.append({
				"inline_data": {
					"mime_type": request.image.mime_type,
					"data": base64.b64encode(request.image.data).decode("ascii"),
				}
			})
		parts.append({"text": request.prompt})
		payload: Dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
		generation_config: Dict[str, Any] = {}
		if request.response_schema is not None:
			generation_config["responseMimeType"] = "application/json"
			generation_config["responseSchema"] = to_gemini_schema(request.response_schema)
		if request.thinking_budget is not None:
			try:
				budget_tokens = int(request.thinking_budget)
			except (TypeError, ValueError):
				budget_tokens = 0
			generation_config["thinkingConfig"] = {"thinkingBudget": budget_tokens}
		if generation_config:
			payload["generationConfig"] = generation_config
		return payload

	async def generate(self, request: GenerationRequest) -> str:
		api_key = self._resolve_api_key()
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = api_key
		else:
			headers["x-goog-api-key"] = api_key
		payload = self.build_payload(request)
		kwargs: Dict[str, Any] = {"params": params, "headers": headers, "json": payload}
		if request.timeout is not None:
			kwargs["timeout"] = request.timeout
		try:
			r = await self._client.post(self.base_url, **kwargs)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			status = http_err.response.status_code
			# Never echo the request URL: AI Studio carries the key in the query string
			raise AdapterTransportError(
				f"Gemini returned HTTP {status}: {http_err.response.text[:300]}",
				status_code=status,
				provider=self.provider_name,
			) from None
		except httpx.TimeoutException:
			raise AdapterTransportError(f"Gemini call timed out (model={self.model})", provider=self.provider_name) from None
		except httpx.RequestError as net_err:
			raise AdapterTransportError(
				f"Gemini request failed: {type(net_err).__name__}", provider=self.provider_name
			) from None
		return self._extract_text(r)

	def _extract_text(self, r: httpx.Response) -> str:
		try:
			data = r.json()
			candidate = data["candidates"][0]
			parts = candidate["content"]["parts"]
		except (ValueError, KeyError, IndexError, TypeError):
			raise AdapterTransportError(
				f"Unexpected Gemini response: {r.text[:300]}", provider=self.provider_name
			) from None
		# Thought summaries are not part of the answer
		texts = [p.get("text", "") for p in parts if isinstance(p, dict) and not p.get("thought")]
		return "".join(texts)

	async def aclose(self) -> None:
		await self._client.aclose()
