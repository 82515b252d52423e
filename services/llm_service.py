import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict

import requests

from config import settings
from core.exceptions import BackendError, InvalidArgumentError
from core.interfaces import ILLMService

logger = logging.getLogger(settings.LOGGER_NAME)

class OllamaLLMService(ILLMService):
    """A service to interact with a local LLM API (e.g., Ollama)."""

    def __init__(
        self,
        base_url: str = settings.LLM_BASE_URL,
        model: str = settings.LLM_MODEL_NAME,
        timeout: int = settings.REQUEST_TIMEOUT,
        temperature: float = settings.LLM_TEMPERATURE
    ):
        """
        Initializes the LLMService.

        Args:
            base_url: The base URL of the LLM API.
            model: The name of the model to use.
            timeout: The request timeout in seconds.
            temperature: Sampling temperature passed to the model.
        """
        self.base_url = base_url.rstrip('/')
        self.model = model
        self.timeout = timeout
        self.temperature = temperature

    def _payload(self, prompt: str, stream: bool) -> Dict[str, Any]:
        if not prompt or not prompt.strip():
            logger.warning("LLM called with an empty prompt.")
            raise InvalidArgumentError("Empty prompt provided")
        return {
            'model': self.model,
            'prompt': prompt,
            'stream': stream,
            'options': {'temperature': self.temperature}
        }

    def _translate_error(self, e: requests.exceptions.RequestException) -> BackendError:
        if isinstance(e, requests.exceptions.Timeout):
            logger.error(f"LLM request timed out after {self.timeout} seconds.")
            return BackendError("LLM request timed out")
        if isinstance(e, requests.exceptions.ConnectionError):
            logger.error(f"Cannot connect to LLM at {self.base_url}. Is the service running?")
            return BackendError("Cannot connect to LLM service")
        if isinstance(e, requests.exceptions.HTTPError) and e.response is not None:
            logger.error(f"LLM service returned an error: {e.response.status_code} {e.response.text}")
            return BackendError(f"LLM error: {e.response.status_code}")
        logger.error(f"LLM request failed: {e}")
        return BackendError(f"LLM request failed: {e}")

    def _generate(self, payload: Dict[str, Any]) -> str:
        try:
            response = requests.post(
                f'{self.base_url}/api/generate',
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()  # Raises an HTTPError for bad responses (4xx or 5xx)
            result = response.json()
        except requests.exceptions.RequestException as e:
            raise self._translate_error(e) from e
        except ValueError as e:
            raise BackendError("Malformed response from LLM") from e

        if result.get('error'):
            raise BackendError(f"LLM error: {result['error']}")
        if 'response' not in result:
            logger.error("LLM response was malformed.")
            raise BackendError("Malformed response from LLM")
        return result['response']

    async def complete(self, prompt: str) -> str:
        """Sends a prompt to the LLM and returns the whole response text."""
        payload = self._payload(prompt, stream=False)
        logger.info(f"Sending prompt to LLM model '{self.model}'...")
        answer = await asyncio.to_thread(self._generate, payload)
        logger.info("Successfully received response from LLM.")
        return answer

    def _open_stream(self, payload: Dict[str, Any]) -> requests.Response:
        try:
            response = requests.post(
                f'{self.base_url}/api/generate',
                json=payload,
                timeout=self.timeout,
                stream=True
            )
            response.raise_for_status()
            return response
        except requests.exceptions.RequestException as e:
            raise self._translate_error(e) from e

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        """
        Streams response fragments as the model produces them.

        The endpoint answers with newline-delimited JSON objects; each
        carries a ``response`` fragment until one reports ``done``.
        """
        payload = self._payload(prompt, stream=True)
        logger.info(f"Streaming prompt to LLM model '{self.model}'...")
        response = await asyncio.to_thread(self._open_stream, payload)
        lines = response.iter_lines(decode_unicode=True)
        try:
            while True:
                line = await asyncio.to_thread(next, lines, None)
                if line is None:
                    break
                if not line:
                    continue
                try:
                    event = json.loads(line)
                except ValueError as e:
                    raise BackendError("Malformed stream event from LLM") from e
                if event.get('error'):
                    raise BackendError(f"LLM error: {event['error']}")
                fragment = event.get('response')
                if fragment:
                    yield fragment
                if event.get('done'):
                    break
        except requests.exceptions.RequestException as e:
            raise self._translate_error(e) from e
        finally:
            response.close()
