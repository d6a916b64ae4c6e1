from typing import List, Optional

import httpx

from constants import EXECUTION_API_URL, EXECUTION_TIMEOUT_SECONDS
from logging_config import get_logger

logger = get_logger(__name__)

# Editor language tag -> execution engine tag. Unknown tags pass through unchanged.
LANGUAGE_EXECUTION_MAP = {
    "javascript": "javascript",
    "typescript": "typescript",
    "python": "python",
    "java": "java",
    "cpp": "cpp",
    "c": "c",
    "html": "html",
    "css": "css",
}

DEFAULT_VERSION = "*"
DEFAULT_FILE_NAME = "main"


class PistonClient:
    """Thin async client for a Piston-compatible /execute endpoint."""

    def __init__(self, api_url: str = EXECUTION_API_URL, timeout: float = EXECUTION_TIMEOUT_SECONDS,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = api_url
        self.timeout = timeout
        self.transport = transport

    async def execute(self, language: str, version: str, files: List[dict]) -> dict:
        payload = {"language": language, "version": version, "files": files}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(self.api_url, json=payload)
            response.raise_for_status()
            return response.json()


class ExecutionBridge:
    def __init__(self, client):
        self.client = client

    @staticmethod
    def engine_language(language: str) -> str:
        return LANGUAGE_EXECUTION_MAP.get(language, language)

    async def run(self, language: str, version: Optional[str], file_name: Optional[str], code: str) -> dict:
        """Run code once and return the engine's result.

        Failures of any kind come back as a result whose run.output starts
        with "Execution Error: " instead of raising. The caller tags the
        result with fileName/executedBy.
        """
        files = [{"name": file_name or DEFAULT_FILE_NAME, "content": code}]
        try:
            result = await self.client.execute(self.engine_language(language), version or DEFAULT_VERSION, files)
        except Exception as e:
            logger.error(f"Code execution error: {e}")
            return {"run": {"output": f"Execution Error: {e}"}}

        if not isinstance(result, dict):
            logger.warning(f"Unexpected execution result type: {type(result).__name__}")
            return {"run": {"output": f"Execution Error: unexpected response {result!r}"}}
        return result
