"""
Code execution sandbox client (Judge0-compatible).

Submits a single program run synchronously (``wait=true``) and returns the
raw execution outcome. Transport failures and timeouts are raised as
``SandboxUnavailableError``; classifying the outcome is the grader's job.
"""

import logging

import httpx
from pydantic import BaseModel

from interview_engine.config.settings import Settings, get_settings
from interview_engine.core.errors import SandboxUnavailableError

logger = logging.getLogger(__name__)


# Judge0 language ids
LANGUAGE_IDS: dict[str, int] = {
    "javascript": 63,
    "typescript": 74,
    "python": 71,
    "java": 62,
    "cpp": 54,
    "c": 50,
    "go": 60,
    "rust": 73,
    "sql": 82,
}
DEFAULT_LANGUAGE = "javascript"

STATUS_COMPILE_ERROR = 6
RUNTIME_ERROR_STATUSES = range(7, 13)

# Added on top of the per-case time limit for the HTTP round trip
REQUEST_GRACE_MS = 5000


def language_id_for(language: str | None) -> int:
    """Judge0 id for a language name. Unknown names map to JavaScript."""
    return LANGUAGE_IDS.get((language or DEFAULT_LANGUAGE).lower(), LANGUAGE_IDS[DEFAULT_LANGUAGE])


class ExecutionResult(BaseModel):
    """Outcome of one sandboxed run."""

    stdout: str = ""
    stderr: str = ""
    compile_output: str = ""
    status_id: int = 0
    status_description: str = ""
    time_ms: int | None = None
    memory_kb: int | None = None

    @property
    def is_compile_error(self) -> bool:
        return self.status_id == STATUS_COMPILE_ERROR

    @property
    def is_runtime_error(self) -> bool:
        return self.status_id in RUNTIME_ERROR_STATUSES


class SandboxClient:
    """Async Judge0 client."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or get_settings()
        headers = {"Content-Type": "application/json"}
        if self.settings.judge0_api_key:
            headers["X-Auth-Token"] = self.settings.judge0_api_key
        self.client = httpx.AsyncClient(
            base_url=self.settings.judge0_api_url.rstrip("/"),
            headers=headers,
            transport=transport,
        )

    async def close(self):
        await self.client.aclose()

    async def execute(
        self,
        source_code: str,
        language: str | None,
        stdin: str = "",
        timeout_ms: int | None = None,
        memory_limit_mb: int | None = None,
    ) -> ExecutionResult:
        """
        Run one program against one stdin.

        Args:
            source_code: Candidate source
            language: Language name (see ``LANGUAGE_IDS``)
            stdin: Standard input for the run
            timeout_ms: CPU time limit in milliseconds
            memory_limit_mb: Memory ceiling in megabytes

        Returns:
            ExecutionResult with stdout/stderr and the Judge0 status

        Raises:
            SandboxUnavailableError: On transport failure, timeout or bad status
        """
        timeout_ms = timeout_ms or self.settings.sandbox_timeout_ms
        memory_limit_mb = memory_limit_mb or self.settings.sandbox_memory_limit_mb

        body = {
            "language_id": language_id_for(language),
            "source_code": source_code,
            "stdin": stdin,
            "cpu_time_limit": timeout_ms / 1000,
            "memory_limit": memory_limit_mb * 1024,
        }

        try:
            response = await self.client.post(
                "/submissions",
                params={"base64_encoded": "false", "wait": "true"},
                json=body,
                timeout=(timeout_ms + REQUEST_GRACE_MS) / 1000,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Sandbox execution failed: {e!r}")
            raise SandboxUnavailableError(str(e) or "Sandbox request failed") from e

        status = data.get("status") or {}
        time_seconds = data.get("time")
        return ExecutionResult(
            stdout=data.get("stdout") or "",
            stderr=data.get("stderr") or "",
            compile_output=data.get("compile_output") or "",
            status_id=int(status.get("id") or 0),
            status_description=status.get("description") or "",
            time_ms=round(float(time_seconds) * 1000) if time_seconds else None,
            memory_kb=data.get("memory"),
        )
