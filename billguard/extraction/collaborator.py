"""
Extraction collaborator runner.

OCR and LLM extraction are external services. This module defines the
interface they must satisfy and runs both calls concurrently with a
timeout and retries. Failures are recorded on the outcome; they never
propagate to the auditor.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Union

from billguard.config import EXTRACTION_RETRIES, EXTRACTION_TIMEOUT
from billguard.exceptions import ExtractionError
from billguard.extraction.llm_response import ExtractionPayload, parse_llm_response

logger = logging.getLogger(__name__)


class ExtractionCollaborator(Protocol):
    """External OCR + financial-extraction service."""

    async def extract_text(self, document: Any) -> str:
        ...

    async def extract_financials(self, document: Any) -> Union[ExtractionPayload, str]:
        ...


@dataclass
class ExtractionOutcome:
    """Result of running both collaborator calls for one document."""
    text: Optional[str] = None
    payload: Optional[ExtractionPayload] = None
    errors: List[str] = field(default_factory=list)

    @property
    def has_payload(self) -> bool:
        return self.payload is not None


async def call_with_retries(
    name: str,
    call: Callable[[], Awaitable[Any]],
    timeout: float,
    retries: int,
) -> Any:
    """
    Await ``call()`` with a per-attempt timeout, retrying on failure.

    Raises:
        ExtractionError: When every attempt fails
    """
    attempts = retries + 1
    last_error = "unknown error"
    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.wait_for(call(), timeout=timeout)
        except asyncio.TimeoutError:
            last_error = f"timed out after {timeout}s"
        except ExtractionError as e:
            last_error = str(e)
        except Exception as e:
            last_error = f"{type(e).__name__}: {e}"
        logger.warning(f"{name} attempt {attempt}/{attempts} failed: {last_error}")

    raise ExtractionError(f"{name} failed after {attempts} attempt(s): {last_error}")


async def run_extractions(
    collaborator: ExtractionCollaborator,
    document: Any,
    timeout: Optional[float] = None,
    retries: Optional[int] = None,
) -> ExtractionOutcome:
    """
    Run text and financial extraction concurrently.

    Both calls are awaited before returning; the auditor only consumes the
    outcome once both have resolved.

    Args:
        collaborator: Service implementing ExtractionCollaborator
        document: Opaque document handle passed through to the collaborator
        timeout: Per-attempt timeout in seconds (default: EXTRACTION_TIMEOUT)
        retries: Extra attempts after the first (default: EXTRACTION_RETRIES)

    Returns:
        ExtractionOutcome with whatever succeeded and one error per failure
    """
    timeout = EXTRACTION_TIMEOUT if timeout is None else timeout
    retries = EXTRACTION_RETRIES if retries is None else retries

    async def financials() -> ExtractionPayload:
        result = await collaborator.extract_financials(document)
        if isinstance(result, ExtractionPayload):
            return result
        return parse_llm_response(result)

    text_result, payload_result = await asyncio.gather(
        call_with_retries("Text extraction", lambda: collaborator.extract_text(document), timeout, retries),
        call_with_retries("Financial extraction", financials, timeout, retries),
        return_exceptions=True,
    )

    for result in (text_result, payload_result):
        if isinstance(result, BaseException) and not isinstance(result, ExtractionError):
            raise result

    outcome = ExtractionOutcome()
    if isinstance(text_result, ExtractionError):
        outcome.errors.append(str(text_result))
    else:
        outcome.text = text_result
    if isinstance(payload_result, ExtractionError):
        outcome.errors.append(str(payload_result))
    else:
        outcome.payload = payload_result

    logger.info(
        f"Extraction finished: text={'ok' if outcome.text is not None else 'failed'}, "
        f"payload={'ok' if outcome.payload is not None else 'failed'}"
    )
    return outcome
