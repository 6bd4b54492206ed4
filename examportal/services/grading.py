"""
Client for the external free-text grading service.

One blocking POST per answer, bounded by a timeout, never retried. Any
transport error, non-2xx status or malformed body surfaces as
``DelegateUnavailable`` so the evaluator can degrade that single question.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import httpx

from examportal.core.errors import DelegateUnavailable
from examportal.core.normalize import quantize, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GradeOutcome:
    marks: Decimal
    similarity: Optional[Decimal]


class GradingClient:
    def __init__(self, url: str, timeout: float = 5.0, api_key: Optional[str] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else None
        self.url = url
        self.timeout = timeout
        # Phase limits add up to `timeout`.
        budget = httpx.Timeout(connect=timeout * 0.2, write=timeout * 0.1, pool=timeout * 0.1, read=timeout * 0.6)
        self._client = httpx.Client(timeout=budget, headers=headers, transport=transport)

    def close(self) -> None:
        self._client.close()

    def grade(self, reference: str, candidate: str, max_marks: Decimal) -> GradeOutcome:
        payload = {"correct_answer": reference, "student_answer": candidate, "max_marks": float(max_marks)}
        try:
            response = self._client.post(self.url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            raise DelegateUnavailable(f"grading timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise DelegateUnavailable(f"grading request failed: {e}") from e
        except ValueError as e:
            raise DelegateUnavailable("grading response is not JSON") from e

        if not isinstance(body, dict):
            raise DelegateUnavailable("grading response is not an object")
        try:
            marks = to_decimal(body.get("marks_obtained"))
        except ValueError as e:
            raise DelegateUnavailable(f"grading response has no numeric marks: {e}") from e
        similarity = body.get("similarity_score")
        try:
            similarity = to_decimal(similarity) if similarity is not None else None
        except ValueError:
            logger.warning(f"Ignoring non-numeric similarity score {similarity!r}")
            similarity = None
        if similarity is not None and not (0 <= similarity <= 1):
            logger.warning(f"Ignoring out-of-range similarity score {similarity}")
            similarity = None
        marks = quantize(min(max(marks, Decimal("0")), max_marks))
        return GradeOutcome(marks=marks, similarity=similarity)
