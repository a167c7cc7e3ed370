from typing import Any, Dict, List, Optional

import requests
import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)

FALLBACK_EXPLANATION = "Sorry, I was unable to process your request. Please check the system logs."


class ExplainRequest(BaseModel):
    question: str
    patient_id: Optional[str] = None


class ExplainContext(BaseModel):
    question: str
    patient: Optional[Dict[str, Any]] = None
    telemetry: List[Dict[str, Any]] = Field(default_factory=list)


class Explanation(BaseModel):
    explanation: str
    recommendation: Optional[str] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)


def ask_assistant(context: ExplainContext, url: str, timeout: float = 5.0) -> Explanation:
    """
    Send a finished snapshot to the explanation service.

    Any failure degrades to an explanation-only answer so callers never see an
    exception from here.
    """
    try:
        resp = requests.post(url, json=context.model_dump(), timeout=timeout)
        resp.raise_for_status()
        return Explanation.model_validate(resp.json())
    except (requests.RequestException, ValueError) as e:
        logger.error("Explanation service call failed", url=url, error=str(e))
        return Explanation(explanation=FALLBACK_EXPLANATION)
