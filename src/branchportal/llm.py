import json
import logging
from typing import Any, Optional

import boto3

from . import config

logger = logging.getLogger(__name__)


def _search_for_text(obj: Any) -> Optional[str]:
    if isinstance(obj, dict):
        for key, value in obj.items():
            if key == "text" and isinstance(value, str):
                return value
            found = _search_for_text(value)
            if found:
                return found
    if isinstance(obj, list):
        for item in obj:
            found = _search_for_text(item)
            if found:
                return found
    return None


class BedrockLLM:
    """Text generation through the Bedrock ``converse`` API."""

    def __init__(self, region_name: Optional[str] = None, model_id: Optional[str] = None, client=None):
        self.bedrock = client or boto3.client(
            service_name="bedrock-runtime",
            region_name=region_name or config.get_aws_region(),
        )
        self.model_id = model_id or config.get_bedrock_model_id()

    def _extract_bedrock_response_text(self, resp_obj) -> str:
        if not resp_obj:
            return ""
        # common shape: output.message.content[*].text
        out = resp_obj.get("output") if isinstance(resp_obj, dict) else None
        if isinstance(out, dict):
            msg = out.get("message")
            if isinstance(msg, dict):
                for part in msg.get("content") or []:
                    if isinstance(part, dict) and isinstance(part.get("text"), str):
                        return part["text"]
                    if isinstance(part, str):
                        return part

        found = _search_for_text(resp_obj)
        if found is not None:
            return found
        logger.warning("No text block in Bedrock response; returning raw payload")
        return json.dumps(resp_obj, default=str)

    def generate_text(self, prompt: str, maxTokens: int = 2000) -> str:
        response = self.bedrock.converse(
            modelId=self.model_id,
            messages=[{"role": "user", "content": [{"text": prompt}]}],
            inferenceConfig={"maxTokens": maxTokens, "temperature": 0.0},
        )
        return self._extract_bedrock_response_text(response)
