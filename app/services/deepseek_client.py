"""
DeepSeek API Client

DeepSeek uses an OpenAI-compatible API, so we use the openai library.

Used ONLY as an optional resume parser: text in, parsedResumeData-shaped
JSON out. The platform stores whatever comes back and never scores with it.

COST OPTIMIZATION:
- Use deepseek-chat model (cheapest)
- Keep prompts short and structured
- Low temperature for consistent structured output
"""
import json
from typing import Optional

import structlog
from openai import OpenAI, OpenAIError

from app.core.config import Settings

logger = structlog.get_logger(__name__)

RESUME_PROMPT = """You are a resume parser. Extract information and return ONLY valid JSON.
Output format:
{
  "personalInfo": {"name": "string", "email": "string or null", "phone": "string or null",
                   "address": "string or null", "linkedIn": "string or null", "portfolio": "string or null"},
  "summary": "string",
  "skills": [{"name": "string", "level": "string or null", "yearsOfExperience": number or null}],
  "experience": [{"company": "string", "position": "string", "startDate": "YYYY-MM or null",
                  "endDate": "YYYY-MM or null", "current": boolean, "description": "string",
                  "achievements": ["string"]}],
  "education": [{"institution": "string", "degree": "string", "field": "string", "gpa": number or null}],
  "certifications": [{"name": "string", "issuer": "string"}],
  "languages": [{"name": "string", "proficiency": "string"}],
  "projects": [{"name": "string", "description": "string", "technologies": ["string"], "url": "string or null"}]
}
Use null or [] for anything not present. Return ONLY the JSON, no explanation."""


class DeepSeekError(Exception):
    """The DeepSeek API call failed or returned something that is not JSON."""


class DeepSeekClient:
    """
    Wrapper for DeepSeek API with cost-optimized methods.
    """

    def __init__(self, settings: Settings):
        self.client = OpenAI(
            api_key=settings.deepseek_api_key,
            base_url=settings.deepseek_base_url
        )
        self.model = settings.deepseek_model

    def _call_api(self, system_prompt: str, user_content: str, max_tokens: int = 1000) -> Optional[str]:
        """
        Internal method to call DeepSeek API.
        Returns the raw text, or None when the reply carries no content.
        """
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content}
            ],
            max_tokens=max_tokens,
            temperature=0.1
        )
        return response.choices[0].message.content

    def _extract_json(self, text: str) -> dict:
        """
        Extract JSON from API response.
        Handles cases where model wraps JSON in markdown code blocks.
        """
        text = text.strip()
        if text.startswith("```json"):
            text = text[7:]
        if text.startswith("```"):
            text = text[3:]
        if text.endswith("```"):
            text = text[:-3]

        return json.loads(text.strip())

    def parse_resume(self, resume_text: str) -> dict:
        """
        Parse resume text and extract structured data.
        """
        try:
            response = self._call_api(RESUME_PROMPT, resume_text, max_tokens=1500)
            if not response or not response.strip():
                # content filter or tool-call replies carry no text
                raise DeepSeekError("DeepSeek returned no content")
            return self._extract_json(response)
        except OpenAIError as e:
            logger.warning("deepseek_request_failed", error=str(e))
            raise DeepSeekError(str(e)) from e
        except json.JSONDecodeError as e:
            logger.warning("deepseek_invalid_json", error=str(e))
            raise DeepSeekError("DeepSeek returned invalid JSON") from e
