"""
Resume Parsing Service - turns extracted resume text into parsedResumeData.

PURPOSE:
Parsing is an external concern. The platform only needs "text in,
parsedResumeData out" and stores the result as opaque data.

Two parsers implement that contract:
1. KeywordResumeParser - regex + keyword scan, no network, no guessing
2. LLMResumeParser     - delegates to DeepSeek when an API key is configured
"""

import re
from abc import ABC, abstractmethod
from typing import List

import structlog

from app.core.config import Settings
from app.services.deepseek_client import DeepSeekClient, DeepSeekError

logger = structlog.get_logger(__name__)

EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_RE = re.compile(r"(?:\+?1[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")
LINKEDIN_RE = re.compile(r"(?:https?://)?(?:www\.)?linkedin\.com/in/[A-Za-z0-9_-]+", re.IGNORECASE)

SKILL_KEYWORDS = [
    "JavaScript", "Python", "Java", "C++", "C#", "PHP", "Ruby", "Go", "Rust", "Swift",
    "React", "Angular", "Vue", "Node.js", "Express", "Django", "Flask", "Spring",
    "MongoDB", "MySQL", "PostgreSQL", "Redis", "AWS", "Azure", "GCP", "Docker",
    "Kubernetes", "Git", "Jenkins", "CI/CD", "REST API", "GraphQL", "TypeScript",
    "HTML", "CSS", "SASS", "LESS", "Bootstrap", "Tailwind", "jQuery", "Webpack",
    "Babel", "ESLint", "Jest", "Mocha", "Chai", "Selenium", "Cypress", "Agile",
    "Scrum", "Kanban", "JIRA", "Confluence", "Slack", "Microsoft Office", "Excel",
    "PowerPoint", "Word", "Photoshop", "Illustrator", "Figma", "Sketch", "Adobe",
]

EDUCATION_KEYWORDS = ["university", "college", "school", "bachelor", "master", "phd", "degree", "graduated"]
EXPERIENCE_KEYWORDS = ["experience", "work", "job", "position", "role", "employed", "internship"]


def empty_parsed_resume() -> dict:
    return {
        "personalInfo": {},
        "summary": "",
        "skills": [],
        "experience": [],
        "education": [],
        "certifications": [],
        "languages": [],
        "projects": [],
    }


def _skill_pattern(skill: str) -> re.Pattern:
    # Word-ish boundaries that still work for "C++", "C#", "Node.js"
    return re.compile(r"(?<![A-Za-z0-9])" + re.escape(skill) + r"(?![A-Za-z0-9])", re.IGNORECASE)


SKILL_PATTERNS = [(skill, _skill_pattern(skill)) for skill in SKILL_KEYWORDS]


def name_from_filename(filename: str) -> str:
    stem = filename.rsplit(".", 1)[0] if "." in filename else filename
    stem = re.sub(r"^resume-\d+-\d+$", "", stem)
    return re.sub(r"[_-]+", " ", stem).strip().title()


# ============================================================
# VALIDATION HELPER
# ============================================================

def _list_of_dicts(value) -> List[dict]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def validate_parsed_resume(data: dict) -> dict:
    """
    Validate and sanitize parser output.
    Ensures all top-level sections exist with the right container types.
    """
    validated = empty_parsed_resume()
    if not isinstance(data, dict):
        return validated

    info = data.get("personalInfo")
    if isinstance(info, dict):
        validated["personalInfo"] = {k: v for k, v in info.items() if v not in (None, "")}

    validated["summary"] = str(data.get("summary") or "").strip()

    skills = []
    for skill in data.get("skills") or []:
        if isinstance(skill, str) and skill.strip():
            skills.append({"name": skill.strip()})
        elif isinstance(skill, dict) and skill.get("name"):
            skills.append(skill)
    validated["skills"] = skills

    for section in ("experience", "education", "certifications", "languages", "projects"):
        validated[section] = _list_of_dicts(data.get(section))

    return validated


# ============================================================
# PARSERS
# ============================================================

class ResumeParser(ABC):
    """Contract: resume text (plus original filename) in, parsedResumeData out."""

    name = "base"

    @abstractmethod
    def parse(self, text: str, filename: str = "") -> dict:
        ...


class KeywordResumeParser(ResumeParser):
    """
    Plain text scan: contact details by regex, skills from a fixed keyword
    list, and the lines that mention education or work. Nothing is invented
    when a section is not found.
    """

    name = "keyword"

    def parse(self, text: str, filename: str = "") -> dict:
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        lowered = [line.lower() for line in lines]

        emails = EMAIL_RE.findall(text)
        phones = PHONE_RE.findall(text)
        linkedin = LINKEDIN_RE.search(text)

        skills = [skill for skill, pattern in SKILL_PATTERNS if pattern.search(text)]
        education_lines = [lines[i] for i, line in enumerate(lowered) if any(k in line for k in EDUCATION_KEYWORDS)]
        experience_lines = [lines[i] for i, line in enumerate(lowered) if any(k in line for k in EXPERIENCE_KEYWORDS)]

        parsed = empty_parsed_resume()
        info = {}
        name = name_from_filename(filename) if filename else ""
        if name:
            info["name"] = name
        if emails:
            info["email"] = emails[0]
        if phones:
            info["phone"] = phones[0].strip()
        if linkedin:
            info["linkedIn"] = linkedin.group(0)
        parsed["personalInfo"] = info

        if skills:
            parsed["summary"] = f"Professional with experience in {', '.join(skills[:3])}."
        parsed["skills"] = [{"name": skill} for skill in skills]
        parsed["education"] = [{"description": line} for line in education_lines]
        parsed["experience"] = [{"description": line} for line in experience_lines]
        return parsed


class LLMResumeParser(ResumeParser):
    """Delegates to DeepSeek; falls back to the keyword scan if the call fails."""

    name = "deepseek"

    def __init__(self, client: DeepSeekClient, fallback: ResumeParser):
        self.client = client
        self.fallback = fallback

    def parse(self, text: str, filename: str = "") -> dict:
        try:
            return validate_parsed_resume(self.client.parse_resume(text))
        except DeepSeekError as e:
            logger.warning("llm_resume_parse_failed", error=str(e), fallback=self.fallback.name)
            return self.fallback.parse(text, filename)


def get_resume_parser(settings: Settings) -> ResumeParser:
    """LLM parser when DeepSeek is configured, keyword scan otherwise."""
    keyword = KeywordResumeParser()
    if settings.deepseek_api_key:
        return LLMResumeParser(DeepSeekClient(settings), fallback=keyword)
    return keyword
