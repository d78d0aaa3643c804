"""
RizzedIn — LinkedIn profile enrichment.

Profile pages are fetched as markdown-ish text through the Exa contents
API and parsed into the bio / about / experience / education fields the
vectorizer and persona prompts consume.

Expected page shape::

    # Jane Doe
    Staff Engineer at Acme
    ## About me
    ...
    ## Work Experience
    - ### Staff Engineer at [Acme](https://www.linkedin.com/company/acme)
    Builds things
    Jan 2020 - Present · 4 yrs 2 mos
    London, England
    ## Education
    - ### BSc || Computer Science at [UCL](https://www.linkedin.com/school/ucl)

Company and school logo lookups are not performed.
"""

from __future__ import annotations

import re
import time
from typing import Any

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.config import get_settings
from app.services.exceptions import UpstreamUnavailableError
from app.services.user_service import UserService

logger = structlog.get_logger(__name__)

_MAX_ATTEMPTS = 3

_ABOUT_RE = re.compile(r"## About me\n([\s\S]*?)(?=\n## |$)")
_WORK_SECTION_RE = re.compile(r"## Work Experience\n([\s\S]*?)(?=\n## |$)")
_EDU_SECTION_RE = re.compile(r"## Education\n([\s\S]*?)(?=\n## |$)")
_ENTRY_SPLIT_RE = re.compile(r"- ### ")
_ENTRY_HEAD_RE = re.compile(r"^(.+?) at \[([^\]]+)\]\(([^)]+)\)")
_DURATION_RE = re.compile(r"\n([A-Z][a-z]{2} \d{4}.*?)(?:\n|$)")
_LOCATION_RE = re.compile(r"\n([A-Z][a-z]+(?:, [A-Z][a-z]+)?)\s*$", re.MULTILINE)
_LINKEDIN_URL_RE = re.compile(
    r"\[([^\]]+)\]\((https://(?:www\.)?linkedin\.com/(?:company|school)/[^)]+)\)"
)


# ──────────────────────────────────────────────────────────────────────────────
# Parsers
# ──────────────────────────────────────────────────────────────────────────────

def _section_entries(text: str, section_re: re.Pattern) -> list[str]:
    section = section_re.search(text)
    if not section:
        return []
    return [entry for entry in _ENTRY_SPLIT_RE.split(section.group(1)) if entry.strip()]


def parse_work_experience(text: str) -> list[dict[str, Any]]:
    experiences: list[dict[str, Any]] = []

    for entry in _section_entries(text, _WORK_SECTION_RE):
        head = _ENTRY_HEAD_RE.match(entry)
        if not head:
            continue

        lines = [line for line in entry.split("\n") if line.strip()]
        description = lines[1].strip() if len(lines) > 1 else None

        duration_match = _DURATION_RE.search(entry)
        duration = duration_match.group(1).strip() if duration_match else None

        location_match = _LOCATION_RE.search(entry)
        location = location_match.group(1).strip() if location_match else None

        start_date, end_date = "", None
        if duration:
            parts = duration.split(" - ")
            start_date = parts[0]
            if "Present" not in duration and len(parts) > 1:
                end_date = parts[1]

        experiences.append(
            {
                "title": head.group(1).strip(),
                "company": head.group(2).strip(),
                "companyUrl": head.group(3).strip(),
                "duration": duration,
                "location": location,
                "description": description,
                "startDate": start_date,
                "endDate": end_date,
            }
        )

    return experiences


def parse_education(text: str) -> list[dict[str, Any]]:
    education: list[dict[str, Any]] = []

    for entry in _section_entries(text, _EDU_SECTION_RE):
        head = _ENTRY_HEAD_RE.match(entry)
        if not head:
            continue

        degree_parts = head.group(1).strip().split(" || ")
        education.append(
            {
                "school": head.group(2).strip(),
                "schoolUrl": head.group(3).strip(),
                "degree": degree_parts[0].strip() or None,
                "fieldOfStudy": degree_parts[1].strip() if len(degree_parts) > 1 else None,
            }
        )

    return education


def extract_linkedin_urls(text: str) -> dict[str, list[str]]:
    """Distinct company and school URLs linked from the profile text."""
    company_urls: list[str] = []
    school_urls: list[str] = []
    for match in _LINKEDIN_URL_RE.finditer(text):
        url = match.group(2)
        target = company_urls if "/company/" in url else school_urls
        if url not in target:
            target.append(url)
    return {"company_urls": company_urls, "school_urls": school_urls}


def parse_profile_text(text: str) -> dict[str, Any]:
    """Split raw profile text into the enrichment fields."""
    about_match = _ABOUT_RE.search(text)
    about = about_match.group(1).strip() if about_match else None

    bio = None
    lines = text.split("\n")
    for index, line in enumerate(lines):
        if "# " in line:
            if index + 1 < len(lines):
                bio = lines[index + 1].strip() or None
            break

    return {
        "bio": bio,
        "about": about or None,
        "experience": parse_work_experience(text),
        "education": parse_education(text),
    }


# ──────────────────────────────────────────────────────────────────────────────
# Service
# ──────────────────────────────────────────────────────────────────────────────

def _is_retryable_http_error(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


class EnrichmentService:
    """Fetch and apply LinkedIn profile data."""

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        user_service: UserService | None = None,
    ) -> None:
        settings = get_settings()
        self._api_key = settings.EXA_API_KEY
        self._base_url = settings.EXA_BASE_URL.rstrip("/")
        self._timeout = settings.EXA_TIMEOUT_SECONDS
        self._client = http_client
        self._users = user_service or UserService()

    async def fetch_profile(self, linkedin_url: str) -> dict[str, Any]:
        """Return ``{"text", "image", "name"}`` for *linkedin_url*.

        Raises
        ------
        UpstreamUnavailableError
            On HTTP failure after retries or when no content is returned.
        """
        start = time.monotonic()
        try:
            payload = await self._post_contents(linkedin_url)
        except httpx.HTTPError as exc:
            logger.error("exa_fetch_failed", url=linkedin_url, error=str(exc))
            raise UpstreamUnavailableError(f"Profile fetch failed: {exc}") from exc

        results = payload.get("results") or []
        if not results:
            logger.warning("exa_no_results", url=linkedin_url)
            raise UpstreamUnavailableError("No results from profile fetch")

        result = results[0]
        logger.info(
            "exa_fetch_complete",
            url=linkedin_url,
            elapsed_ms=round((time.monotonic() - start) * 1000, 2),
        )
        return {
            "text": result.get("text") or "",
            "image": result.get("image"),
            "name": result.get("author"),
        }

    async def enrich_user(
        self,
        user_id: str,
        linkedin_url: str,
        db_session: AsyncSession,
        profile: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Fetch (unless *profile* is given), parse and store a profile.

        Returns a short summary of what was stored.
        """
        user = await self._users.get_user(user_id, db_session)
        if profile is None:
            profile = await self.fetch_profile(linkedin_url)

        parsed = parse_profile_text(profile["text"])
        user.linkedin_url = linkedin_url
        self._users.apply_enrichment(
            user,
            name=profile.get("name"),
            image=profile.get("image"),
            **parsed,
        )
        await db_session.flush()

        return {
            "name": user.name,
            "image": user.image,
            "bio": user.bio,
            "about": user.about,
            "experience_count": len(parsed["experience"]),
            "education_count": len(parsed["education"]),
        }

    # ── Internals ───────────────────────────────────────────────────

    async def _post_contents(self, linkedin_url: str) -> dict[str, Any]:
        if self._client is not None:
            return await self._post_with_retry(self._client, linkedin_url)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._post_with_retry(client, linkedin_url)

    async def _post_with_retry(
        self, client: httpx.AsyncClient, linkedin_url: str
    ) -> dict[str, Any]:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_retryable_http_error),
            stop=stop_after_attempt(_MAX_ATTEMPTS),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            reraise=True,
        ):
            with attempt:
                response = await client.post(
                    f"{self._base_url}/contents",
                    headers={"x-api-key": self._api_key},
                    json={"urls": [linkedin_url], "text": True},
                )
                response.raise_for_status()
                return response.json()
