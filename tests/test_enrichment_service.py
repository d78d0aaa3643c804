"""Tests for LinkedIn profile parsing and the Exa-backed enrichment flow."""
import httpx
import pytest
import respx

from app.services.enrichment_service import (
    EnrichmentService,
    extract_linkedin_urls,
    parse_education,
    parse_profile_text,
    parse_work_experience,
)
from app.services.exceptions import UpstreamUnavailableError

CONTENTS_URL = "https://api.exa.ai/contents"
PROFILE_URL = "https://www.linkedin.com/in/jane-doe"

PROFILE_TEXT = """# Jane Doe
Staff Engineer at Acme
## About me
I build distributed systems and climb on weekends.
## Work Experience
- ### Staff Engineer at [Acme](https://www.linkedin.com/company/acme)
Leads the platform team
Jan 2020 - Present · 4 yrs 2 mos
London, England
- ### Intern at [Initech](https://www.linkedin.com/company/initech)
Summer internship
Jun 2018 - Sep 2018 · 3 mos
## Education
- ### BSc || Computer Science at [UCL](https://www.linkedin.com/school/ucl)
- ### Exchange at [ETH](https://www.linkedin.com/school/eth)
"""


class TestParsers:
    def test_work_experience(self):
        experience = parse_work_experience(PROFILE_TEXT)
        assert [e["company"] for e in experience] == ["Acme", "Initech"]

        current = experience[0]
        assert current["title"] == "Staff Engineer"
        assert current["companyUrl"] == "https://www.linkedin.com/company/acme"
        assert current["description"] == "Leads the platform team"
        assert current["duration"] == "Jan 2020 - Present · 4 yrs 2 mos"
        assert current["location"] == "London, England"
        assert current["startDate"] == "Jan 2020"
        assert current["endDate"] is None

        assert experience[1]["endDate"] == "Sep 2018 · 3 mos"

    def test_education(self):
        education = parse_education(PROFILE_TEXT)
        assert education[0] == {
            "school": "UCL",
            "schoolUrl": "https://www.linkedin.com/school/ucl",
            "degree": "BSc",
            "fieldOfStudy": "Computer Science",
        }
        assert education[1]["degree"] == "Exchange"
        assert education[1]["fieldOfStudy"] is None

    def test_profile_text(self):
        parsed = parse_profile_text(PROFILE_TEXT)
        assert parsed["bio"] == "Staff Engineer at Acme"
        assert parsed["about"] == "I build distributed systems and climb on weekends."
        assert len(parsed["experience"]) == 2
        assert len(parsed["education"]) == 2

    def test_sections_missing(self):
        parsed = parse_profile_text("Just some text")
        assert parsed == {"bio": None, "about": None, "experience": [], "education": []}

    def test_linkedin_urls(self):
        urls = extract_linkedin_urls(PROFILE_TEXT + PROFILE_TEXT)
        assert urls["company_urls"] == [
            "https://www.linkedin.com/company/acme",
            "https://www.linkedin.com/company/initech",
        ]
        assert len(urls["school_urls"]) == 2


class TestFetchProfile:
    @pytest.mark.asyncio
    @respx.mock
    async def test_fetch_profile(self):
        route = respx.post(CONTENTS_URL).mock(
            return_value=httpx.Response(
                200,
                json={"results": [{"text": PROFILE_TEXT, "image": "https://img/jane.png", "author": "Jane Doe"}]},
            )
        )
        async with httpx.AsyncClient() as client:
            profile = await EnrichmentService(http_client=client).fetch_profile(PROFILE_URL)

        assert profile == {"text": PROFILE_TEXT, "image": "https://img/jane.png", "name": "Jane Doe"}
        request = route.calls.last.request
        assert "x-api-key" in request.headers
        assert b'"text":true' in request.content.replace(b" ", b"")

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_results(self):
        respx.post(CONTENTS_URL).mock(return_value=httpx.Response(200, json={"results": []}))
        async with httpx.AsyncClient() as client:
            with pytest.raises(UpstreamUnavailableError):
                await EnrichmentService(http_client=client).fetch_profile(PROFILE_URL)

    @pytest.mark.asyncio
    @respx.mock
    async def test_client_error_is_not_retried(self):
        route = respx.post(CONTENTS_URL).mock(return_value=httpx.Response(401))
        async with httpx.AsyncClient() as client:
            with pytest.raises(UpstreamUnavailableError):
                await EnrichmentService(http_client=client).fetch_profile(PROFILE_URL)
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error_is_retried(self):
        route = respx.post(CONTENTS_URL).mock(
            side_effect=[
                httpx.Response(503),
                httpx.Response(200, json={"results": [{"text": "# Jane"}]}),
            ]
        )
        async with httpx.AsyncClient() as client:
            profile = await EnrichmentService(http_client=client).fetch_profile(PROFILE_URL)
        assert profile["text"] == "# Jane"
        assert profile["name"] is None
        assert route.call_count == 2


class TestEnrichUser:
    @pytest.mark.asyncio
    async def test_enrich_with_prefetched_profile(self, db_session, user_factory):
        user = user_factory("u1", onboarding_completed=False, name=None, bio=None, profile_vector=None)
        db_session.add(user)
        await db_session.commit()

        summary = await EnrichmentService().enrich_user(
            "u1",
            PROFILE_URL,
            db_session,
            profile={"text": PROFILE_TEXT, "image": None, "name": "Jane Doe"},
        )

        assert summary["name"] == "Jane Doe"
        assert summary["experience_count"] == 2
        assert summary["education_count"] == 2
        assert user.onboarding_completed
        assert user.linkedin_url == PROFILE_URL
        assert user.profile_vector[6] == pytest.approx(2 / 5)
