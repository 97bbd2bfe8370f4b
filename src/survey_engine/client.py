"""HttpSurveyBackend — :class:`SurveyBackend` over the survey server's REST API.

Thin httpx wrapper.  Administrator calls carry ``X-User-ID`` and
``X-User-Role`` (plus ``X-Proxy-Secret`` when configured); respondent
calls carry ``X-Respondent-Token``.  Every transport error and non-2xx
response is raised as :class:`BackendError` with the server's ``detail``
message.

Survey documents received from the public endpoint are re-validated
before they reach a :class:`ResponseSession`.

Usage::

    async with HttpSurveyBackend("http://localhost:8080", respondent_token=token) as backend:
        public = await backend.get_public_survey("customer-feedback")
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from survey_engine.errors import BackendError
from survey_engine.interfaces import SurveyBackend
from survey_engine.models.records import (
    FieldQuestionInfo,
    OpenQuestion,
    PublicSurvey,
    ResponseState,
    ResponseSummary,
    SurveyRecord,
)
from survey_engine.models.survey import Survey

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def _seg(value: str) -> str:
    """Encode one path segment."""
    return quote(str(value), safe="")


def _parse(shape: Any, data: Any, what: str) -> Any:
    """Validate a response body; a malformed payload is a BackendError."""
    try:
        return TypeAdapter(shape).validate_python(data)
    except ValidationError as exc:
        logger.warning("Server sent an invalid %s: %s", what, exc)
        raise BackendError(f"Server sent an invalid {what}.") from exc


def _take(data: Any, key: str) -> str:
    """Pull one string id out of a response body."""
    if isinstance(data, dict) and isinstance(data.get(key), str):
        return data[key]
    raise BackendError(f"Server response has no {key}.")


class HttpSurveyBackend(SurveyBackend):
    """Async HTTP client for the survey server API.

    Args:
        base_url: server root, e.g. ``http://localhost:8080``
        user_id: administrator identity for dashboard calls
        is_admin: send ``X-User-Role: admin`` with administrator calls
        respondent_token: respondent identity for public calls
        proxy_secret: value for ``X-Proxy-Secret`` when the server expects it
        timeout: per-request timeout in seconds
        transport: optional httpx transport (tests use ``httpx.MockTransport``)
    """

    def __init__(
        self,
        base_url: str,
        *,
        user_id: str | None = None,
        is_admin: bool = False,
        respondent_token: str | None = None,
        proxy_secret: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._user_id = user_id
        self._is_admin = is_admin
        self._respondent_token = respondent_token
        self._proxy_secret = proxy_secret
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> HttpSurveyBackend:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Administrator operations
    # ------------------------------------------------------------------

    async def upsert_survey_draft(
        self,
        *,
        survey_id: str | None,
        title: str,
        description: str,
        definition: Survey,
    ) -> str:
        data = await self._admin("POST", "/surveys", json={
            "survey_id": survey_id,
            "title": title,
            "description": description,
            "definition": definition.model_dump(mode="json"),
        })
        return _take(data, "survey_id")

    async def get_survey(self, survey_id: str) -> SurveyRecord:
        data = await self._admin("GET", f"/surveys/{_seg(survey_id)}")
        return _parse(SurveyRecord, data, "survey")

    async def list_surveys(self, *, mine_only: bool = False) -> list[SurveyRecord]:
        data = await self._admin("GET", "/surveys", params={"mine_only": mine_only})
        return _parse(list[SurveyRecord], data, "survey list")

    async def publish_survey(self, survey_id: str) -> str:
        data = await self._admin("POST", f"/surveys/{_seg(survey_id)}/publish")
        return _take(data, "slug")

    async def unpublish_survey(self, survey_id: str) -> None:
        await self._admin("POST", f"/surveys/{_seg(survey_id)}/unpublish")

    async def list_responses(self, survey_id: str) -> list[ResponseSummary]:
        data = await self._admin("GET", f"/surveys/{_seg(survey_id)}/responses")
        return _parse(list[ResponseSummary], data, "response list")

    async def get_response_detail(self, survey_id: str, response_id: str) -> ResponseSummary:
        data = await self._admin(
            "GET", f"/surveys/{_seg(survey_id)}/responses/{_seg(response_id)}",
        )
        return _parse(ResponseSummary, data, "response")

    async def list_open_questions(self) -> list[OpenQuestion]:
        data = await self._admin("GET", "/questions/open")
        return _parse(list[OpenQuestion], data, "question list")

    async def answer_field_question(self, question_id: str, answer: str) -> None:
        await self._admin(
            "POST", f"/questions/{_seg(question_id)}/answer", json={"answer": answer},
        )

    # ------------------------------------------------------------------
    # Respondent operations
    # ------------------------------------------------------------------

    async def get_public_survey(self, slug: str) -> PublicSurvey:
        data = await self._public("GET", f"/public/{_seg(slug)}")
        try:
            return PublicSurvey.model_validate(data)
        except ValidationError as exc:
            logger.warning("Server sent an invalid survey for %s: %s", slug, exc)
            raise BackendError("Survey definition is invalid.") from exc

    async def ensure_public_response(self, slug: str) -> str:
        data = await self._public("POST", f"/public/{_seg(slug)}/response")
        return _take(data, "response_id")

    async def get_public_response(self, slug: str) -> ResponseState | None:
        data = await self._public("GET", f"/public/{_seg(slug)}/response")
        if data is None:
            return None
        return _parse(ResponseState, data, "response")

    async def save_public_response(
        self,
        slug: str,
        answers: dict[str, Any],
        *,
        mark_completed: bool,
    ) -> None:
        await self._public("PUT", f"/public/{_seg(slug)}/response", json={
            "answers": answers,
            "mark_completed": mark_completed,
        })

    async def ask_field_question(self, slug: str, field_id: str, question: str) -> str:
        data = await self._public(
            "POST",
            f"/public/{_seg(slug)}/fields/{_seg(field_id)}/questions",
            json={"question": question},
        )
        return _take(data, "question_id")

    async def list_field_questions(self, slug: str, field_id: str) -> list[FieldQuestionInfo]:
        data = await self._public(
            "GET", f"/public/{_seg(slug)}/fields/{_seg(field_id)}/questions",
        )
        return _parse(list[FieldQuestionInfo], data, "question list")

    # ------------------------------------------------------------------
    # Transport helpers
    # ------------------------------------------------------------------

    async def _admin(self, method: str, path: str, **kwargs: Any) -> Any:
        if not self._user_id:
            raise BackendError("Administrator calls need a user id.")
        headers = {"X-User-ID": self._user_id}
        if self._is_admin:
            headers["X-User-Role"] = "admin"
        if self._proxy_secret:
            headers["X-Proxy-Secret"] = self._proxy_secret
        return await self._request(method, path, headers=headers, **kwargs)

    async def _public(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = {}
        if self._respondent_token:
            headers["X-Respondent-Token"] = self._respondent_token
        return await self._request(method, path, headers=headers, **kwargs)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send one request; returns decoded JSON (None for empty bodies)."""
        try:
            resp = await self._client.request(method, API_PREFIX + path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise BackendError(f"Request failed: {exc}") from exc

        if resp.is_error:
            raise BackendError(self._detail(resp), status_code=resp.status_code)
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise BackendError("Response is not valid JSON.", status_code=resp.status_code) from exc

    @staticmethod
    def _detail(resp: httpx.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return f"HTTP {resp.status_code}"
        if isinstance(body, dict) and isinstance(body.get("detail"), str):
            return body["detail"]
        return f"HTTP {resp.status_code}"
