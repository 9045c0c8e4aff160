from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import httpx

from .errors import ServerError
from .http import RequestPipeline, RequestSpec


@dataclass
class ApiResponse:
    data: Any = None
    message: str | None = None
    success: bool = True

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiResponse":
        if not response.content:
            return cls()
        try:
            payload = response.json()
        except ValueError as error:
            raise ServerError(
                "The API returned a response that is not valid JSON.",
                status_code=response.status_code,
            ) from error

        if isinstance(payload, dict) and ("data" in payload or "success" in payload):
            message = payload.get("message")
            return cls(
                data=payload.get("data"),
                message=message if isinstance(message, str) else None,
                success=bool(payload.get("success", True)),
            )
        return cls(data=payload)


class ApiClient:
    """Verb helpers for business-domain callers, all routed through the pipeline."""

    def __init__(self, pipeline: RequestPipeline) -> None:
        self._pipeline = pipeline

    @property
    def pipeline(self) -> RequestPipeline:
        return self._pipeline

    async def request(self, spec: RequestSpec) -> ApiResponse:
        response = await self._pipeline.execute(spec)
        return ApiResponse.from_response(response)

    async def get(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ApiResponse:
        return await self.request(
            RequestSpec("GET", path, params=params, headers=dict(headers or {}))
        )

    async def post(
        self,
        path: str,
        body: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> ApiResponse:
        return await self.request(
            RequestSpec("POST", path, body=body, headers=dict(headers or {}))
        )

    async def put(
        self,
        path: str,
        body: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> ApiResponse:
        return await self.request(
            RequestSpec("PUT", path, body=body, headers=dict(headers or {}))
        )

    async def patch(
        self,
        path: str,
        body: Any = None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> ApiResponse:
        return await self.request(
            RequestSpec("PATCH", path, body=body, headers=dict(headers or {}))
        )

    async def delete(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ApiResponse:
        return await self.request(
            RequestSpec("DELETE", path, params=params, headers=dict(headers or {}))
        )

    async def upload(
        self,
        path: str,
        content: bytes,
        *,
        filename: str,
        content_type: str = "application/octet-stream",
    ) -> ApiResponse:
        return await self.request(
            RequestSpec(
                "POST",
                path,
                files={"file": (filename, content, content_type)},
            )
        )
