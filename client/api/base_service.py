#!/usr/bin/env python
# Base service for API communication
import asyncio
import json
from typing import Any, Dict, Optional

import requests


class APIError(Exception):
    """Exception raised for API errors"""
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"API Error ({status_code}): {detail}")


class InsufficientBalanceError(APIError):
    """The server refused a charge because the battery balance is too low (HTTP 402)"""


class BaseService:
    """Base class for API services"""

    def __init__(self, api_url: str, access_token: Optional[str] = None,
                 session: Optional[requests.Session] = None, timeout: float = 10.0):
        self.api_url = api_url.rstrip("/")
        self.access_token = access_token
        self.session = session or requests.Session()
        self.timeout = timeout

    def _get_headers(self) -> Dict[str, str]:
        """Get common headers for API requests"""
        headers = {
            "Content-Type": "application/json"
        }

        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        return headers

    def _handle_response(self, response: requests.Response) -> Dict[str, Any]:
        """Process API response and handle errors"""
        if 200 <= response.status_code < 300:
            if response.status_code == 204:  # No content
                return {}

            try:
                return response.json()
            except ValueError:
                return {"message": response.text}

        try:
            error_data = response.json()
            detail = error_data.get("detail") or error_data.get("error") or "Unknown error"
        except ValueError:
            detail = response.text or "Unknown error"

        if response.status_code == 402:
            raise InsufficientBalanceError(response.status_code, detail)
        raise APIError(response.status_code, detail)

    def _request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.api_url}{endpoint}"
        try:
            response = self.session.request(
                method, url, headers=self._get_headers(), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise APIError(503, f"Request failed: {str(e)}")
        return self._handle_response(response)

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Make GET request to API"""
        return await asyncio.to_thread(self._request, "GET", endpoint, params=params)

    async def post(self, endpoint: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Make POST request to API"""
        body = json.dumps(data) if data is not None else None
        return await asyncio.to_thread(self._request, "POST", endpoint, data=body)
