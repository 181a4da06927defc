import time
from typing import Any, Dict, Optional

import requests


class ExplorerClient:
    """Thin wrapper around an Etherscan-compatible explorer API with basic retry."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: int = 10,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.backoff_seconds = backoff_seconds
        self.session = requests.Session()
        if api_key:
            self.session.headers.update({"X-API-Key": api_key})

    def get_abi(self, address: str) -> Dict[str, Any]:
        params = {
            "module": "contract",
            "action": "getabi",
            "address": address,
        }
        return self._request(params)

    def _is_rate_limit_payload(self, payload: Any) -> bool:
        if not isinstance(payload, dict):
            return False

        candidates = []
        for key in ("message", "result"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                candidates.append(value)

        haystack = " ".join(candidates).lower()
        return (
            "rate limit" in haystack
            or "max calls per sec" in haystack
            or "too many requests" in haystack
        )

    def _request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        merged = dict(params)
        if self.api_key:
            merged["apikey"] = self.api_key
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.session.get(
                    self.base_url,
                    params=merged,
                    timeout=self.timeout,
                )
                if response.status_code >= 500 and attempt < self.max_retries:
                    time.sleep(self.backoff_seconds * attempt)
                    continue

                response.raise_for_status()
                payload = response.json()
                if self._is_rate_limit_payload(payload) and attempt < self.max_retries:
                    time.sleep(self.backoff_seconds * attempt)
                    continue
                if not isinstance(payload, dict):
                    raise ValueError("Unexpected response from explorer (non-object).")
                return payload
            except requests.RequestException as exc:
                last_error = exc
                if attempt < self.max_retries:
                    time.sleep(self.backoff_seconds * attempt)
                else:
                    raise
            except ValueError as exc:
                last_error = exc
                if attempt < self.max_retries:
                    time.sleep(self.backoff_seconds * attempt)
                else:
                    raise ValueError("Failed to parse response from explorer.") from exc

        if last_error:
            raise last_error

        raise RuntimeError("Request failed without raising an exception.")
