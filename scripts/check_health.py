#!/usr/bin/env python3
"""Deployment health checks for the Mnetifi backend."""

from __future__ import annotations

import os
import time
from typing import Any, Optional

import httpx


def fail(message: str) -> None:
    print(f"ERROR: {message}")
    raise SystemExit(1)


def normalize_base_url(base_url: str) -> str:
    url = (base_url or "").strip().rstrip("/")
    # Secrets are sometimes pasted with the API prefix attached.
    if url.endswith("/api"):
        return url[: -len("/api")]
    return url


def _get_json(client: httpx.Client, url: str) -> tuple[int, dict[str, Any]]:
    resp = client.get(url)
    try:
        data = resp.json()
    except ValueError:
        raise RuntimeError(f"{url} did not return valid JSON.")
    if not isinstance(data, dict):
        raise RuntimeError(f"{url} returned JSON that is not an object.")
    return resp.status_code, data


def check_endpoint(
    client: httpx.Client,
    base_url: str,
    path: str,
    *,
    expected_status: Optional[str],
    retries: int,
    retry_delay: float,
) -> dict[str, Any]:
    last_error = None
    for attempt in range(retries + 1):
        try:
            status_code, data = _get_json(client, f"{base_url}{path}")
            if status_code != 200:
                raise RuntimeError(f"{path} returned HTTP {status_code}: {data}")
            if expected_status is not None and data.get("status") != expected_status:
                raise RuntimeError(
                    f"{path} status mismatch: expected '{expected_status}', got '{data.get('status')}'."
                )
            print(f"OK: {path}")
            return data
        except (httpx.TransportError, RuntimeError) as exc:
            last_error = str(exc)

        if attempt < retries:
            wait = retry_delay * (attempt + 1)
            print(f"WARN: {last_error} (retry {attempt + 1}/{retries} in {wait:.1f}s)")
            time.sleep(wait)

    fail(last_error or f"{path} failed")
    return {}


def main() -> None:
    base_url = normalize_base_url(os.getenv("MNETIFI_BASE_URL", ""))
    if not base_url:
        fail("Missing MNETIFI_BASE_URL environment variable.")

    timeout = float(os.getenv("HEALTHCHECK_TIMEOUT_SECONDS", "25"))
    retries = int(os.getenv("HEALTHCHECK_RETRIES", "4"))
    retry_delay = float(os.getenv("HEALTHCHECK_RETRY_DELAY_SECONDS", "4"))
    portal = (os.getenv("HEALTHCHECK_PORTAL_SUBDOMAIN") or "").strip()

    print(f"Healthcheck config: base_url={base_url} timeout={timeout}s retries={retries}")
    headers = {"User-Agent": "mnetifi-healthcheck/1.0"}
    with httpx.Client(timeout=timeout, headers=headers) as client:
        kwargs = {"retries": retries, "retry_delay": retry_delay}
        check_endpoint(client, base_url, "/healthz", expected_status="ok", **kwargs)
        check_endpoint(client, base_url, "/readyz", expected_status="ready", **kwargs)
        if portal:
            data = check_endpoint(client, base_url, f"/api/portal/{portal}", expected_status=None, **kwargs)
            print(f"Portal '{portal}' serves {data.get('name')}")
    print("SUCCESS: all health checks passed.")


if __name__ == "__main__":
    main()
