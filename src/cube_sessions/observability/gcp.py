"""Service-account credentials for the Cloud Logging handler."""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, cast

from google.oauth2.service_account import Credentials as ServiceAccountCredentials

CREDENTIALS_ENV = "GCP_SERVICE_ACCOUNT_CREDENTIAL_BASE64"
_LOGGING_SCOPE = "https://www.googleapis.com/auth/logging.write"


def decode_service_account(blob: str, *, source: str = CREDENTIALS_ENV) -> dict[str, Any]:
    """Decode a base64 service-account JSON document into its mapping."""
    try:
        raw = base64.b64decode(blob.strip().encode("utf-8"), validate=True)
        info = json.loads(raw.decode("utf-8"))
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"{source} is not base64-encoded service account JSON") from exc
    if not isinstance(info, dict):
        raise ValueError(f"{source} must decode to a JSON object")
    return info


def credentials_from_b64(
    blob: str,
    *,
    source: str = CREDENTIALS_ENV,
    scopes: tuple[str, ...] = (_LOGGING_SCOPE,),
) -> ServiceAccountCredentials:
    info = decode_service_account(blob, source=source)
    return cast(
        ServiceAccountCredentials,
        ServiceAccountCredentials.from_service_account_info(  # type: ignore[no-untyped-call]
            info,
            scopes=scopes,
        ),
    )


__all__ = ["CREDENTIALS_ENV", "credentials_from_b64", "decode_service_account"]
