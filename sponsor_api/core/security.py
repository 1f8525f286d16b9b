import hashlib
import hmac
from typing import Mapping
from urllib.parse import quote_plus

from sponsor_api.core.config import get_settings
from sponsor_api.core.exceptions import UnauthorizedError


def payfast_param_string(params: Mapping[str, str], skip_blank: bool = False) -> str:
    """Key-sorted ``k=v`` pairs joined by ``&``, values form-encoded."""
    return "&".join(
        f"{key}={quote_plus(str(params[key]).strip())}"
        for key in sorted(params)
        if not (skip_blank and str(params[key]).strip() == "")
    )


def payfast_signature(params: Mapping[str, str], passphrase: str = "", skip_blank: bool = False) -> str:
    base = payfast_param_string(params, skip_blank=skip_blank)
    if passphrase:
        base += "&passphrase=" + quote_plus(passphrase.strip())
    return hashlib.md5(base.encode("utf-8")).hexdigest()


def verify_payfast_signature(params: Mapping[str, str], signature: str, passphrase: str = "") -> bool:
    expected = payfast_signature(params, passphrase)
    return hmac.compare_digest(expected, (signature or "").strip().lower())


def check_admin_key(key: str | None) -> None:
    """Finalize is admin-only when ADMIN_API_KEY is set; open otherwise."""
    expected = get_settings().admin_api_key
    if not expected:
        return
    if not key or not hmac.compare_digest(expected, key.strip()):
        raise UnauthorizedError("Admin key required")
