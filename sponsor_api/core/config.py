from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000", "https://quzii.com"]

PAYFAST_HOSTS = {
    "sandbox": "https://sandbox.payfast.co.za",
    "live": "https://www.payfast.co.za",
}


def _parse_cors_origins(v: Any) -> List[str]:
    try:
        if v is None or v == "":
            return _DEFAULT_CORS.copy()
        if isinstance(v, list):
            return [x for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if not s:
            return _DEFAULT_CORS.copy()
        if s.startswith("["):
            import json
            out = json.loads(s)
            return [x for x in out if isinstance(x, str) and x.strip()] or _DEFAULT_CORS.copy()
        return [x.strip() for x in s.split(",") if x.strip()] or _DEFAULT_CORS.copy()
    except Exception:
        return _DEFAULT_CORS.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")
    service_name: str = Field(default="Quzii Sponsor API", alias="SERVICE_NAME")
    public_base_url: str = Field(default="http://localhost:8000", alias="PUBLIC_BASE_URL")
    thankyou_url: str = Field(
        default="https://quzii.com/thank-you-for-your-sponsorship.html",
        alias="THANKYOU_URL",
    )
    cancel_url: str = Field(default="https://quzii.com/canceled.html", alias="CANCEL_URL")
    admin_api_key: str = Field(default="", alias="ADMIN_API_KEY")

    # Tabular store
    table_backend: str = Field(default="memory", alias="TABLE_BACKEND")
    spreadsheet_id: str = Field(default="", alias="SPREADSHEET_ID")
    google_service_account_file: str = Field(default="", alias="GOOGLE_SERVICE_ACCOUNT_FILE")
    sheet_orders: str = Field(default="Order Log", alias="SHEET_ORDERS")
    sheet_requests: str = Field(default="Sponsorship Requests", alias="SHEET_REQUESTS")
    sheet_catalogue: str = Field(default="Public_Catalogue", alias="SHEET_CATALOGUE")
    sheet_team: str = Field(default="VA Payout Summary", alias="SHEET_TEAM")

    # Orders
    order_id_prefix: str = Field(default="QZ", alias="ORDER_ID_PREFIX")
    brand_name: str = Field(default="QuziiWorld", alias="BRAND_NAME")

    # PayPal
    paypal_api_base: str = Field(default="https://api-m.paypal.com", alias="PP_API_BASE")
    paypal_client_id: str = Field(default="", alias="PP_CLIENT_ID")
    paypal_secret: str = Field(default="", alias="PP_SECRET")

    # PayFast
    payfast_mode: str = Field(default="live", alias="PF_MODE")
    payfast_merchant_id: str = Field(default="", alias="PF_MERCHANT_ID")
    payfast_merchant_key: str = Field(default="", alias="PF_MERCHANT_KEY")
    payfast_passphrase: str = Field(default="", alias="PF_PASSPHRASE")

    # EFT (bank transfer)
    eft_account_name: str = Field(default="QuziiWorld", alias="EFT_ACCOUNT_NAME")
    eft_bank_name: str = Field(default="Your Bank", alias="EFT_BANK_NAME")
    eft_account_number: str = Field(default="123456789", alias="EFT_ACCOUNT_NUMBER")
    eft_branch_code: str = Field(default="250655", alias="EFT_BRANCH_CODE")
    eft_swift: str = Field(default="ABSAZAJJ", alias="EFT_SWIFT")

    # Outbound HTTP (no retries)
    http_timeout_seconds: float = Field(default=10.0, alias="HTTP_TIMEOUT_SECONDS")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000,https://quzii.com",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors_origins(getattr(self, "cors_origins_raw", None))

    @property
    def payfast_process_url(self) -> str:
        return self._payfast_host() + "/eng/process"

    @property
    def payfast_validate_url(self) -> str:
        return self._payfast_host() + "/eng/query/validate"

    def _payfast_host(self) -> str:
        mode = (self.payfast_mode or "live").strip().lower()
        return PAYFAST_HOSTS.get(mode, PAYFAST_HOSTS["live"])


@lru_cache
def get_settings() -> Settings:
    return Settings()
