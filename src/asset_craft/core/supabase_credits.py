"""
Remote gemstone store backed by the Supabase `user_profiles` table.

Talks to PostgREST directly over HTTP. Writes are compare-and-set on the
balance that was just read, so a concurrent change makes the write match no
rows and the debit is re-validated against the fresh balance.
"""

from typing import Optional

import requests

from ..api.exceptions import CreditServiceError
from ..config import REQUEST_TIMEOUT_SECONDS, SUPABASE_PROFILE_TABLE
from ..logging_utils import log_api_call, log_credit_event, log_warning
from .ledger import CreditStore, _check_amount

CAS_ATTEMPTS = 3


class SupabaseCreditStore(CreditStore):
    """
    Args:
        base_url: Project URL, e.g. "https://xyz.supabase.co".
        api_key: Anon or service key.
        user_id: Row id in user_profiles.
        access_token: User JWT; the api key is used when omitted.
        session: Optional requests.Session (injected in tests).
    """

    name = "supabase"

    def __init__(self, base_url: str, api_key: str, user_id: str,
                 access_token: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.endpoint = f"{base_url.rstrip('/')}/rest/v1/{SUPABASE_PROFILE_TABLE}"
        self.user_id = user_id
        self.session = session or requests.Session()
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, params: dict, json_body: Optional[dict] = None) -> list:
        headers = dict(self.headers)
        if method == "PATCH":
            headers["Prefer"] = "return=representation"
        try:
            response = self.session.request(
                method,
                self.endpoint,
                params=params,
                json=json_body,
                headers=headers,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
        except requests.RequestException as e:
            log_api_call(f"supabase {method}", False, str(e))
            raise CreditServiceError(f"Gemstone service unreachable: {e}") from e

        if not response.ok:
            log_api_call(f"supabase {method}", False, f"HTTP {response.status_code}")
            raise CreditServiceError(
                f"Gemstone service error {response.status_code}: {response.text[:200]}"
            )
        try:
            rows = response.json()
        except ValueError as e:
            raise CreditServiceError("Gemstone service returned a non-JSON response") from e
        if not isinstance(rows, list):
            raise CreditServiceError("Gemstone service returned an unexpected payload")
        return rows

    def get_balance(self) -> int:
        rows = self._request("GET", {"id": f"eq.{self.user_id}", "select": "gemstones"})
        if not rows:
            raise CreditServiceError(f"No profile row for user {self.user_id}")
        try:
            return int(rows[0]["gemstones"])
        except (KeyError, TypeError, ValueError) as e:
            raise CreditServiceError("Profile row has no usable gemstones value") from e

    def _compare_and_set(self, observed: int, new_balance: int) -> bool:
        rows = self._request(
            "PATCH",
            {"id": f"eq.{self.user_id}", "gemstones": f"eq.{observed}"},
            {"gemstones": new_balance},
        )
        return bool(rows)

    def debit(self, amount: int) -> bool:
        _check_amount(amount)
        for _ in range(CAS_ATTEMPTS):
            observed = self.get_balance()
            if observed < amount:
                return False
            if self._compare_and_set(observed, observed - amount):
                log_credit_event("debited", amount, self.name, observed - amount)
                return True
            log_warning("Gemstone balance changed during debit, re-checking")
        raise CreditServiceError("Gemstone balance kept changing; debit abandoned")

    def credit(self, amount: int) -> None:
        _check_amount(amount)
        for _ in range(CAS_ATTEMPTS):
            observed = self.get_balance()
            if self._compare_and_set(observed, observed + amount):
                log_credit_event("credited", amount, self.name, observed + amount)
                return
            log_warning("Gemstone balance changed during credit, re-checking")
        raise CreditServiceError("Gemstone balance kept changing; credit abandoned")
