from __future__ import annotations

import logging
import sys
from typing import Any, Callable, Dict, List, Optional, Union

import msal
from azure.identity import InteractiveBrowserCredential

from .audit import JsonAuditLogger
from .config import DeviceCodeAuth, InteractiveAuth, InteractiveBrowserAuth, InventoryConfig
from .errors import AuthenticationError, TenantFailure
from .models import Session

logger = logging.getLogger(__name__)

Prompt = Callable[[str], None]


def _print_prompt(message: str) -> None:
    print(message, file=sys.stderr, flush=True)


class _MsalSignIn:
    """Release handle for an MSAL public client holding one tenant's accounts."""

    def __init__(self, app: msal.PublicClientApplication):
        self.app = app

    def close(self) -> None:
        for account in self.app.get_accounts():
            self.app.remove_account(account)


class TenantAuthenticator:
    """Interactive, delegated sign-in to one tenant at a time.

    Every call to ``acquire_session`` blocks on a human: the operator signs in
    and approves MFA for the tenant being processed. Tokens live in a fresh
    in-memory MSAL cache per tenant and are discarded on release, so a session
    can never leak into the next tenant. Only one session is live at a time;
    acquiring a new one releases the previous one first.
    """

    def __init__(
        self,
        config: InventoryConfig,
        audit_logger: JsonAuditLogger,
        prompt: Optional[Prompt] = None,
    ):
        self.config = config
        self.audit = audit_logger
        self.prompt = prompt or _print_prompt
        self._active: Optional[Session] = None

    @property
    def active_session(self) -> Optional[Session]:
        return self._active

    def acquire_session(self, tenant: str) -> Union[Session, TenantFailure]:
        if self._active is not None and not self._active.released:
            self.audit.warning(
                "session_superseded",
                tenant_id=self._active.tenant,
                next_tenant_id=tenant,
            )
            self.release_session(self._active)

        auth_config = self.config.auth
        try:
            if isinstance(auth_config, DeviceCodeAuth):
                session = self._sign_in_device_code(tenant, auth_config)
            elif isinstance(auth_config, InteractiveAuth):
                session = self._sign_in_interactive(tenant, auth_config)
            elif isinstance(auth_config, InteractiveBrowserAuth):
                session = self._sign_in_browser(tenant, auth_config)
            else:
                raise AuthenticationError("Unsupported authentication configuration")
        except Exception as exc:
            self.audit.error(
                "session_failed",
                tenant_id=tenant,
                auth_type=auth_config.type,
                error=str(exc),
            )
            return TenantFailure.auth(tenant, str(exc) or type(exc).__name__)

        self._active = session
        self.audit.info(
            "session_acquired",
            tenant_id=tenant,
            auth_type=auth_config.type,
            username=session.username,
        )
        return session

    def release_session(self, session: Session) -> None:
        if session.released:
            return
        try:
            if session.handle is not None:
                session.handle.close()
        except Exception as exc:
            self.audit.warning("session_release_failed", tenant_id=session.tenant, error=str(exc))
        finally:
            session.released = True
            session.access_token = ""
            if self._active is session:
                self._active = None
        self.audit.info("session_released", tenant_id=session.tenant)

    def _public_client(self, tenant: str, client_id: str, authority_host: str) -> msal.PublicClientApplication:
        return msal.PublicClientApplication(
            client_id,
            authority=f"{authority_host.rstrip('/')}/{tenant}",
            token_cache=msal.TokenCache(),
        )

    def _sign_in_device_code(self, tenant: str, auth_config: DeviceCodeAuth) -> Session:
        app = self._public_client(tenant, auth_config.client_id, auth_config.authority_host)
        handle = _MsalSignIn(app)
        try:
            flow = app.initiate_device_flow(scopes=list(self.config.scopes))
            if "user_code" not in flow:
                raise AuthenticationError(
                    f"Device code start failed: {flow.get('error')} - {flow.get('error_description')}"
                )
            self.prompt(f"[{tenant}] {flow['message']}")
            result = app.acquire_token_by_device_flow(flow)
            return self._session_from_result(tenant, result, handle)
        except Exception:
            handle.close()
            raise

    def _sign_in_interactive(self, tenant: str, auth_config: InteractiveAuth) -> Session:
        app = self._public_client(tenant, auth_config.client_id, auth_config.authority_host)
        handle = _MsalSignIn(app)
        self.prompt(f"[{tenant}] Complete the sign-in in the browser window that opens.")
        try:
            result = app.acquire_token_interactive(
                scopes=list(self.config.scopes),
                login_hint=auth_config.login_hint,
                prompt="select_account",
                timeout=auth_config.timeout,
            )
            return self._session_from_result(tenant, result, handle)
        except Exception:
            handle.close()
            raise

    def _sign_in_browser(self, tenant: str, auth_config: InteractiveBrowserAuth) -> Session:
        credential = InteractiveBrowserCredential(
            tenant_id=tenant,
            client_id=auth_config.client_id,
            authority=auth_config.authority_host,
            login_hint=auth_config.login_hint,
        )
        self.prompt(f"[{tenant}] Complete the sign-in in the browser window that opens.")
        try:
            token = credential.get_token(*self._resource_scopes())
        except Exception:
            credential.close()
            raise
        return Session(tenant=tenant, access_token=token.token, handle=credential)

    def _resource_scopes(self) -> List[str]:
        base = self.config.graph_base_url.rstrip("/")
        return [scope if "://" in scope else f"{base}/{scope}" for scope in self.config.scopes]

    @staticmethod
    def _session_from_result(tenant: str, result: Optional[Dict[str, Any]], handle: _MsalSignIn) -> Session:
        if not result or "access_token" not in result:
            result = result or {}
            raise AuthenticationError(
                f"Token acquisition failed: {result.get('error')} - {result.get('error_description')}"
            )
        claims = result.get("id_token_claims") or {}
        return Session(
            tenant=tenant,
            access_token=result["access_token"],
            handle=handle,
            username=claims.get("preferred_username"),
        )
