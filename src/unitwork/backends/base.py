"""
Persistence backend contract and connection configuration.
"""

from __future__ import annotations

import os
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Hashable, Optional, Protocol, runtime_checkable

from ..errors import BackendConfigurationError
from ..security.dsns import DSNConfig, parse_dsn

if TYPE_CHECKING:
    from ..core import EntityMapping
    from ..persistence.change_set import ChangeSet


@dataclass(frozen=True)
class TransactionHandle:
    """
    Opaque token for one backend transaction.
    """

    backend: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    payload: Any = field(default=None, compare=False, repr=False)


@runtime_checkable
class PersistenceBackend(Protocol):
    """
    Storage collaborator applying change sets atomically.
    """

    def begin_transaction(self) -> TransactionHandle:
        """
        Start a transaction. Raises ``BackendUnavailableError`` when the store
        cannot be reached or is already busy.
        """

    def apply(self, transaction: TransactionHandle, change_set: "ChangeSet") -> None:
        """
        Apply every change or none of them. Raises ``BackendError`` on failure.
        """

    def commit_transaction(self, transaction: TransactionHandle) -> None:
        """
        Make the applied changes durable.
        """

    def rollback_transaction(self, transaction: TransactionHandle) -> None:
        """
        Undo everything applied inside ``transaction``. Must tolerate being
        called after a failed apply or a failed commit.
        """


@runtime_checkable
class EntityReader(Protocol):
    """
    Read side used by repositories to load untracked entities.
    """

    def load(self, mapping: "EntityMapping", key: Hashable) -> Optional[Dict[str, Any]]:
        """
        Return the stored state for ``key`` or ``None`` when it does not exist.
        """


@dataclass
class SSLConfig:
    mode: str | None = None
    rootcert: str | None = None
    cert: str | None = None
    key: str | None = None
    ca: str | None = None
    check_hostname: bool | None = None

    def postgres_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if self.mode:
            options["sslmode"] = self.mode
        if self.rootcert:
            options["sslrootcert"] = self.rootcert
        if self.cert:
            options["sslcert"] = self.cert
        if self.key:
            options["sslkey"] = self.key
        return options

    def mysql_options(self) -> dict[str, Any]:
        ssl: dict[str, Any] = {}
        if self.ca:
            ssl["ca"] = self.ca
        if self.cert:
            ssl["cert"] = self.cert
        if self.key:
            ssl["key"] = self.key
        if self.check_hostname is not None:
            ssl["check_hostname"] = self.check_hostname
        if not ssl:
            return {}
        return {"ssl": ssl}


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}
_SSL_KEYS = {
    "sslmode": "mode",
    "sslrootcert": "rootcert",
    "sslcert": "cert",
    "sslkey": "key",
    "ssl_ca": "ca",
    "ssl_cert": "cert",
    "ssl_key": "key",
}


def _parse_bool(value: str, *, key: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise BackendConfigurationError(f"Invalid boolean value for '{key}': {value!r}")


def _parse_number(value: str, *, key: str, kind: type) -> Any:
    try:
        return kind(value)
    except ValueError as exc:
        raise BackendConfigurationError(f"Invalid {kind.__name__} value for '{key}': {value!r}") from exc


def _parse_ssl(query: dict[str, str]) -> SSLConfig | None:
    ssl = SSLConfig()
    found = False
    for query_key, attribute in _SSL_KEYS.items():
        if query_key in query:
            setattr(ssl, attribute, query.pop(query_key))
            found = True
    if "ssl_check_hostname" in query:
        ssl.check_hostname = _parse_bool(query.pop("ssl_check_hostname"), key="ssl_check_hostname")
        found = True
    return ssl if found else None


@dataclass
class BackendConfig:
    """
    Normalized connection configuration for SQL backends.
    """

    url: str
    autocommit: bool = False
    isolation_level: str | None = None
    timeout: float | None = None
    options: dict[str, Any] | None = None
    ssl: SSLConfig | None = None
    dsn: DSNConfig | None = None
    source: str | None = None

    @classmethod
    def from_dsn(cls, dsn: str, **kwargs: Any) -> "BackendConfig":
        """
        Build a config by parsing the DSN string; keyword arguments win over
        values found in the query string.
        """

        try:
            parsed = parse_dsn(dsn)
        except ValueError as exc:
            raise BackendConfigurationError(str(exc)) from exc
        query = dict(parsed.query)

        autocommit = _parse_bool(query.pop("autocommit"), key="autocommit") if "autocommit" in query else False
        timeout = _parse_number(query.pop("timeout"), key="timeout", kind=float) if "timeout" in query else None
        isolation_level = query.pop("isolation_level", None)
        ssl = _parse_ssl(query)
        options: dict[str, Any] = {}
        for key, value in query.items():
            options[key] = _parse_number(value, key=key, kind=int) if key == "connect_timeout" else value
        options.update(kwargs.pop("options", None) or {})

        return cls(
            url=dsn,
            dsn=parsed,
            autocommit=kwargs.pop("autocommit", autocommit),
            isolation_level=kwargs.pop("isolation_level", isolation_level),
            timeout=kwargs.pop("timeout", timeout),
            options=options or None,
            ssl=kwargs.pop("ssl", ssl),
            **kwargs,
        )

    @classmethod
    def from_env(cls, env_var: str = "UNITWORK_DATABASE_URL", **kwargs: Any) -> "BackendConfig":
        """
        Build a config from an environment variable holding a DSN.
        """

        value = os.getenv(env_var)
        if not value:
            raise BackendConfigurationError(f"Environment variable {env_var} is not set")
        return cls.from_dsn(value, source=env_var, **kwargs)

    @property
    def scheme(self) -> str:
        if self.dsn:
            return self.dsn.backend
        return self.url.split(":", 1)[0].split("+", 1)[0].lower()

    def redacted_dsn(self) -> str:
        """
        Return a DSN safe for logging (credentials removed).
        """

        if self.dsn:
            return self.dsn.redacted()
        return self.url

    def descriptive_label(self) -> str:
        redacted = self.redacted_dsn()
        if self.source:
            return f"{self.source} ({redacted})"
        return redacted
