"""Session guard and per-session application context."""

from __future__ import annotations

import hmac
import logging
import time
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pybreakerbot.client import BreakerBotClient
from pybreakerbot.config import BreakerBotConfig
from pybreakerbot.exceptions import ConfigError, NotAuthenticatedError

_logger = logging.getLogger(__name__)


class SessionRecord(BaseModel):
    """What survives between dashboard sessions: the authenticated flag only."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    authenticated: bool = False
    since: float = Field(default_factory=time.time)


class SessionGuard:
    """Admits the user with the dashboard access code.

    When *store_path* is given the authenticated flag is cached there so a
    reload does not ask for the code again.
    """

    def __init__(self, access_code: str | None, *, store_path: str | Path | None = None) -> None:
        self._access_code = access_code
        self._store_path = Path(store_path) if store_path is not None else None
        self._authenticated = self._load()

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    def login(self, code: str) -> bool:
        """Return whether *code* matches; on match the flag is set and cached."""
        if not self._access_code:
            raise ConfigError("No access code configured (set BREAKERBOT_ACCESS_CODE)")
        if not hmac.compare_digest(code.encode("utf-8"), self._access_code.encode("utf-8")):
            _logger.info("Dashboard login rejected")
            return False
        self._authenticated = True
        self._save(SessionRecord(authenticated=True))
        _logger.info("Dashboard login accepted")
        return True

    def logout(self) -> None:
        self._authenticated = False
        if self._store_path is not None:
            self._store_path.unlink(missing_ok=True)

    def _load(self) -> bool:
        path = self._store_path
        if path is None or not path.exists():
            return False
        try:
            record = SessionRecord.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError):
            _logger.debug("Ignoring unreadable session file %s", path, exc_info=True)
            return False
        return record.authenticated

    def _save(self, record: SessionRecord) -> None:
        path = self._store_path
        if path is None:
            return
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(record.model_dump_json(), encoding="utf-8")
        except OSError:
            _logger.warning("Could not persist session flag to %s", path, exc_info=True)


class AppContext:
    """Explicit per-session application context.

    Holds the configuration, the session guard and, while a session is
    running, the active :class:`BreakerBotClient`. Nothing here is global.

    Usage::

        ctx = AppContext(BreakerBotConfig.from_env())
        ctx.guard.login(code)
        client = await ctx.start()
        ...
        await ctx.logout()
    """

    def __init__(
        self,
        config: BreakerBotConfig,
        *,
        guard: SessionGuard | None = None,
        **client_kwargs: Any,
    ) -> None:
        self.config = config
        self.guard = guard or SessionGuard(config.access_code, store_path=config.session_file)
        self._client_kwargs = client_kwargs
        self._client: BreakerBotClient | None = None

    @property
    def client(self) -> BreakerBotClient | None:
        return self._client

    async def start(self) -> BreakerBotClient:
        """Create and connect the session's client; requires an authenticated guard."""
        if not self.guard.is_authenticated:
            raise NotAuthenticatedError("Log in before starting the dashboard session")
        if self._client is not None:
            return self._client
        client = BreakerBotClient(self.config, **self._client_kwargs)
        await client.__aenter__()
        self._client = client
        return client

    async def stop(self) -> None:
        """Tear down the client and discard all in-memory device state."""
        client = self._client
        self._client = None
        if client is not None:
            await client.__aexit__(None, None, None)

    async def logout(self) -> None:
        await self.stop()
        self.guard.logout()
