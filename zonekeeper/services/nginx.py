"""Reverse-proxy (nginx) config generation and reload."""

from __future__ import annotations

import ipaddress
import logging
import os
import re
import shlex
import subprocess
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from jinja2 import Environment, FileSystemLoader, StrictUndefined
from sqlalchemy.orm import Session

from zonekeeper.models.proxy_route import ProxyRoute
from zonekeeper.settings import ProxyConfig

log = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
TEMPLATE_NAME = "nginx/proxy_routes.conf.j2"
PLACEHOLDER = "# No proxied domains configured\n"
PROXY_TIMEOUT = "60s"

_server_name_re = re.compile(
    r"(\*\.)?([a-z0-9_]([a-z0-9_-]{0,61}[a-z0-9_])?\.)+[a-z]{2,}", re.IGNORECASE | re.ASCII
)

# One writer at a time for the generated file and the reload that follows it
_regenerate_lock = threading.Lock()


class ConfigApplyError(Exception):
    """The config file was written but nginx rejected it or failed to reload."""


@dataclass(frozen=True)
class CommandResult:
    ok: bool
    output: str = ""


@dataclass(frozen=True)
class RegenerateResult:
    route_count: int
    path: str
    reloaded: bool


class ProxyController(Protocol):
    def validate_config(self) -> CommandResult: ...

    def reload(self) -> CommandResult: ...


class ShellProxyController:
    """Runs the configured nginx test/reload commands."""

    def __init__(self, config: ProxyConfig):
        self.config = config

    def _run(self, cmd: str) -> CommandResult:
        try:
            result = subprocess.run(
                shlex.split(cmd),
                capture_output=True,
                text=True,
                timeout=self.config.command_timeout,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(False, f"'{cmd}' timed out")
        except OSError as e:
            return CommandResult(False, f"'{cmd}' could not be run: {e}")

        output = (result.stderr or result.stdout or "").strip()
        return CommandResult(result.returncode == 0, output)

    def validate_config(self) -> CommandResult:
        return self._run(self.config.test_cmd)

    def reload(self) -> CommandResult:
        return self._run(self.config.reload_cmd)


def _upstream_host(origin_ip: str) -> str | None:
    try:
        addr = ipaddress.ip_address(origin_ip)
    except ValueError:
        return None
    return f"[{addr}]" if addr.version == 6 else str(addr)


def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=False,
        keep_trailing_newline=True,
        trim_blocks=True,
        undefined=StrictUndefined,
    )


class NginxConfigGenerator:
    def __init__(self, config: ProxyConfig, controller: ProxyController):
        self.config = config
        self.controller = controller
        self._template = _environment().get_template(TEMPLATE_NAME)

    def _entries(self, routes: list[ProxyRoute]) -> tuple[list[dict], list[ProxyRoute]]:
        entries = []
        skipped = []
        for route in routes:
            upstream = _upstream_host(route.origin_ip)
            port = int(route.origin_port)
            if upstream is None or not _server_name_re.fullmatch(route.domain) or not 0 < port < 65536:
                log.error(
                    f"Skipping proxy route {route.id}: invalid domain/origin "
                    f"{route.domain!r} -> {route.origin_ip!r}:{route.origin_port}"
                )
                skipped.append(route)
                continue
            entries.append({"domain": route.domain, "upstream": upstream, "origin_port": port})
        return entries, skipped

    def _render_entries(self, entries: list[dict]) -> str:
        return self._template.render(
            routes=entries,
            timeout=PROXY_TIMEOUT,
            generated_at=datetime.now(timezone.utc).isoformat(),
        )

    def render(self, routes: list[ProxyRoute]) -> str:
        """Render the config; routes with an unusable domain or origin are left out."""
        entries, _ = self._entries(routes)
        return self._render_entries(entries)

    def _write(self, content: str) -> None:
        path = self.config.config_path
        directory = os.path.dirname(path) or "."
        os.makedirs(directory, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".zonekeeper-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _reload(self) -> None:
        result = self.controller.reload()
        if not result.ok:
            log.error(f"nginx reload failed: {result.output}")
            raise ConfigApplyError("Failed to reload Nginx configuration")

    def regenerate(self, db: Session) -> RegenerateResult:
        """Rewrite the proxy config from every route, then test and reload nginx."""
        with _regenerate_lock:
            routes = db.query(ProxyRoute).order_by(ProxyRoute.domain, ProxyRoute.id).all()
            path = self.config.config_path

            if not routes:
                self._write(PLACEHOLDER)
                # Placeholder is comment-only; reload so dropped routes stop serving
                self._reload()
                log.info(f"Wrote empty proxy config to {path}")
                return RegenerateResult(0, path, True)

            entries, skipped = self._entries(routes)
            self._write(self._render_entries(entries))

            test = self.controller.validate_config()
            if not test.ok:
                log.error(f"nginx config test failed, reload skipped: {test.output}")
                raise ConfigApplyError("Nginx configuration test failed")

            self._reload()
            log.info(f"Wrote {len(entries)} proxy routes to {path} and reloaded nginx")
            if skipped:
                # Valid routes are live; the skipped ones have no server block
                domains = ", ".join(sorted(r.domain for r in skipped))
                raise ConfigApplyError(f"Proxy routes left out of the configuration: {domains}")
            return RegenerateResult(len(entries), path, True)
