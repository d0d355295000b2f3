# src/inmoflow/services/portals.py
from __future__ import annotations

import logging
import math
import time
from datetime import date, datetime, timedelta, timezone
from typing import Any

from inmoflow.adapters.logging_utils import get_logger, log_event
from inmoflow.adapters.memory_repo import Repositories, new_id, now_iso
from inmoflow.domain.errors import InvalidInputError, NotFoundError
from inmoflow.domain.portals import (
    AuditEvent,
    AuditEventType,
    Credentials,
    HealthScore,
    JobAction,
    LogEntry,
    LogFilters,
    LogPage,
    PortalConfig,
    PortalInfo,
    PortalStats,
    SyncJob,
)
from inmoflow.domain.validation import ValidationResult, parse_model
from inmoflow.services.portal_rules import (
    health_score,
    mask_credentials,
    validate_advanced_config,
    validate_credentials,
    validate_log_filters,
    validate_mappings,
    validate_publish_defaults,
)

logger = get_logger(__name__)

STATS_WINDOW_DAYS = 30
NOT_CONNECTED_MESSAGE = "Portal no conectado"

_SUCCESS_MESSAGES: dict[str, str] = {
    "create": "Propiedad creada exitosamente",
    "update": "Propiedad actualizada exitosamente",
    "delete": "Propiedad eliminada exitosamente",
}


def _parse_ts(value: str) -> datetime:
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def validate_portal_config(data: dict[str, Any]) -> ValidationResult:
    """Validate whichever sections of a config document are present."""
    result = ValidationResult()
    if "credentials" in data:
        result.merge(validate_credentials(data["credentials"]), prefix="credentials")
    if "publishDefaults" in data:
        result.merge(validate_publish_defaults(data["publishDefaults"]), prefix="publishDefaults")
    if "mappings" in data:
        # paths already start with "mappings"
        mappings = validate_mappings(data["mappings"])
        for path, msg in mappings.errors.items():
            result.add("mappings" if path == "__root__" else path, msg)
    if "advanced" in data:
        result.merge(validate_advanced_config(data["advanced"]), prefix="advanced")
    return result


class PortalService:
    """Connection state, per-portal config and the sync-job queue of every listing portal."""

    def __init__(self, repos: Repositories) -> None:
        self.repos = repos

    # ----------------------------
    # Catalogue and connection
    # ----------------------------

    def list_portals(self) -> list[PortalInfo]:
        return self.repos.portals.list()

    def get_portal(self, portal_id: str) -> PortalInfo:
        portal = self.repos.portals.get(portal_id)
        if portal is None:
            raise NotFoundError("Portal", portal_id)
        return portal

    def _set_status(self, portal: PortalInfo, status: str) -> PortalInfo:
        updated = portal.model_copy(update={"status": status})
        self.repos.portals.replace(updated)
        return updated

    def _audit(
        self,
        portal: PortalInfo,
        event_type: AuditEventType,
        user: str,
        description: str,
        old_value: dict[str, Any] | None = None,
        new_value: dict[str, Any] | None = None,
    ) -> AuditEvent:
        event = AuditEvent(
            id=new_id("audit"),
            timestamp=now_iso(),
            portal_id=portal.id,
            portal_name=portal.name,
            event_type=event_type,
            user=user,
            description=description,
            old_value=old_value,
            new_value=new_value,
        )
        return self.repos.portal_audit.append(event)

    def connect(self, portal_id: str, credentials: dict[str, Any], *, user: str = "system") -> PortalInfo:
        portal = self.get_portal(portal_id)
        result = validate_credentials(credentials)
        if not result.ok:
            log_event(logger, "portal_connect_rejected", level=logging.WARNING,
                      portal_id=portal_id, fields=sorted(result.errors))
            raise InvalidInputError(result, "Errores de validación en credenciales")

        masked = Credentials.model_validate({**mask_credentials(credentials), "updatedAt": now_iso()})
        config = self.repos.portal_configs.get(portal_id) or PortalConfig()
        self.repos.portal_configs.put(portal_id, config.model_copy(update={"credentials": masked}))

        connected = self._set_status(portal, "CONNECTED")
        self._audit(connected, "connect", user, f"Conectado a {portal.name}",
                    new_value={"mode": masked.mode, "alias": masked.alias})
        log_event(logger, "portal_connected", portal_id=portal_id, mode=masked.mode)
        return connected

    def disconnect(self, portal_id: str, *, user: str = "system") -> PortalInfo:
        portal = self.get_portal(portal_id)
        disconnected = self._set_status(portal, "DISCONNECTED")
        self._audit(disconnected, "disconnect", user, f"Desconectado de {portal.name}",
                    old_value={"status": portal.status})
        log_event(logger, "portal_disconnected", portal_id=portal_id)
        return disconnected

    # ----------------------------
    # Config
    # ----------------------------

    def get_config(self, portal_id: str) -> PortalConfig:
        self.get_portal(portal_id)
        return self.repos.portal_configs.get(portal_id) or PortalConfig()

    def save_config(self, portal_id: str, data: dict[str, Any], *, user: str = "system") -> PortalConfig:
        portal = self.get_portal(portal_id)
        result = validate_portal_config(data)
        if not result.ok:
            log_event(logger, "portal_config_rejected", level=logging.WARNING,
                      portal_id=portal_id, fields=sorted(result.errors))
            raise InvalidInputError(result, "Configuración inválida")

        current = self.get_config(portal_id)
        merged = {**current.model_dump(by_alias=True), **data,
                  "updatedAt": now_iso(), "updatedBy": user}
        if "credentials" in data:
            merged["credentials"] = mask_credentials(data["credentials"])
        config, parsed = parse_model(PortalConfig, merged)
        if config is None:
            raise InvalidInputError(parsed, "Configuración inválida")
        self.repos.portal_configs.put(portal_id, config)

        if "mappings" in data:
            self._audit(portal, "mapping_change", user, "Modificado mapeo de campos",
                        old_value={"mappings": len(current.mappings)},
                        new_value={"mappings": len(config.mappings)})
        changed = sorted(k for k in data if k != "mappings")
        if changed:
            event_type = "credential_update" if changed == ["credentials"] else "config_change"
            self._audit(portal, event_type, user, "Actualizada configuración",
                        new_value={"sections": changed})
        log_event(logger, "portal_config_saved", portal_id=portal_id, sections=sorted(data))
        return config

    # ----------------------------
    # Sync jobs
    # ----------------------------

    def jobs(self, portal_id: str) -> list[SyncJob]:
        self.get_portal(portal_id)
        return [j for j in self.repos.sync_jobs.list() if j.portal_id == portal_id]

    def enqueue(self, portal_id: str, action: JobAction, ref: str) -> SyncJob:
        self.get_portal(portal_id)
        job = SyncJob(id=new_id("job"), portal_id=portal_id, action=action, ref=ref, at=now_iso())
        self.repos.sync_jobs.add(job)
        log_event(logger, "sync_job_enqueued", portal_id=portal_id, action=action, ref=ref)
        return job

    def _execute(self, portal: PortalInfo, job: SyncJob, user: str) -> SyncJob:
        started = now_iso()
        t0 = time.perf_counter()
        ok = portal.status == "CONNECTED"
        done = job.model_copy(update={
            "status": "ok" if ok else "error",
            "message": _SUCCESS_MESSAGES[job.action] if ok else NOT_CONNECTED_MESSAGE,
            "attempts": job.attempts + 1,
            "started_at": started,
            "completed_at": now_iso(),
            "duration_ms": int((time.perf_counter() - t0) * 1000),
        })
        self.repos.sync_jobs.replace(done)
        self.repos.portal_logs.append(LogEntry(
            id=new_id("log"),
            timestamp=done.completed_at,
            portal_id=portal.id,
            portal_name=portal.name,
            action=done.action,
            entity=done.entity,
            entity_id=done.ref,
            result=done.status,
            message=done.message,
            duration=done.duration_ms,
            user=user,
        ))
        return done

    def run_pending(self, portal_id: str, *, user: str = "system") -> list[SyncJob]:
        portal = self.get_portal(portal_id)
        pending = [j for j in self.jobs(portal_id) if j.status == "pending"]
        done = [self._execute(portal, j, user) for j in pending]
        if done and portal.status == "CONNECTED":
            self.repos.portals.replace(portal.model_copy(update={"last_sync_at": now_iso()}))
        failed = sum(1 for j in done if j.status == "error")
        log_event(logger, "sync_jobs_run", level=logging.WARNING if failed else logging.INFO,
                  portal_id=portal_id, processed=len(done), failed=failed)
        return done

    def retry_failed(self, portal_id: str, *, user: str = "system") -> int:
        portal = self.get_portal(portal_id)
        failed = [j for j in self.jobs(portal_id) if j.status == "error"]
        for job in failed:
            self._execute(portal, job, user)
        if failed:
            self._audit(portal, "sync_retry", user, f"Reintentados {len(failed)} trabajos fallidos",
                        new_value={"retried": len(failed)})
        log_event(logger, "sync_jobs_retried", portal_id=portal_id, retried=len(failed))
        return len(failed)

    # ----------------------------
    # Stats, logs, audit
    # ----------------------------

    def stats(
        self,
        portal_id: str,
        start: str | None = None,
        end: str | None = None,
        *,
        now: datetime | None = None,
    ) -> PortalStats:
        self.get_portal(portal_id)
        now = now or datetime.now(timezone.utc)
        end = end or now.date().isoformat()
        start = start or (now.date() - timedelta(days=STATS_WINDOW_DAYS)).isoformat()

        done = [
            j for j in self.jobs(portal_id)
            if j.status != "pending" and start <= _parse_ts(j.completed_at or j.at).date().isoformat() <= end
        ]
        ok = [j for j in done if j.status == "ok"]
        recent_errors = [
            j for j in done
            if j.status == "error" and now - _parse_ts(j.completed_at or j.at) <= timedelta(hours=24)
        ]
        durations = [j.duration_ms for j in done if j.duration_ms is not None]
        listings = [p for p in self.repos.properties.list() if p.portal_sync.get(portal_id)]

        return PortalStats(
            from_=start,
            to=end,
            active_listings=len(listings),
            leads=sum(p.activity.inquiries for p in listings),
            errors_24h=len(recent_errors),
            avg_response_time=sum(durations) / len(durations) if durations else None,
            total_requests=len(done),
            success_rate=len(ok) / len(done) * 100 if done else 100.0,
        )

    def health(self, portal_id: str) -> HealthScore:
        return health_score(self.stats(portal_id))

    def logs(self, filters: dict[str, Any] | None = None) -> LogPage:
        raw = filters or {}
        result = validate_log_filters(raw)
        f, parsed = parse_model(LogFilters, raw)
        if not result.ok or f is None:
            raise InvalidInputError(result.merge(parsed), "Errores de validación en filtros")

        entries = self.repos.portal_logs.list()
        if f.portal_id:
            entries = [e for e in entries if e.portal_id == f.portal_id]
        if f.action:
            entries = [e for e in entries if e.action == f.action]
        if f.result:
            entries = [e for e in entries if e.result == f.result]
        if f.from_:
            entries = [e for e in entries if e.timestamp[:10] >= date.fromisoformat(f.from_).isoformat()]
        if f.to:
            entries = [e for e in entries if e.timestamp[:10] <= date.fromisoformat(f.to).isoformat()]
        entries.sort(key=lambda e: e.timestamp, reverse=True)

        start = (f.page - 1) * f.size
        return LogPage(
            logs=entries[start:start + f.size],
            total=len(entries),
            page=f.page,
            total_pages=math.ceil(len(entries) / f.size),
        )

    def audit_trail(self, portal_id: str | None = None) -> list[AuditEvent]:
        events = self.repos.portal_audit.list()
        if portal_id:
            events = [e for e in events if e.portal_id == portal_id]
        return sorted(events, key=lambda e: e.timestamp, reverse=True)
