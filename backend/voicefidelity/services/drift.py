"""
Drift monitoring.

Keeps a rolling window of run metrics per (user, model, prompt version) and
raises append-only alerts when fidelity drops or becomes erratic. Open
alerts feed the ``drift`` enforcement class until acknowledged.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from fastapi import HTTPException

from ..models.drift import DimensionStats, DriftAlert, DriftAlertType, DriftSeverity, RollingStats, RunMetric
from .supabase import DRIFT_ALERTS_TABLE, RUN_METRICS_TABLE, supabase_client

logger = logging.getLogger(__name__)

WINDOW_SIZE = 20
RECENT_SIZE = 10
MIN_PRIOR_RUNS = 3
MIN_RUNS = RECENT_SIZE + MIN_PRIOR_RUNS

MEAN_DROP_DELTA = 0.08
HIGH_SEVERITY_DROP = 0.12
VARIANCE_SPIKE_MULTIPLE = 2.5
MEDIUM_SEVERITY_SPIKE = 4.0


def mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def variance(values: Sequence[float]) -> float:
    if len(values) < 2:
        return 0.0
    m = mean(values)
    return sum((v - m) ** 2 for v in values) / len(values)


def detect_drift(metrics: List[RunMetric]) -> List[DriftAlert]:
    """
    Compare the newest runs against the ones before them.

    ``metrics`` must be ordered newest first. Returns unsaved alerts, at most
    one per alert type.
    """
    window = metrics[:WINDOW_SIZE]
    recent = window[:RECENT_SIZE]
    prior = window[RECENT_SIZE:]
    if len(window) < MIN_RUNS:
        return []

    head = window[0]
    alerts: List[DriftAlert] = []

    def make(alert_type: DriftAlertType, severity: DriftSeverity, metric: str, before, after) -> DriftAlert:
        return DriftAlert(
            user_id=head.user_id,
            model=head.model,
            prompt_version=head.prompt_version,
            alert_type=alert_type,
            severity=severity,
            metric=metric,
            mean_before=mean(before),
            mean_after=mean(after),
            variance_before=variance(before),
            variance_after=variance(after),
            run_count=len(window),
        )

    # Largest drop across combined and semantic decides severity
    drops = []
    for metric in ("combined_score", "semantic_score"):
        before = [getattr(m, metric) for m in prior]
        after = [getattr(m, metric) for m in recent]
        drops.append((mean(before) - mean(after), metric, before, after))
    drop, metric, before, after = max(drops, key=lambda d: d[0])
    if drop > MEAN_DROP_DELTA:
        severity = DriftSeverity.HIGH if drop > HIGH_SEVERITY_DROP else DriftSeverity.MEDIUM
        alerts.append(make(DriftAlertType.SIMILARITY_DROP, severity, metric, before, after))

    before = [m.combined_score for m in prior]
    after = [m.combined_score for m in recent]
    prior_var = variance(before)
    recent_var = variance(after)
    if prior_var > 0 and recent_var > VARIANCE_SPIKE_MULTIPLE * prior_var:
        severity = DriftSeverity.MEDIUM if recent_var >= MEDIUM_SEVERITY_SPIKE * prior_var else DriftSeverity.LOW
        alerts.append(make(DriftAlertType.VARIANCE_SPIKE, severity, "combined_score", before, after))

    return alerts


def rolling_stats(user_id: str, model: str, prompt_version: str, metrics: List[RunMetric]) -> RollingStats:
    window = metrics[:WINDOW_SIZE]

    def stats(field: str) -> DimensionStats:
        values = [getattr(m, field) for m in window]
        return DimensionStats(mean=mean(values), variance=variance(values))

    return RollingStats(
        user_id=user_id,
        model=model,
        prompt_version=prompt_version,
        run_count=len(window),
        semantic=stats("semantic_score"),
        stylistic=stats("stylistic_score"),
        combined=stats("combined_score"),
    )


class DriftMonitor:
    """Records run metrics and maintains drift alerts."""

    def __init__(self):
        self.client = supabase_client

    async def record_metric(self, metric: RunMetric) -> None:
        try:
            self.client.table(RUN_METRICS_TABLE).insert(metric.model_dump(mode="json", exclude={"id", "created_at"})).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to record run metric: {str(e)}")

    async def recent_metrics(self, user_id: str, model: str, prompt_version: str) -> List[RunMetric]:
        try:
            response = (
                self.client.table(RUN_METRICS_TABLE)
                .select("*")
                .eq("user_id", user_id)
                .eq("model", model)
                .eq("prompt_version", prompt_version)
                .order("created_at", desc=True)
                .limit(WINDOW_SIZE)
                .execute()
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to load run metrics: {str(e)}")
        return [RunMetric(**row) for row in response.data]

    async def list_alerts(
        self,
        user_id: Optional[str] = None,
        model: Optional[str] = None,
        prompt_version: Optional[str] = None,
        unacknowledged_only: bool = False,
    ) -> List[DriftAlert]:
        try:
            query = self.client.table(DRIFT_ALERTS_TABLE).select("*")
            if user_id:
                query = query.eq("user_id", user_id)
            if model:
                query = query.eq("model", model)
            if prompt_version:
                query = query.eq("prompt_version", prompt_version)
            if unacknowledged_only:
                query = query.eq("acknowledged", False)
            response = query.order("created_at", desc=True).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to list drift alerts: {str(e)}")
        return [DriftAlert(**row) for row in response.data]

    async def has_active_alert(self, user_id: str, model: str, prompt_version: str) -> bool:
        alerts = await self.list_alerts(user_id, model, prompt_version, unacknowledged_only=True)
        return bool(alerts)

    async def update(self, metric: RunMetric) -> List[DriftAlert]:
        """Record a run's metric, then raise any new alerts for its tuple."""
        await self.record_metric(metric)
        metrics = await self.recent_metrics(metric.user_id, metric.model, metric.prompt_version)
        candidates = detect_drift(metrics)
        if not candidates:
            return []

        open_types = {
            a.alert_type
            for a in await self.list_alerts(metric.user_id, metric.model, metric.prompt_version, unacknowledged_only=True)
        }
        raised = []
        for alert in candidates:
            if alert.alert_type in open_types:
                continue
            try:
                response = (
                    self.client.table(DRIFT_ALERTS_TABLE)
                    .insert(alert.model_dump(mode="json", exclude={"id", "created_at"}))
                    .execute()
                )
            except Exception as e:
                raise HTTPException(status_code=500, detail=f"Failed to store drift alert: {str(e)}")
            logger.warning(
                "Drift alert %s (%s) for user %s on %s/%s",
                alert.alert_type.value,
                alert.severity.value,
                metric.user_id,
                metric.model,
                metric.prompt_version,
            )
            raised.append(DriftAlert(**response.data[0]))
        return raised

    async def acknowledge(self, alert_id: str, user_id: Optional[str] = None) -> DriftAlert:
        try:
            response = self.client.table(DRIFT_ALERTS_TABLE).select("*").eq("id", alert_id).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to load drift alert: {str(e)}")
        if not response.data:
            raise HTTPException(status_code=404, detail="Drift alert not found")
        alert = DriftAlert(**response.data[0])
        if user_id and alert.user_id != user_id:
            raise HTTPException(status_code=403, detail="Not authorized to acknowledge this alert")
        if alert.acknowledged:
            return alert

        now = datetime.now(timezone.utc)
        try:
            self.client.table(DRIFT_ALERTS_TABLE).update({
                "acknowledged": True,
                "acknowledged_at": now.isoformat(),
            }).eq("id", alert_id).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to acknowledge drift alert: {str(e)}")
        return alert.model_copy(update={"acknowledged": True, "acknowledged_at": now})

    async def stats(self, user_id: str, model: str, prompt_version: str) -> RollingStats:
        metrics = await self.recent_metrics(user_id, model, prompt_version)
        return rolling_stats(user_id, model, prompt_version, metrics)

    async def update_in_background(self, metric: RunMetric) -> None:
        """Background-task entry point: drift bookkeeping must not fail a finished run."""
        try:
            await self.update(metric)
        except HTTPException as e:
            logger.error("Drift update failed for run %s: %s", metric.run_id, e.detail)
