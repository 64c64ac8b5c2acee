"""
Tests for drift monitoring.

Acceptance criteria:
- A mean drop above 0.08 raises similarity_drop; above 0.12 it is high severity
- A variance spike above 2.5x raises variance_spike
- Nothing is raised with too little history
- Open alerts are not duplicated; acknowledgement is owner-only
"""

import pytest
from fastapi import HTTPException

from backend.voicefidelity.models.drift import DriftAlertType, DriftSeverity, RunMetric
from backend.voicefidelity.models.editorial import EnforcementClass


def metric(combined, semantic=None, index=0, user_id="user-1"):
    return RunMetric(
        run_id=f"run-{index}",
        user_id=user_id,
        model="fake-model",
        prompt_version="line-v1",
        semantic_score=combined if semantic is None else semantic,
        stylistic_score=combined,
        combined_score=combined,
        enforcement_class=EnforcementClass.PASS,
    )


def newest_first(prior, recent):
    """Build a metric window from oldest-to-newest score lists."""
    scores = list(prior) + list(recent)
    return [metric(score, index=i) for i, score in reversed(list(enumerate(scores)))]


@pytest.fixture
def drift(db):
    """The drift module, imported once the Supabase client is mocked."""
    from backend.voicefidelity.services import drift as module

    return module


def test_similarity_drop_medium(drift):
    alerts = drift.detect_drift(newest_first([0.85] * 10, [0.76] * 10))
    assert [a.alert_type for a in alerts] == [DriftAlertType.SIMILARITY_DROP]
    assert alerts[0].severity == DriftSeverity.MEDIUM
    assert alerts[0].mean_before == pytest.approx(0.85)
    assert alerts[0].mean_after == pytest.approx(0.76)


def test_similarity_drop_high(drift):
    alerts = drift.detect_drift(newest_first([0.85] * 10, [0.70] * 10))
    assert alerts[0].severity == DriftSeverity.HIGH


def test_semantic_drop_is_detected_on_its_own(drift):
    window = [metric(0.8, semantic=0.7, index=i) for i in range(10)]
    window += [metric(0.8, semantic=0.9, index=10 + i) for i in range(10)]
    alerts = drift.detect_drift(window)
    assert alerts[0].metric == "semantic_score"


def test_small_drop_is_ignored(drift):
    assert drift.detect_drift(newest_first([0.85] * 10, [0.80] * 10)) == []


def test_variance_spike(drift):
    prior = [0.80, 0.82] * 5
    recent = [0.70, 0.92] * 5
    alerts = drift.detect_drift(newest_first(prior, recent))
    spikes = [a for a in alerts if a.alert_type == DriftAlertType.VARIANCE_SPIKE]
    assert len(spikes) == 1
    assert spikes[0].severity == DriftSeverity.MEDIUM
    assert spikes[0].variance_after > 2.5 * spikes[0].variance_before


def test_too_few_runs_raise_nothing(drift):
    assert drift.detect_drift(newest_first([], [0.2, 0.9, 0.1, 0.95])) == []
    # Ten recent runs but only two before them
    assert drift.detect_drift(newest_first([0.95, 0.95], [0.5] * 10)) == []


def test_rolling_stats_uses_window(drift):
    metrics = [metric(0.5, index=i) for i in range(30)]
    stats = drift.rolling_stats("user-1", "fake-model", "line-v1", metrics)
    assert stats.run_count == 20
    assert stats.combined.mean == pytest.approx(0.5)
    assert stats.combined.variance == 0.0


async def feed(monitor, scores, user_id="user-1"):
    raised = []
    for i, score in enumerate(scores):
        raised.extend(await monitor.update(metric(score, index=i, user_id=user_id)))
    return raised


@pytest.mark.asyncio
async def test_open_alerts_are_not_duplicated(db):
    from backend.voicefidelity.services.drift import DriftMonitor

    monitor = DriftMonitor()
    raised = await feed(monitor, [0.9] * 10 + [0.7] * 10)

    drops = [a for a in raised if a.alert_type == DriftAlertType.SIMILARITY_DROP]
    assert len(drops) == 1
    assert await monitor.has_active_alert("user-1", "fake-model", "line-v1")
    stored = db.table("voice_drift_alerts").rows
    assert len([r for r in stored if r["alert_type"] == "similarity_drop"]) == 1


@pytest.mark.asyncio
async def test_acknowledge_clears_active_alert(db):
    from backend.voicefidelity.services.drift import DriftMonitor

    monitor = DriftMonitor()
    raised = await feed(monitor, [0.9] * 10 + [0.7] * 10)
    for alert in raised:
        acknowledged = await monitor.acknowledge(alert.id, "user-1")
        assert acknowledged.acknowledged
        assert acknowledged.acknowledged_at is not None

    assert not await monitor.has_active_alert("user-1", "fake-model", "line-v1")
    assert len(await monitor.list_alerts("user-1")) == len(raised)


@pytest.mark.asyncio
async def test_acknowledge_missing_and_foreign_alerts(db):
    from backend.voicefidelity.services.drift import DriftMonitor

    monitor = DriftMonitor()
    raised = await feed(monitor, [0.9] * 10 + [0.7] * 10)

    with pytest.raises(HTTPException) as exc_info:
        await monitor.acknowledge("missing-id", "user-1")
    assert exc_info.value.status_code == 404

    with pytest.raises(HTTPException) as exc_info:
        await monitor.acknowledge(raised[0].id, "someone-else")
    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_background_update_swallows_storage_errors(db, monkeypatch):
    from backend.voicefidelity.services.drift import DriftMonitor

    monitor = DriftMonitor()

    async def broken(metric):
        raise HTTPException(status_code=500, detail="down")

    monkeypatch.setattr(monitor, "record_metric", broken)
    await monitor.update_in_background(metric(0.8))


def test_minimum_history_is_ten_recent_plus_three_prior(drift):
    assert drift.MIN_RUNS == 13
    assert drift.detect_drift(newest_first([0.95, 0.95], [0.5] * 10)) == []
    alerts = drift.detect_drift(newest_first([0.95] * 3, [0.5] * 10))
    assert [a.alert_type for a in alerts] == [DriftAlertType.SIMILARITY_DROP]
