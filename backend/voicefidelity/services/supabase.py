"""Supabase client shared by every record service."""

import logging

from supabase import Client, create_client

from ..config import settings

logger = logging.getLogger(__name__)

# Table names, one per persisted record type
PROFILES_TABLE = "voice_profiles"
PROFILE_SAMPLES_TABLE = "voice_profile_samples"
EVALUATIONS_TABLE = "voice_evaluations"
RUNS_TABLE = "editorial_runs"
CANDIDATES_TABLE = "editorial_candidates"
RUN_METRICS_TABLE = "voice_run_metrics"
DRIFT_ALERTS_TABLE = "voice_drift_alerts"
REGRESSION_BASELINES_TABLE = "voice_regression_baselines"
REGRESSION_RUNS_TABLE = "voice_regression_runs"

supabase_client: Client = create_client(settings.supabase_url, settings.supabase_key)
logger.debug("Supabase client created for %s", settings.supabase_url)
