"""Record and request models."""

from .fingerprint import Fingerprint
from .voice_profile import VoiceProfile, ProfileSampleRequest, ProfileStatus, ConfidenceBand
from .evaluation import EditorialMode, VoiceEvaluation, VoiceScores, VoiceThresholds, ResolvedThresholds
from .editorial import EditorialRun, EditorialCandidate, EditorialRequest, EditorialResult, EnforcementClass, EnforcementOutcome
from .drift import DriftAlert, RunMetric
from .regression import RegressionBaseline, RegressionRun, StaticMetrics
