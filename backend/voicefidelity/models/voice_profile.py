"""Voice profile models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from .fingerprint import Fingerprint


class ProfileStatus(str, Enum):
    NONE = "none"
    BUILDING = "building"
    ACTIVE = "active"


class ConfidenceBand(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SourceType(str, Enum):
    """Where a profile sample came from."""

    PUBLISHED_POST = "published_post"
    MANUAL_REVISION = "manual_revision"
    INITIAL_DRAFT = "initial_draft"
    BASELINE_SAMPLE = "baseline_sample"


class SourceTypeCounts(BaseModel):
    published_post: int = 0
    manual_revision: int = 0
    initial_draft: int = 0
    baseline_sample: int = 0

    def values(self) -> List[int]:
        return [self.published_post, self.manual_revision, self.initial_draft, self.baseline_sample]


class ConfidenceComponents(BaseModel):
    """The four independent inputs to profile confidence."""

    word_confidence: float = 0.0
    sample_confidence: float = 0.0
    diversity_score: float = 0.0
    temporal_spread: float = 0.0


class ProfileConfidence(BaseModel):
    overall: float
    components: ConfidenceComponents
    band: ConfidenceBand


class VoiceProfile(BaseModel):
    """An author's aggregated, confidence-scored fingerprint baseline."""

    id: str
    user_id: str
    org_id: Optional[str] = None
    status: ProfileStatus = ProfileStatus.BUILDING
    fingerprint: Fingerprint
    confidence: float = 0.0
    confidence_band: ConfidenceBand = ConfidenceBand.LOW
    confidence_components: ConfidenceComponents = ConfidenceComponents()
    sample_count: int = 0
    total_word_count: int = 0
    average_sample_word_count: float = 0.0
    source_type_counts: SourceTypeCounts = SourceTypeCounts()
    post_ids: List[str] = []
    oldest_sample_at: Optional[datetime] = None
    last_sample_at: Optional[datetime] = None
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProfileSampleRequest(BaseModel):
    """Request to fold a new text sample into the caller's profile."""

    text: str
    source_type: SourceType
    source_id: Optional[str] = None


class ProfileContribution(BaseModel):
    """Result of folding one sample into a profile."""

    skipped: bool
    reason: Optional[str] = None
    profile_id: Optional[str] = None
    alpha: Optional[float] = None
    word_count: int = 0
    status: ProfileStatus = ProfileStatus.NONE
    confidence: float = 0.0
    confidence_band: ConfidenceBand = ConfidenceBand.LOW


class ProfileStatusView(BaseModel):
    exists: bool
    status: ProfileStatus
    sample_count: int = 0
    total_word_count: int = 0
    confidence: float = 0.0
    confidence_band: ConfidenceBand = ConfidenceBand.LOW
    confidence_components: Optional[ConfidenceComponents] = None
    last_sample_at: Optional[datetime] = None
