"""Voice profile aggregation: folding text samples into an author's running fingerprint."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException

from ..models.fingerprint import Fingerprint
from ..models.voice_profile import (
    ProfileContribution,
    ProfileSampleRequest,
    ProfileStatus,
    ProfileStatusView,
    SourceTypeCounts,
    VoiceProfile,
)
from .confidence import compute_confidence
from .fingerprint import MIN_WORDS_FOR_FINGERPRINT, blend_into_profile, extract_fingerprint
from .supabase import PROFILE_SAMPLES_TABLE, PROFILES_TABLE, supabase_client

logger = logging.getLogger(__name__)

# Samples needed before the profile is used for stylistic comparison
ACTIVATION_SAMPLE_COUNT = 3

MAX_UPDATE_ATTEMPTS = 5


class VoiceProfileService:
    """Reads and updates per-author voice profiles with optimistic concurrency."""

    def __init__(self):
        self.client = supabase_client

    async def get_profile(self, user_id: str, org_id: Optional[str] = None) -> Optional[VoiceProfile]:
        """Fetch the author's profile, or None if no sample has been contributed yet."""
        try:
            query = self.client.table(PROFILES_TABLE).select("*").eq("user_id", user_id)
            if org_id:
                query = query.eq("org_id", org_id)
            else:
                query = query.is_("org_id", "null")
            response = query.execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to load voice profile: {str(e)}")
        if not response.data:
            return None
        return VoiceProfile(**response.data[0])

    async def get_status(self, user_id: str, org_id: Optional[str] = None) -> ProfileStatusView:
        profile = await self.get_profile(user_id, org_id)
        if profile is None:
            return ProfileStatusView(exists=False, status=ProfileStatus.NONE)
        return ProfileStatusView(
            exists=True,
            status=profile.status,
            sample_count=profile.sample_count,
            total_word_count=profile.total_word_count,
            confidence=profile.confidence,
            confidence_band=profile.confidence_band,
            confidence_components=profile.confidence_components,
            last_sample_at=profile.last_sample_at,
        )

    async def add_sample(
        self,
        user_id: str,
        request: ProfileSampleRequest,
        org_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ProfileContribution:
        """
        Fold one text sample into the author's profile.

        Samples under the minimum word count are skipped. The first sample
        creates the profile; later ones are blended. Each update is a patch
        filtered on the version that was read, retried on conflict.
        """
        now = now or datetime.now(timezone.utc)
        sample_fp = extract_fingerprint(request.text)
        if sample_fp.word_count < MIN_WORDS_FOR_FINGERPRINT:
            return ProfileContribution(skipped=True, reason="text_too_short", word_count=sample_fp.word_count)

        for attempt in range(1, MAX_UPDATE_ATTEMPTS + 1):
            existing = await self.get_profile(user_id, org_id)
            if existing is None:
                profile = self._new_profile(user_id, org_id, request, sample_fp, now)
                stored = self._create_profile(profile)
                alpha = 1.0
            else:
                profile, alpha = self._fold(existing, request, sample_fp, now)
                stored = self._patch_profile(profile, expected_version=existing.version)

            if stored is not None:
                self._log_sample(stored, user_id, request, sample_fp, alpha, now)
                return ProfileContribution(
                    skipped=False,
                    profile_id=stored.id,
                    alpha=alpha,
                    word_count=sample_fp.word_count,
                    status=stored.status,
                    confidence=stored.confidence,
                    confidence_band=stored.confidence_band,
                )
            logger.info("Profile version conflict for user %s (attempt %d)", user_id, attempt)

        raise HTTPException(status_code=409, detail="Voice profile was updated concurrently; please retry")

    def _new_profile(
        self,
        user_id: str,
        org_id: Optional[str],
        request: ProfileSampleRequest,
        sample_fp: Fingerprint,
        now: datetime,
    ) -> VoiceProfile:
        counts = SourceTypeCounts(**{request.source_type.value: 1})
        post_ids = [request.source_id] if request.source_id else []
        confidence = compute_confidence(sample_fp.word_count, 1, counts, len(post_ids), now, now)
        return VoiceProfile(
            id="",
            user_id=user_id,
            org_id=org_id,
            status=ProfileStatus.BUILDING,
            fingerprint=sample_fp,
            confidence=confidence.overall,
            confidence_band=confidence.band,
            confidence_components=confidence.components,
            sample_count=1,
            total_word_count=sample_fp.word_count,
            average_sample_word_count=float(sample_fp.word_count),
            source_type_counts=counts,
            post_ids=post_ids,
            oldest_sample_at=now,
            last_sample_at=now,
            version=1,
        )

    def _fold(self, existing: VoiceProfile, request: ProfileSampleRequest, sample_fp: Fingerprint, now: datetime):
        blended, alpha = blend_into_profile(
            existing.fingerprint,
            sample_fp,
            existing.sample_count,
            existing.average_sample_word_count,
            existing.last_sample_at,
            now,
        )
        sample_count = existing.sample_count + 1
        total_words = existing.total_word_count + sample_fp.word_count

        counts = existing.source_type_counts.model_dump()
        counts[request.source_type.value] += 1
        counts = SourceTypeCounts(**counts)

        post_ids = list(existing.post_ids)
        if request.source_id and request.source_id not in post_ids:
            post_ids.append(request.source_id)

        oldest = existing.oldest_sample_at or now
        confidence = compute_confidence(total_words, sample_count, counts, len(post_ids), oldest, now)
        status = ProfileStatus.ACTIVE if sample_count >= ACTIVATION_SAMPLE_COUNT else ProfileStatus.BUILDING

        profile = existing.model_copy(
            update={
                "status": status,
                "fingerprint": blended,
                "confidence": confidence.overall,
                "confidence_band": confidence.band,
                "confidence_components": confidence.components,
                "sample_count": sample_count,
                "total_word_count": total_words,
                "average_sample_word_count": total_words / sample_count,
                "source_type_counts": counts,
                "post_ids": post_ids,
                "oldest_sample_at": oldest,
                "last_sample_at": now,
                "version": existing.version + 1,
                "updated_at": now,
            }
        )
        return profile, alpha

    def _create_profile(self, profile: VoiceProfile) -> Optional[VoiceProfile]:
        """Insert unless the (user, org) already has a profile. None if another writer got there first."""
        row = profile.model_dump(mode="json", exclude={"id", "created_at", "updated_at"})
        try:
            response = (
                self.client.table(PROFILES_TABLE)
                .upsert(row, on_conflict="user_id,org_id", ignore_duplicates=True)
                .execute()
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to create voice profile: {str(e)}")
        if not response.data:
            return None
        return VoiceProfile(**response.data[0])

    def _patch_profile(self, profile: VoiceProfile, expected_version: int) -> Optional[VoiceProfile]:
        """Patch only if the stored version is still ``expected_version``. None on conflict."""
        row = profile.model_dump(mode="json", exclude={"id", "user_id", "org_id", "created_at"})
        try:
            response = (
                self.client.table(PROFILES_TABLE)
                .update(row)
                .eq("id", profile.id)
                .eq("version", expected_version)
                .execute()
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to update voice profile: {str(e)}")
        if not response.data:
            return None
        return VoiceProfile(**response.data[0])

    def _log_sample(
        self,
        profile: VoiceProfile,
        user_id: str,
        request: ProfileSampleRequest,
        sample_fp: Fingerprint,
        alpha: float,
        now: datetime,
    ) -> None:
        try:
            self.client.table(PROFILE_SAMPLES_TABLE).insert({
                "profile_id": profile.id,
                "user_id": user_id,
                "source_type": request.source_type.value,
                "source_id": request.source_id,
                "fingerprint": sample_fp.model_dump(mode="json"),
                "word_count": sample_fp.word_count,
                "alpha": alpha,
                "created_at": now.isoformat(),
            }).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Failed to record profile sample: {str(e)}")
