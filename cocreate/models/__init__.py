"""Database models."""

from cocreate.models.voice_profile import VoiceProfileRecord
from cocreate.models.ghostwriter_link import GhostwriterApproverLink
from cocreate.models.content import PastPost, TrainingDocument, UserPreferences

__all__ = [
    "VoiceProfileRecord",
    "GhostwriterApproverLink",
    "PastPost",
    "TrainingDocument",
    "UserPreferences",
]
