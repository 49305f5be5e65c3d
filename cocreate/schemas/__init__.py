"""Pydantic schemas for the generation core and API validation."""

from cocreate.schemas.voice import (
    AnalysisSources,
    ContentPreferences,
    Formatting,
    SimplifiedVoice,
    SourceCounts,
    Tone,
    Vocabulary,
    VoiceProfile,
    VoiceProfileData,
    WritingStyle,
)
from cocreate.schemas.generation import (
    AuthenticityCheck,
    ClarifyingQuestion,
    DraftResult,
    GenerationRequest,
    PastPostSample,
    PipelineOptions,
    PipelineResult,
    PipelineStep,
    QualityIssue,
    QualityResult,
    QualityScores,
    RefinementResult,
    SufficiencyResult,
    TrainingDocSample,
    VoiceSources,
)
from cocreate.schemas.cocreate import (
    GenerateRequest,
    RefineRequest,
    RefineResponse,
    VoiceProfileStatusResponse,
)

__all__ = [
    "AnalysisSources",
    "ContentPreferences",
    "Formatting",
    "SimplifiedVoice",
    "SourceCounts",
    "Tone",
    "Vocabulary",
    "VoiceProfile",
    "VoiceProfileData",
    "WritingStyle",
    "AuthenticityCheck",
    "ClarifyingQuestion",
    "DraftResult",
    "GenerationRequest",
    "PastPostSample",
    "PipelineOptions",
    "PipelineResult",
    "PipelineStep",
    "QualityIssue",
    "QualityResult",
    "QualityScores",
    "RefinementResult",
    "SufficiencyResult",
    "TrainingDocSample",
    "VoiceSources",
    "GenerateRequest",
    "RefineRequest",
    "RefineResponse",
    "VoiceProfileStatusResponse",
]
