"""
Database models package.
"""

from nexus_ats.models.candidate import (
    Candidate,
    CandidateSkill,
    CandidateStageHistory,
    CandidateDocument,
    CandidateJobApplication,
    CandidateNote,
    PipelineStage,
    ApplicationSource,
    DocumentType,
    NoteType,
    ApplicationStatus,
)

__all__ = [
    "Candidate",
    "CandidateSkill",
    "CandidateStageHistory",
    "CandidateDocument",
    "CandidateJobApplication",
    "CandidateNote",
    "PipelineStage",
    "ApplicationSource",
    "DocumentType",
    "NoteType",
    "ApplicationStatus",
]
