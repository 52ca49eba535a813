"""
MockPanel: real-time multi-persona mock interview orchestration.

A panel of simulated interviewers takes turns over a live speech channel,
hands the floor to each other without clipping speech, and takes strategic
hints from a separate advisory server.
"""

__version__ = "1.0.0"

# Main entry points
from .interview.orchestrator import LiveInterviewOrchestrator
from .interview.models import Persona, CandidateProfile, TurnRecord, build_panel
from .infrastructure.advisory import create_app

__all__ = [
    "LiveInterviewOrchestrator", "Persona", "CandidateProfile", "TurnRecord",
    "build_panel", "create_app",
]
