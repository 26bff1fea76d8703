"""
Recognition package: vote aggregation and the recognition orchestrator.
"""

from .orchestrator import RecognitionOptions, RecognitionOrchestrator, local_policy
from .votes import Vote, VoteTracker, vote_key

__all__ = [
    "RecognitionOptions",
    "RecognitionOrchestrator",
    "local_policy",
    "Vote",
    "VoteTracker",
    "vote_key",
]
