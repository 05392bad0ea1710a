"""Candidate validation package."""

from chamber.validation.validator import (
    CandidateRejected,
    CandidateValidator,
    parse_amount,
)

__all__ = [
    "CandidateRejected",
    "CandidateValidator",
    "parse_amount",
]
