"""Proposal lifecycle: model, store, durable backends and expiry sweep."""

from .backends import InMemoryBackend, JsonFileBackend, ProposalBackend
from .clock import Clock, SystemClock
from .models import Proposal, ProposalStatus, fingerprint_arguments, summarize_arguments, to_iso
from .store import ProposalStore
from .sweeper import ExpirySweeper

__all__ = [
    "Clock",
    "ExpirySweeper",
    "InMemoryBackend",
    "JsonFileBackend",
    "Proposal",
    "ProposalBackend",
    "ProposalStatus",
    "ProposalStore",
    "SystemClock",
    "fingerprint_arguments",
    "summarize_arguments",
    "to_iso",
]
