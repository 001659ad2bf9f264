"""Paris polling-station votes - harmonize five election datasets into vote matrices."""

__version__ = "0.1.0"

from paris_votes.builder import build_vote_matrix as build_vote_matrix
from paris_votes.election import parse_election_meta as parse_election_meta
from paris_votes.models import ElectionMeta as ElectionMeta
from paris_votes.models import ElectionType as ElectionType
from paris_votes.models import VoteMatrix as VoteMatrix
from paris_votes.normalize import normalize_schema as normalize_schema
