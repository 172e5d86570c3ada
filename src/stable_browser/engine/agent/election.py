import structlog

from .models import Candidate

logger = structlog.get_logger(__name__)


def elect(candidates: list[Candidate]) -> Candidate | None:
    """
    Picks one Candidate out of several unique-per-strategy candidates.

    Candidates are grouped by bounding box; the largest group wins and the
    first-seen group wins ties. Candidates without a box each form their own
    group. Returns None for an empty list.
    """
    if not candidates:
        return None
    if len(candidates) == 1:
        return candidates[0]

    groups: dict[object, list[Candidate]] = {}
    for i, candidate in enumerate(candidates):
        key = candidate.box_key if candidate.box_key is not None else ("no-box", i)
        groups.setdefault(key, []).append(candidate)

    winner: list[Candidate] | None = None
    for members in groups.values():
        if winner is None or len(members) > len(winner):
            winner = members

    logger.debug(
        "Election finished.",
        candidates=len(candidates),
        groups=len(groups),
        votes=len(winner),
    )
    return winner[0]
