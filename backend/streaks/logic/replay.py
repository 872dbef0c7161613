"""
History replay: rebuild state from the match log.

State is never patched field by field. Removing a match replays every other
record through the engine from a fresh state, so the result is always the
outcome of some sequence of legal matches. Each record is resolved at its own
timestamp with its own id, which makes replay deterministic.

Month boundaries in the log get the same full rollover the service applies
when state is first loaded in a new month. resolve_match on its own only
refreshes quotas at a month change, so replaying a log reproduces the stored
state, and removing a match equals replaying the log without it, for logs
recorded through StreakService. A log built by chaining resolve_match calls
across months without a rollover carries totals over and will not match.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from streaks.logic.engine import resolve_match
from streaks.logic.exceptions import NotFoundError
from streaks.logic.rollover import rollover_to_month
from streaks.logic.settings import DEFAULT_RULES, RuleSettings
from streaks.logic.state import initialize_state

if TYPE_CHECKING:
    from collections.abc import Iterable

    from streaks.logic.state import GameState, MatchRecord

logger = logging.getLogger(__name__)


def replay_matches(
    records: Iterable[MatchRecord],
    *,
    month: str,
    rules: RuleSettings = DEFAULT_RULES,
) -> GameState:
    """
    Apply records in timestamp order to a fresh state.

    Args:
        records: Match log to apply.
        month: Month of the fresh state when the log is empty, and the month the
            returned state ends in.
        rules: Rule constants.

    Raises:
        PreconditionError, QuotaExceededError: A record is not legal under the
            given rules (e.g. a lower quota than it was recorded with).

    """
    ordered = sorted(records, key=lambda r: r.timestamp)
    state = initialize_state(ordered[0].month if ordered else month, rules)
    for record in ordered:
        state = rollover_to_month(state, record.month, rules)
        state, _ = resolve_match(
            state,
            record.to_input(),
            now=record.timestamp,
            match_id=record.match_id,
            rules=rules,
        )
    return rollover_to_month(state, month, rules)


def remove_match(state: GameState, match_id: str, rules: RuleSettings = DEFAULT_RULES) -> GameState:
    """
    Return the state as if the given match had never been played.

    Raises:
        NotFoundError: If no record has the given id.

    """
    if state.find_match(match_id) is None:
        raise NotFoundError(f"match {match_id} not found")
    remaining = [m for m in state.matches if m.match_id != match_id]
    logger.info("removing %s, replaying %d matches", match_id, len(remaining))
    return replay_matches(remaining, month=state.current_month, rules=rules)
