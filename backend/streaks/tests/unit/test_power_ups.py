"""Tests for the power-up catalog and quota bookkeeping."""

import pytest

from streaks.logic.enums import PlayerId, PowerUpKind, PowerUpSide
from streaks.logic.exceptions import PreconditionError, QuotaExceededError
from streaks.logic.power_ups import (
    CATALOG,
    check_side,
    consume,
    require_own_balls,
    sniper_bonus,
)
from streaks.logic.settings import DEFAULT_RULES, RuleSettings
from streaks.logic.state import Player, PowerUpUsage, SniperAttempt, initial_quota


def _player(**quota: int) -> Player:
    return Player(player_id=PlayerId.JESSE, quota={**initial_quota(), **{PowerUpKind(k): v for k, v in quota.items()}})


class TestCatalog:
    def test_every_kind_is_described(self) -> None:
        assert set(CATALOG) == set(PowerUpKind)

    def test_default_quotas(self) -> None:
        quotas = DEFAULT_RULES.monthly_quotas
        assert quotas[PowerUpKind.CUMBACK_KID] == 1
        assert quotas[PowerUpKind.TOEP] == 5
        assert quotas[PowerUpKind.SNIPER] == 3
        assert quotas[PowerUpKind.DOUBLE_TROUBLE] == 2

    def test_black_ball_champ_is_unlimited(self) -> None:
        assert DEFAULT_RULES.quota_for(PowerUpKind.BLACK_BALL_CHAMP) is None
        assert DEFAULT_RULES.quota_for(PowerUpKind.TOEP) == 5

    def test_own_ball_thresholds_come_from_rules(self) -> None:
        assert CATALOG[PowerUpKind.TOEP].min_own_balls(DEFAULT_RULES) == 2
        assert CATALOG[PowerUpKind.BALLENBAK_BIZARRE].min_own_balls(DEFAULT_RULES) == 3
        assert CATALOG[PowerUpKind.SNIPER].min_own_balls is None

    def test_sides(self) -> None:
        assert CATALOG[PowerUpKind.CUMBACK_KID].side is PowerUpSide.LOSER
        assert CATALOG[PowerUpKind.BALLENBAK].side is PowerUpSide.EITHER
        assert CATALOG[PowerUpKind.PULL_THE_PLUG].side is PowerUpSide.WINNER


class TestConsume:
    def test_decrements_quota(self) -> None:
        player = consume(_player(), PowerUpKind.TOEP)
        assert player.remaining(PowerUpKind.TOEP) == 4

    def test_does_not_mutate_input(self) -> None:
        original = _player()
        consume(original, PowerUpKind.TOEP)
        assert original.remaining(PowerUpKind.TOEP) == 5

    def test_exhausted_raises(self) -> None:
        with pytest.raises(QuotaExceededError) as exc_info:
            consume(_player(cumback_kid=0), PowerUpKind.CUMBACK_KID)
        assert exc_info.value.player is PlayerId.JESSE
        assert exc_info.value.power_up is PowerUpKind.CUMBACK_KID

    def test_unlimited_is_untouched(self) -> None:
        player = _player()
        assert consume(player, PowerUpKind.BLACK_BALL_CHAMP) is player


class TestCheckSide:
    def test_winner_cannot_use_cumback_kid(self) -> None:
        with pytest.raises(PreconditionError, match="Cumback Kid"):
            check_side(PowerUpUsage(cumback_kid=True), PlayerId.JESSE, is_winner=True)

    def test_loser_cannot_use_winner_power_ups(self) -> None:
        with pytest.raises(PreconditionError, match="Toep"):
            check_side(PowerUpUsage(toep=True), PlayerId.FLIP, is_winner=False)

    def test_either_side_power_ups_are_allowed(self) -> None:
        usage = PowerUpUsage(ballenbak=True, speedpot=True)
        check_side(usage, PlayerId.JESSE, is_winner=True)
        check_side(usage, PlayerId.FLIP, is_winner=False)


class TestPreconditions:
    def test_require_own_balls(self) -> None:
        require_own_balls(PowerUpKind.TOEP, 2)
        with pytest.raises(PreconditionError, match="at least 2"):
            require_own_balls(PowerUpKind.TOEP, 1)

    def test_require_own_balls_follows_rule_settings(self) -> None:
        rules = RuleSettings(toep_min_own_balls=4)
        with pytest.raises(PreconditionError, match="Toep requires at least 4"):
            require_own_balls(PowerUpKind.TOEP, 3, rules)

    def test_kinds_without_threshold_always_pass(self) -> None:
        require_own_balls(PowerUpKind.PULL_THE_PLUG, 0)

    @pytest.mark.parametrize(("potted", "bonus"), [(3, 1), (4, 2), (5, 3), (7, 3)])
    def test_sniper_bonus(self, potted: int, bonus: int) -> None:
        assert sniper_bonus(potted) == bonus

    def test_sniper_needs_three(self) -> None:
        with pytest.raises(PreconditionError):
            sniper_bonus(2)


class TestPowerUpUsage:
    def test_invoked_in_catalog_order(self) -> None:
        usage = PowerUpUsage(speedpot=True, toep=True, sniper=SniperAttempt(balls_potted=3))
        assert usage.invoked() == [PowerUpKind.TOEP, PowerUpKind.SNIPER, PowerUpKind.SPEEDPOT]

    def test_failed_attempt_still_counts_as_invoked(self) -> None:
        usage = PowerUpUsage(sniper=SniperAttempt(balls_potted=1, successful=False))
        assert not usage.is_empty

    def test_unknown_power_up_rejected(self) -> None:
        with pytest.raises(ValueError, match="extra"):
            PowerUpUsage.model_validate({"superpower": True})
