"""
Blackjack and Override engine tests.

Decks are stacked so every deal is known: `stacked("10", "A", ...)` draws
the 10 first.

Run with: pytest test_casino.py -v
"""

import pytest

from errors import IllegalMove
from games import BlackjackGame, GamePhase, OverrideGame, Player, PlayerStatus
from games.cards import Card, Deck


def stacked(*ranks):
    """Factory for a deck that deals `ranks` in order."""
    def factory():
        return Deck([Card.of(r) for r in reversed(ranks)], shuffle=False)
    return factory


def make_game(cls, *ranks, balances=(1000,), rounds=3):
    game = cls(num_rounds=rounds, deck_factory=stacked(*ranks))
    for i, balance in enumerate(balances):
        game.add_player(Player(id=f"p{i + 1}", name=f"P{i + 1}", score=balance, initial_score=balance))
    game.start_game()
    return game


def last_event(game, event_type):
    events = [e for e in game.drain_events() if e["type"] == event_type]
    return events[-1] if events else None


# =============================================================================
# Betting (shared round lifecycle)
# =============================================================================

class TestBetting:

    def test_round_starts_in_betting(self):
        game = make_game(BlackjackGame, "10", "9", "8", "7")
        assert game.phase == GamePhase.BETTING
        assert game.current_round == 1
        assert last_event(game, "round_started")["round"] == 1

    def test_bet_deducted_immediately(self):
        game = make_game(BlackjackGame, "10", "9", "8", "7", balances=(1000, 1000))
        game.place_bet("p1", 100)
        assert game.get_player("p1").score == 900
        assert game.get_player("p1").current_bet == 100
        # Still waiting on p2
        assert game.phase == GamePhase.BETTING

    def test_bet_clamped_to_balance(self):
        game = make_game(BlackjackGame, "10", "9", "8", "7", balances=(50, 1000))
        assert game.place_bet("p1", 100) == 50
        assert game.get_player("p1").score == 0

    def test_one_bet_per_round(self):
        game = make_game(BlackjackGame, "10", "9", "8", "7", balances=(1000, 1000))
        game.place_bet("p1", 100)
        with pytest.raises(IllegalMove):
            game.place_bet("p1", 100)
        assert game.get_player("p1").score == 900

    @pytest.mark.parametrize("amount", [0, -5, "100", None, 1.5, True])
    def test_invalid_amounts_rejected(self, amount):
        game = make_game(BlackjackGame, "10", "9", "8", "7")
        with pytest.raises(IllegalMove):
            game.place_bet("p1", amount)
        assert game.get_player("p1").score == 1000

    def test_bankrupt_seat_sits_out(self):
        game = make_game(BlackjackGame, "10", "9", "8", "7", balances=(1000, 0))
        assert game.get_player("p2").status == PlayerStatus.BANKRUPT
        with pytest.raises(IllegalMove):
            game.place_bet("p2", 10)
        # p1 alone completes betting
        game.place_bet("p1", 100)
        assert game.phase != GamePhase.BETTING

    def test_all_bankrupt_finishes_match(self):
        game = make_game(BlackjackGame, "10", "9", "8", "7", balances=(0, 0))
        assert game.phase == GamePhase.FINISHED

    def test_reset_to_lobby_refunds_bets(self):
        game = make_game(BlackjackGame, "10", "9", "8", "7", balances=(1000, 1000))
        game.place_bet("p1", 300)
        game.reset_to_lobby()
        assert game.phase == GamePhase.LOBBY
        assert game.get_player("p1").score == 1000
        assert game.get_player("p1").current_bet == 0


# =============================================================================
# Blackjack
# =============================================================================

class TestBlackjackRound:

    def test_natural_against_dealer_natural_pushes(self):
        # Deal order: p1, dealer, p1, dealer
        game = make_game(BlackjackGame, "10", "10", "A", "A")
        game.place_bet("p1", 100)

        player = game.get_player("p1")
        assert player.status == PlayerStatus.BLACKJACK
        assert game.phase == GamePhase.ROUND_OVER
        result = last_event(game, "round_over")["results"][0]
        assert result["multiplier"] == 1
        assert result["outcome"] == "push"
        assert player.score == 1000

    def test_natural_pays_two_and_a_half(self):
        game = make_game(BlackjackGame, "A", "10", "K", "8")
        game.place_bet("p1", 100)
        assert game.get_player("p1").score == 900 + 250

    def test_hit_to_bust(self):
        game = make_game(BlackjackGame, "10", "9", "6", "8", "K")
        game.place_bet("p1", 100)
        assert game.current_player().id == "p1"

        game.hit("p1")

        assert game.get_player("p1").status == PlayerStatus.BUST
        assert game.phase == GamePhase.ROUND_OVER
        assert game.get_player("p1").score == 900

    def test_twenty_one_does_not_auto_stand(self):
        game = make_game(BlackjackGame, "10", "9", "5", "8", "6")
        game.place_bet("p1", 100)
        game.hit("p1")
        assert game.get_player("p1").status == PlayerStatus.PLAYING
        assert game.current_player().id == "p1"

    def test_dealer_draws_to_seventeen(self):
        # Player 19 stands; dealer 11 draws a 10 for 21
        game = make_game(BlackjackGame, "10", "5", "9", "6", "10")
        game.place_bet("p1", 100)
        game.stand("p1")

        assert len(game.dealer_hand) == 3
        over = last_event(game, "round_over")
        assert over["dealer_total"] == 21
        assert over["results"][0]["outcome"] == "lose"

    def test_dealer_bust_pays_double(self):
        game = make_game(BlackjackGame, "10", "10", "5", "6", "K")
        game.place_bet("p1", 100)
        game.stand("p1")
        assert game.get_player("p1").score == 1100

    def test_soft_dealer_counts_ace_devaluation(self):
        # Dealer A+6 is 17 and stands
        game = make_game(BlackjackGame, "10", "A", "8", "6")
        game.place_bet("p1", 100)
        game.stand("p1")
        assert len(game.dealer_hand) == 2
        assert game.get_player("p1").score == 1100

    def test_turns_follow_seat_order_skipping_naturals(self):
        # p1 natural, p2 plays
        game = make_game(BlackjackGame, "A", "9", "10", "K", "7", "8", balances=(1000, 1000))
        game.place_bet("p1", 100)
        game.place_bet("p2", 100)
        assert game.get_player("p1").status == PlayerStatus.BLACKJACK
        assert game.current_player().id == "p2"

    def test_out_of_turn_rejected(self):
        game = make_game(BlackjackGame, "10", "9", "8", "7", "6", "5", balances=(1000, 1000))
        game.place_bet("p1", 100)
        game.place_bet("p2", 100)
        with pytest.raises(IllegalMove):
            game.hit("p2")

    def test_hole_card_hidden_until_round_over(self):
        game = make_game(BlackjackGame, "10", "9", "6", "8", "K")
        game.place_bet("p1", 100)

        state = game.get_state("p1")
        assert state["dealer_hand"][1] == {"hidden": True}
        assert state["dealer_total"] == 9

        game.stand("p1")
        state = game.get_state("p1")
        assert state["dealer_hand"][1]["rank"] == "8"
        assert state["dealer_total"] == 17

    def test_chips_conserved_while_bets_outstanding(self):
        game = make_game(BlackjackGame, "10", "10", "8", "8", "10", "10", "9", "9", balances=(1000, 500))
        total_before = sum(p.score for p in game.players)
        game.place_bet("p1", 200)
        game.place_bet("p2", 100)
        assert sum(p.score + p.current_bet for p in game.players) == total_before

    def test_next_round_then_match_end(self):
        game = make_game(BlackjackGame, "10", "10", "A", "A", rounds=2)
        game.place_bet("p1", 100)
        assert game.phase == GamePhase.ROUND_OVER

        assert game.start_next_round()
        assert game.phase == GamePhase.BETTING
        assert game.current_round == 2

        game.place_bet("p1", 100)
        assert game.phase == GamePhase.FINISHED
        assert game.winner_id == "p1"
        assert last_event(game, "game_over")["winner_id"] == "p1"

    def test_start_next_round_only_from_round_over(self):
        game = make_game(BlackjackGame, "10", "9", "8", "7")
        assert not game.start_next_round()


# =============================================================================
# Override
# =============================================================================

class TestOverrideRound:

    def test_base_revealed_after_all_bets(self):
        game = make_game(OverrideGame, "7", "9", balances=(1000, 1000))
        game.place_bet("p1", 100)
        assert game.base_card is None
        game.place_bet("p2", 100)
        assert game.phase == GamePhase.PLAYING
        assert game.base_card.rank == "7"

    def test_correct_guess_doubles(self):
        game = make_game(OverrideGame, "7", "9")
        game.place_bet("p1", 100)
        game.lock_guess("p1", "high")
        assert game.phase == GamePhase.ROUND_OVER
        assert game.get_player("p1").score == 1100

    def test_wrong_guess_loses(self):
        game = make_game(OverrideGame, "7", "9")
        game.place_bet("p1", 100)
        game.lock_guess("p1", "low")
        assert game.get_player("p1").score == 900

    def test_equal_power_pushes(self):
        game = make_game(OverrideGame, "Q", "Q")
        game.place_bet("p1", 100)
        game.lock_guess("p1", "high")
        assert game.get_player("p1").score == 1000
        assert last_event(game, "round_over")["results"][0]["outcome"] == "push"

    def test_no_reguessing(self):
        game = make_game(OverrideGame, "7", "9", balances=(1000, 1000))
        game.place_bet("p1", 100)
        game.place_bet("p2", 100)
        game.lock_guess("p1", "high")
        with pytest.raises(IllegalMove):
            game.lock_guess("p1", "low")
        assert game.get_player("p1").guess == "high"

    def test_invalid_guess_rejected(self):
        game = make_game(OverrideGame, "7", "9")
        game.place_bet("p1", 100)
        with pytest.raises(IllegalMove):
            game.lock_guess("p1", "sideways")
        assert game.phase == GamePhase.PLAYING

    def test_guess_before_reveal_rejected(self):
        game = make_game(OverrideGame, "7", "9")
        with pytest.raises(IllegalMove):
            game.lock_guess("p1", "high")

    def test_other_guesses_private_until_reveal(self):
        game = make_game(OverrideGame, "7", "9", balances=(1000, 1000))
        game.place_bet("p1", 100)
        game.place_bet("p2", 100)
        game.lock_guess("p1", "high")

        seen_by_p2 = game.get_state("p2")["guesses"]
        assert seen_by_p2["p1"] == "locked"
        assert seen_by_p2["p2"] is None
        assert game.get_state("p1")["guesses"]["p1"] == "high"
        assert game.get_state("p2")["drawn_card"] is None

        game.lock_guess("p2", "low")
        assert game.get_state("p2")["guesses"]["p1"] == "high"
        assert game.get_state("p2")["drawn_card"]["rank"] == "9"
