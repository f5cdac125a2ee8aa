"""
Othello and Connect-4 engine tests.

Run with: pytest test_board_games.py -v
"""

import pytest

from errors import IllegalMove
from games import Connect4Game, GamePhase, OthelloGame, Player


def seat_two(game):
    game.add_player(Player(id="p1", name="Alice", color=game.seat_color(0)))
    game.add_player(Player(id="p2", name="Bob", color=game.seat_color(1)))
    game.start_game()
    game.drain_events()
    return game


def event_types(game):
    return [e["type"] for e in game.drain_events()]


# =============================================================================
# Othello
# =============================================================================

class TestOthelloGame:

    def test_black_moves_first(self):
        game = seat_two(OthelloGame())
        assert game.turn == "black"
        assert game.current_player().id == "p1"

    def test_opening_move_flips_and_passes_turn(self):
        game = seat_two(OthelloGame())
        flips = game.apply_move("p1", 2, 3)

        assert flips == [(3, 3)]
        assert game.board[2][3] == "black"
        assert game.board[3][3] == "black"
        assert game.turn == "white"
        assert event_types(game) == ["move_applied", "turn_changed"]

    def test_wrong_turn_rejected_without_change(self):
        game = seat_two(OthelloGame())
        before = [row[:] for row in game.board]

        with pytest.raises(IllegalMove):
            game.apply_move("p2", 2, 4)
        assert game.board == before
        assert game.turn == "black"

    def test_move_that_flips_nothing_rejected(self):
        game = seat_two(OthelloGame())
        with pytest.raises(IllegalMove):
            game.apply_move("p1", 0, 0)
        assert game.turn == "black"
        assert game.drain_events() == []

    def test_move_before_start_rejected(self):
        game = OthelloGame()
        game.add_player(Player(id="p1", name="Alice", color="black"))
        with pytest.raises(IllegalMove):
            game.apply_move("p1", 2, 3)

    def test_pass_when_opponent_cannot_move(self):
        game = seat_two(OthelloGame())
        # Black to play at (0,2) leaves white without a move while black can still take (7,6)
        game.board = [[None] * 8 for _ in range(8)]
        game.board[0][0] = "black"
        game.board[0][1] = "white"
        game.board[7][6] = "white"
        game.board[7][7] = "black"

        game.apply_move("p1", 0, 2)

        assert game.turn == "black"
        events = game.drain_events()
        assert events[-1]["type"] == "turn_passed"
        assert events[-1]["passed"] == "white"

    def test_game_ends_when_nobody_can_move(self):
        game = seat_two(OthelloGame())
        game.board = [["black"] * 8 for _ in range(8)]
        game.board[0][0] = None
        game.board[0][1] = "white"

        game.apply_move("p1", 0, 0)

        assert game.phase == GamePhase.FINISHED
        assert game.winner == "black"
        over = game.drain_events()[-1]
        assert over["type"] == "game_over"
        assert over["scores"] == {"black": 64, "white": 0}
        assert "Alice" in over["summary"]

    def test_tie_is_a_draw(self):
        game = seat_two(OthelloGame())
        game.board = [["black"] * 4 + ["white"] * 4 for _ in range(8)]
        game._finish()
        assert game.winner == "draw"

    def test_state_contains_board_and_scores(self):
        game = seat_two(OthelloGame())
        state = game.get_state("p1")
        assert state["phase"] == "playing"
        assert state["scores"] == {"black": 2, "white": 2}
        assert state["current_player_id"] == "p1"
        assert len(state["board"]) == 8

    def test_reset_to_lobby_restores_board(self):
        game = seat_two(OthelloGame())
        game.apply_move("p1", 2, 3)
        game.reset_to_lobby()
        assert game.phase == GamePhase.LOBBY
        assert game.turn is None
        assert game.board[2][3] is None


# =============================================================================
# Connect-4
# =============================================================================

class TestConnect4Game:

    def test_red_moves_first_and_turns_alternate(self):
        game = seat_two(Connect4Game())
        assert game.turn == "red"
        game.drop("p1", 0)
        assert game.turn == "yellow"
        game.drop("p2", 0)
        assert game.turn == "red"

    def test_alternating_drops_stack_without_false_win(self):
        game = seat_two(Connect4Game())
        rows = [
            game.drop("p1", 3),
            game.drop("p2", 3),
            game.drop("p1", 3),
            game.drop("p2", 3),
        ]
        assert rows == [5, 4, 3, 2]
        assert game.phase == GamePhase.PLAYING
        assert game.winner is None

    def test_vertical_win(self):
        game = seat_two(Connect4Game())
        for _ in range(3):
            game.drop("p1", 0)
            game.drop("p2", 1)
        game.drop("p1", 0)

        assert game.phase == GamePhase.FINISHED
        assert game.winner == "red"
        assert event_types(game)[-1] == "game_over"

    def test_full_column_rejected(self):
        game = seat_two(Connect4Game())
        for i in range(6):
            game.drop("p1" if i % 2 == 0 else "p2", 2)
        before = [row[:] for row in game.board]

        with pytest.raises(IllegalMove):
            game.drop("p1", 2)
        assert game.board == before
        assert game.turn == "red"

    def test_out_of_range_column_rejected(self):
        game = seat_two(Connect4Game())
        with pytest.raises(IllegalMove):
            game.drop("p1", 9)

    def test_wrong_turn_rejected(self):
        game = seat_two(Connect4Game())
        with pytest.raises(IllegalMove):
            game.drop("p2", 0)

    def test_full_board_without_win_is_draw(self):
        game = seat_two(Connect4Game())
        # Column pairs swap colors every two rows so no line reaches four
        pattern = ["red", "red", "yellow", "yellow"]
        for r in range(6):
            for c in range(7):
                game.board[r][c] = pattern[(c + 2 * (r % 2)) % 4]
        game.board[0][6] = None
        game.turn = "yellow"

        game.drop("p2", 6)

        assert game.phase == GamePhase.FINISHED
        assert game.winner == "draw"

    def test_no_moves_after_finish(self):
        game = seat_two(Connect4Game())
        for _ in range(3):
            game.drop("p1", 0)
            game.drop("p2", 1)
        game.drop("p1", 0)

        with pytest.raises(IllegalMove):
            game.drop("p2", 5)
