"""Round timing shared by the round controller and device clients.

The controller closes a round and sets the next deadline to
``REVEAL_DURATION_SEC + QUESTION_DURATION_SEC + ADVANCE_GRACE_SEC`` from
now, so the single deadline spans the reveal window every client shows
and the next question. Clients split the reveal window into the answer
panel and the leaderboard sub-view; the two must add up to
``REVEAL_DURATION_SEC`` or clients either cut the reveal short or sit
idle past the server's advance.
"""

QUESTION_DURATION_SEC = 20
REVEAL_DURATION_SEC = 10
ADVANCE_GRACE_SEC = 1

# Client-side split of the reveal window
REVEAL_ANSWER_SEC = 6
LEADERBOARD_SEC = REVEAL_DURATION_SEC - REVEAL_ANSWER_SEC

HEARTBEAT_INTERVAL_SEC = 2
# How often a client checks its local phase timer
POLL_INTERVAL_SEC = 0.1


def advanced_round_seconds(question_sec=QUESTION_DURATION_SEC, reveal_sec=REVEAL_DURATION_SEC,
                           grace_sec=ADVANCE_GRACE_SEC):
    """Seconds from a round advance to the next question's deadline."""
    return reveal_sec + question_sec + grace_sec
