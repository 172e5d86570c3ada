from stable_browser.engine.agent.election import elect
from stable_browser.engine.agent.models import Candidate

BOX_A = {"x": 0, "y": 0, "width": 10, "height": 10}
BOX_B = {"x": 0, "y": 40, "width": 10, "height": 10}


def test_empty_and_single():
    only = Candidate("only", BOX_A)

    assert elect([]) is None
    assert elect([only]) is only


def test_largest_group_wins():
    candidates = [
        Candidate("a", BOX_A),
        Candidate("b1", BOX_B),
        Candidate("b2", dict(BOX_B, y=40.04)),
    ]

    assert elect(candidates).locator == "b1"


def test_tie_goes_to_first_seen_group():
    assert elect([Candidate("a", BOX_A), Candidate("b", BOX_B)]).locator == "a"


def test_boxless_candidates_do_not_vote_together():
    candidates = [Candidate("x"), Candidate("y"), Candidate("b", BOX_B)]

    assert elect(candidates).locator == "x"
