import random

from quizroom.services.trivia.labels import TEAM_COLORS, TEAM_NAMES, assign_label_and_color


def test_colors_unique_until_exhausted():
    rng = random.Random(4)
    taken = []
    for _ in TEAM_COLORS:
        taken.append(assign_label_and_color(taken, rng))
    assert sorted(color for _, color in taken) == sorted(TEAM_COLORS)
    assert len({label for label, _ in taken}) == len(taken)


def test_names_get_numbered_when_exhausted():
    taken = [(name, 'teal') for name in TEAM_NAMES]
    label, color = assign_label_and_color(taken, random.Random(1))
    assert label.rsplit(' ', 1)[0] in TEAM_NAMES
    assert label.rsplit(' ', 1)[1] == '1'
    assert color in TEAM_COLORS
