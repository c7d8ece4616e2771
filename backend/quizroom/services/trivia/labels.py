import random
from typing import Iterable, Tuple

TEAM_COLORS = ('yellow', 'teal', 'red', 'orange', 'light-blue', 'pink', 'lime', 'white')

TEAM_NAMES = (
    'Team Thunderbolts', 'Team Starlights', 'Team Fireflies', 'Team Moonbeams',
    'Team Sunbeams', 'Team Comets', 'Team Nebulas', 'Team Galaxies',
    'Team Meteors', 'Team Auroras', 'Team Phoenix', 'Team Dragons',
    'Team Eagles', 'Team Lions', 'Team Sharks', 'Team Wolves',
    'Team Panthers', 'Team Falcons', 'Team Hawks', 'Team Ravens',
    'Team Owls', 'Team Bears', 'Team Tigers', 'Team Jaguars',
    'Team Cheetahs', 'Team Rhinos', 'Team Giraffes', 'Team Zebras',
    'Team Pandas', 'Team Koalas', 'Team Penguins', 'Team Dolphins',
    'Team Otters', 'Team Beavers', 'Team Foxes', 'Team Badgers',
    'Team Hedgehogs', 'Team Sloths', 'Team Kangaroos', 'Team Wombats',
    'Team Flamingos', 'Team Peacocks', 'Team Parrots', 'Team Toucans',
    'Team Hummingbirds', 'Team Robins', 'Team Magpies', 'Team Pelicans',
)


def assign_label_and_color(taken: Iterable[Tuple[str, str]], rng=random) -> Tuple[str, str]:
    """Pick a (label, color) pair that collides with nothing in `taken`.

    `taken` holds the (label, color) pairs already used in the room. Once
    every color is in use colors repeat; once every name is in use a
    numbered variant of a random name is returned.
    """
    taken = list(taken)
    used_labels = {label for label, _ in taken}
    used_colors = {color for _, color in taken}

    free_colors = [c for c in TEAM_COLORS if c not in used_colors]
    color = rng.choice(free_colors or list(TEAM_COLORS))

    free_names = [n for n in TEAM_NAMES if n not in used_labels]
    if free_names:
        return rng.choice(free_names), color

    base = rng.choice(TEAM_NAMES)
    n = 1
    while f'{base} {n}' in used_labels:
        n += 1
    return f'{base} {n}', color
