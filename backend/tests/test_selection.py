import random

from surveysez.services.games.records import Category
from surveysez.services.games.selection import can_skip, select_category

SHARED = [Category('fruit', 'Fruit', ('Apple',)), Category('animals', 'Animals', ('Dog',))]
CUSTOM = [Category('r1:alice:songs', 'Songs', ('Hey Jude',))]


def test_custom_pool_comes_first():
    picked = select_category(CUSTOM, SHARED, set(), rng=random.Random(1))
    assert picked.id == 'r1:alice:songs'


def test_falls_back_to_shared_pool_when_custom_used():
    picked = select_category(CUSTOM, SHARED, {'r1:alice:songs'}, rng=random.Random(1))
    assert picked.id in ('fruit', 'animals')


def test_never_returns_used_or_excluded():
    for seed in range(20):
        picked = select_category([], SHARED, {'fruit'}, rng=random.Random(seed))
        assert picked.id == 'animals'
    assert select_category([], SHARED, {'fruit'}, exclude='animals') is None


def test_exhausted_pools_return_none():
    assert select_category(CUSTOM, SHARED, {'fruit', 'animals', 'r1:alice:songs'}) is None


def test_only_shared_categories_can_be_skipped():
    assert can_skip(SHARED[0], SHARED, 0, 2)
    assert not can_skip(CUSTOM[0], SHARED, 0, 2)
    assert not can_skip(SHARED[0], SHARED, 2, 2)
    assert not can_skip(None, SHARED, 0, 2)
