import pytest

from cascadedetect.disjoint_set import DisjointSet
from cascadedetect.errors import ConfigError


def _representatives(ds):
    return {ds.find(i) for i in range(len(ds))}


def test_singletons():
    ds = DisjointSet(5)
    assert len(ds) == 5
    assert [ds.find(i) for i in range(5)] == [0, 1, 2, 3, 4]


def test_find_is_idempotent():
    ds = DisjointSet(6)
    ds.union(0, 1)
    ds.union(2, 1)
    for i in range(6):
        assert ds.find(ds.find(i)) == ds.find(i)


def test_union_joins_and_never_adds_sets():
    ds = DisjointSet(8)
    count = len(_representatives(ds))
    for i, j in [(0, 1), (2, 3), (1, 3), (1, 3), (4, 4), (7, 0)]:
        ds.union(i, j)
        assert ds.find(i) == ds.find(j)
        now = len(_representatives(ds))
        assert now <= count
        count = now
    assert count == 4


def test_union_attaches_under_second_representative():
    ds = DisjointSet(3)
    ds.union(0, 1)
    assert ds.find(0) == 1
    ds.union(1, 2)
    assert ds.find(0) == 2


def test_long_chain_does_not_recurse():
    n = 20000
    ds = DisjointSet(n)
    for i in range(n - 1):
        ds.parent[i] = i + 1
    assert ds.find(0) == n - 1
    # Path fully compressed
    assert ds.parent[0] == n - 1
    assert ds.parent[n // 2] == n - 1


@pytest.mark.parametrize("size", [None, -1, 2.5, "3"])
def test_bad_size(size):
    with pytest.raises(ConfigError):
        DisjointSet(size)


def test_empty_set():
    assert len(DisjointSet(0)) == 0
