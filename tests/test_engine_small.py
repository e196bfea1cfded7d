import random

import pytest

from pairmine.baskets import BasketFile, BasketList
from pairmine.engine import (
    PCY,
    APriori,
    RoundContext,
    RoundState,
    count_pairs,
    filter_pairs,
    get_miner,
    iter_pairs,
    merge_pair_tables,
    pairs_to_frame,
    run_round,
)
from pairmine.errors import InvalidParameterError, MalformedBasketError
from pairmine.pcy import pair_hash


SMALL = [[1, 2, 3], [2, 3], [1, 3], [1, 2]]


def _random_baskets(seed, n=60, n_items=12, max_len=7):
    rng = random.Random(seed)
    return [[rng.randrange(n_items) for _ in range(rng.randint(0, max_len))] for _ in range(n)]


def _brute_pairs(baskets, keep):
    """
    Count every position pair (i < j) that keep(a, b) accepts.
    """
    table = {}
    for basket in baskets:
        for i in range(len(basket)):
            for j in range(i + 1, len(basket)):
                a, b = basket[i], basket[j]
                if keep(a, b):
                    table.setdefault(a, {})
                    table[a][b] = table[a].get(b, 0) + 1
    return table


class _NoScan:
    """
    Source that fails the test if anything tries to scan it.
    """

    def scan(self, limit=None):
        raise AssertionError("scanned before parameters were checked")


def test_small_scenario_apriori():
    # support = floor(0.5 * 4) = 2
    result = run_round(BasketList(SMALL), None, 0.5, is_first_round=True)

    assert result.support == 2
    assert result.basket_count_observed == 4
    assert result.frequent_items == {1, 2, 3}
    assert result.frequent_pairs == {1: {2: 2, 3: 2}, 2: {3: 2}}
    assert result.candidate_pair_count == 3
    assert result.frequent_pair_count() == 3


def test_small_scenario_pcy_matches():
    result = PCY().run(BasketList(SMALL), None, 0.5, is_first_round=True)

    assert result.frequent_pairs == {1: {2: 2, 3: 2}, 2: {3: 2}}
    assert result.bitmap is not None
    assert set(result.bitmap) == {pair_hash(1, 2), pair_hash(1, 3), pair_hash(2, 3)}
    assert not result.empty


def test_threshold_zero_counts_every_pair():
    baskets = _random_baskets(1)
    source = BasketList(baskets)
    # 0.01 * 60 = 0.6 -> support 0
    result = run_round(source, None, 0.01, is_first_round=True)

    assert result.support == 0
    assert result.frequent_items == {x for b in baskets for x in b}
    assert result.frequent_pairs == _brute_pairs(baskets, lambda a, b: True)

    # with support 0 every seen bucket is set, so PCY agrees
    assert run_round(source, None, 0.01, True, use_bitmap=True).frequent_pairs == result.frequent_pairs


@pytest.mark.parametrize("use_bitmap", [False, True])
def test_higher_support_never_grows_results(use_bitmap):
    source = BasketList(_random_baskets(2))
    previous = None

    for fraction in [0.05, 0.1, 0.2, 0.4, 0.8]:
        result = run_round(source, None, fraction, True, use_bitmap=use_bitmap)
        pairs = {(a, b) for a, b, _c in iter_pairs(result.frequent_pairs)}
        if previous is not None:
            prev_items, prev_pairs = previous
            assert result.frequent_items <= prev_items
            assert pairs <= prev_pairs
        previous = (result.frequent_items, pairs)


@pytest.mark.parametrize("use_bitmap", [False, True])
def test_same_round_twice_is_identical(use_bitmap):
    source = BasketList(_random_baskets(3))

    first = run_round(source, 40, 0.1, False, use_bitmap=use_bitmap)
    second = run_round(source, 40, 0.1, False, use_bitmap=use_bitmap)

    assert first.frequent_pairs == second.frequent_pairs
    assert first.support == second.support == 4


def test_pcy_keeps_every_frequent_pair_of_apriori():
    for seed in range(5):
        source = BasketList(_random_baskets(seed, n=80))
        base = run_round(source, None, 0.1, True)
        pcy = run_round(source, None, 0.1, True, use_bitmap=True)

        frequent = filter_pairs(base.frequent_pairs, base.support)
        for a, b, c in iter_pairs(frequent):
            assert pcy.frequent_pairs[a][b] == c


def test_pass_two_counts_are_exact_for_candidates():
    baskets = _random_baskets(4)
    result = run_round(BasketList(baskets), None, 0.15, True, use_bitmap=True)
    items, bitmap = result.frequent_items, result.bitmap

    expected = _brute_pairs(
        baskets,
        lambda a, b: a in items and b in items and bitmap[pair_hash(a, b)],
    )
    assert result.frequent_pairs == expected


def test_empty_dataset():
    empty = BasketList([])

    base = run_round(empty, None, 0.5, True)
    assert base.frequent_items == set()
    assert base.frequent_pairs == {}
    assert base.basket_count_observed == 0

    # PCY has no buckets: empty result, flagged, no crash
    pcy = run_round(empty, None, 0.5, True, use_bitmap=True)
    assert pcy.empty
    assert pcy.frequent_pairs == {}
    assert pcy.bitmap is None


def test_single_item_baskets_give_no_pairs():
    result = run_round(BasketList([[1], [1], [2]]), None, 0.1, True, use_bitmap=True)

    assert result.empty
    assert result.frequent_items == {1, 2}
    assert result.frequent_pairs == {}


def test_duplicates_form_pairs_by_position():
    # [1, 1, 2] -> (1,1), (1,2), (1,2)
    table = count_pairs([[1, 1, 2]], {1, 2})
    assert table == {1: {1: 1, 2: 2}}


def test_pair_keys_follow_basket_order():
    table = count_pairs([[1, 2], [2, 1], [2, 1]], {1, 2})

    # (1,2) and (2,1) are separate keys
    assert table == {1: {2: 1}, 2: {1: 2}}


def test_count_pairs_skips_infrequent_items():
    # 9 is not frequent, but 1 and 3 around it still pair up
    table = count_pairs([[1, 9, 3]], {1, 3})
    assert table == {1: {3: 1}}


def test_support_base_per_round():
    source = BasketList(SMALL)

    # first round: base = whole dataset (4) even with a limit, support = floor(0.5 * 4) = 2
    first = run_round(source, 2, 0.5, is_first_round=True)
    assert first.basket_count_observed == 2
    assert first.support == 2
    # only [1,2,3] and [2,3] scanned: 2 and 3 reach 2, 1 does not
    assert first.frequent_items == {2, 3}
    assert first.frequent_pairs == {2: {3: 2}}

    # later round: base = limit (10) even though only 4 baskets exist
    later = run_round(source, 10, 0.5, is_first_round=False)
    assert later.basket_count_observed == 4
    assert later.support == 5
    assert later.frequent_items == set()
    assert later.frequent_pairs == {}


@pytest.mark.parametrize(
    "limit, fraction, first",
    [(0, 0.5, False), (-3, 0.5, True), (None, 0.5, False), (10, 0.0, False), (10, 1.2, True)],
)
def test_bad_parameters_fail_before_scanning(limit, fraction, first):
    with pytest.raises(InvalidParameterError):
        run_round(_NoScan(), limit, fraction, first)


def test_malformed_basket_aborts_round(tmp_path):
    path = tmp_path / "bad.txt"
    path.write_text("1 2\n2 3\n3 ?\n")

    with BasketFile(path) as source:
        with pytest.raises(MalformedBasketError) as err:
            run_round(source, None, 0.5, True)
        assert err.value.basket_index == 2

        # the bad line is outside this round's limit
        ok = run_round(source, 2, 0.5, False)
        # support = floor(0.5 * 2) = 1
        assert ok.frequent_pairs == {1: {2: 1}, 2: {3: 1}}


def test_round_context_only_moves_forward():
    ctx = RoundContext(use_bitmap=True)
    assert ctx.bucket_counts is not None

    ctx.advance(RoundState.SCANNING_PASS_ONE)
    ctx.advance(RoundState.COMPUTING_THRESHOLD_AND_CANDIDATES)
    with pytest.raises(RuntimeError):
        ctx.advance(RoundState.SCANNING_PASS_ONE)


def test_filter_and_merge_pair_tables():
    left = {1: {2: 3}, 4: {5: 1}}
    right = {1: {2: 1, 3: 2}}

    merged = merge_pair_tables(left, right)
    assert merged == {1: {2: 4, 3: 2}, 4: {5: 1}}
    assert filter_pairs(merged, 2) == {1: {2: 4, 3: 2}}
    assert filter_pairs(merged, 5) == {}


def test_sharded_pass_two_merges_to_full_count():
    baskets = _random_baskets(5)
    items = set(range(12))

    full = count_pairs(baskets, items)
    shards = [count_pairs(baskets[i::3], items) for i in range(3)]

    assert merge_pair_tables(*shards) == full


def test_pairs_to_frame_sorted_by_count():
    df = pairs_to_frame({1: {2: 1, 3: 5}, 2: {3: 5}})

    assert list(df.columns) == ["item_i", "item_j", "count"]
    assert df["count"].tolist() == [5, 5, 1]
    assert df.iloc[0]["item_i"] == 1

    assert pairs_to_frame({}).empty


def test_get_miner():
    assert isinstance(get_miner("apriori"), APriori)
    assert isinstance(get_miner("PCY"), PCY)
    assert get_miner("pcy").use_bitmap

    with pytest.raises(InvalidParameterError):
        get_miner("eclat")


def test_non_ascii_basket_aborts_round(tmp_path):
    path = tmp_path / "bad.txt"
    path.write_bytes(b"1 2\n3 \xff\n")

    with BasketFile(path) as source:
        with pytest.raises(MalformedBasketError) as err:
            run_round(source, None, 0.5, True, use_bitmap=True)

    assert err.value.basket_index == 1
