def test_transaction_returns_results_in_order(store):
    # Given a transaction touching a sorted set and a counter
    with store.transaction() as tx:
        tx.zadd("zset", "a", 1)
        tx.zadd("zset", "a", 2)
        tx.zadd("zset", "b", 3)
        tx.zrank("zset", "b")
        tx.incr("counter")
        tx.incr("counter")
        tx.zrem("zset", "a")
        tx.zrem("zset", "a")

        # When it is executed
        results = tx.execute()

    # Then every command's result is returned, in order
    assert results == [1, 0, 1, 1, 1, 2, 1, 0]


def test_zrank_orders_by_score_then_member(store):
    with store.transaction() as tx:
        tx.zadd("zset", "c", 10)
        tx.zadd("zset", "b", 20)
        tx.zadd("zset", "a", 20)
        tx.zrank("zset", "c")
        tx.zrank("zset", "a")
        tx.zrank("zset", "b")
        tx.zrank("zset", "missing")
        *_, c, a, b, missing = tx.execute()

    assert (c, a, b, missing) == (0, 1, 2, None)


def test_zremrangebyscore_is_inclusive(store):
    with store.transaction() as tx:
        for member, score in [("a", 1), ("b", 2), ("c", 3)]:
            tx.zadd("zset", member, score)
        tx.zremrangebyscore("zset", "-inf", 2)
        tx.zrank("zset", "c")
        *_, removed, rank = tx.execute()

    assert removed == 2
    assert rank == 0


def test_zinterstore_min_keeps_common_members_with_their_lowest_score(store):
    # Given two sorted sets sharing some members
    with store.transaction() as tx:
        tx.zadd("owner", "a", 1)
        tx.zadd("owner", "b", 2)
        tx.zadd("owner", "gone", 3)
        tx.zadd("timeout", "a", 1000)
        tx.zadd("timeout", "b", 0)
        tx.execute()

    # When I intersect them into the first one
    with store.transaction() as tx:
        tx.zinterstore_min("owner", ["owner", "timeout"])
        tx.zrank("owner", "gone")
        tx.zrank("owner", "a")
        tx.zrank("owner", "b")
        size, gone, a, b = tx.execute()

    # Then only the common members remain, ordered by their lowest score
    assert size == 2
    assert gone is None
    assert (b, a) == (0, 1)


def test_zinterstore_min_with_an_empty_set_empties_the_destination(store):
    with store.transaction() as tx:
        tx.zadd("owner", "a", 1)
        tx.zinterstore_min("owner", ["owner", "timeout"])
        tx.zrank("owner", "a")
        _, size, rank = tx.execute()

    assert size == 0
    assert rank is None


def test_transaction_context_discards_queued_commands(store):
    # Given a transaction left without being executed
    with store.transaction() as tx:
        tx.incr("counter")

    # Then nothing was applied
    with store.transaction() as tx:
        tx.incr("counter")
        assert tx.execute() == [1]


def test_set_if_absent(store):
    assert store.set_if_absent("key", "first", 10_000)
    assert not store.set_if_absent("key", "second", 10_000)


def test_delete_if_equal(store):
    store.set_if_absent("key", "value", 10_000)

    assert not store.delete_if_equal("key", "other")
    assert store.delete_if_equal("key", "value")
    assert not store.delete_if_equal("key", "value")
    assert store.set_if_absent("key", "value", 10_000)


def test_expire_if_equal(store):
    store.set_if_absent("key", "value", 10_000)

    assert not store.expire_if_equal("key", "other", 20_000)
    assert store.expire_if_equal("key", "value", 20_000)
    assert not store.expire_if_equal("missing", "value", 20_000)


def test_stub_values_expire_with_the_clock(stub_store, clock):
    # Given a key set for 1s
    assert stub_store.set_if_absent("key", "value", 1000)

    # When 1s passes
    clock.advance(1000)

    # Then it is gone
    assert not stub_store.expire_if_equal("key", "value", 1000)
    assert stub_store.set_if_absent("key", "other", 1000)


def test_stub_flush(stub_store):
    stub_store.set_if_absent("key", "value", 1000)
    with stub_store.transaction() as tx:
        tx.zadd("zset", "a", 1)
        tx.incr("counter")
        tx.execute()

    stub_store.flush()

    assert not stub_store.values
    assert not stub_store.sorted_sets
    assert not stub_store.counters


def test_acquire_slot_ranks_a_new_token_after_equal_timestamps(store):
    # Given 2 entries scored at the current millisecond
    assert store.acquire_slot("zset", "b", 1000, 2, 500)
    assert store.acquire_slot("zset", "a", 1000, 2, 500)

    # When a token sorting before them is added at the same millisecond
    # Then it is ranked after them and rejected
    assert not store.acquire_slot("zset", "0", 1000, 2, 500)

    # And it was not added
    with store.transaction() as tx:
        tx.zrank("zset", "0")
        assert tx.execute() == [None]


def test_acquire_slot_purges_expired_entries(store):
    assert store.acquire_slot("zset", "a", 1000, 1, 500)
    assert not store.acquire_slot("zset", "b", 1499, 1, 500)
    assert store.acquire_slot("zset", "c", 1500, 1, 500)


def test_acquire_fair_slot_removes_a_rejected_token(store):
    # Given a fair semaphore whose only slot is taken
    assert store.acquire_fair_slot("timeout", "owner", "counter", "a", 1000, 1, 500)

    # When another token is rejected
    assert not store.acquire_fair_slot("timeout", "owner", "counter", "b", 1001, 1, 500)

    # Then it is in neither index, but its sequence number was issued
    with store.transaction() as tx:
        tx.zrank("timeout", "b")
        tx.zrank("owner", "b")
        tx.zrank("owner", "a")
        tx.incr("counter")
        assert tx.execute() == [None, None, 0, 3]


def test_acquire_fair_slot_drops_owners_whose_timeout_expired(store):
    assert store.acquire_fair_slot("timeout", "owner", "counter", "a", 1000, 1, 500)

    assert store.acquire_fair_slot("timeout", "owner", "counter", "b", 1501, 1, 500)

    with store.transaction() as tx:
        tx.zrank("owner", "a")
        tx.zrank("owner", "b")
        assert tx.execute() == [None, 0]
