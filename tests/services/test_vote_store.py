"""Tests for transactional vote mutations."""

from __future__ import annotations

import gc
import threading
from datetime import UTC, datetime, timedelta
from itertools import count

import pytest
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker

from tallyrank.core.errors import InvalidDirectionError, ProductNotFoundError, StoreUnavailableError
from tallyrank.db.session import Base, build_engine
from tallyrank.models import Product, ProductVote
from tallyrank.services import vote_store
from tallyrank.services.identity import Identity, IdentityKind
from tallyrank.services.toggle import VoteDirection
from tallyrank.services.vote_store import VoteStore


def _anon(n: int) -> Identity:
    return Identity(IdentityKind.ANONYMOUS, f"voter-{n:04d}-fingerprint")


def _seed_votes(db, product: Product, up: int, down: int) -> None:
    now = datetime.now(UTC)
    for i in range(up + down):
        db.add(
            ProductVote(
                product_id=product.id,
                voter_key=f"anon:seed-{i:04d}-fingerprint",
                direction=1 if i < up else -1,
                created_at=now,
                updated_at=now,
            )
        )
    product.upvotes = up
    product.downvotes = down
    db.commit()


def _row_count(db, product_id: int, voter_key: str | None = None) -> int:
    query = db.query(func.count()).select_from(ProductVote).filter(
        ProductVote.product_id == product_id
    )
    if voter_key is not None:
        query = query.filter(ProductVote.voter_key == voter_key)
    return query.scalar()


def test_first_upvote_creates_row(db_session, product, anon_identity) -> None:
    outcome = VoteStore(db_session).cast_vote(anon_identity, product.id, "up")

    assert outcome.direction is VoteDirection.UP
    assert (outcome.upvotes, outcome.downvotes) == (1, 0)
    assert outcome.score == 1
    assert _row_count(db_session, product.id, anon_identity.key) == 1
    assert db_session.get(Product, product.id).last_vote_at is not None


def test_concrete_toggle_scenario(db_session, product, anon_identity) -> None:
    _seed_votes(db_session, product, up=10, down=5)
    store = VoteStore(db_session)

    first = store.cast_vote(anon_identity, product.id, VoteDirection.UP)
    assert (first.upvotes, first.downvotes, first.direction) == (11, 5, VoteDirection.UP)

    second = store.cast_vote(anon_identity, product.id, VoteDirection.UP)
    assert (second.upvotes, second.downvotes, second.direction) == (10, 5, None)
    assert _row_count(db_session, product.id, anon_identity.key) == 0

    third = store.cast_vote(anon_identity, product.id, VoteDirection.DOWN)
    assert (third.upvotes, third.downvotes, third.direction) == (10, 6, VoteDirection.DOWN)


def test_switch_direction_updates_in_place(db_session, product, anon_identity) -> None:
    store = VoteStore(db_session)
    store.cast_vote(anon_identity, product.id, "up")
    outcome = store.cast_vote(anon_identity, product.id, "down")

    assert (outcome.upvotes, outcome.downvotes) == (0, 1)
    assert _row_count(db_session, product.id, anon_identity.key) == 1
    vote = db_session.get(ProductVote, (product.id, anon_identity.key))
    assert vote.direction == -1


def test_account_and_anonymous_votes_are_separate(
    db_session, product, anon_identity, account_identity
) -> None:
    store = VoteStore(db_session)
    store.cast_vote(anon_identity, product.id, "up")
    outcome = store.cast_vote(account_identity, product.id, "up")

    assert outcome.upvotes == 2
    assert _row_count(db_session, product.id) == 2


def test_unknown_product_raises(db_session, anon_identity) -> None:
    with pytest.raises(ProductNotFoundError) as exc_info:
        VoteStore(db_session).cast_vote(anon_identity, 9999, "up")
    assert exc_info.value.product_id == 9999
    assert db_session.query(ProductVote).count() == 0


def test_invalid_direction_rejected_before_touching_store(db_session, product, anon_identity) -> None:
    with pytest.raises(InvalidDirectionError):
        VoteStore(db_session).cast_vote(anon_identity, product.id, "sideways")
    assert _row_count(db_session, product.id) == 0


def test_commit_failure_leaves_store_unchanged(db_session, product, anon_identity, mocker) -> None:
    mocker.patch.object(
        db_session,
        "commit",
        side_effect=OperationalError("COMMIT", {}, Exception("disk I/O error")),
    )

    with pytest.raises(StoreUnavailableError):
        VoteStore(db_session).cast_vote(anon_identity, product.id, "up")

    mocker.stopall()
    db_session.expire_all()
    refreshed = db_session.get(Product, product.id)
    assert (refreshed.upvotes, refreshed.downvotes) == (0, 0)
    assert _row_count(db_session, product.id) == 0


def test_integrity_error_is_retried_once(db_session, product, anon_identity, mocker) -> None:
    original = VoteStore._apply
    calls: list[int] = []

    def flaky_apply(self, identity, product_id, requested):
        calls.append(1)
        if len(calls) == 1:
            raise IntegrityError("INSERT", {}, Exception("duplicate key"))
        return original(self, identity, product_id, requested)

    mocker.patch.object(VoteStore, "_apply", flaky_apply)

    outcome = VoteStore(db_session).cast_vote(anon_identity, product.id, "up")

    assert len(calls) == 2
    assert outcome.upvotes == 1


def test_repeated_integrity_errors_surface_as_unavailable(
    db_session, product, anon_identity, mocker
) -> None:
    mocker.patch.object(
        VoteStore,
        "_apply",
        side_effect=IntegrityError("INSERT", {}, Exception("duplicate key")),
    )
    with pytest.raises(StoreUnavailableError):
        VoteStore(db_session).cast_vote(anon_identity, product.id, "up")


def test_get_status_does_not_mutate(db_session, product, anon_identity) -> None:
    store = VoteStore(db_session)
    store.cast_vote(anon_identity, product.id, "down")

    status = store.get_status(anon_identity, product.id)
    assert status.direction is VoteDirection.DOWN
    assert status.view.score == -1

    stranger = store.get_status(_anon(1), product.id)
    assert stranger.direction is None
    assert _row_count(db_session, product.id) == 1


def test_get_status_unknown_product(db_session, anon_identity) -> None:
    with pytest.raises(ProductNotFoundError):
        VoteStore(db_session).get_status(anon_identity, 4242)


def test_list_votes_most_recent_first(db_session, product_factory, anon_identity) -> None:
    base = datetime(2025, 1, 1, tzinfo=UTC)
    ticks = count()
    store = VoteStore(db_session, clock=lambda: base + timedelta(minutes=next(ticks)))
    first, second = product_factory(), product_factory()

    store.cast_vote(anon_identity, first.id, "up")
    store.cast_vote(anon_identity, second.id, "down")

    history = store.list_votes(anon_identity)
    assert [vote.product_id for vote in history] == [second.id, first.id]
    assert store.list_votes(anon_identity, limit=1)[0].product_id == second.id


def test_reconcile_repairs_drifted_aggregate(db_session, product_factory, anon_identity) -> None:
    healthy = product_factory()
    drifted = product_factory(upvotes=5, downvotes=2)
    store = VoteStore(db_session)
    store.cast_vote(anon_identity, healthy.id, "up")

    repaired = store.reconcile_aggregates()

    assert repaired == [drifted.id]
    db_session.expire_all()
    fixed = db_session.get(Product, drifted.id)
    assert (fixed.upvotes, fixed.downvotes) == (0, 0)
    assert db_session.get(Product, healthy.id).upvotes == 1


def test_reconcile_limited_to_given_ids(db_session, product_factory) -> None:
    first = product_factory(upvotes=1)
    second = product_factory(upvotes=1)

    assert VoteStore(db_session).reconcile_aggregates([second.id]) == [second.id]
    db_session.expire_all()
    assert db_session.get(Product, first.id).upvotes == 1


@pytest.fixture()
def file_session_factory(tmp_path):
    engine = build_engine(
        f"sqlite:///{tmp_path / 'votes.db'}",
        connect_args={"timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    finally:
        engine.dispose()


def _run_concurrently(session_factory, jobs) -> list[BaseException]:
    errors: list[BaseException] = []
    barrier = threading.Barrier(len(jobs))

    def worker(identity, product_id, direction) -> None:
        db = session_factory()
        try:
            barrier.wait()
            VoteStore(db).cast_vote(identity, product_id, direction)
        except BaseException as exc:  # noqa: BLE001 - collected for the assertion
            errors.append(exc)
        finally:
            db.close()

    threads = [threading.Thread(target=worker, args=job) for job in jobs]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return errors


def test_concurrent_votes_keep_aggregate_consistent(file_session_factory) -> None:
    with file_session_factory() as db:
        product = Product(slug="contested", name="Contested")
        db.add(product)
        db.commit()
        product_id = product.id

    jobs = [
        (_anon(i), product_id, "up" if i % 3 else "down")
        for i in range(24)
    ]
    errors = _run_concurrently(file_session_factory, jobs)
    assert errors == []

    with file_session_factory() as db:
        stored = db.get(Product, product_id)
        assert stored.upvotes == 16
        assert stored.downvotes == 8
        assert _row_count(db, product_id) == 24


def test_concurrent_recasts_by_one_identity_serialize(file_session_factory) -> None:
    with file_session_factory() as db:
        product = Product(slug="double-click", name="Double Click")
        db.add(product)
        db.commit()
        product_id = product.id

    identity = _anon(7)
    errors = _run_concurrently(file_session_factory, [(identity, product_id, "up")] * 4)
    assert errors == []

    # Four serialized toggles of the same direction cancel out.
    with file_session_factory() as db:
        stored = db.get(Product, product_id)
        assert (stored.upvotes, stored.downvotes) == (0, 0)
        assert _row_count(db, product_id, identity.key) == 0


def test_product_lock_shared_while_held_and_released_after() -> None:
    lock = vote_store._product_lock(31337)
    assert vote_store._product_lock(31337) is lock
    assert vote_store._product_lock(31338) is not lock

    del lock
    gc.collect()
    assert 31337 not in vote_store._PRODUCT_LOCKS
