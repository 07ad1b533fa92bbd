import math
import threading
import unittest

from approtator.batch import UNRESOLVED_ADDRESS, BatchOrchestrator, chunked, pair_keys
from approtator.errors import ChainError
from approtator.executor import RetryingExecutor
from approtator.keys import resolve_address
from approtator.models import Failure, KeyPair, StakeAction, Success
from fakes import FakeChain, make_key


class TestChunked(unittest.TestCase):
    def test_chunk_counts(self):
        for n in range(0, 12):
            for size in range(1, 5):
                items = list(range(n))
                chunks = list(chunked(items, size))
                self.assertEqual(len(chunks), math.ceil(n / size))
                self.assertEqual([x for c in chunks for x in c], items)
                self.assertTrue(all(len(c) <= size for c in chunks))

    def test_bad_size(self):
        with self.assertRaises(ValueError):
            list(chunked([1], 0))


class TestBatchOrchestrator(unittest.TestCase):
    def orchestrator(self, chain, attempts=3, chunk_size=2, chunks_seen=None):
        def on_chunk(index, total):
            if chunks_seen is not None:
                chunks_seen.append((index, total))

        return BatchOrchestrator(chain, RetryingExecutor(attempts), chunk_size=chunk_size, on_chunk=on_chunk)

    def test_outcomes_follow_input_order(self):
        keys = [make_key(i) for i in range(1, 8)]
        chunks_seen = []
        result = self.orchestrator(FakeChain(), chunk_size=3, chunks_seen=chunks_seen).run(StakeAction.STAKE, keys)

        self.assertEqual(len(result), 7)
        self.assertEqual([o.address for o in result], [resolve_address(k) for k in keys])
        self.assertEqual(chunks_seen, [(1, 3), (2, 3), (3, 3)])
        self.assertTrue(result.ok)
        self.assertTrue(all(o.new_address is None for o in result))

    def test_transfer_scenario_with_one_failure(self):
        a, b, c = make_key(1), make_key(2), make_key(3)
        x, y, z = make_key(4), make_key(5), make_key(6)
        chain = FakeChain(always_fail={c})
        chunks_seen = []

        result = self.orchestrator(chain, chunk_size=2, chunks_seen=chunks_seen).run(
            StakeAction.TRANSFER, pair_keys([a, b, c], [x, y, z])
        )

        self.assertEqual(chunks_seen, [(1, 2), (2, 2)])
        self.assertEqual([o.address for o in result], [resolve_address(k) for k in (a, b, c)])
        self.assertEqual([o.new_address for o in result], [resolve_address(k) for k in (x, y, z)])
        self.assertEqual([o.success for o in result], [True, True, False])
        self.assertFalse(result.ok)
        self.assertEqual(result.failures, [result.outcomes[2]])
        self.assertIn("attempt 3 failed", result.outcomes[2].response)
        self.assertEqual(chain.calls[c], 3)

    def test_retry_then_success_is_recorded_as_success(self):
        key = make_key(1)
        chain = FakeChain(failures={key: 2})
        result = self.orchestrator(chain, attempts=3).run(StakeAction.UNSTAKE, [key])
        self.assertEqual(result.outcomes[0].result, Success(chain_hash(key, 3)))
        self.assertEqual(chain.calls[key], 3)

    def test_prepare_errors_become_failures(self):
        chain = FakeChain(prepare_error=ChainError("import failed"))
        result = self.orchestrator(chain).run(StakeAction.STAKE, [make_key(1), make_key(2)])
        self.assertEqual([o.result for o in result], [Failure("import failed")] * 2)

    def test_jobs_in_a_chunk_run_concurrently(self):
        barrier = threading.Barrier(2)
        chain = FakeChain(barrier=barrier)
        keys = [make_key(i) for i in range(1, 5)]
        result = self.orchestrator(chain, attempts=1, chunk_size=2).run(StakeAction.STAKE, keys)
        self.assertTrue(result.ok)

    def test_chunks_drain_before_next_chunk_starts(self):
        keys = [make_key(i) for i in range(1, 6)]
        chain = FakeChain(delay=0.02, failures={keys[1]: 1})
        result = self.orchestrator(chain, attempts=2, chunk_size=2).run(StakeAction.STAKE, keys)

        self.assertTrue(result.ok)
        self.assertLessEqual(chain.peak_in_flight, 2)

        chunks = [keys[0:2], keys[2:4], keys[4:5]]
        for earlier, later in zip(chunks, chunks[1:]):
            last_end = max(i for i, (kind, key) in enumerate(chain.events) if kind == "end" and key in earlier)
            first_start = min(i for i, (kind, key) in enumerate(chain.events) if kind == "start" and key in later)
            self.assertLess(last_end, first_start)

    def test_unresolvable_key_still_gets_an_outcome(self):
        good, bad = make_key(1), "ab" * 32
        result = self.orchestrator(FakeChain()).run(StakeAction.STAKE, [good, bad])
        self.assertEqual(len(result), 2)
        self.assertTrue(result.outcomes[0].success)
        self.assertFalse(result.outcomes[1].success)
        self.assertEqual(result.outcomes[1].address, UNRESOLVED_ADDRESS)
        self.assertFalse(result.ok)

        pairs = [KeyPair(make_key(2), bad)]
        (outcome,) = self.orchestrator(FakeChain()).run(StakeAction.TRANSFER, pairs)
        self.assertEqual(outcome.address, resolve_address(make_key(2)))
        self.assertEqual(outcome.new_address, UNRESOLVED_ADDRESS)
        self.assertFalse(outcome.success)

    def test_prepared_actions_are_closed(self):
        chain = FakeChain(always_fail={make_key(2)})
        self.orchestrator(chain).run(StakeAction.STAKE, [make_key(1), make_key(2)])
        self.assertTrue(all(p.closed for p in chain.prepared))

    def test_job_shape_is_checked_before_submitting(self):
        chain = FakeChain()
        with self.assertRaises(TypeError):
            self.orchestrator(chain).run(StakeAction.TRANSFER, [make_key(1)])
        with self.assertRaises(TypeError):
            self.orchestrator(chain).run(StakeAction.STAKE, [KeyPair(make_key(1), make_key(2))])
        self.assertEqual(chain.prepared, [])

    def test_empty_batch(self):
        result = self.orchestrator(FakeChain()).run(StakeAction.STAKE, [])
        self.assertEqual(len(result), 0)
        self.assertTrue(result.ok)

    def test_rerun_after_partial_failure_resubmits_successes(self):
        # No exactly-once guarantee: a rerun submits every key again,
        # including the ones that already succeeded.
        ok_key, bad_key = make_key(1), make_key(2)
        chain = FakeChain(failures={bad_key: 3})
        orchestrator = self.orchestrator(chain, attempts=3)

        first = orchestrator.run(StakeAction.STAKE, [ok_key, bad_key])
        self.assertFalse(first.ok)

        second = orchestrator.run(StakeAction.STAKE, [ok_key, bad_key])
        self.assertTrue(second.ok)
        self.assertEqual(chain.calls[ok_key], 2)

    def test_private_keys_not_in_outcomes(self):
        key = make_key(1)
        result = self.orchestrator(FakeChain(always_fail={key})).run(StakeAction.STAKE, [key])
        self.assertNotIn(key, repr(result.outcomes))


def chain_hash(key, attempt):
    return f"tx-{resolve_address(key)[:8]}-{attempt}"
