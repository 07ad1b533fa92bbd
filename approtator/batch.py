"""
Batch fan-out for stake, unstake and transfer actions.

Jobs are cut into fixed-size chunks. Chunks run one after another; the jobs of
a chunk run concurrently on a thread pool and are all settled before the next
chunk starts. Every job yields exactly one ActionOutcome, in input order.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Iterator, Optional, Sequence

from rich.markup import escape

from approtator.chain import ChainClient
from approtator.executor import RetryingExecutor
from approtator.keys import KeyManager
from approtator.log import console
from approtator.models import ActionOutcome, BatchResult, Failure, KeyPair, StakeAction, Success

logger = logging.getLogger(__name__)

STAKE_BATCH_SIZE = 50
UNRESOLVED_ADDRESS = "<invalid key>"


def chunked(items: Sequence, size: int) -> Iterator[Sequence]:
    if size < 1:
        raise ValueError("chunk size must be a positive integer")
    for start in range(0, len(items), size):
        yield items[start:start + size]


def pair_keys(old_keys: Sequence[str], new_keys: Sequence[str]) -> list[KeyPair]:
    return [KeyPair(old, new) for old, new in zip(old_keys, new_keys)]


class BatchOrchestrator:
    def __init__(
        self,
        chain: ChainClient,
        executor: Optional[RetryingExecutor] = None,
        chunk_size: int = STAKE_BATCH_SIZE,
        signer=KeyManager,
        on_chunk: Optional[Callable[[int, int], None]] = None,
    ):
        if chunk_size < 1:
            raise ValueError("chunk size must be a positive integer")
        self.chain = chain
        self.executor = executor or RetryingExecutor()
        self.chunk_size = chunk_size
        self.signer = signer
        self.on_chunk = on_chunk

    def _check_jobs(self, action: StakeAction, jobs: Sequence):
        expected = KeyPair if action.is_transfer else str
        for i, job in enumerate(jobs):
            if not isinstance(job, expected):
                raise TypeError(f"{action.value} job {i} must be a {expected.__name__}")

    def _submit(self, action: StakeAction, job) -> str:
        if action.is_transfer:
            prepared = self.chain.prepare(action, job.source, job.destination)
        else:
            prepared = self.chain.prepare(action, job)
        with prepared:
            return self.executor.execute(prepared.submit, label=prepared.address)

    def _address(self, key: str) -> Optional[str]:
        try:
            return self.signer.from_private_key(key).address
        except ValueError:
            return None

    def _outcome(self, action: StakeAction, job, result) -> ActionOutcome:
        if action.is_transfer:
            address = self._address(job.source) or UNRESOLVED_ADDRESS
            new_address = self._address(job.destination) or UNRESOLVED_ADDRESS
        else:
            address = self._address(job) or UNRESOLVED_ADDRESS
            new_address = None
        return ActionOutcome(action=action, address=address, new_address=new_address, result=result)

    def run_chunk(self, action: StakeAction, chunk: Sequence) -> list[ActionOutcome]:
        with ThreadPoolExecutor(max_workers=len(chunk)) as pool:
            futures = [pool.submit(self._submit, action, job) for job in chunk]
            wait(futures)

        outcomes = []
        for job, future in zip(chunk, futures):
            error = future.exception()
            result = Failure(str(error)) if error is not None else Success(future.result())
            outcome = self._outcome(action, job, result)
            if outcome.success:
                console.print(f"[green]✓[/green] {outcome.address}: {escape(outcome.response)}")
            else:
                console.print(f"[red]✗[/red] {outcome.address}: {escape(outcome.response)}")
            outcomes.append(outcome)
        return outcomes

    def run(self, action: StakeAction, jobs: Sequence) -> BatchResult:
        """
        Process ``jobs`` chunk by chunk.
        Returns a BatchResult whose ``ok`` is False if any job failed.
        """
        self._check_jobs(action, jobs)
        chunks = list(chunked(jobs, self.chunk_size))
        outcomes = []
        for index, chunk in enumerate(chunks, 1):
            logger.info("Processing %s chunk %d/%d (%d keys)", action.value, index, len(chunks), len(chunk))
            if self.on_chunk:
                self.on_chunk(index, len(chunks))
            outcomes.extend(self.run_chunk(action, chunk))
        return BatchResult(action=action, outcomes=tuple(outcomes))
