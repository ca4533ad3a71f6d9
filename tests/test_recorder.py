"""Tests for VoteRecorder: mining, persisting and reporting votes."""

import asyncio

import pytest

from votechain import config
from votechain.canonical import hash_voter_id
from votechain.chain import Ledger, VotePayload
from votechain.exceptions import ConflictError, PersistenceError
from votechain.recorder import VoteErrorKind, VoteReceipt, VoteRecorder
from votechain.storage.memory import InMemoryGateway


class FailingGateway(InMemoryGateway):
    """Rejects the next ``failures`` writes."""

    def __init__(self, failures=1):
        super().__init__()
        self.failures = failures

    async def insert_block(self, block):
        if self.failures:
            self.failures -= 1
            raise PersistenceError("write rejected", status_code=503)
        await super().insert_block(block)


class UnreadableGateway(InMemoryGateway):
    async def load_all_ordered(self):
        raise PersistenceError("store offline")


class SlowGateway(InMemoryGateway):
    async def load_all_ordered(self):
        await asyncio.sleep(5)
        return []


class RacingGateway(InMemoryGateway):
    """Another writer claims the next index just before our insert lands."""

    def __init__(self, clock):
        super().__init__()
        self.clock = clock
        self.race = False

    async def insert_block(self, block):
        if self.race:
            self.race = False
            rival = Ledger.from_blocks(
                await self.load_all_ordered(), difficulty=1, clock=self.clock
            )
            await self.put_block(rival.append(VotePayload.build("E1", 2, "rival", self.clock())))
        await super().insert_block(block)


class TakenGateway(InMemoryGateway):
    def __init__(self):
        super().__init__()
        self.attempts = 0

    async def insert_block(self, block):
        self.attempts += 1
        raise ConflictError(f"Block #{block.index} already stored", status_code=409)


async def stored_ledger(gateway):
    return Ledger.from_blocks(await gateway.load_all_ordered(), difficulty=1)


# ─── Happy path ──────────────────────────────────────────────────


class TestRecordVote:
    @pytest.mark.asyncio
    async def test_first_vote_persists_genesis_and_vote(self, gateway, clock):
        recorder = VoteRecorder(gateway, difficulty=1, genesis_message="Genesis", clock=clock)
        receipt = await recorder.record_vote("E1", 1, "voter-42")

        assert receipt.success
        assert receipt.block_index == 1
        assert sorted(gateway.documents) == ["0", "1"]
        assert gateway.documents["0"]["data"] == {"message": "Genesis"}
        assert gateway.documents["1"]["hash"] == receipt.transaction_hash
        assert (await stored_ledger(gateway)).is_valid()

    @pytest.mark.asyncio
    async def test_voter_id_never_stored(self, gateway, clock):
        recorder = VoteRecorder(gateway, difficulty=1, clock=clock)
        await recorder.record_vote("E1", 1, "voter-42")

        data = gateway.documents["1"]["data"]
        assert data["voterIdHash"] == hash_voter_id("voter-42")
        assert "voter-42" not in repr(gateway.documents)

    @pytest.mark.asyncio
    async def test_votes_extend_stored_chain(self, gateway, clock):
        recorder = VoteRecorder(gateway, difficulty=1, clock=clock)
        receipts = [await recorder.record_vote("E1", c, f"U{i}") for i, c in enumerate([1, 2, 2])]

        assert [r.block_index for r in receipts] == [1, 2, 3]
        ledger = await stored_ledger(gateway)
        assert len(ledger) == 4
        assert ledger.is_valid()
        assert ledger.tally("E1") == {1: 1, 2: 2}

    @pytest.mark.asyncio
    async def test_fresh_recorder_continues_chain(self, gateway, clock):
        await VoteRecorder(gateway, difficulty=1, clock=clock).record_vote("E1", 1, "U1")
        receipt = await VoteRecorder(gateway, difficulty=1, clock=clock).record_vote("E1", 1, "U2")
        assert receipt.block_index == 2
        assert (await stored_ledger(gateway)).is_valid()

    @pytest.mark.asyncio
    async def test_uses_configured_difficulty(self, gateway, clock, monkeypatch):
        monkeypatch.setenv("VOTECHAIN_DIFFICULTY", "2")
        config.reload()
        receipt = await VoteRecorder(gateway, clock=clock).record_vote("E1", 1, "U1")
        assert receipt.transaction_hash.startswith("00")
        assert gateway.documents["0"]["hash"].startswith("00")


# ─── Failures ────────────────────────────────────────────────────


class TestRecordVoteFailures:
    @pytest.mark.asyncio
    async def test_write_failure(self, clock):
        gateway = FailingGateway()
        receipt = await VoteRecorder(gateway, difficulty=1, clock=clock).record_vote("E1", 1, "U1")

        assert not receipt.success
        assert receipt.error_kind is VoteErrorKind.PERSISTENCE_FAILURE
        assert receipt.transaction_hash is None
        assert "write rejected" in receipt.error
        assert gateway.documents == {}

    @pytest.mark.asyncio
    async def test_retry_after_failure_succeeds(self, clock):
        gateway = FailingGateway()
        recorder = VoteRecorder(gateway, difficulty=1, clock=clock)
        assert not (await recorder.record_vote("E1", 1, "U1")).success

        receipt = await recorder.record_vote("E1", 1, "U1")
        assert receipt.success
        assert receipt.block_index == 1
        assert (await stored_ledger(gateway)).is_valid()

    @pytest.mark.asyncio
    async def test_load_failure_writes_nothing(self, clock):
        gateway = UnreadableGateway()
        receipt = await VoteRecorder(gateway, difficulty=1, clock=clock).record_vote("E1", 1, "U1")

        assert not receipt.success
        assert receipt.error_kind is VoteErrorKind.PERSISTENCE_FAILURE
        assert gateway.documents == {}

    @pytest.mark.asyncio
    async def test_corrupt_stored_block(self, gateway, clock):
        recorder = VoteRecorder(gateway, difficulty=1, clock=clock)
        await recorder.record_vote("E1", 1, "U1")
        gateway.documents["1"]["data"] = "garbage"

        receipt = await recorder.record_vote("E1", 2, "U2")
        assert not receipt.success
        assert receipt.error_kind is VoteErrorKind.PERSISTENCE_FAILURE
        assert sorted(gateway.documents) == ["0", "1"]

    @pytest.mark.asyncio
    async def test_store_timeout(self, clock):
        recorder = VoteRecorder(SlowGateway(), difficulty=1, timeout=0.01, clock=clock)
        receipt = await recorder.record_vote("E1", 1, "U1")

        assert not receipt.success
        assert receipt.error_kind is VoteErrorKind.PERSISTENCE_FAILURE
        assert "timed out" in receipt.error

    @pytest.mark.asyncio
    async def test_mining_exhausted(self, gateway, clock, monkeypatch):
        monkeypatch.setattr(config, "MAX_MINING_ATTEMPTS", 5)
        receipt = await VoteRecorder(gateway, difficulty=64, clock=clock).record_vote("E1", 1, "U1")

        assert not receipt.success
        assert receipt.error_kind is VoteErrorKind.MINING_EXHAUSTED
        assert gateway.documents == {}

    @pytest.mark.asyncio
    async def test_append_vote_raises(self, clock):
        recorder = VoteRecorder(UnreadableGateway(), difficulty=1, clock=clock)
        with pytest.raises(PersistenceError):
            await recorder.append_vote("E1", 1, "U1")


# ─── Concurrent writers ──────────────────────────────────────────


class TestAppendRace:
    @pytest.mark.asyncio
    async def test_lost_race_is_reappended(self, clock):
        gateway = RacingGateway(clock)
        recorder = VoteRecorder(gateway, difficulty=1, clock=clock)
        assert await recorder.initialize_chain()

        gateway.race = True
        receipt = await recorder.record_vote("E1", 1, "U1")

        assert receipt.success
        assert receipt.block_index == 2
        ledger = await stored_ledger(gateway)
        assert len(ledger) == 3
        assert ledger.is_valid()
        assert ledger.tally("E1") == {1: 1, 2: 1}

    @pytest.mark.asyncio
    async def test_conflict_retries_exhausted(self, clock):
        gateway = TakenGateway()
        recorder = VoteRecorder(gateway, difficulty=1, conflict_retries=2, clock=clock)
        receipt = await recorder.record_vote("E1", 1, "U1")

        assert not receipt.success
        assert receipt.error_kind is VoteErrorKind.CONFLICT
        assert gateway.attempts == 3

    @pytest.mark.asyncio
    async def test_conflict_retries_from_config(self, clock, monkeypatch):
        monkeypatch.setenv("VOTECHAIN_CONFLICT_RETRIES", "0")
        config.reload()
        gateway = TakenGateway()
        with pytest.raises(ConflictError):
            await VoteRecorder(gateway, difficulty=1, clock=clock).append_vote("E1", 1, "U1")
        assert gateway.attempts == 1


# ─── Initialization ──────────────────────────────────────────────


class TestInitializeChain:
    @pytest.mark.asyncio
    async def test_creates_genesis_once(self, gateway, clock):
        recorder = VoteRecorder(gateway, difficulty=1, clock=clock)
        assert await recorder.initialize_chain() is True
        assert await recorder.initialize_chain() is False
        assert sorted(gateway.documents) == ["0"]
        assert gateway.documents["0"]["data"] == {"message": config.GENESIS_MESSAGE}

    @pytest.mark.asyncio
    async def test_failure_propagates(self, clock):
        with pytest.raises(PersistenceError):
            await VoteRecorder(FailingGateway(), difficulty=1, clock=clock).initialize_chain()


class TestVoteReceipt:
    def test_success_dict(self):
        assert VoteReceipt(True, transaction_hash="ab", block_index=1).to_dict() == {
            "success": True,
            "transactionHash": "ab",
        }

    def test_failure_dict(self):
        receipt = VoteReceipt(False, error="boom", error_kind=VoteErrorKind.CONFLICT)
        assert receipt.to_dict() == {"success": False, "error": "boom"}
        assert receipt.error_kind.value == "Conflict"
