"""Tests for the Firestore REST gateway against a mocked HTTP transport."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from votechain.chain import Ledger, VotePayload
from votechain.exceptions import ConflictError, PersistenceError
from votechain.storage import PersistenceGateway
from votechain.storage.firestore import (
    FirestoreGateway,
    decode_fields,
    decode_value,
    encode_fields,
    encode_value,
    format_timestamp,
    parse_timestamp,
)

BASE = "https://firestore.test/v1"


class FakeFirestore:
    """Just enough of the documents API to hold one collection."""

    def __init__(self):
        self.docs = {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        body = json.loads(request.content) if request.content else None

        if request.method == "POST" and path.endswith(":runQuery"):
            collection = body["structuredQuery"]["from"][0]["collectionId"]
            assert collection == "blockchain"
            if not self.docs:
                return httpx.Response(200, json=[{"readTime": "2024-01-01T00:00:00Z"}])
            ordered = sorted(
                self.docs.items(), key=lambda kv: int(kv[1]["index"]["integerValue"])
            )
            return httpx.Response(200, json=[
                {"document": {"name": f"{path}/{doc_id}", "fields": fields}}
                for doc_id, fields in ordered
            ])

        if request.method == "PATCH":
            doc_id = path.rsplit("/", 1)[-1]
            self.docs[doc_id] = body["fields"]
            return httpx.Response(200, json={"name": path, "fields": body["fields"]})

        if request.method == "POST":
            doc_id = request.url.params["documentId"]
            if doc_id in self.docs:
                return httpx.Response(409, json={
                    "error": {"code": 409, "message": "Document already exists"}
                })
            self.docs[doc_id] = body["fields"]
            return httpx.Response(200, json={"name": f"{path}/{doc_id}", "fields": body["fields"]})

        return httpx.Response(404, json={"error": {"message": "not found"}})


@pytest.fixture
def server():
    return FakeFirestore()


@pytest.fixture
def firestore(server):
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return FirestoreGateway("demo", api_key="AIza-test", base_url=BASE, client=client)


@pytest.fixture
def blocks(clock):
    ledger = Ledger(difficulty=1, genesis_message="Genesis", clock=clock)
    ledger.create_genesis()
    ledger.append(VotePayload.build("E1", 1, "U1", clock()))
    ledger.append(VotePayload.build("E1", "two", "U2", clock()))
    return list(ledger.chain)


# ─── Typed value codec ───────────────────────────────────────────


class TestValueCodec:
    def test_scalars(self):
        assert encode_value(None) == {"nullValue": None}
        assert encode_value(True) == {"booleanValue": True}
        assert encode_value(7) == {"integerValue": "7"}
        assert encode_value(1.5) == {"doubleValue": 1.5}
        assert encode_value("x") == {"stringValue": "x"}

    def test_bool_is_not_integer(self):
        assert decode_value(encode_value(False)) is False

    def test_nested_round_trip(self):
        doc = {"a": {"b": [1, "two", None]}, "c": 3.25, "d": True}
        assert decode_fields(encode_fields(doc)) == doc

    def test_datetime_round_trip(self):
        value = datetime(2024, 3, 1, 12, 30, 45, 123000, tzinfo=timezone.utc)
        encoded = encode_value(value)
        assert encoded == {"timestampValue": "2024-03-01T12:30:45.123Z"}
        assert decode_value(encoded) == value

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            encode_value(object())
        with pytest.raises(ValueError):
            decode_value({"geoPointValue": {}})


class TestTimestamps:
    def test_nanosecond_precision_truncated(self):
        parsed = parse_timestamp("2024-03-01T12:30:45.123456789Z")
        assert parsed == datetime(2024, 3, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)

    def test_no_fraction(self):
        assert parse_timestamp("2024-03-01T12:30:45Z").microsecond == 0

    def test_offset(self):
        parsed = parse_timestamp("2024-03-01T14:30:45.5+02:00")
        assert parsed.astimezone(timezone.utc).hour == 12

    def test_naive_formatted_as_utc(self):
        assert format_timestamp(datetime(2024, 1, 1)) == "2024-01-01T00:00:00.000Z"

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")


# ─── Gateway ─────────────────────────────────────────────────────


class TestFirestoreGateway:
    def test_is_gateway(self, firestore):
        assert isinstance(firestore, PersistenceGateway)

    def test_requires_project(self):
        with pytest.raises(ValueError, match="FIRESTORE_PROJECT_ID"):
            FirestoreGateway("")

    @pytest.mark.asyncio
    async def test_empty_store(self, firestore):
        assert await firestore.load_all_ordered() == []

    @pytest.mark.asyncio
    async def test_round_trip_out_of_order(self, firestore, server, blocks):
        for block in (blocks[1], blocks[2], blocks[0]):
            await firestore.put_block(block)
        assert sorted(server.docs) == ["0", "1", "2"]
        assert await firestore.load_all_ordered() == blocks

    @pytest.mark.asyncio
    async def test_timestamp_stored_as_timestamp_value(self, firestore, server, blocks):
        await firestore.put_block(blocks[0])
        assert "timestampValue" in server.docs["0"]["timestamp"]
        assert server.docs["0"]["data"]["mapValue"]["fields"] == {
            "message": {"stringValue": "Genesis"}
        }

    @pytest.mark.asyncio
    async def test_put_targets_document_url(self, firestore, server, blocks):
        await firestore.put_block(blocks[1])
        request = server.requests[-1]
        assert request.method == "PATCH"
        assert request.url.path.endswith("/documents/blockchain/1")
        assert request.url.params["key"] == "AIza-test"

    @pytest.mark.asyncio
    async def test_put_is_idempotent(self, firestore, blocks):
        await firestore.put_block(blocks[0])
        await firestore.put_block(blocks[0])
        assert await firestore.load_all_ordered() == [blocks[0]]

    @pytest.mark.asyncio
    async def test_insert_conflict(self, firestore, server, blocks):
        await firestore.insert_block(blocks[0])
        assert server.requests[-1].url.params["documentId"] == "0"
        with pytest.raises(ConflictError) as exc:
            await firestore.insert_block(blocks[0])
        assert exc.value.status_code == 409
        assert "already exists" in str(exc.value)

    @pytest.mark.asyncio
    async def test_bearer_token(self, server, blocks):
        client = httpx.AsyncClient(transport=httpx.MockTransport(server))
        gw = FirestoreGateway("demo", id_token="tok", base_url=BASE, client=client)
        await gw.put_block(blocks[0])
        assert server.requests[-1].headers["Authorization"] == "Bearer tok"
        assert "key" not in server.requests[-1].url.params
        await gw.close()

    @pytest.mark.asyncio
    async def test_server_error(self, blocks):
        def handler(request):
            return httpx.Response(500, json={"error": {"message": "backend down"}})

        gw = FirestoreGateway("demo", base_url=BASE,
                              client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(PersistenceError) as exc:
            await gw.put_block(blocks[0])
        assert exc.value.status_code == 500
        assert not isinstance(exc.value, ConflictError)
        assert "backend down" in str(exc.value)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        gw = FirestoreGateway("demo", base_url=BASE,
                              client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(PersistenceError, match="connection error"):
            await gw.load_all_ordered()

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        gw = FirestoreGateway("demo", base_url=BASE,
                              client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(PersistenceError) as exc:
            await gw.load_all_ordered()
        assert exc.value.status_code == 408

    @pytest.mark.asyncio
    async def test_malformed_document(self):
        def handler(request):
            return httpx.Response(200, json=[
                {"document": {"name": "docs/blockchain/0", "fields": {"index": {"integerValue": "0"}}}}
            ])

        gw = FirestoreGateway("demo", base_url=BASE,
                              client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(PersistenceError, match="Malformed"):
            await gw.load_all_ordered()

    @pytest.mark.asyncio
    async def test_non_mapping_data(self, firestore, server, blocks):
        await firestore.put_block(blocks[1])
        server.docs["1"]["data"] = {"stringValue": "garbage"}
        with pytest.raises(PersistenceError, match="Malformed"):
            await firestore.load_all_ordered()

    def test_repr(self, firestore):
        assert repr(firestore) == "FirestoreGateway(project='demo', collection='blockchain')"
