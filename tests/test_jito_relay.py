import base64
import json

import httpx
import pytest
from solders.hash import Hash
from solders.keypair import Keypair

from solflow.adapters import JitoBundleRelay, MemoTipTransactionBuilder
from solflow.domain.errors import FetchError
from solflow.domain.models import InflightStatus

ENDPOINT = "https://relay.test/api/v1/bundles"


def relay_with(handler):
    requests = []

    def record(request: httpx.Request) -> httpx.Response:
        requests.append(json.loads(request.content))
        return handler(requests[-1])

    client = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return JitoBundleRelay(ENDPOINT, client=client), requests


def ok(result):
    return lambda payload: httpx.Response(200, json={"jsonrpc": "2.0", "id": payload["id"], "result": result})


async def two_transactions():
    builder = MemoTipTransactionBuilder()
    payer, blockhash = Keypair(), Hash.new_unique()
    return [await builder.build(i, blockhash, payer) for i in (1, 2)]


@pytest.mark.anyio
async def test_get_tip_accounts():
    relay, requests = relay_with(ok(["96gYZGLnJYVFmbjzopPSU6QiEV5fGqZNyN9nmNhvrZU5"]))

    accounts = await relay.get_tip_accounts()

    assert accounts == ["96gYZGLnJYVFmbjzopPSU6QiEV5fGqZNyN9nmNhvrZU5"]
    assert requests[0]["method"] == "getTipAccounts"
    assert requests[0]["params"] == []
    await relay.close()


@pytest.mark.anyio
async def test_send_bundle_encodes_base64():
    relay, requests = relay_with(ok("bundle-123"))
    txs = await two_transactions()

    bundle_id = await relay.send_bundle(txs)

    assert bundle_id == "bundle-123"
    params = requests[0]["params"]
    assert params[1] == {"encoding": "base64"}
    assert [base64.b64decode(p) for p in params[0]] == [bytes(tx) for tx in txs]


@pytest.mark.anyio
async def test_simulate_bundle_parses_failure_summary():
    summary = {"failed": {"error": {"TransactionFailure": [[], "boom"]}, "tx_signature": "sig"}}
    relay, requests = relay_with(
        ok({"context": {"slot": 9}, "value": {"summary": summary, "transactionResults": [{"err": None, "logs": ["x"]}]}})
    )

    result = await relay.simulate_bundle(await two_transactions())

    assert requests[0]["method"] == "simulateBundle"
    assert not result.succeeded
    assert result.failure() == ({"TransactionFailure": [[], "boom"]}, "sig")
    assert result.slot == 9
    assert result.transaction_results[0].logs == ("x",)


@pytest.mark.anyio
async def test_inflight_statuses():
    relay, requests = relay_with(
        ok({"context": {"slot": 1}, "value": [{"bundle_id": "b", "status": "Landed", "landed_slot": 77}]})
    )

    (status,) = await relay.get_inflight_bundle_statuses(["b"])

    assert requests[0]["params"] == [["b"]]
    assert status.status is InflightStatus.LANDED
    assert status.landed_slot == 77


@pytest.mark.anyio
async def test_unknown_bundle_yields_no_statuses():
    relay, _ = relay_with(ok({"context": {"slot": 1}, "value": None}))

    assert await relay.get_bundle_statuses(["b"]) == []


@pytest.mark.anyio
async def test_landed_status_treats_ok_as_no_error():
    relay, _ = relay_with(
        ok(
            {
                "context": {"slot": 1},
                "value": [
                    {
                        "bundle_id": "b",
                        "transactions": ["s1", "s2"],
                        "slot": 321,
                        "confirmation_status": "finalized",
                        "err": {"Ok": None},
                    }
                ],
            }
        )
    )

    (status,) = await relay.get_bundle_statuses(["b"])

    assert status.err is None
    assert status.slot == 321
    assert status.transactions == ("s1", "s2")


@pytest.mark.parametrize(
    "response",
    [
        lambda p: httpx.Response(503, text="unavailable"),
        lambda p: httpx.Response(200, json={"jsonrpc": "2.0", "id": p["id"], "error": {"code": -32602, "message": "bad"}}),
        lambda p: httpx.Response(200, text="<html>"),
        lambda p: httpx.Response(200, json={"jsonrpc": "2.0", "id": p["id"]}),
        ok({"context": {"slot": 1}, "value": ["garbled"]}),
        ok({"context": {"slot": 1}, "value": 7}),
        ok({"context": {"slot": 1}, "value": [{"bundle_id": "b", "status": "Landed"}, 3]}),
        ok("nonsense"),
    ],
)
@pytest.mark.anyio
async def test_unusable_responses_are_fetch_errors(response):
    relay, _ = relay_with(response)

    with pytest.raises(FetchError):
        await relay.get_inflight_bundle_statuses(["b"])


@pytest.mark.anyio
async def test_transport_failure_is_fetch_error():
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    relay = JitoBundleRelay(ENDPOINT, client=httpx.AsyncClient(transport=httpx.MockTransport(refuse)))

    with pytest.raises(FetchError):
        await relay.get_tip_accounts()


@pytest.mark.parametrize(
    "result",
    [
        {"context": {"slot": 1}, "value": None},
        {"context": {"slot": 1}, "value": {"summary": "succeeded", "transactionResults": ["garbled"]}},
        {"context": {"slot": 1}, "value": {"summary": "succeeded", "transactionResults": [{"unitsConsumed": "lots"}]}},
        {"context": "slot 1", "value": {"summary": "succeeded"}},
        ["succeeded"],
    ],
)
@pytest.mark.anyio
async def test_malformed_simulation_is_fetch_error(result):
    relay, _ = relay_with(ok(result))

    with pytest.raises(FetchError) as exc:
        await relay.simulate_bundle(await two_transactions())

    assert exc.value.operation == "simulateBundle"


@pytest.mark.anyio
async def test_malformed_landed_status_is_fetch_error():
    relay, _ = relay_with(ok({"context": {"slot": 1}, "value": ["garbled"]}))

    with pytest.raises(FetchError):
        await relay.get_bundle_statuses(["b"])
