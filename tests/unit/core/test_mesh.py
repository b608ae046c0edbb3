"""Unit tests for the peer mesh builder."""

import pytest

from chain_mesh.core.mesh import PeerMeshBuilder, add_peer
from chain_mesh.core.rpc_client import RpcEmptyResult, RpcTransportError
from chain_mesh.core.vendor import Vendor


def _ready(make_descriptor, *names, vendor=Vendor.GETH):
    chains = []
    for i, name in enumerate(names):
        chain = make_descriptor(name, vendor, index=i)
        chain.set_enode(f"enode://{name}@127.0.0.1:{30303 + i}")
        chains.append(chain)
    return chains


class TestAddPeer:

    @pytest.mark.asyncio
    async def test_geth_passes_enode_unchanged(self, make_descriptor):
        source = make_descriptor("a", Vendor.GETH, index=0)
        target = make_descriptor("b", Vendor.GETH, index=1)
        target.set_enode("enode://b@127.0.0.1:30304?discport=0")
        source.rpc_client.script("admin_addPeer", True)

        assert await add_peer(source, target) is True
        assert source.rpc_client.calls == [("admin_addPeer", ["enode://b@127.0.0.1:30304?discport=0"])]

    @pytest.mark.asyncio
    async def test_parity_strips_discovery_suffix(self, make_descriptor):
        source = make_descriptor("a", Vendor.PARITY, index=0)
        target = make_descriptor("b", Vendor.GETH, index=1)
        target.set_enode("enode://b@127.0.0.1:30304?discport=0")
        source.rpc_client.script("parity_addReservedPeer", True)

        await add_peer(source, target)

        assert source.rpc_client.calls_to("parity_addReservedPeer") == [["enode://b@127.0.0.1:30304"]]


class TestPeerMeshBuilder:

    @pytest.mark.asyncio
    async def test_three_chains_peer_in_pair_order(self, make_descriptor):
        a, b, c = _ready(make_descriptor, "a", "b", "c")
        for chain in (a, b, c):
            chain.rpc_client.script("admin_addPeer", True)

        outcomes = await PeerMeshBuilder([a, b, c]).build()

        assert [(o.source, o.target) for o in outcomes] == [("a", "b"), ("a", "c"), ("b", "c")]
        assert all(o.accepted and not o.fallback for o in outcomes)
        assert a.rpc_client.calls_to("admin_addPeer") == [[b.enode], [c.enode]]
        assert b.rpc_client.calls_to("admin_addPeer") == [[c.enode]]
        assert c.rpc_client.calls == []

    @pytest.mark.asyncio
    async def test_failed_call_falls_back_once_in_reverse(self, make_descriptor):
        a, b = _ready(make_descriptor, "a", "b")
        a.rpc_client.script("admin_addPeer", RpcTransportError("admin_addPeer", "connection reset"))
        b.rpc_client.script("admin_addPeer", True)

        (outcome,) = await PeerMeshBuilder([a, b]).build()

        assert outcome.fallback
        assert outcome.accepted
        assert (outcome.source, outcome.target) == ("b", "a")
        assert len(a.rpc_client.calls) == 1
        assert b.rpc_client.calls_to("admin_addPeer") == [[a.enode]]

    @pytest.mark.asyncio
    async def test_both_directions_failing_is_recorded_and_mesh_continues(self, make_descriptor):
        a, b, c = _ready(make_descriptor, "a", "b", "c")
        a.rpc_client.script("admin_addPeer", RpcEmptyResult("admin_addPeer", "no response"), True)
        b.rpc_client.script("admin_addPeer", RpcTransportError("admin_addPeer", "refused"), True)
        c.rpc_client.script("admin_addPeer", True)

        outcomes = await PeerMeshBuilder([a, b, c]).build()

        first = outcomes[0]
        assert first.fallback and not first.accepted
        assert isinstance(first.error, RpcTransportError)
        assert len(outcomes) == 3
        assert outcomes[1].accepted and (outcomes[1].source, outcomes[1].target) == ("a", "c")
        assert outcomes[2].accepted and (outcomes[2].source, outcomes[2].target) == ("b", "c")

    @pytest.mark.asyncio
    async def test_false_reply_does_not_trigger_fallback(self, make_descriptor):
        a, b = _ready(make_descriptor, "a", "b")
        a.rpc_client.script("admin_addPeer", False)

        (outcome,) = await PeerMeshBuilder([a, b]).build()

        assert not outcome.accepted
        assert not outcome.fallback
        assert outcome.error is None
        assert b.rpc_client.calls == []

    @pytest.mark.asyncio
    async def test_mixed_vendors_use_the_callers_method(self, make_descriptor):
        geth = make_descriptor("geth-chain", Vendor.GETH, index=0)
        parity = make_descriptor("parity-chain", Vendor.PARITY, index=1)
        geth.set_enode("enode://g@127.0.0.1:30303")
        parity.set_enode("enode://p@127.0.0.1:30304?discport=0")
        geth.rpc_client.script("admin_addPeer", RpcTransportError("admin_addPeer", "refused"))
        parity.rpc_client.script("parity_addReservedPeer", True)

        (outcome,) = await PeerMeshBuilder([geth, parity]).build()

        assert geth.rpc_client.calls_to("admin_addPeer") == [["enode://p@127.0.0.1:30304?discport=0"]]
        assert parity.rpc_client.calls_to("parity_addReservedPeer") == [["enode://g@127.0.0.1:30303"]]
        assert outcome.fallback and outcome.accepted

    @pytest.mark.asyncio
    async def test_single_chain_issues_no_calls(self, make_descriptor):
        (a,) = _ready(make_descriptor, "a")

        assert await PeerMeshBuilder([a]).build() == []
        assert a.rpc_client.calls == []

    @pytest.mark.asyncio
    async def test_refuses_to_build_before_enodes_are_known(self, make_descriptor):
        a, = _ready(make_descriptor, "a")
        b = make_descriptor("b", index=1)

        with pytest.raises(RuntimeError, match="b"):
            await PeerMeshBuilder([a, b]).build()
        assert a.rpc_client.calls == []
