"""Unit tests for vendor detection and per-vendor RPC conventions."""

from pathlib import Path

import pytest

from chain_mesh.core.vendor import Vendor, strip_discovery_suffix


@pytest.mark.parametrize("name, expected", [
    ("geth", Vendor.GETH),
    ("geth-classic", Vendor.GETH),
    ("parity", Vendor.PARITY),
    ("Parity-1.9.7", Vendor.PARITY),
    ("openethereum", Vendor.GETH),
])
def test_vendor_from_executable_name(name, expected):
    assert Vendor.from_executable(Path("/opt/chains/etc") / name) is expected


def test_method_tables():
    assert Vendor.GETH.methods.identity_method == "admin_nodeInfo"
    assert Vendor.GETH.methods.identity_field == "enode"
    assert Vendor.GETH.methods.add_peer_method == "admin_addPeer"
    assert Vendor.PARITY.methods.identity_method == "parity_enode"
    assert Vendor.PARITY.methods.identity_field is None
    assert Vendor.PARITY.methods.add_peer_method == "parity_addReservedPeer"


@pytest.mark.parametrize("enode, expected", [
    ("enode://abc@10.0.0.1:30303?discport=0", "enode://abc@10.0.0.1:30303"),
    ("enode://abc@10.0.0.1:30303", "enode://abc@10.0.0.1:30303"),
    ("enode://abc@10.0.0.1:30303?a=1?b=2", "enode://abc@10.0.0.1:30303"),
])
def test_strip_discovery_suffix(enode, expected):
    assert strip_discovery_suffix(enode) == expected


def test_only_parity_strips_peer_address():
    enode = "enode://abc@10.0.0.1:30303?discport=0"

    assert Vendor.GETH.peer_address(enode) == enode
    assert Vendor.PARITY.peer_address(enode) == "enode://abc@10.0.0.1:30303"


def test_parity_default_args_use_chain_name(tmp_path):
    args = Vendor.PARITY.default_launch_args(
        directory=tmp_path,
        identity="etc",
        rpc_port=8550,
        listen_port=30310,
        cache_size=64,
        rpc_api="web3,eth",
        chain_name="classic",
    )

    assert args[args.index("--chain") + 1] == "classic"
    assert args[args.index("--cache-size") + 1] == "64"
    assert args[args.index("--log-file") + 1] == str(tmp_path / "parity.log")


def test_geth_default_args_fall_back_to_identity(tmp_path):
    args = Vendor.GETH.default_launch_args(
        directory=tmp_path,
        identity="morden",
        rpc_port=8550,
        listen_port=30310,
        cache_size=64,
        rpc_api="eth,admin",
    )

    assert isinstance(args, tuple)
    assert args[args.index("--chain") + 1] == "morden"
    assert args[args.index("--port") + 1] == "30310"
    assert args[args.index("--log-dir") + 1] == str(tmp_path / "logs")
