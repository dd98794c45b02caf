from __future__ import annotations

import pytest

from spore_sdk.tx import encode
from spore_sdk.types.core import Cell, CellDep, CellInput, OutPoint, Script, TransactionSkeleton
from spore_sdk.utils.hash import CkbHasher, ckb_hash, ckb_hash_hex

EMPTY_CKB_HASH = "0x44f4c69744d5f8c55d642062949dcae49bc4e7ef43d388c5a12f42b5633d163e"


def test_ckb_hash_of_empty_input():
    assert ckb_hash_hex(b"") == EMPTY_CKB_HASH


def test_streaming_hasher_matches_one_shot():
    h = CkbHasher().update(b"spore").update(b"-segment")
    assert h.digest() == ckb_hash(b"spore-segment")


def test_dynvec_and_fixvec_headers():
    assert encode.pack_dynvec([]) == b"\x04\x00\x00\x00"
    assert encode.pack_fixvec([]) == b"\x00\x00\x00\x00"
    assert encode.pack_bytes(b"ab") == b"\x02\x00\x00\x00ab"
    # two items: total, two offsets, payload
    assert encode.pack_dynvec([b"a", b"bc"]) == (
        b"\x0f\x00\x00\x00" b"\x0c\x00\x00\x00" b"\x0d\x00\x00\x00" b"abc"
    )


def test_script_layout():
    script = Script(code_hash=b"\x01" * 32, hash_type="type", args=b"\x02" * 20)
    packed = encode.pack_script(script)
    assert len(packed) == 16 + 32 + 1 + 4 + 20
    assert packed[16:48] == b"\x01" * 32
    assert packed[48] == 1


def test_struct_sizes():
    op = OutPoint(tx_hash=b"\xaa" * 32, index=3)
    assert len(encode.pack_out_point(op)) == 36
    assert len(encode.pack_cell_input(CellInput(previous_output=op))) == 44
    assert encode.pack_cell_dep(CellDep(out_point=op, dep_type="dep_group"))[-1] == 1
    with pytest.raises(ValueError):
        encode.pack_out_point(OutPoint(tx_hash=b"\x00" * 31, index=0))


def test_signature_witness_is_85_bytes():
    assert len(encode.pack_witness_args(lock=bytes(65))) == 85
    assert encode.pack_witness_args() == encode.pack_table([b"", b"", b""])


def test_empty_transaction_size():
    assert encode.transaction_size(TransactionSkeleton()) == 72


def test_spore_data_roundtrip_and_cluster():
    packed = encode.pack_spore_data("image/png", b"\x09" * 32, cluster_id=b"\x05" * 32)
    assert encode.unpack_spore_data(packed) == ("image/png", b"\x09" * 32, b"\x05" * 32)
    assert encode.unpack_spore_data(encode.pack_spore_data("a", b""))[2] is None


def test_unpack_table_rejects_bad_size():
    packed = encode.pack_spore_data("a", b"b")
    with pytest.raises(ValueError):
        encode.unpack_table(packed + b"\x00", 3)
    with pytest.raises(ValueError):
        encode.unpack_table(packed, 2)


def test_type_hash_depends_on_every_script_field():
    base = Script(code_hash=b"\x01" * 32, hash_type="data1", args=b"\x00" * 32)
    other_args = Script(code_hash=b"\x01" * 32, hash_type="data1", args=b"\x01" * 32)
    other_type = Script(code_hash=b"\x01" * 32, hash_type="data2", args=b"\x00" * 32)
    hashes = {encode.script_hash(s) for s in (base, other_args, other_type)}
    assert len(hashes) == 3


def test_rpc_form_hashes_like_the_skeleton():
    lock = Script(code_hash=b"\x22" * 32, hash_type="type", args=b"\x11" * 20)
    spore = Script(code_hash=b"\x33" * 32, hash_type="data1", args=b"\x44" * 32)
    skel = TransactionSkeleton()
    skel.add_cell_dep(CellDep(out_point=OutPoint(b"\x55" * 32, 0), dep_type="dep_group"))
    skel.add_input(Cell(capacity=1_000, lock=lock, out_point=OutPoint(b"\x66" * 32, 3)))
    skel.add_output(Cell(capacity=400, lock=lock, type=spore, data=b"spore"))
    skel.add_output(Cell(capacity=500, lock=lock))

    assert encode.rpc_tx_hash(skel.to_rpc_dict()) == encode.raw_tx_hash(skel)
    assert encode.pack_raw_transaction_rpc(skel.to_rpc_dict()) == encode.pack_raw_transaction(skel)
