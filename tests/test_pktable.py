import pytest

from skywire.cipher import generate_key_pair
from skywire.stcp.pktable import PKTable, PKTableError


def test_lookup_both_ways():
    pk1, _ = generate_key_pair()
    pk2, _ = generate_key_pair()
    table = PKTable({pk1: "127.0.0.1:7777", pk2: "127.0.0.1:7778"})
    assert table.addr(pk1) == "127.0.0.1:7777"
    assert table.pub_key("127.0.0.1:7778") == pk2
    assert table.count() == 2
    assert len(table) == 2


def test_missing_entries():
    pk, _ = generate_key_pair()
    table = PKTable()
    assert table.addr(pk) is None
    assert table.pub_key("127.0.0.1:1") is None
    assert table.count() == 0


def test_from_file(tmp_path):
    pk1, _ = generate_key_pair()
    pk2, _ = generate_key_pair()
    path = tmp_path / "table.txt"
    path.write_text(f"{pk1.hex()} 127.0.0.1:1000\n{pk2.hex()}\t127.0.0.1:2000\n")
    table = PKTable.from_file(str(path))
    assert table.count() == 2
    assert table.addr(pk1) == "127.0.0.1:1000"
    assert table.pub_key("127.0.0.1:2000") == pk2


def test_from_file_wrong_field_count(tmp_path):
    pk, _ = generate_key_pair()
    path = tmp_path / "table.txt"
    path.write_text(f"{pk.hex()} 127.0.0.1:1000 extra\n")
    with pytest.raises(PKTableError):
        PKTable.from_file(str(path))


def test_from_file_invalid_key(tmp_path):
    path = tmp_path / "table.txt"
    path.write_text("nothex 127.0.0.1:1000\n")
    with pytest.raises(PKTableError):
        PKTable.from_file(str(path))


def test_from_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        PKTable.from_file(str(tmp_path / "missing.txt"))