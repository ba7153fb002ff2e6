import pytest

from skywire.cipher import (
    CipherError,
    PubKey,
    SecKey,
    Sig,
    generate_deterministic_key_pair,
    generate_key_pair,
    sign_payload,
    verify_pub_key_signed_payload,
)


def test_key_sizes():
    pk, sk = generate_key_pair()
    assert len(pk.data) == 33
    assert len(sk.data) == 32
    assert pk.data[0] in (2, 3)


def test_pub_key_derivation_matches_pair():
    pk, sk = generate_key_pair()
    assert sk.pub_key() == pk


def test_hex_round_trips():
    pk, sk = generate_key_pair()
    sig = sign_payload(b"hello", sk)
    assert PubKey.from_hex(pk.hex()) == pk
    assert SecKey.from_hex(sk.hex()) == sk
    assert Sig.from_hex(sig.hex()) == sig
    assert str(pk) == pk.hex()


def test_empty_hex_is_null():
    assert PubKey.from_hex("").is_null()
    assert SecKey.from_hex("").is_null()
    assert Sig.from_hex("").is_null()
    assert PubKey() == PubKey.from_hex("")


def test_invalid_hex_raises():
    with pytest.raises(CipherError):
        PubKey.from_hex("zz")
    with pytest.raises(CipherError):
        SecKey.from_hex("abcd")
    with pytest.raises(CipherError):
        PubKey.from_hex("05" + "11" * 32)


def test_wrong_length_raises():
    with pytest.raises(CipherError):
        PubKey(b"\x01" * 5)
    with pytest.raises(CipherError):
        Sig(b"\x01" * 64)


def test_null_secret_key_has_no_pub_key():
    with pytest.raises(CipherError):
        SecKey().pub_key()


def test_sign_and_verify():
    pk, sk = generate_key_pair()
    sig = sign_payload(b"payload", sk)
    assert not sig.is_null()
    assert len(sig.data) == 65
    verify_pub_key_signed_payload(pk, sig, b"payload")
    assert sig.data[64] in (0, 1)


def test_verify_rejects_other_payload():
    pk, sk = generate_key_pair()
    sig = sign_payload(b"payload", sk)
    with pytest.raises(CipherError):
        verify_pub_key_signed_payload(pk, sig, b"other")


def test_verify_rejects_other_key():
    _, sk = generate_key_pair()
    other_pk, _ = generate_key_pair()
    sig = sign_payload(b"payload", sk)
    with pytest.raises(CipherError):
        verify_pub_key_signed_payload(other_pk, sig, b"payload")


def test_verify_rejects_null_sig():
    pk, _ = generate_key_pair()
    with pytest.raises(CipherError):
        verify_pub_key_signed_payload(pk, Sig(), b"payload")


def test_deterministic_key_pair():
    a = generate_deterministic_key_pair(b"seed")
    b = generate_deterministic_key_pair(b"seed")
    c = generate_deterministic_key_pair(b"other")
    assert a == b
    assert a[0] != c[0]
    assert a[1].pub_key() == a[0]