import uuid

import pytest

from skywire.cipher import generate_key_pair
from skywire.transport.discovery import MockDiscoveryClient, TransportNotFoundError
from skywire.transport.entry import Entry, SignedEntry, Status, new_entry, sort_edges


def test_new_discovery_mock():
    dc = MockDiscoveryClient()
    pk1, _ = generate_key_pair()
    pk2, _ = generate_key_pair()
    entry = Entry(type="mock", edges=sort_edges(pk1, pk2))
    signed = SignedEntry(entry=entry)

    dc.register_transports(signed)

    found = dc.get_transport_by_id(signed.entry.id)
    assert found.entry.id == signed.entry.id

    by_edge = dc.get_transports_by_edge(pk1)
    assert by_edge[0].entry.edges == entry.edges

    assert dc.update_statuses(Status(id=uuid.UUID(int=0))) == []


def test_register_marks_up_and_sets_registered():
    dc = MockDiscoveryClient()
    pk1, _ = generate_key_pair()
    pk2, _ = generate_key_pair()
    signed = SignedEntry(entry=new_entry(pk1, pk2, "dmsg", True))
    dc.register_transports(signed)
    found = dc.get_transport_by_id(signed.entry.id)
    assert found.is_up is True
    assert found.statuses == (True, True)
    assert signed.registered == found.registered
    assert found.registered > 0


def test_unknown_id_raises():
    dc = MockDiscoveryClient()
    with pytest.raises(TransportNotFoundError, match="transport not found"):
        dc.get_transport_by_id(uuid.uuid4())


def test_update_statuses_unknown_raises():
    dc = MockDiscoveryClient()
    with pytest.raises(TransportNotFoundError):
        dc.update_statuses(Status(id=uuid.uuid4(), is_up=True))


def test_update_statuses_changes_state():
    dc = MockDiscoveryClient()
    pk1, _ = generate_key_pair()
    pk2, _ = generate_key_pair()
    signed = SignedEntry(entry=new_entry(pk1, pk2, "dmsg", True))
    dc.register_transports(signed)
    dc.update_statuses(Status(id=signed.entry.id, is_up=False))
    assert dc.get_transport_by_id(signed.entry.id).is_up is False


def test_edge_without_transports_is_empty():
    dc = MockDiscoveryClient()
    pk1, _ = generate_key_pair()
    pk2, _ = generate_key_pair()
    other, _ = generate_key_pair()
    dc.register_transports(SignedEntry(entry=new_entry(pk1, pk2, "dmsg", True)))
    assert dc.get_transports_by_edge(other) == []
    assert len(dc.get_transports_by_edge(pk2)) == 1


def test_returned_entries_are_copies():
    dc = MockDiscoveryClient()
    pk1, _ = generate_key_pair()
    pk2, _ = generate_key_pair()
    signed = SignedEntry(entry=new_entry(pk1, pk2, "dmsg", True))
    dc.register_transports(signed)
    copy = dc.get_transport_by_id(signed.entry.id)
    copy.is_up = False
    assert dc.get_transport_by_id(signed.entry.id).is_up is True