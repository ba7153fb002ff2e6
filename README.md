# skywire

Building blocks for a peer-to-peer overlay network in which nodes are
identified by secp256k1 public keys rather than IP addresses.

Install with `pip install .` (add `.[test]` for pytest).

## What is in the package

| Module | Contents |
| --- | --- |
| `skywire.cipher` | `PubKey`, `SecKey`, `Sig` (hex forms, null checks), `generate_key_pair()`, `generate_deterministic_key_pair(seed)`, `sign_payload()`, `verify_pub_key_signed_payload()`, `CipherError` |
| `skywire.pathutil` | `home_dir()`, `node_dir(pk)`, `ensure_dir()`, `atomic_write_file()`, `atomic_append_to_file()`, `ConfigLocationType`, `ConfigPaths`, `node_defaults()`, `hypervisor_defaults()`, `find_config_path()`, `write_json_config()`, `ConfigPathError` |
| `skywire.stcp.porter` | `Porter` hands out ports and ephemeral ports (from 49152); `PortsExhaustedError` |
| `skywire.stcp.pktable` | `PKTable` maps public keys to `host:port` addresses and back; `PKTable.from_file()` reads `<public key hex> <address>` lines; `PKTableError` |
| `skywire.stcp.handshake` | `Addr` (`<pk hex>:<port>`, port 0 written as `~`), `Frame1`/`Frame2`/`Frame3`, `initiator_handshake()`, `responder_handshake()`, `HandshakeError`, `is_handshake_error()` |
| `skywire.stcp.client` | `Client` (`serve`, `dial`, `listen`, `close`), `Listener`, `Conn`, `ClosedError` |
| `skywire.snet.network` | `Network`, `NetworkConfig`, `Conn`, `Listener`, `disassemble_addr()`, `UnknownNetworkError` |
| `skywire.transport.entry` | `Entry`, `SignedEntry`, `Status`, `EntryWithStatus`, `new_entry()`, `new_signed_entry()`, `make_transport_id()`, `sort_edges()` |
| `skywire.transport.discovery` | `DiscoveryClient` (abstract), `MockDiscoveryClient` (in memory), `TransportNotFoundError` |
| `skywire.transport.logstore` | `LogEntry`, `LogStore`, `InMemoryLogStore`, `FileLogStore`, `LogEntryNotFoundError` |
| `skywire.transport.settlement` | `make_settlement_hs()`, `SettlementHS.do()`, `make_entry()`, `compare_entries()`, `receive_and_verify_entry()`, `SettlementError` |
| `skywire.visor.config` | `Config` (`from_dict`/`to_dict`, `messaging_config`, `transport_log_store`, `apps_config`, `apps_dir`, `local_dir`), `AppConfig`, `HypervisorConfig`, `DmsgConfig`, `DmsgPtyConfig`, `InterfaceConfig`, `parse_duration()`, `format_duration()`, `ensure_dir()`, `ConfigError` |

## Keys and signatures

```python
from skywire.cipher import generate_key_pair, sign_payload, verify_pub_key_signed_payload

pk, sk = generate_key_pair()
sig = sign_payload(b"hello", sk)
verify_pub_key_signed_payload(pk, sig, b"hello")   # raises CipherError on mismatch
```

Signatures are 65 bytes: r, s (low-s form) and a recovery id.

## stcp connections

A `Client` serves on a TCP address and hands authenticated connections to
listeners by port. Dialing looks the remote key up in a `PKTable`; the dialing
side takes an ephemeral local port. Each connection starts with a three-frame
handshake: the responder sends a nonce, the initiator returns its signed
addresses with the nonce, and the responder accepts or rejects.

```python
from skywire.cipher import generate_key_pair
from skywire.stcp.client import Client
from skywire.stcp.pktable import PKTable

server_pk, server_sk = generate_key_pair()
dialer_pk, dialer_sk = generate_key_pair()

server = Client(server_pk, server_sk)
server.serve("127.0.0.1:0")
listener = server.listen(10)

dialer = Client(dialer_pk, dialer_sk, PKTable({server_pk: server.tcp_address}))
conn = dialer.dial(server_pk, 10)
incoming = listener.accept()

conn.write(b"ping")
assert incoming.read_exactly(4) == b"ping"

dialer.close()
server.close()
```

## Network

`Network` picks a client by network type (`"dmsg"` or `"stcp"`) for `dial`
and `listen`, and wraps results in `Conn`/`Listener` objects that carry
`local_pk`, `local_port`, `remote_pk`, `remote_port` and `network`.
`Network.create(conf)` builds the stcp client from a `NetworkConfig`;
`init()` starts serving stcp when `stcp_local_addr` is set.

## Transport identifiers and entries

A transport between two nodes has one identifier, whichever node computes it:

```python
from skywire.cipher import generate_key_pair
from skywire.transport.entry import make_transport_id, new_entry, SignedEntry

pk_a, sk_a = generate_key_pair()
pk_b, sk_b = generate_key_pair()

assert make_transport_id(pk_a, pk_b, "dmsg") == make_transport_id(pk_b, pk_a, "dmsg")

entry = new_entry(pk_a, pk_b, "dmsg", True)
signed = SignedEntry(entry)
signed.sign(pk_a, sk_a)
signed.sign(pk_b, sk_b)
```

Edges are kept in ascending order of key value; signatures follow the same order.

## Settlement and discovery

`make_settlement_hs(True)` returns the initiating handshake and
`make_settlement_hs(False)` the responding one. The initiator sends its signed
entry as a JSON line; the responder checks it against the connection's keys
and network, verifies the signature, adds its own, registers the transport
with the discovery client and answers with one byte. `SettlementHS.do(dc,
conn, sk, timeout)` raises `TimeoutError` when the handshake takes too long.

```python
from skywire.transport.discovery import MockDiscoveryClient

discovery = MockDiscoveryClient()
discovery.register_transports(signed)
found = discovery.get_transport_by_id(entry.id)
```

## Transport logs

```python
from skywire.transport.logstore import InMemoryLogStore, LogEntry

store = InMemoryLogStore()
log_entry = LogEntry()
log_entry.add_recv(100)
log_entry.add_sent(200)
store.record(entry.id, log_entry)
print(store.entry(entry.id).to_json())   # {"recv":100,"sent":200}
```

`FileLogStore(directory)` keeps one `<transport id>.log` JSON file per
transport in a directory it creates.

## Configuration

```python
from skywire.visor.config import Config, parse_duration

config = Config.from_dict({"version": "1.0", "apps_path": "apps", "local_path": "local"})
apps = config.apps_config()      # apps without a version inherit the config's
apps_dir = config.apps_dir()     # absolute path, created if missing
timeout = parse_duration("1m30s")   # 90.0 seconds
```

Durations are read from strings such as `"10s"` or `"1m30s"`, or from numbers
of nanoseconds, and written back as strings. `transport_log_store()` gives a
`FileLogStore` when the log store type is `"file"` and an `InMemoryLogStore`
otherwise.

## What the package does not do

- It has no dmsg client. `Network` accepts one from the caller (an object with
  `initiate_server_connections`, `dial`, `listen` and `close`); without it the
  `"dmsg"` network raises `UnknownNetworkError`.
- It has no transport manager, packet routing, routing table or route finder.
- The only discovery client is the in-memory `MockDiscoveryClient`; there is
  no HTTP client for a remote transport discovery.
- It does not run a visor node: no app launching, RPC interface or
  hypervisor connection. `skywire.visor.config` only reads, writes and
  interprets the configuration.
- It installs no command-line programs.

Errors are raised as exceptions: `CipherError`, `PKTableError`,
`PortsExhaustedError`, `HandshakeError`, `ClosedError`,
`UnknownNetworkError`, `TransportNotFoundError`, `LogEntryNotFoundError`,
`SettlementError`, `ConfigError` and `ConfigPathError`.