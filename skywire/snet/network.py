"""A network of nodes reachable over dmsg or stcp by public key and port."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from skywire.cipher import PubKey, SecKey
from skywire.stcp.client import Client as STcpClient
from skywire.stcp.handshake import Addr
from skywire.stcp.pktable import PKTable

DMSG_TYPE = "dmsg"
STCP_TYPE = "stcp"

log = logging.getLogger("snet")


class UnknownNetworkError(ValueError):
    """Raised on an attempt to use an unknown or unconfigured network type."""

    def __init__(self, message: str = "unknown network type") -> None:
        super().__init__(message)


def disassemble_addr(addr: Any) -> tuple[PubKey, int]:
    """Split an address whose text form is '<pk hex>:<port>' ('~' meaning 0)."""
    try:
        parsed = Addr.parse(str(addr))
    except ValueError as exc:
        raise ValueError(f"network.disassemble_addr: {exc} {addr}") from exc
    return parsed.pk, parsed.port


@dataclass
class NetworkConfig:
    """Configuration of a network."""

    pub_key: PubKey = field(default_factory=PubKey)
    sec_key: SecKey = field(default_factory=SecKey)
    tp_networks: list[str] = field(default_factory=list)
    dmsg_disc_addr: str = ""
    dmsg_min_srvs: int = 0
    stcp_local_addr: str = ""
    stcp_table: dict[PubKey, str] = field(default_factory=dict)


class Conn:
    """A connection between two nodes, with its addresses split out."""

    def __init__(self, conn: Any, network: str) -> None:
        self._conn = conn
        self.local_pk, self.local_port = disassemble_addr(conn.local_addr)
        self.remote_pk, self.remote_port = disassemble_addr(conn.remote_addr)
        self.network = network

    def read(self, size: int) -> bytes:
        return self._conn.read(size)

    def read_exactly(self, size: int) -> bytes:
        return self._conn.read_exactly(size)

    def write(self, data: bytes) -> int:
        return self._conn.write(data)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> Conn:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class Listener:
    """A listener that yields Conn objects."""

    def __init__(self, listener: Any, network: str) -> None:
        self._listener = listener
        self.local_pk, self.local_port = disassemble_addr(listener.addr)
        self.network = network

    def accept_conn(self) -> Conn:
        return Conn(self._listener.accept(), self.network)

    def close(self) -> None:
        self._listener.close()

    def __enter__(self) -> Listener:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class Network:
    """Dials and listens over the configured network clients.

    A dmsg client, if any, is passed in; it must offer
    initiate_server_connections(min_servers), dial(pk, port), listen(port)
    and close().
    """

    def __init__(
        self,
        conf: NetworkConfig,
        dmsg: Optional[Any] = None,
        stcp: Optional[STcpClient] = None,
    ) -> None:
        self.conf = conf
        self.dmsg = dmsg
        self.stcp = stcp

    @classmethod
    def create(cls, conf: NetworkConfig) -> Network:
        """Build a network with an stcp client made from the configuration."""
        stcp = STcpClient(
            conf.pub_key,
            conf.sec_key,
            PKTable(conf.stcp_table),
            log=logging.getLogger("snet.stcpC"),
        )
        return cls(conf, None, stcp)

    @property
    def local_pk(self) -> PubKey:
        return self.conf.pub_key

    @property
    def local_sk(self) -> SecKey:
        return self.conf.sec_key

    @property
    def transport_networks(self) -> list[str]:
        return self.conf.tp_networks

    def init(self) -> None:
        """Connect to dmsg servers and start serving stcp if configured."""
        if self.dmsg is not None:
            try:
                self.dmsg.initiate_server_connections(self.conf.dmsg_min_srvs)
            except Exception as exc:
                raise ConnectionError(f"failed to initiate 'dmsg': {exc}") from exc
        if self.conf.stcp_local_addr and self.stcp is not None:
            try:
                self.stcp.serve(self.conf.stcp_local_addr)
            except Exception as exc:
                raise ConnectionError(f"failed to initiate 'stcp': {exc}") from exc
        else:
            log.info("No config found for stcp")

    def close(self) -> None:
        """Close both clients; the dmsg error takes precedence."""
        errors: list[BaseException] = []
        for client in (self.dmsg, self.stcp):
            if client is None:
                continue
            try:
                client.close()
            except Exception as exc:
                errors.append(exc)
        if errors:
            raise errors[0]

    def _client(self, network: str) -> Any:
        if network == DMSG_TYPE:
            client = self.dmsg
        elif network == STCP_TYPE:
            client = self.stcp
        else:
            raise UnknownNetworkError()
        if client is None:
            raise UnknownNetworkError(f"network '{network}' is not configured")
        return client

    def dial(self, network: str, pk: PubKey, port: int) -> Conn:
        """Connect to a node by public key and port."""
        return Conn(self._client(network).dial(pk, port), network)

    def listen(self, network: str, port: int) -> Listener:
        """Listen for connections on the given network and port."""
        return Listener(self._client(network).listen(port), network)

    def __enter__(self) -> Network:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()