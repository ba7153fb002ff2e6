"""Transport entries, in-memory discovery, log stores and the settlement handshake."""