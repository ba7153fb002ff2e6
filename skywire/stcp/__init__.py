"""TCP transport addressed by public key and port, with a signed handshake."""