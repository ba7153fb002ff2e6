"""Network layer that dials and listens over the dmsg and stcp network types."""