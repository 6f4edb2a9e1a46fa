"""Messaging primitives shared by the engine and the transport."""
