"""Protobuf messages and gRPC stubs of the bookkeeping API."""
