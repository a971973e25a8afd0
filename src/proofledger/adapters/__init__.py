"""Adapters binding the domain ports to HTTP, storage, crypto and the remote record log."""
