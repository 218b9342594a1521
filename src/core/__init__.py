"""Core domain package for eqrelay.

Core contains routing, template rendering, item-link decoding and the pump
that serializes access to stateful components. Nothing here talks to a
transport directly, keeping the relay logic portable across endpoints.
"""
