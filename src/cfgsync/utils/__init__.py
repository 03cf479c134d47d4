"""HTTP helpers and the WebSocket hub transport.

The utils layer sits between [cfgsync.models][cfgsync.models] and
[cfgsync.sync][cfgsync.sync]. It provides the low-level network primitives
the sync components build on.

Attributes:
    http: Bounded response reading and the single-round-trip JSON POST used
        by the login and settings calls.
    protocol: I/O-free SignalR JSON hub protocol: negotiate parsing,
        handshake, record framing, and message decoding.
    transport: [HubConnection][cfgsync.utils.transport.HubConnection], the
        aiohttp WebSocket client with keep-alive and automatic reconnect.

Note:
    The utils layer has **zero** imports from ``cfgsync.core`` or
    ``cfgsync.sync``. Logging uses plain ``logging.getLogger()``; install
    [StructuredFormatter][cfgsync.core.logger.StructuredFormatter] on the
    root handler to unify its output with the structured logger.
"""
