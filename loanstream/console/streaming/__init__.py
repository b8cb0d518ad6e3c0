"""Agent stream handling.

- **reassembler**: SSE bytes -> frames -> objects -> typed events
- **aggregate**: per-agent accumulated text
- **transport**: HTTP transports that open the upstream byte stream
- **session**: stream lifecycle (idle / streaming / completed / failed)
"""
