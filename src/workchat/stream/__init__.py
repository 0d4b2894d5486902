"""
Decoding of the workflow's UI message stream.

- parser: SSE lines -> typed chunks
- assembler: chunks -> raw assistant message
"""
