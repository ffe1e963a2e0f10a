"""
Batch image resizer service package.

Exposes the resize policy, the per-item codec, the batch runner, the ZIP
archive builder, the per-request workspace and the FastAPI application.
"""
