"""s3emu storage OpenTelemetry tracing integration.

Provides the tracing decorator applied to storage operations.

Span attribute rules:
    - Never export filesystem paths
    - Never export raw object keys (they are hashed) or payload bytes
    - Only bucket names, key hashes, digests and sizes
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import logging
from collections.abc import Callable
from typing import Any, TypeVar, cast

from s3emu.observability.tracing import get_current_trace_id, is_tracing_enabled

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

TRACER_NAME = "s3emu.object_store"


def traced_storage_operation(operation: str, *, keyed: bool = True) -> Callable[[F], F]:
    """Decorator to trace storage operations with OpenTelemetry.

    The decorated method must take the bucket name as its first argument
    after self and, when keyed, the object key as its second.

    Args:
        operation: Operation name (e.g., "put_object", "complete_upload").
        keyed: Whether the second argument is an object key to hash.

    Returns:
        Decorated function that emits OTel spans when tracing is enabled.
    """

    def decorator(func: F) -> F:
        signature = inspect.signature(func)
        bucket_param, key_param = list(signature.parameters)[1:3]

        @functools.wraps(func)
        def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            if not is_tracing_enabled():
                return func(self, *args, **kwargs)

            try:
                from opentelemetry import trace
            except ImportError:
                return func(self, *args, **kwargs)

            arguments = signature.bind_partial(self, *args, **kwargs).arguments
            bucket = arguments.get(bucket_param)

            tracer = trace.get_tracer(TRACER_NAME)
            with tracer.start_as_current_span(f"{TRACER_NAME}.{operation}") as span:
                if isinstance(bucket, str):
                    span.set_attribute("s3emu.bucket", bucket)
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))
                if keyed:
                    key = arguments.get(key_param)
                    if isinstance(key, str):
                        key_sha256 = hashlib.sha256(key.encode("utf-8")).hexdigest()
                        span.set_attribute("s3emu.object_key_sha256", key_sha256)

                try:
                    result = func(self, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    logger.debug(
                        "Storage operation failed: operation=%s error=%s trace_id=%s",
                        operation,
                        type(e).__name__,
                        get_current_trace_id(),
                    )
                    raise

                if result is not None:
                    _add_result_attributes(span, result)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any) -> None:
    """Add safe result attributes (digests, sizes, counts) to a span."""
    from s3emu.models import MultipartUpload, Part, StoredObject

    if isinstance(result, StoredObject):
        span.set_attribute("s3emu.object_etag", result.etag)
        span.set_attribute("s3emu.object_size_bytes", result.size)
        span.set_attribute("s3emu.object_encrypted", result.encrypted)
    elif isinstance(result, Part):
        span.set_attribute("s3emu.part_number", result.part_number)
        if result.etag:
            span.set_attribute("s3emu.part_etag", result.etag)
        if result.size is not None:
            span.set_attribute("s3emu.part_size_bytes", result.size)
    elif isinstance(result, MultipartUpload):
        span.set_attribute("s3emu.upload_id", result.upload_id)
    elif isinstance(result, bool):
        span.set_attribute("s3emu.result", result)
    elif isinstance(result, str):
        span.set_attribute("s3emu.object_etag", result)
    elif isinstance(result, list):
        span.set_attribute("s3emu.result_count", len(result))
    else:
        logger.debug("No span attributes for result type %s", type(result).__name__)
