from fastapi import Request

from app.application.interfaces import ICacheStore, IUsageRecorder
from app.application.use_cases.pack_deliver import DeliverStickerPackUseCase
from app.infrastructure.adapters.bundles.pack import get_pack_adapter_bundle


def get_cache_store(request: Request) -> ICacheStore:
    """The process-wide cache store created at startup."""
    return request.app.state.cache_store


def get_usage_recorder(request: Request) -> IUsageRecorder:
    return request.app.state.usage_recorder


def get_deliver_pack_use_case(request: Request) -> DeliverStickerPackUseCase:
    """Compose the use case around the shared cache and usage recorder.

    Request-scoped adapters are built by the use case itself, inside the
    working directory it owns.
    """
    return DeliverStickerPackUseCase(
        cache=get_cache_store(request),
        usage=get_usage_recorder(request),
        adapters_factory=get_pack_adapter_bundle,
    )
