"""
Processing strategies per tool and image type.

A strategy is either ``local`` (Pillow, no provider call) or ``remote_sync``
(one call to the provider's run endpoint, whose output URL is downloaded).
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from app.services import credit_ledger
from app.services.image_processor import lanczos_upscale, to_data_url
from app.services.inference_client import InferenceClient

logger = logging.getLogger(__name__)

LOCAL = "local"
REMOTE_SYNC = "remote_sync"


@dataclass(frozen=True)
class ProcessingStrategy:
    name: str
    kind: str
    model_name: str
    usage_type: str
    endpoint: Optional[str] = None
    arguments: Dict[str, Any] = field(default_factory=dict)
    # Forward the requested scale to the provider
    pass_scale: bool = False

    @property
    def is_local(self) -> bool:
        return self.kind == LOCAL

    def cost(self, scale: int) -> int:
        if self.name == "remove_background":
            return credit_ledger.tool_cost("remove_background")
        return credit_ledger.upscale_cost(self.name, scale)

    def build_payload(self, image_url: str, scale: int) -> Dict[str, Any]:
        payload = {"image_url": image_url, **self.arguments}
        if self.pass_scale:
            payload["scale"] = scale
        return payload


UPSCALE_STRATEGIES: Dict[str, ProcessingStrategy] = {
    "faithful": ProcessingStrategy(
        name="faithful",
        kind=LOCAL,
        model_name="Sharp Lanczos (No AI)",
        usage_type="upscale_faithful",
    ),
    "general": ProcessingStrategy(
        name="general",
        kind=REMOTE_SYNC,
        model_name="Real-ESRGAN",
        usage_type="upscale_general",
        endpoint="fal-ai/esrgan",
        arguments={"model": "RealESRGAN_x4plus", "output_format": "png"},
        pass_scale=True,
    ),
    "product": ProcessingStrategy(
        name="product",
        kind=REMOTE_SYNC,
        model_name="AuraSR v2",
        usage_type="upscale_product",
        endpoint="fal-ai/aura-sr",
        arguments={"upscaling_factor": 4, "overlapping_tiles": True},
    ),
    "portrait": ProcessingStrategy(
        name="portrait",
        kind=REMOTE_SYNC,
        model_name="Real-ESRGAN + Face Enhance",
        usage_type="upscale_portrait",
        endpoint="fal-ai/esrgan",
        arguments={"model": "RealESRGAN_x4plus", "face": True, "output_format": "png"},
        pass_scale=True,
    ),
}

REMOVE_BACKGROUND_STRATEGY = ProcessingStrategy(
    name="remove_background",
    kind=REMOTE_SYNC,
    model_name="BiRefNet",
    usage_type="remove_background",
    endpoint="fal-ai/birefnet",
    arguments={"output_format": "png"},
)


def select_upscale_strategy(image_type: str) -> ProcessingStrategy:
    """``image_type`` must already be normalized."""
    return UPSCALE_STRATEGIES[image_type]


async def execute_strategy(
    strategy: ProcessingStrategy,
    inference: InferenceClient,
    content: bytes,
    content_type: str,
    scale: int,
) -> bytes:
    """Runs the strategy and returns the processed image bytes."""
    if strategy.is_local:
        return await asyncio.to_thread(lanczos_upscale, content, scale)

    payload = strategy.build_payload(to_data_url(content, content_type), scale)
    logger.info(f"Calling provider: model={strategy.model_name}, endpoint={strategy.endpoint}")
    output_url = await inference.run_for_url(strategy.endpoint, payload)
    return await inference.download(output_url)
