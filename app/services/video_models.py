"""
Video generation models and their credit costs
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

DEFAULT_MODEL = "pixverse-v5"
DEFAULT_DURATION = 5
DEFAULT_ASPECT_RATIO = "16:9"
DEFAULT_RESOLUTION = "720p"


@dataclass(frozen=True)
class VideoModel:
    id: str
    name: str
    description: str
    endpoint: str
    durations: Tuple[int, ...]
    aspect_ratios: Tuple[str, ...]
    resolutions: Tuple[str, ...]
    # credits per duration (seconds)
    credit_costs: Dict[int, int]
    usage_prefix: str
    image_endpoint: Optional[str] = None
    supports_audio: bool = False
    estimated_time: Tuple[int, int] = (60, 180)
    is_active: bool = True
    is_premium: bool = False

    @property
    def supports_image_to_video(self) -> bool:
        return self.image_endpoint is not None

    def cost(self, duration: int) -> int:
        return self.credit_costs[duration]

    def usage_type(self, duration: int) -> str:
        return f"video_{self.usage_prefix}_{duration}s"

    def endpoint_for(self, source_image_url: Optional[str]) -> str:
        if source_image_url and self.image_endpoint:
            return self.image_endpoint
        return self.endpoint

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "durations": list(self.durations),
            "aspectRatios": list(self.aspect_ratios),
            "resolutions": list(self.resolutions),
            "supportsImageToVideo": self.supports_image_to_video,
            "supportsAudio": self.supports_audio,
            "estimatedTime": {"min": self.estimated_time[0], "max": self.estimated_time[1]},
            "isPremium": self.is_premium,
            "costs": [{"duration": d, "credits": self.cost(d)} for d in self.durations],
        }


VIDEO_MODELS: Dict[str, VideoModel] = {
    "pixverse-v5": VideoModel(
        id="pixverse-v5",
        name="PixVerse V5",
        description="Fast, high quality text-to-video for short promotional clips.",
        endpoint="fal-ai/pixverse/v5/text-to-video",
        image_endpoint="fal-ai/pixverse/v5/image-to-video",
        durations=(5, 8),
        aspect_ratios=("16:9", "9:16", "1:1"),
        resolutions=("720p", "1080p"),
        credit_costs={5: 10, 8: 15},
        usage_prefix="pixverse",
    ),
    "kling-2.5": VideoModel(
        id="kling-2.5",
        name="Kling 2.5",
        description="Economical model with strong motion and detail.",
        endpoint="fal-ai/kling-video/v2.5-turbo/pro/text-to-video",
        image_endpoint="fal-ai/kling-video/v2.5-turbo/pro/image-to-video",
        durations=(5, 10),
        aspect_ratios=("16:9", "9:16", "1:1"),
        resolutions=("720p", "1080p"),
        credit_costs={5: 10, 10: 20},
        usage_prefix="kling",
        estimated_time=(120, 300),
    ),
    "veo-3.1": VideoModel(
        id="veo-3.1",
        name="Google Veo 3",
        description="Premium model with native audio generation.",
        endpoint="fal-ai/veo3",
        durations=(5, 8),
        aspect_ratios=("16:9", "9:16", "1:1", "4:3"),
        resolutions=("720p", "1080p"),
        credit_costs={5: 40, 8: 60},
        usage_prefix="veo",
        supports_audio=True,
        estimated_time=(180, 420),
        is_premium=True,
    ),
    "runway-gen4": VideoModel(
        id="runway-gen4",
        name="Runway Gen-4",
        description="Style and camera motion control.",
        endpoint="runway/gen4-turbo",
        image_endpoint="runway/gen4-turbo",
        durations=(5, 10),
        aspect_ratios=("16:9", "9:16", "1:1"),
        resolutions=("720p", "1080p"),
        credit_costs={5: 20, 10: 40},
        usage_prefix="runway",
        estimated_time=(90, 240),
        is_active=False,
        is_premium=True,
    ),
}


def get_model(model_id: str) -> Optional[VideoModel]:
    return VIDEO_MODELS.get(model_id)


def get_active_models() -> List[VideoModel]:
    return [model for model in VIDEO_MODELS.values() if model.is_active]
