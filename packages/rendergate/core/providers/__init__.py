"""Rendering backends: the polled job client and the synchronous adapters."""

from rendergate.core.providers.base import AdapterImage, HttpImageAdapter, ImageAdapter
from rendergate.core.providers.fetch import RemoteImageFetcher
from rendergate.core.providers.flux import FluxAdapter
from rendergate.core.providers.jobs import ExternalJobClient, Job, JobKind, ProviderAsset
from rendergate.core.providers.openai_images import OpenAIImageAdapter
from rendergate.core.providers.pixellab import PixelLabAdapter
from rendergate.core.providers.prompt_writer import PromptWriter
from rendergate.core.providers.replicate import ReplicateAdapter
from rendergate.core.providers.retro_diffusion import RetroDiffusionAdapter

__all__ = [
    "AdapterImage",
    "ExternalJobClient",
    "FluxAdapter",
    "HttpImageAdapter",
    "ImageAdapter",
    "Job",
    "JobKind",
    "OpenAIImageAdapter",
    "PixelLabAdapter",
    "PromptWriter",
    "ProviderAsset",
    "RemoteImageFetcher",
    "ReplicateAdapter",
    "RetroDiffusionAdapter",
]
