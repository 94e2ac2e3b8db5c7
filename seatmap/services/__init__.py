"""Services initialization."""
from seatmap.services.registry_store import RegistryStore
from seatmap.services.seat_pipeline import PipelineConfig, SeatDetectionResult, SeatPipeline
from seatmap.services.batch_runner import BatchRunner

__all__ = [
    "RegistryStore",
    "PipelineConfig",
    "SeatDetectionResult",
    "SeatPipeline",
    "BatchRunner",
]
