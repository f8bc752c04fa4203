"""Container runtime data models."""

from pydantic import BaseModel


class ContainerSummary(BaseModel):
    """Container as listed by the runtime."""

    name: str
    status: str = ""
    image: str = ""


class ContainerRecord(BaseModel):
    """Detailed container information fetched on demand."""

    name: str
    status: str
    container_id: str = "N/A"
    image_version: str = "unknown"
    exposed_ports: str = "N/A"
    health: str = "unknown"
    resource_usage: str = "N/A"
    deployed_at: str = "N/A"
