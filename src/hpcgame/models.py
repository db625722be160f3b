"""Partition, claim and workload models."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Partition(BaseModel):
    """A named pool of cluster resources, as published in the partition catalog."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., min_length=1, alias="Name")
    description: str = Field(default="", alias="Description")
    gpu_tag: Optional[str] = Field(default=None, alias="GPUTag")
    gpu_name: Optional[str] = Field(default=None, alias="GPUName")
    images: List[str] = Field(default_factory=list, alias="Images")
    cpu_limit: int = Field(..., ge=1, alias="CPULimit")
    memory_limit: int = Field(..., ge=1, alias="MemoryLimit")

    @field_validator("gpu_tag", "gpu_name", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _null_description(cls, value):
        return "" if value is None else value

    @field_validator("images", mode="before")
    @classmethod
    def _null_images(cls, value):
        return [] if value is None else value

    @model_validator(mode="after")
    def _gpu_fields_paired(self):
        if (self.gpu_tag is None) != (self.gpu_name is None):
            raise ValueError(
                f"partition '{self.name}' must define both GPUTag and GPUName or neither"
            )
        return self

    @property
    def has_gpu(self):
        return self.gpu_tag is not None

    @property
    def default_image(self):
        return self.images[0] if self.images else None


class VolumeClaim(BaseModel):
    """Observed state of a PersistentVolumeClaim."""

    name: str
    size: str = ""
    storage_class: str = ""
    access_modes: List[str] = Field(default_factory=list)
    phase: str = ""
    is_default: bool = False


class WorkloadRequest(BaseModel):
    """Validated input for pod synthesis.

    Instances are built by ``hpcgame.provision.build_request``, which checks
    the quantities against the partition limits.
    """

    model_config = ConfigDict(frozen=True)

    partition: Partition
    name: str = Field(..., min_length=1)
    cpu: int
    memory: int
    gpu: int = 0
    image: str
    volumes: List[str] = Field(default_factory=list)
