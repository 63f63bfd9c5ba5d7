# Copyright (c) 2025-2026 OptimNow. All Rights Reserved.
# Licensed under the Apache License, Version 2.0.
# See LICENSE file in the project root for full license information.

"""Difference data model produced by the snapshot comparator."""

from pydantic import BaseModel, ConfigDict, Field

from .enums import DifferenceKind, ResourceType


class Difference(BaseModel):
    """One structural change between a baseline and a current snapshot."""

    model_config = ConfigDict(frozen=True)

    kind: DifferenceKind = Field(..., description="added, removed or modified")
    resource_type: ResourceType = Field(..., description="Collection the resource belongs to")
    resource_id: str = Field(..., description="Identifier of the changed resource")
    summary: str = Field(..., description="Human-readable one-line summary")
    details: tuple[str, ...] = Field(
        default=(),
        description="Field-level change descriptions (empty for added/removed)",
    )
