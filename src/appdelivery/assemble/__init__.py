"""Resource assembly: stamping, workload options and grouping."""

from appdelivery.assemble.assembler import AppManifests, AssembledComponent, AssemblyResult
from appdelivery.assemble.bundle import artifact_name, load_components, persist_artifact
from appdelivery.assemble.options import (
    DiscoverHelmBasedWorkload,
    NameNonInplaceUpgradableWorkload,
    PrepareWorkloadForRollout,
    WorkloadOption,
    build_option_chain,
)
from appdelivery.assemble.stamper import StampContext

__all__ = [
    "AppManifests",
    "AssembledComponent",
    "AssemblyResult",
    "artifact_name",
    "load_components",
    "persist_artifact",
    "WorkloadOption",
    "NameNonInplaceUpgradableWorkload",
    "DiscoverHelmBasedWorkload",
    "PrepareWorkloadForRollout",
    "build_option_chain",
    "StampContext",
]
