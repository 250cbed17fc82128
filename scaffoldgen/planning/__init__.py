"""Plan construction and integration-config inference."""

from .builder import LAYER_ORDER, PlanBuilder, build_plan
from .inference import IntegrationInferrer

__all__ = ["IntegrationInferrer", "LAYER_ORDER", "PlanBuilder", "build_plan"]
