"""Settlement onboarding, claim and switch flows."""

from bitsettler.flow.claim import ClaimFlowController
from bitsettler.flow.controller import FlowController, FlowState, FlowStep, filter_characters
from bitsettler.flow.events import FlowEvent, FlowEventChannel, FlowEventKind
from bitsettler.flow.onboarding import OnboardingFlowController
from bitsettler.flow.professions import ActiveSlot, ProfessionSlots
from bitsettler.flow.switch import SwitchFlowController

__all__ = [
    "ActiveSlot",
    "ClaimFlowController",
    "FlowController",
    "FlowEvent",
    "FlowEventChannel",
    "FlowEventKind",
    "FlowState",
    "FlowStep",
    "OnboardingFlowController",
    "ProfessionSlots",
    "SwitchFlowController",
    "filter_characters",
]
