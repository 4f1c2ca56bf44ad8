"""
Behaviours

The policies that drive question attempts. ``DEFAULT_BEHAVIOURS`` lists the
behaviours a default registry is built with.
"""

from qengine.behaviours.base import Behaviour, BehaviourWithSave, Decision, KEEP, DISCARD
from qengine.behaviours.deferredfeedback import DeferredFeedbackBehaviour
from qengine.behaviours.immediatefeedback import ImmediateFeedbackBehaviour
from qengine.behaviours.immediatecbm import ImmediateCBMBehaviour
from qengine.behaviours.interactive import InteractiveBehaviour
from qengine.behaviours.manualgraded import ManualGradedBehaviour
from qengine.behaviours.informationitem import InformationItemBehaviour
from qengine.behaviours.opaque import OpaqueBehaviour
from qengine.behaviours.missing import MissingBehaviour

DEFAULT_BEHAVIOURS = (
    DeferredFeedbackBehaviour,
    ImmediateFeedbackBehaviour,
    ImmediateCBMBehaviour,
    InteractiveBehaviour,
    ManualGradedBehaviour,
    InformationItemBehaviour,
    OpaqueBehaviour,
)

__all__ = [
    'Behaviour',
    'BehaviourWithSave',
    'Decision',
    'KEEP',
    'DISCARD',
    'DeferredFeedbackBehaviour',
    'ImmediateFeedbackBehaviour',
    'ImmediateCBMBehaviour',
    'InteractiveBehaviour',
    'ManualGradedBehaviour',
    'InformationItemBehaviour',
    'OpaqueBehaviour',
    'MissingBehaviour',
    'DEFAULT_BEHAVIOURS',
]
