"""Recommendation strategies, one module per scoring approach."""

from bookrec.services.strategies.contextual import ContextualStrategy
from bookrec.services.strategies.exploratory import ExploratoryStrategy
from bookrec.services.strategies.multi_objective import MultiObjectiveStrategy
from bookrec.services.strategies.personalized import PersonalizedStrategy
from bookrec.services.strategies.sequential import SequentialStrategy
from bookrec.services.strategies.social import GroupStrategy, SocialStrategy

__all__ = [
    "ContextualStrategy",
    "ExploratoryStrategy",
    "GroupStrategy",
    "MultiObjectiveStrategy",
    "PersonalizedStrategy",
    "SequentialStrategy",
    "SocialStrategy",
]
