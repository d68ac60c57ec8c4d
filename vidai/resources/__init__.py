from .assets import AssetsResource
from .tasks import FailureClassifier, TaskPoller, TasksResource

__all__ = ["AssetsResource", "FailureClassifier", "TaskPoller", "TasksResource"]
