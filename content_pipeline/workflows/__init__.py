from .registry import WorkflowRegistry
from .lesson_workflow import LessonWorkflow
from .outline_workflow import OutlineWorkflow
from .dispatcher import PipelineDispatcher, WorkflowFactory, get_dispatcher

__all__ = [
    'WorkflowRegistry',
    'LessonWorkflow',
    'OutlineWorkflow',
    'PipelineDispatcher',
    'WorkflowFactory',
    'get_dispatcher',
]
