import inspect
from enum import Enum
from typing import Any, Callable, List, Sequence, Tuple
from src.core.models.records import StageError
from src.utils.logging import logger


class PipelineStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PROCESSING = "processing"
    EMBEDDING = "embedding"
    STORING = "storing"
    REPORTING = "reporting"
    DONE = "done"


Stage = Tuple[str, Callable[[Any], Any]]


class Pipeline:
    """Run an ordered list of stages over a mutable state object.

    The state must expose ``status`` and an ``errors`` list. A stage that
    raises has its error recorded on the state and the next stage still
    runs, so later stages see partial or empty input.
    """

    def __init__(self, name: str, stages: Sequence[Stage]):
        self.name = name
        self.stages: List[Stage] = list(stages)

    @property
    def stage_names(self) -> List[str]:
        return [getattr(status, "value", status) for status, _ in self.stages]

    async def run(self, state: Any) -> Any:
        for status, stage in self.stages:
            stage_name = getattr(status, "value", status)
            state.status = stage_name
            try:
                result = stage(state)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"[{self.name}] stage '{stage_name}' failed: {e}")
                state.errors.append(StageError(stage=stage_name, error=str(e)))

        state.status = PipelineStatus.DONE.value
        return state
