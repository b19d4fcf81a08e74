"""
Base Agent class and Orchestrator
MatchPulse Analytics Pipeline
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Dict
from dataclasses import dataclass, field
from datetime import datetime
import logging
import traceback
import time

from db.repository import PipelineStore
from models.schemas import StageReport

logger = logging.getLogger(__name__)


@dataclass
class AgentResult:
    """Standardized result envelope returned by every agent."""
    agent_name: str
    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def to_report(self, name: Optional[str] = None) -> StageReport:
        return StageReport(
            name=name or self.agent_name,
            success=self.success,
            duration_seconds=self.duration_seconds or 0.0,
            details=dict(self.data),
            error=self.error,
        )

    def __repr__(self):
        status = "✅" if self.success else "❌"
        dur = f" ({self.duration_seconds:.1f}s)" if self.duration_seconds else ""
        return f"{status} {self.agent_name}{dur}"


class Agent(ABC):
    """
    Abstract base class for all pipeline stages.

    A stage reads the previous stage's persisted output from the store and
    writes its own; `run()` returns a dict of counters.
    """

    display_name: str = ""

    def __init__(self, name: str, store: PipelineStore):
        self.name = name
        self.store = store
        self.logger = logging.getLogger(f"agent.{name}")

    @abstractmethod
    def run(self) -> Dict[str, Any]:
        raise NotImplementedError

    def execute(self) -> AgentResult:
        """
        Wraps `run()` with timing, structured logging, and error handling.
        """
        started_at = datetime.utcnow()
        self.logger.info(f"[{self.name}] Starting...")
        try:
            result = self.run()
            finished_at = datetime.utcnow()
            duration = (finished_at - started_at).total_seconds()
            self.logger.info(f"[{self.name}] Completed in {duration:.2f}s: {result}")
            return AgentResult(
                agent_name=self.name,
                success=True,
                data=result,
                started_at=started_at,
                finished_at=finished_at,
            )
        except Exception as e:
            finished_at = datetime.utcnow()
            self.logger.error(f"[{self.name}] Failed: {e}\n{traceback.format_exc()}")
            return AgentResult(
                agent_name=self.name,
                success=False,
                error=str(e),
                started_at=started_at,
                finished_at=finished_at,
            )

    def __repr__(self):
        return f"<Agent: {self.name}>"


class Orchestrator:
    """
    Sequential stage runner.

    Stages share state only through the store, so a failed stage does not
    stop later ones unless `stop_on_failure` is set.
    """

    def __init__(self, agents: List[Agent], stop_on_failure: bool = False):
        self.agents = agents
        self.stop_on_failure = stop_on_failure
        self.logger = logging.getLogger("orchestrator")
        self.run_history: List[AgentResult] = []

    def execute(self) -> List[AgentResult]:
        """Execute every stage in order and return their results."""
        self.run_history.clear()
        total_start = time.time()

        self.logger.info(
            f"🚀 Orchestrator starting — {len(self.agents)} stages in pipeline"
        )

        for i, agent in enumerate(self.agents, 1):
            self.logger.info(f"📍 Step {i}/{len(self.agents)}: {agent.display_name or agent.name}")
            result = agent.execute()
            self.run_history.append(result)

            if not result.success:
                self.logger.error(f"  ❌ '{agent.name}' failed: {result.error}")
                if self.stop_on_failure:
                    break

        elapsed = time.time() - total_start
        successes = sum(1 for r in self.run_history if r.success)
        self.logger.info(
            f"Pipeline complete — {successes}/{len(self.agents)} succeeded "
            f"in {elapsed:.2f}s"
        )
        return list(self.run_history)

    @property
    def success(self) -> bool:
        return bool(self.run_history) and all(r.success for r in self.run_history)

    def summary(self) -> str:
        """Per-stage ✅/❌ table with durations."""
        width = 58
        lines = ["╔" + "═" * width + "╗", "║  📊 Pipeline Summary".ljust(width) + " ║", "╠" + "═" * width + "╣"]
        for agent, r in zip(self.agents, self.run_history):
            status = "✅" if r.success else "❌"
            name = (agent.display_name or r.agent_name).ljust(28)
            dur = f"{(r.duration_seconds or 0.0):.1f}s".rjust(8)
            lines.append(f"║  {status} {name} {dur}".ljust(width) + " ║")
        total = sum((r.duration_seconds or 0.0) for r in self.run_history)
        successes = sum(1 for r in self.run_history if r.success)
        lines.append("╠" + "═" * width + "╣")
        lines.append(
            f"║  Total: {successes}/{len(self.run_history)} steps succeeded in {total:.1f}s".ljust(width)
            + " ║"
        )
        lines.append("╚" + "═" * width + "╝")

        failed = [r for r in self.run_history if not r.success]
        if failed:
            lines.append("")
            lines.append("Errors:")
            for r in failed:
                lines.append(f"  - {r.agent_name}: {r.error}")
        return "\n".join(lines)
