"""
Tick Graph Definition
=====================

LangGraph state machine driving one sensor through one clock tick.

LangGraph is used for CONTROL FLOW only: every node delegates to the
sensor, the graph just fixes the order.

Graph Structure:
    START → charge → clock_sync ─┬→ cluster → drain → END
                                 └────────────→ drain → END

    charge:     push the tick's deposits into the matrix
    clock_sync: sample and discharge every busy pixel
    cluster:    Hoshen-Kopelman pass (skipped on a quiescent matrix)
    drain:      pop finished clusters as hits
"""

import logging
from typing import Any, Dict, List, Tuple, TypedDict

from langgraph.graph import StateGraph, END

from cvxd_digitiser.models.hit import SegmentDigiHit
from cvxd_digitiser.sensor.hk_sensor import HKBaseSensor


logger = logging.getLogger(__name__)


PixelDeposit = Tuple[int, int, float]


class TickGraphState(TypedDict):
    """
    State passed through the tick graph.

    Attributes:
        sensor: Sensor being clocked
        deposits: (row, col, charge) updates of this tick
        hits: Hits emitted by the drain node
        phase: Sensor phase after the last node
    """
    sensor: HKBaseSensor
    deposits: List[PixelDeposit]
    hits: List[SegmentDigiHit]
    phase: str


class TickGraph:
    """
    Compiled tick cycle, shared by every sensor of a digitiser.

    The graph holds no per-sensor state, so one instance can serve
    several sensors concurrently.
    """

    def __init__(self) -> None:
        self._graph = self._build_graph()
        logger.debug("TickGraph compiled")

    def _build_graph(self):
        """Build the LangGraph workflow."""
        workflow = StateGraph(TickGraphState)

        workflow.add_node("charge", self._charge_node)
        workflow.add_node("clock_sync", self._clock_sync_node)
        workflow.add_node("cluster", self._cluster_node)
        workflow.add_node("drain", self._drain_node)

        workflow.set_entry_point("charge")
        workflow.add_edge("charge", "clock_sync")
        workflow.add_conditional_edges(
            "clock_sync",
            self._route_after_sync,
            {"cluster": "cluster", "drain": "drain"},
        )
        workflow.add_edge("cluster", "drain")
        workflow.add_edge("drain", END)

        return workflow.compile()

    # =========================================================================
    # Nodes
    # =========================================================================

    def _charge_node(self, state: TickGraphState) -> Dict[str, Any]:
        sensor = state["sensor"]
        for row, col, charge in state.get("deposits", []):
            sensor.update_pixel(row, col, charge)
        return {"phase": sensor.phase.value}

    def _clock_sync_node(self, state: TickGraphState) -> Dict[str, Any]:
        sensor = state["sensor"]
        sensor.clock_sync()
        return {"phase": sensor.phase.value}

    def _route_after_sync(self, state: TickGraphState) -> str:
        """Skip clustering when no pixel holds charge."""
        return "cluster" if state["sensor"].is_active() else "drain"

    def _cluster_node(self, state: TickGraphState) -> Dict[str, Any]:
        sensor = state["sensor"]
        sensor.run_clustering()
        return {"phase": sensor.phase.value}

    def _drain_node(self, state: TickGraphState) -> Dict[str, Any]:
        sensor = state["sensor"]
        hits: List[SegmentDigiHit] = []
        sensor.drain_clusters(hits)
        return {"hits": hits, "phase": sensor.phase.value}

    # =========================================================================
    # Entry point
    # =========================================================================

    def run_tick(
        self,
        sensor: HKBaseSensor,
        deposits: List[PixelDeposit],
    ) -> List[SegmentDigiHit]:
        """
        Run one clock tick on a sensor.

        Args:
            sensor: Sensor to clock
            deposits: (row, col, charge) updates arriving in this tick

        Returns:
            Hits completed at this tick
        """
        result = self._graph.invoke({
            "sensor": sensor,
            "deposits": deposits,
            "hits": [],
            "phase": sensor.phase.value,
        })
        return result["hits"]
