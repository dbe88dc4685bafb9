"""Locating every action invocation inside a workflow's states."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from ..workflow.schema import FunctionRef, Workflow, WorkflowAction, WorkflowState

DESCRIPTOR_SEPARATOR = " > "


@dataclass(frozen=True)
class ActionSite:
    """One call site: a specific action of a specific state invoking a function."""

    descriptor: str
    state_name: str
    action: WorkflowAction

    @property
    def function_ref(self) -> FunctionRef:
        # Sites are only built for actions that carry a functionRef
        assert self.action.function_ref is not None
        return self.action.function_ref


def _state_actions(state: WorkflowState) -> Iterator[tuple[str | None, int, WorkflowAction]]:
    """Yield ``(outer, index, action)`` for each action nested in ``state``."""
    kind = state.type.lower()
    if kind == "parallel":
        for b_idx, branch in enumerate(state.branches):
            outer = branch.name or f"branch-{b_idx}"
            for idx, action in enumerate(branch.actions):
                yield outer, idx, action
    elif kind == "event":
        for e_idx, on_event in enumerate(state.on_events):
            outer = ",".join(on_event.event_refs) or f"onEvent-{e_idx}"
            for idx, action in enumerate(on_event.actions):
                yield outer, idx, action
    elif kind == "callback":
        if state.action is not None:
            yield None, 0, state.action
    else:
        # operation, foreach, and anything else exposing a plain action list
        for idx, action in enumerate(state.actions):
            yield None, idx, action


def collect_action_sites(workflow: Workflow) -> list[ActionSite]:
    """Walk all states and return one uniquely described site per function call."""
    sites: list[ActionSite] = []
    used: dict[str, int] = {}
    for state in workflow.states:
        for outer, idx, action in _state_actions(state):
            if action.function_ref is None:
                continue
            parts = [state.name]
            if outer:
                parts.append(outer)
            parts.append(action.name or f"action-{idx}")
            parts.append(action.function_ref.ref_name)
            descriptor = DESCRIPTOR_SEPARATOR.join(parts)

            count = used.get(descriptor, 0)
            used[descriptor] = count + 1
            if count:
                descriptor = f"{descriptor} ({count})"

            sites.append(ActionSite(descriptor=descriptor, state_name=state.name, action=action))
    return sites


def sites_for_function(sites: list[ActionSite], function_name: str) -> list[ActionSite]:
    return [s for s in sites if s.function_ref.ref_name == function_name]
