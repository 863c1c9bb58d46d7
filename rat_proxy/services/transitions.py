from __future__ import annotations

from typing import Any, Dict, List, Optional

# Transition names accepted for each workflow status, English and Portuguese boards
WORKFLOW_TRANSITION_NAMES: Dict[str, tuple] = {
    "in_progress": ("In Progress", "Em andamento"),
    "waiting": ("Waiting", "Aguardando", "On Hold"),
    "done": ("Done", "Concluído", "Resolved"),
}


def map_status_to_workflow(status_name: Optional[str]) -> str:
    """Collapse a Jira status name into open / in_progress / waiting / done."""
    s = (status_name or "").lower()
    if "progress" in s or "andamento" in s:
        return "in_progress"
    if "wait" in s or "aguard" in s:
        return "waiting"
    if "done" in s or "concl" in s:
        return "done"
    return "open"


def pick_transition(transitions: List[Dict[str, Any]], target: str) -> Optional[str]:
    """Id of the transition whose name matches the target workflow status."""
    names = {n.lower() for n in WORKFLOW_TRANSITION_NAMES.get(target, ())}
    for t in transitions:
        if str(t.get("name", "")).lower() in names and t.get("id"):
            return str(t["id"])
    return None


def annotate_transitions(transitions: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Add the workflow status each transition leads to."""
    out = []
    for t in transitions:
        to_name = (t.get("to") or {}).get("name") or t.get("name")
        out.append({**t, "workflowStatus": map_status_to_workflow(to_name)})
    return out
