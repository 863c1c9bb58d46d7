"""
FSA (field-service ticket) helpers built on the search proxy.

An FSA is an issue in the Jira project ``FSA``. Technicians refer to it by its
number ("1234", "FSA 1234", "FSA-1234"). Store location data lives in custom
fields whose ids differ between Jira instances, so extraction walks a list of
candidate field keys and finally falls back to parsing the issue text.
"""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional

from rat_proxy.core.config import Settings
from rat_proxy.core.errors import FsaNotFoundError, ValidationError
from rat_proxy.models.jira import FsaDetails, Issue
from rat_proxy.services.jira_client import JiraClient

FSA_PROJECT = "FSA"

FSA_FIELDS: List[str] = [
    "summary",
    "description",
    "created",
    "customfield_14954",
    "customfield_14829",
    "customfield_14825",
    "customfield_12374",
    "customfield_12271",
    "customfield_11948",
    "customfield_11993",
    "customfield_11994",
    "customfield_12036",
]

ADDRESS_KEYS = ["customfield_12271", "customfield_address", "address", "endereco", "customfield_endereco"]
CITY_KEYS = ["customfield_11994", "cidade", "city", "customfield_city"]
STATE_KEYS = ["customfield_11948", "uf", "estado", "state", "customfield_state"]
STORE_KEYS = ["store", "codigoLoja", "customfield_store", "loja"]
PDV_KEYS = ["customfield_14829", "pdv"]

_FSA_NUMBER = re.compile(r"(?:FSA\s*-?\s*)?(\d{2,6})", re.IGNORECASE)
_STORE_CODE = re.compile(r"\b(\d{3,5})\b")
_STORE_DIGITS = re.compile(r"\d{3,5}")

_TEXT_ADDRESS = re.compile(r"Endereç[oa]:?\s*(.+)", re.IGNORECASE)
_TEXT_CITY = re.compile(r"Cidad[ea]:?\s*([^\W\d_]+(?:[ \t]+[^\W\d_]+)*)", re.IGNORECASE)
_TEXT_STATE = re.compile(r"\b(?:UF|Estado):?\s*([A-Z]{2})\b", re.IGNORECASE)
_TEXT_STORE = re.compile(r"Loja:?\s*(\d{3,5})", re.IGNORECASE)

# ADF nodes rendered on their own line
_ADF_BLOCKS = {"paragraph", "heading", "listItem", "blockquote", "codeBlock", "tableRow"}


def normalize_fsa(text: Optional[str]) -> Optional[str]:
    """Extract the FSA number from free input; None when there is none."""
    if not text:
        return None
    s = str(text).strip()
    if not s:
        return None
    m = _FSA_NUMBER.search(s)
    return m.group(1) if m else None


def extract_store_code(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    m = _STORE_CODE.search(str(text).strip())
    return m.group(1) if m else None


def build_jql_by_number(fsa_number: str) -> str:
    """JQL matching one FSA by key or by its number in the text, newest first."""
    digits = re.sub(r"\D", "", fsa_number or "")
    if not digits:
        raise ValidationError("Invalid FSA number")
    key = f"{FSA_PROJECT}-{digits}"
    return (
        f'project = {FSA_PROJECT} AND (key = "{key}" OR text ~ "{FSA_PROJECT} {digits}" '
        f'OR text ~ "{key}" OR summary ~ "{digits}") ORDER BY created DESC'
    )


def build_jql_all() -> str:
    return f"project = {FSA_PROJECT} ORDER BY created DESC"


def adf_to_text(node: Any) -> str:
    """Flatten an Atlassian Document Format tree into plain text."""
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, list):
        return "".join(adf_to_text(child) for child in node)
    if not isinstance(node, dict):
        return str(node)
    if node.get("type") == "text":
        return str(node.get("text", ""))
    if node.get("type") == "hardBreak":
        return "\n"
    inner = adf_to_text(node.get("content") or [])
    return f"{inner}\n" if node.get("type") in _ADF_BLOCKS else inner


def field_text(value: Any) -> Optional[str]:
    """Render a Jira field value as text (option objects, ADF documents, lists)."""
    if value is None or value == "" or value == []:
        return None
    if isinstance(value, dict):
        if "value" in value:
            return field_text(value["value"])
        if value.get("type") == "doc":
            return adf_to_text(value).strip() or None
        if "name" in value:
            return field_text(value["name"])
        return str(value)
    if isinstance(value, list):
        parts = [t for t in (field_text(v) for v in value) if t]
        return ", ".join(parts) or None
    return str(value)


def _candidates(configured: Optional[str], defaults: Iterable[str]) -> List[str]:
    return [k for k in [configured, *defaults] if k]


def _first_value(fields: Dict[str, Any], keys: Iterable[str]) -> Optional[str]:
    for k in keys:
        text = field_text(fields.get(k))
        if text:
            return text
    return None


def parse_issue_details(issue: Issue, settings: Settings) -> FsaDetails:
    """
    Pull store location details out of an FSA issue.

    Configured field ids are tried first, then the known custom fields and plain
    names. Whatever is still missing is parsed from the summary and description.
    """
    fields = issue.fields or {}
    details = FsaDetails(issueKey=issue.key)

    details.endereco = _first_value(fields, _candidates(settings.JIRA_FIELD_ADDRESS, ADDRESS_KEYS))
    details.cidade = _first_value(fields, _candidates(settings.JIRA_FIELD_CITY, CITY_KEYS))

    uf = _first_value(fields, _candidates(settings.JIRA_FIELD_STATE, STATE_KEYS))
    if uf:
        details.uf = uf.upper()[:2]

    for k in _candidates(settings.JIRA_FIELD_STORE, STORE_KEYS):
        m = _STORE_DIGITS.search(field_text(fields.get(k)) or "")
        if m:
            details.storeCode = m.group(0)
            break

    details.pdv = _first_value(fields, _candidates(settings.JIRA_FIELD_PDV, PDV_KEYS))

    text = "\n\n".join(t for t in (field_text(fields.get("summary")), field_text(fields.get("description"))) if t)
    if text:
        if not details.endereco:
            m = _TEXT_ADDRESS.search(text)
            if m:
                details.endereco = m.group(1).strip()
        if not details.cidade:
            m = _TEXT_CITY.search(text)
            if m:
                details.cidade = m.group(1).strip()
        if not details.uf:
            m = _TEXT_STATE.search(text)
            if m:
                details.uf = m.group(1).upper()
        if not details.storeCode:
            m = _TEXT_STORE.search(text)
            if m:
                details.storeCode = m.group(1)

    return details


async def search_fsa_by_number(jira: JiraClient, fsa_number: str) -> Issue:
    """Most recent issue matching the FSA number; FsaNotFoundError when none."""
    jql = build_jql_by_number(fsa_number)
    issue = await jira.search_first(jql, FSA_FIELDS)
    if issue is None:
        raise FsaNotFoundError(f'No FSA found for number "{fsa_number}". JQL used: {jql}', details={"jql": jql})
    return issue


async def fetch_fsa_details(
    jira: JiraClient,
    settings: Settings,
    fsa: str,
    store_hint: Optional[str] = None,
) -> FsaDetails:
    """Resolve an FSA to its store details; store_hint fills a missing store code."""
    number = normalize_fsa(fsa)
    if not number:
        raise ValidationError(f'Invalid FSA number: "{fsa}"')
    issue = await search_fsa_by_number(jira, number)
    details = parse_issue_details(issue, settings)
    details.fsaId = number
    if not details.storeCode:
        details.storeCode = extract_store_code(store_hint)
    return details
