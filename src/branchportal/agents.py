"""
Branch agent: answers free-text questions about a branch's traders with the
hosted LLM.
"""
import logging
from typing import Iterable, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .errors import AgentError
from .schemas import TraderRecord
from .utils.normalize import parse_optional_datetime
from .utils.web_content import fetch_website_content

logger = logging.getLogger(__name__)

NO_TRADER_DATA = "No trader data available for this branch."

# Raw uploads and fetched pages are cut to keep the prompt bounded.
MAX_ATTACHMENT_CHARS = 20000


def _dmy(value: Optional[str]) -> str:
    parsed = parse_optional_datetime(value)
    return parsed.strftime("%d/%m/%Y") if parsed else ""


def format_trader_data_for_analysis(traders: Iterable[TraderRecord]) -> str:
    """One line per trader; optional fields are appended only when present."""
    traders = list(traders)
    if not traders:
        return NO_TRADER_DATA

    lines = []
    for t in traders:
        details = f"Trader: {t.name}, Status: {t.status}, Last Activity: {_dmy(t.last_activity)}"
        optional = [
            ("Call-Back Date", _dmy(t.call_back_date) if t.call_back_date else None),
            ("Reviews", t.reviews),
            ("Rating", t.rating),
            ("Total Assets", t.total_assets),
            ("Est. Annual Revenue", t.estimated_annual_revenue),
            ("Est. Company Value", t.estimated_company_value),
            ("Employees", t.employee_count),
            ("Description", t.description),
            ("Website", t.website),
            ("Phone", t.phone),
            ("Address", t.address),
            ("Main Category", t.main_category),
            ("Owner", t.owner_name),
            ("Owner Profile", t.owner_profile_link),
            ("Categories", t.categories),
            ("Hours", t.workday_timing),
            ("Notes", t.notes),
        ]
        for label, value in optional:
            if value not in (None, ""):
                details += f", {label}: {value}"
        lines.append(details)
    return "; \n".join(lines)


class BranchAgent:
    """Builds a prompt from branch data and asks the LLM for an answer.

    ``llm`` is anything with ``generate_text(prompt) -> str``; in production
    it is a ``BedrockLLM``.
    """

    def __init__(self, llm, fetcher=fetch_website_content):
        self.llm = llm
        self.fetcher = fetcher

    def build_prompt(
        self,
        query: str,
        trader_data: str,
        branch_id: Optional[str] = None,
        uploaded_file_content: Optional[str] = None,
        website_content: Optional[str] = None,
    ) -> str:
        sections: List[str] = [
            "You are a sales assistant for a builders' merchant branch."
            " Answer the question using the branch trader data below.",
        ]
        if branch_id:
            sections.append(f"Branch: {branch_id}")
        sections.append(f"Trader data:\n{trader_data}")
        if uploaded_file_content:
            sections.append(f"Uploaded file:\n{uploaded_file_content[:MAX_ATTACHMENT_CHARS]}")
        if website_content:
            sections.append(f"Website content:\n{website_content[:MAX_ATTACHMENT_CHARS]}")
        sections.append(f"Question: {query}")
        return "\n\n".join(sections)

    def answer(
        self,
        query: str,
        traders: Iterable[TraderRecord],
        uploaded_file_content: Optional[str] = None,
        branch_id: Optional[str] = None,
        website_url: Optional[str] = None,
    ) -> str:
        website_content = None
        if website_url:
            fetched = self.fetcher(website_url)
            if fetched["error"]:
                logger.warning("Ignoring website %s: %s", website_url, fetched["error"])
            website_content = fetched["content"]

        prompt = self.build_prompt(
            query,
            format_trader_data_for_analysis(traders),
            branch_id=branch_id,
            uploaded_file_content=uploaded_file_content,
            website_content=website_content,
        )
        try:
            text = self.llm.generate_text(prompt)
        except (BotoCoreError, ClientError) as exc:
            logger.exception("LLM call failed for branch %s", branch_id)
            raise AgentError(f"The assistant could not answer right now: {exc}") from exc

        if not text or not text.strip():
            raise AgentError("The assistant returned an empty answer.")
        return text.strip()
